"""CLI helpers for parsing amount and date options."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import click
from dealerledger.utils.amount_parser import parse_amount
from dealerledger.utils.date_parser import parse_date


def amount_or_exit(ctx: click.Context, value: str | None, allow_negative: bool = False) -> Decimal:
    """Parse an amount option; a missing option is 0."""
    if value is None:
        return Decimal("0")
    try:
        return parse_amount(value, allow_negative=allow_negative)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


def date_or_exit(ctx: click.Context, value: str | None) -> date | None:
    """Parse a date option; a missing option is None."""
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


def format_money(ctx: click.Context, amount: Decimal) -> str:
    """Format an amount with the configured currency symbol."""
    symbol = ctx.obj["config"].currency_symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,}"
