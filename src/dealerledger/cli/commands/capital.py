"""Capital audit and transfer commands."""

from decimal import Decimal

import click
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import amount_or_exit, date_or_exit, format_money
from dealerledger.cli.person_resolution import resolve_person_or_exit
from dealerledger.domain.capital import CapitalService
from dealerledger.domain.entities import CapitalSource
from dealerledger.domain.errors import DomainError, ValidationError
from dealerledger.domain.transfers import TransferService

SOURCES = [s.value for s in CapitalSource]


def _as_source(value: str) -> CapitalSource | None:
    try:
        return CapitalSource.parse(value)
    except ValidationError:
        return None


@click.group("capital")
def capital_group():
    """Review dealer capital movements."""
    pass


@capital_group.command("balance")
@click.pass_context
def balance(ctx):
    """Show the net capital movement per source."""
    service = CapitalService(ctx.obj["db"])
    total = Decimal("0")
    for source in CapitalSource:
        amount = service.balance(source)
        total += amount
        click.echo(f"{source.value:6s} {format_money(ctx, amount)}")
    click.echo(f"TOTAL  {format_money(ctx, total)}")


@capital_group.command("list")
@click.option("--source", type=click.Choice(SOURCES, case_sensitive=False), help="Only this source")
@click.pass_context
def list_transactions(ctx, source: str | None):
    """List capital movements, newest first."""
    service = CapitalService(ctx.obj["db"])

    transactions = service.list_transactions(source=source)
    if not transactions:
        click.echo("No capital movements found.")
        return

    for txn in transactions:
        reference = str(txn.reference) if txn.reference is not None else ""
        click.echo(
            f"{txn.transaction_date} | {txn.source.value:6s} | "
            f"{format_money(ctx, txn.amount):>12s} | {reference} | {txn.description}"
        )


@capital_group.command("transfer")
@click.argument("source", metavar="FROM")
@click.argument("target", metavar="TO")
@click.option("--amount", required=True, help="Amount to transfer")
@click.option("--date", "transfer_date", help="Transfer date (default: today)")
@click.option("--id", "transfer_id", help="Transfer ID; repeating a transfer with the same ID is safe")
@click.pass_context
def transfer(ctx, source: str, target: str, amount: str, transfer_date: str | None, transfer_id: str | None):
    """Move money between a person, cash and bank.

    FROM and TO are each 'cash', 'bank' or a person (ID or unique name).

    Examples:
        dealerledger capital transfer cash bank --amount 20000
        dealerledger capital transfer "Ravi Kumar" cash --amount 5000
    """
    db = ctx.obj["db"]
    service = TransferService(db, ctx.obj["config"])
    value = amount_or_exit(ctx, amount)
    on_date = date_or_exit(ctx, transfer_date)
    from_source = _as_source(source)
    to_source = _as_source(target)

    if from_source is None and to_source is None:
        click.echo("Error: One side of a transfer must be cash or bank", err=True)
        ctx.exit(1)

    try:
        if from_source is not None and to_source is not None:
            outflow, inflow = service.between_sources(
                from_source, to_source, value, transfer_date=on_date, transfer_id=transfer_id
            )
            click.echo(f"Moved {format_money(ctx, inflow.amount)} from {outflow.source.value} to {inflow.source.value}")
            return
        if to_source is not None:
            person_id = resolve_person_or_exit(ctx, service.persons, source)
            entry = service.to_capital(
                person_id, to_source, value, transfer_date=on_date, transfer_id=transfer_id
            )
        else:
            person_id = resolve_person_or_exit(ctx, service.persons, target)
            entry = service.from_capital(
                from_source, person_id, value, transfer_date=on_date, transfer_id=transfer_id
            )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Recorded transfer {entry.id}: {entry.description}")


def register_commands(cli):
    """Register capital commands with main CLI."""
    cli.add_command(capital_group)
