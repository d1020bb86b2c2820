"""CLI helpers for person resolution."""

from __future__ import annotations

import click
from dealerledger.domain.person import PersonService
from dealerledger.utils.person_resolver import resolve_person


def resolve_person_or_exit(ctx: click.Context, person_service: PersonService, person: str) -> str:
    """Resolve person name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_person(person_service, person)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
