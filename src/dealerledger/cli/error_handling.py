"""CLI error handling helpers."""

import logging

import click

from dealerledger.domain.errors import (
    BalanceDriftError,
    DomainError,
    StoreError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)

HINTS = {
    VersionConflictError: "Another change to the same record was saved first; run the command again.",
    BalanceDriftError: "Run 'dealerledger ledger verify' to list every affected person.",
    StoreError: "Check that the database file is writable.",
}


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    logger.debug("Command failed", exc_info=error)
    click.echo(f"Error: {error}", err=True)
    for error_type, hint in HINTS.items():
        if isinstance(error, error_type):
            click.echo(hint, err=True)
            break
    ctx.exit(1)
