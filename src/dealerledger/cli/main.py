"""Main CLI entry point."""

from dataclasses import replace

import click
from dealerledger.config import configure_logging, load_config
from dealerledger.database.factories import create_sqlite_database

# Import and register all commands at module level
from dealerledger.cli.commands import (
    person,
    sale,
    emi,
    purchase,
    ledger,
    capital,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides DEALERLEDGER_DB_PATH environment variable)",
    envvar="DEALERLEDGER_DB_PATH",
)
@click.pass_context
def cli(ctx, db_path: str | None):
    """Dealerledger - Vehicle dealer ledger.

    Record vehicle purchases and sales, collect EMI installments and keep
    every customer's and broker's running balance.
    """
    ctx.ensure_object(dict)

    try:
        config = load_config()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    if db_path is not None:
        config = replace(config, database_path=db_path)
    configure_logging(config)
    ctx.obj["config"] = config

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=config.database_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
person.register_commands(cli)
sale.register_commands(cli)
emi.register_commands(cli)
purchase.register_commands(cli)
ledger.register_commands(cli)
capital.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
