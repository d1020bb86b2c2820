"""Ledger history and correction commands."""

import click
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import date_or_exit, format_money
from dealerledger.cli.person_resolution import resolve_person_or_exit
from dealerledger.domain.balance import signed_contribution
from dealerledger.domain.entities import TransactionKind
from dealerledger.domain.errors import DomainError
from dealerledger.domain.history import TransactionQueryService
from dealerledger.domain.ledger import LedgerService
from dealerledger.domain.person import PersonService
from dealerledger.domain.sales import SaleService


@click.group("ledger")
def ledger_group():
    """Review and correct ledger entries."""
    pass


def _echo_entry(ctx, entry, with_person: bool = False):
    person = f"{entry.person_id} | " if with_person else ""
    click.echo(
        f"{entry.date} | {entry.id} | {person}{entry.kind.value:11s} | "
        f"{format_money(ctx, signed_contribution(entry)):>12s} | "
        f"{entry.payment_method.value:6s} | {entry.status.value:9s} | {entry.description}"
    )


@ledger_group.command("history")
@click.argument("person", metavar="PERSON")
@click.option("--from", "start_date", help="Only entries on or after this date")
@click.option("--to", "end_date", help="Only entries on or before this date")
@click.option("--limit", type=int, help="Show at most this many of the newest entries")
@click.pass_context
def history(ctx, person: str, start_date: str | None, end_date: str | None, limit: int | None):
    """Show a person's entries, newest first.

    PERSON can be a person ID or a unique name.
    """
    db = ctx.obj["db"]
    persons = PersonService(db, ctx.obj["config"])
    person_id = resolve_person_or_exit(ctx, persons, person)

    try:
        entries = TransactionQueryService(db).history(
            person_id,
            start_date=date_or_exit(ctx, start_date),
            end_date=date_or_exit(ctx, end_date),
            limit=limit,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not entries:
        click.echo("No entries found.")
        return

    for entry in entries:
        _echo_entry(ctx, entry)
    click.echo(f"\nBalance: {format_money(ctx, persons.require_person(person_id).balance)}")


@ledger_group.command("recent")
@click.option("--limit", type=int, default=10, show_default=True, help="Number of entries")
@click.pass_context
def recent(ctx, limit: int):
    """Show the latest entries across all persons."""
    try:
        entries = TransactionQueryService(ctx.obj["db"]).recent_entries(limit)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not entries:
        click.echo("No entries found.")
        return
    for entry in entries:
        _echo_entry(ctx, entry, with_person=True)


@ledger_group.command("verify")
@click.argument("person", metavar="PERSON", required=False)
@click.pass_context
def verify(ctx, person: str | None):
    """Check stored balances against the ledger.

    Without PERSON, every person is checked. Drift is reported, never fixed.
    """
    db = ctx.obj["db"]
    persons = PersonService(db, ctx.obj["config"])
    balances = LedgerService(db, ctx.obj["config"]).balances

    if person:
        person_ids = [resolve_person_or_exit(ctx, persons, person)]
    else:
        person_ids = [p.id for p in persons.list_persons()]

    drifted = 0
    for person_id in person_ids:
        try:
            check = balances.recompute(person_id)
        except DomainError as e:
            handle_domain_error(ctx, e)
        if check.is_consistent:
            click.echo(f"OK     {person_id} balance {format_money(ctx, check.stored)}")
        else:
            drifted += 1
            click.echo(
                f"DRIFT  {person_id} expected {format_money(ctx, check.expected)}, "
                f"stored {format_money(ctx, check.stored)}"
            )

    if drifted:
        click.echo(f"Error: {drifted} balance(s) disagree with the ledger", err=True)
        ctx.exit(1)


@ledger_group.command("cancel")
@click.argument("entry_id", metavar="ENTRY_ID")
@click.option("--date", "cancel_date", help="Date of the reversal (default: today)")
@click.pass_context
def cancel(ctx, entry_id: str, cancel_date: str | None):
    """Cancel an entry by posting a reversing entry.

    Cancelling an EMI payment also rebuilds its sale's installment schedule.
    """
    db = ctx.obj["db"]
    service = LedgerService(db, ctx.obj["config"])
    cancel_date = date_or_exit(ctx, cancel_date)

    try:
        entry = service.require_entry(entry_id)
        if entry.kind is TransactionKind.EMI_PAYMENT and not entry.is_reversal:
            receipt = SaleService(db, ctx.obj["config"]).cancel_emi_payment(entry_id, cancel_date)
            reversal = receipt.entry
        else:
            receipt = None
            reversal = service.cancel(entry_id, cancel_date=cancel_date)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Cancelled {entry_id} with reversal {reversal.id}")
    if receipt is not None:
        details = receipt.details
        click.echo(f"  Paid: {details.paid_installments}/{details.installments_count}")
        click.echo(f"  Sale status: {receipt.sale.status.value}")


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group)
