"""Person management commands."""

import click
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import amount_or_exit, format_money
from dealerledger.cli.person_resolution import resolve_person_or_exit
from dealerledger.domain.entities import PersonType
from dealerledger.domain.errors import DomainError
from dealerledger.domain.person import PersonService

PERSON_TYPES = [t.value for t in PersonType]


@click.group("person")
def person_group():
    """Manage customers, brokers and middle-men."""
    pass


@person_group.command("add")
@click.argument("name", metavar="NAME")
@click.option(
    "--type",
    "person_type",
    type=click.Choice(PERSON_TYPES, case_sensitive=False),
    default="CUSTOMER",
    show_default=True,
    help="Person type",
)
@click.option("--phone", default="", help="Phone number")
@click.option("--address", default="", help="Postal address")
@click.option("--id-proof-type", default="", help="Identity document type (e.g. Aadhaar)")
@click.option("--id-proof-number", default="", help="Identity document number")
@click.option("--opening-balance", help="Opening balance; positive means the person owes the dealer")
@click.pass_context
def add_person(
    ctx,
    name: str,
    person_type: str,
    phone: str,
    address: str,
    id_proof_type: str,
    id_proof_number: str,
    opening_balance: str | None,
):
    """Register a new person.

    Examples:
        dealerledger person add "Ravi Kumar" --phone 9876543210
        dealerledger person add "Suresh" --type BROKER
        dealerledger person add "Anil" --opening-balance "(15,000)"
    """
    service = PersonService(ctx.obj["db"], ctx.obj["config"])
    balance = amount_or_exit(ctx, opening_balance, allow_negative=True)

    try:
        person_id = service.register(
            person_type=PersonType.parse(person_type),
            name=name,
            phone=phone,
            address=address,
            id_proof_type=id_proof_type,
            id_proof_number=id_proof_number,
            opening_balance=balance,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Registered {person_type.upper()} '{name}' (ID: {person_id})")


@person_group.command("list")
@click.option(
    "--type",
    "person_type",
    type=click.Choice(PERSON_TYPES, case_sensitive=False),
    help="Only list this person type",
)
@click.pass_context
def list_persons(ctx, person_type: str | None):
    """List people with their balances."""
    service = PersonService(ctx.obj["db"], ctx.obj["config"])

    persons = service.list_persons(person_type=person_type)
    if not persons:
        click.echo("No people found.")
        return

    click.echo("\nPeople:")
    click.echo("-" * 80)
    for p in persons:
        click.echo(
            f"ID: {p.id} | {p.name:20s} | {p.person_type.value:10s} | "
            f"Balance: {format_money(ctx, p.balance)}"
        )


@person_group.command("show")
@click.argument("person", metavar="PERSON")
@click.pass_context
def show_person(ctx, person: str):
    """Show a person's details.

    PERSON can be a person ID or a unique name.
    """
    service = PersonService(ctx.obj["db"], ctx.obj["config"])
    person_id = resolve_person_or_exit(ctx, service, person)
    p = service.require_person(person_id)

    click.echo(f"ID: {p.id}")
    click.echo(f"Name: {p.name}")
    click.echo(f"Type: {p.person_type.value}")
    if p.phone:
        click.echo(f"Phone: {p.phone}")
    if p.address:
        click.echo(f"Address: {p.address}")
    if p.id_proof_type or p.id_proof_number:
        click.echo(f"ID proof: {p.id_proof_type} {p.id_proof_number}".rstrip())
    click.echo(f"Opening balance: {format_money(ctx, p.opening_balance)}")
    click.echo(f"Balance: {format_money(ctx, p.balance)}")


@person_group.command("edit")
@click.argument("person", metavar="PERSON")
@click.option("--name", help="New name")
@click.option("--phone", help="New phone number")
@click.option("--address", help="New address")
@click.pass_context
def edit_person(ctx, person: str, name: str | None, phone: str | None, address: str | None):
    """Update a person's contact details. Balances are never edited."""
    service = PersonService(ctx.obj["db"], ctx.obj["config"])
    person_id = resolve_person_or_exit(ctx, service, person)

    try:
        updated = service.update_details(person_id, name=name, phone=phone, address=address)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated '{updated.name}' (ID: {updated.id})")


def register_commands(cli):
    """Register person commands with main CLI."""
    cli.add_command(person_group)
