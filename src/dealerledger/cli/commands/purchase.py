"""Vehicle purchase commands."""

import click
from dealerledger.cli.commands.sale import payment_options
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import amount_or_exit, date_or_exit, format_money
from dealerledger.cli.person_resolution import resolve_person_or_exit
from dealerledger.domain.errors import DomainError
from dealerledger.domain.purchases import PurchaseService


@click.group("purchase")
def purchase_group():
    """Record vehicle purchases."""
    pass


@purchase_group.command("add")
@click.argument("seller", metavar="SELLER")
@click.option("--total", required=True, help="Grand total including GST")
@click.option("--gst", help="GST part of the grand total")
@payment_options
@click.option("--vehicle", help="Vehicle ID")
@click.option("--broker", help="Broker or middle-man name or ID")
@click.option("--broker-fee", help="Fee paid to the broker in cash")
@click.option("--date", "purchase_date", help="Purchase date (YYYY-MM-DD or relative like 'today')")
@click.option("--id", "purchase_id", help="Purchase ID (generated if not provided)")
@click.pass_context
def add_purchase(
    ctx, seller, total, gst, method, cash, bank, credit,
    vehicle, broker, broker_fee, purchase_date, purchase_id,
):
    """Record a vehicle bought from a seller.

    Examples:
        dealerledger purchase add "Mohan" --total 40000 --method BANK
        dealerledger purchase add "Mohan" --total 40000 --cash 10000 --bank 30000 --broker "Suresh" --broker-fee 1000
    """
    service = PurchaseService(ctx.obj["db"], ctx.obj["config"])
    seller_id = resolve_person_or_exit(ctx, service.persons, seller)
    broker_id = resolve_person_or_exit(ctx, service.persons, broker) if broker else None

    try:
        purchase = service.record_purchase(
            seller_id=seller_id,
            grand_total=amount_or_exit(ctx, total),
            gst_amount=amount_or_exit(ctx, gst),
            payment_method=method,
            cash=amount_or_exit(ctx, cash),
            bank=amount_or_exit(ctx, bank),
            credit=amount_or_exit(ctx, credit),
            vehicle_ref=vehicle,
            broker_id=broker_id,
            broker_fee=amount_or_exit(ctx, broker_fee) if broker_fee else None,
            purchase_date=date_or_exit(ctx, purchase_date),
            purchase_id=purchase_id,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Recorded purchase {purchase.id} (order #{purchase.order_number})")
    click.echo(f"  Total: {format_money(ctx, purchase.grand_total)}")
    if purchase.broker_fee is not None:
        click.echo(f"  Broker fee: {format_money(ctx, purchase.broker_fee)}")


@purchase_group.command("list")
@click.pass_context
def list_purchases(ctx):
    """List purchases, newest order first."""
    service = PurchaseService(ctx.obj["db"], ctx.obj["config"])

    purchases = service.list_purchases()
    if not purchases:
        click.echo("No purchases found.")
        return

    for p in purchases:
        click.echo(
            f"#{p.order_number:<5d} | {p.id} | {format_money(ctx, p.grand_total)} | "
            f"{p.payment_method.value}"
        )


def register_commands(cli):
    """Register purchase commands with main CLI."""
    cli.add_command(purchase_group)
