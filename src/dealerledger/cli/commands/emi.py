"""EMI collection commands."""

import click
from dealerledger.cli.commands.sale import payment_options
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import amount_or_exit, date_or_exit, format_money
from dealerledger.domain import emi as schedule
from dealerledger.domain.errors import DomainError
from dealerledger.domain.sales import SaleService


@click.group("emi")
def emi_group():
    """Collect and review EMI installments."""
    pass


@emi_group.command("pay")
@click.argument("sale_id", metavar="SALE_ID")
@payment_options
@click.option("--date", "payment_date", help="Payment date (YYYY-MM-DD or relative like 'today')")
@click.option("--id", "entry_id", help="Payment ID; repeating a payment with the same ID is safe")
@click.pass_context
def pay(ctx, sale_id, method, cash, bank, credit, payment_date, entry_id):
    """Collect an EMI payment.

    Examples:
        dealerledger emi pay 3f2c... --cash 8000
        dealerledger emi pay 3f2c... --cash 5000 --bank 11000 --id receipt-104
    """
    service = SaleService(ctx.obj["db"], ctx.obj["config"])

    try:
        receipt = service.record_emi_payment(
            sale_id=sale_id,
            cash=amount_or_exit(ctx, cash),
            bank=amount_or_exit(ctx, bank),
            credit=amount_or_exit(ctx, credit),
            payment_date=date_or_exit(ctx, payment_date),
            entry_id=entry_id,
            payment_method=method,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    details = receipt.details
    click.echo(f"Recorded payment {receipt.entry.id} of {format_money(ctx, receipt.entry.amount)}")
    click.echo(f"  {receipt.entry.description}")
    click.echo(f"  Paid: {details.paid_installments}/{details.installments_count}")
    if details.remaining_installments == 0:
        click.echo("  Schedule completed")
    else:
        click.echo(f"  Next due: {details.next_due_date}")
        click.echo(f"  Due now: {format_money(ctx, schedule.amount_to_clear_current(details))}")


@emi_group.command("due")
@click.option("--date", "on_date", help="Show installments due on or before this date (default: today)")
@click.pass_context
def due(ctx, on_date):
    """List EMI sales with an installment due."""
    service = SaleService(ctx.obj["db"], ctx.obj["config"])
    on_date = date_or_exit(ctx, on_date)

    due_sales = service.due_sales(on_date)
    if not due_sales:
        click.echo("No installments due.")
        return

    for sale, details in due_sales:
        customer = service.persons.get_person(sale.customer_id)
        name = customer.name if customer is not None else sale.customer_id
        click.echo(
            f"{details.next_due_date} | {sale.id} | {name:20s} | "
            f"Due: {format_money(ctx, schedule.amount_to_clear_current(details))} | "
            f"{details.paid_installments}/{details.installments_count} paid"
        )


@emi_group.command("show")
@click.argument("sale_id", metavar="SALE_ID")
@click.pass_context
def show(ctx, sale_id):
    """Show the installment schedule of a sale."""
    service = SaleService(ctx.obj["db"], ctx.obj["config"])
    details = service.get_emi_details(sale_id)
    if details is None:
        click.echo(f"Error: No EMI schedule for sale {sale_id}", err=True)
        ctx.exit(1)

    click.echo(f"Sale: {sale_id}")
    click.echo(f"State: {schedule.schedule_state(details).value}")
    click.echo(f"Interest rate: {details.interest_rate}%")
    click.echo(f"Price with interest: {format_money(ctx, details.price_with_interest)}")
    click.echo(
        f"Installment: {format_money(ctx, details.installment_amount)} {details.frequency.value.lower()}, "
        f"final {format_money(ctx, schedule.final_installment_amount(details))}"
    )
    click.echo(f"Paid: {details.paid_installments}/{details.installments_count}")
    click.echo(f"Pending balance: {format_money(ctx, details.pending_extra_balance)}")
    click.echo(f"Outstanding: {format_money(ctx, schedule.outstanding_amount(details))}")
    if details.remaining_installments > 0:
        click.echo(f"Next due: {details.next_due_date}")
    if details.last_paid_date is not None:
        click.echo(f"Last paid: {details.last_paid_date}")


def register_commands(cli):
    """Register EMI commands with main CLI."""
    cli.add_command(emi_group)
