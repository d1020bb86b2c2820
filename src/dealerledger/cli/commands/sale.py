"""Vehicle sale commands."""

from decimal import Decimal, InvalidOperation

import click
from dealerledger.cli.error_handling import handle_domain_error
from dealerledger.cli.input_parsing import amount_or_exit, date_or_exit, format_money
from dealerledger.cli.person_resolution import resolve_person_or_exit
from dealerledger.domain.entities import EmiFrequency, PaymentMethod, SaleType
from dealerledger.domain.errors import DomainError
from dealerledger.domain.sales import SaleService

PAYMENT_METHODS = [m.value for m in PaymentMethod]
FREQUENCIES = [f.value for f in EmiFrequency]


def payment_options(func):
    """Attach the shared payment split options to a command."""
    func = click.option("--credit", help="Credit portion")(func)
    func = click.option("--bank", help="Bank portion")(func)
    func = click.option("--cash", help="Cash portion")(func)
    func = click.option(
        "--method",
        type=click.Choice(PAYMENT_METHODS, case_sensitive=False),
        help="Payment method (inferred from the portions if omitted)",
    )(func)
    return func


@click.group("sale")
def sale_group():
    """Record vehicle sales."""
    pass


@sale_group.command("full")
@click.argument("customer", metavar="CUSTOMER")
@click.option("--total", required=True, help="Sale price")
@payment_options
@click.option("--vehicle", help="Vehicle ID")
@click.option("--date", "sale_date", help="Sale date (YYYY-MM-DD or relative like 'today')")
@click.option("--id", "sale_id", help="Sale ID (generated if not provided)")
@click.pass_context
def full_sale(ctx, customer, total, method, cash, bank, credit, vehicle, sale_date, sale_id):
    """Record a fully paid sale.

    Examples:
        dealerledger sale full "Ravi Kumar" --total 50000 --method CASH
        dealerledger sale full "Ravi Kumar" --total 50000 --cash 20000 --bank 30000
    """
    service = SaleService(ctx.obj["db"], ctx.obj["config"])
    customer_id = resolve_person_or_exit(ctx, service.persons, customer)

    try:
        sale = service.record_sale(
            customer_id=customer_id,
            total_amount=amount_or_exit(ctx, total),
            sale_type=SaleType.FULL_PAYMENT,
            payment_method=method,
            cash=amount_or_exit(ctx, cash),
            bank=amount_or_exit(ctx, bank),
            credit=amount_or_exit(ctx, credit),
            vehicle_ref=vehicle,
            sale_date=date_or_exit(ctx, sale_date),
            sale_id=sale_id,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Recorded sale {sale.id}")
    click.echo(f"  Total: {format_money(ctx, sale.total_amount)}")
    click.echo(f"  Status: {sale.status.value}")


@sale_group.command("emi")
@click.argument("customer", metavar="CUSTOMER")
@click.option("--total", required=True, help="Sale price")
@click.option("--installments", required=True, type=int, help="Number of installments")
@click.option("--down-payment", help="Amount paid up front")
@click.option("--rate", default="0", show_default=True, help="Interest rate in percent over the whole term")
@click.option(
    "--frequency",
    type=click.Choice(FREQUENCIES, case_sensitive=False),
    default="MONTHLY",
    show_default=True,
)
@payment_options
@click.option("--vehicle", help="Vehicle ID")
@click.option("--date", "sale_date", help="Sale date (YYYY-MM-DD or relative like 'today')")
@click.option("--id", "sale_id", help="Sale ID (generated if not provided)")
@click.pass_context
def emi_sale(
    ctx, customer, total, installments, down_payment, rate, frequency,
    method, cash, bank, credit, vehicle, sale_date, sale_id,
):
    """Record a sale paid in installments.

    The payment options describe the down payment.

    Examples:
        dealerledger sale emi "Ravi Kumar" --total 100000 --installments 10
        dealerledger sale emi "Ravi Kumar" --total 120000 --down-payment 20000 --cash 20000 --rate 12 --installments 12
    """
    service = SaleService(ctx.obj["db"], ctx.obj["config"])
    customer_id = resolve_person_or_exit(ctx, service.persons, customer)
    try:
        interest_rate = Decimal(rate)
    except InvalidOperation:
        click.echo(f"Error: Invalid interest rate '{rate}'", err=True)
        ctx.exit(1)

    try:
        sale = service.record_sale(
            customer_id=customer_id,
            total_amount=amount_or_exit(ctx, total),
            sale_type=SaleType.EMI,
            payment_method=method,
            cash=amount_or_exit(ctx, cash),
            bank=amount_or_exit(ctx, bank),
            credit=amount_or_exit(ctx, credit),
            vehicle_ref=vehicle,
            sale_date=date_or_exit(ctx, sale_date),
            down_payment=amount_or_exit(ctx, down_payment),
            interest_rate=interest_rate,
            frequency=EmiFrequency.parse(frequency),
            installments_count=installments,
            sale_id=sale_id,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    details = service.get_emi_details(sale.id)
    click.echo(f"Recorded EMI sale {sale.id}")
    click.echo(f"  Total: {format_money(ctx, sale.total_amount)}")
    click.echo(f"  Down payment: {format_money(ctx, sale.down_payment)}")
    click.echo(f"  Price with interest: {format_money(ctx, details.price_with_interest)}")
    click.echo(
        f"  Installments: {details.installments_count} x {format_money(ctx, details.installment_amount)} "
        f"{details.frequency.value.lower()}"
    )
    click.echo(f"  First due: {details.next_due_date}")


@sale_group.command("list")
@click.option("--customer", help="Only list sales to this customer")
@click.pass_context
def list_sales(ctx, customer: str | None):
    """List sales, newest first."""
    service = SaleService(ctx.obj["db"], ctx.obj["config"])
    customer_id = resolve_person_or_exit(ctx, service.persons, customer) if customer else None

    sales = service.list_sales(customer_id=customer_id)
    if not sales:
        click.echo("No sales found.")
        return

    for s in sales:
        click.echo(
            f"{s.sale_date} | {s.id} | {s.sale_type.value:12s} | "
            f"{format_money(ctx, s.total_amount)} | {s.status.value}"
        )


def register_commands(cli):
    """Register sale commands with main CLI."""
    cli.add_command(sale_group)
