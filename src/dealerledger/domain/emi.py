"""EMI schedule engine.

Pure functions over EmiDetails. A schedule is created once at sale time and
advanced on every payment; each call returns a new EmiDetails value.

Interest is simple interest applied once over the whole term. The regular
installment is rounded to the nearest whole currency unit and the final
installment absorbs the difference, so it may be a little larger or smaller
than the regular one. The installments always add up to the price with
interest.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from dateutil.relativedelta import relativedelta

from dealerledger.domain.entities import EmiDetails, EmiFrequency, EmiState
from dealerledger.domain.errors import (
    InvalidAmountError,
    ScheduleAlreadyCompleteError,
    ValidationError,
    amount_not_positive,
    amount_not_whole,
)
from dealerledger.domain.payment_split import is_whole

ZERO = Decimal("0")
HUNDRED = Decimal("100")

PERIODS = {
    EmiFrequency.MONTHLY: relativedelta(months=1),
    EmiFrequency.QUARTERLY: relativedelta(months=3),
    EmiFrequency.YEARLY: relativedelta(years=1),
}


def _whole_units(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def advance_due_date(current: date, frequency: EmiFrequency, periods: int = 1) -> date:
    """Move a due date forward by whole payment periods."""
    result = current
    for _ in range(periods):
        result = result + PERIODS[EmiFrequency.parse(frequency)]
    return result


def create_schedule(
    total_price: Decimal,
    down_payment: Decimal,
    interest_rate: Decimal,
    frequency: EmiFrequency,
    installments_count: int,
    purchase_date: date,
    vehicle_sale_ref: str = "",
) -> EmiDetails:
    """Compute an installment plan for a sale.

    Args:
        total_price: Sale price (positive, whole units)
        down_payment: Amount paid up front (0 <= down_payment < total_price)
        interest_rate: Interest rate in percent, applied once over the term
        frequency: Payment frequency
        installments_count: Number of installments (at least 1)
        purchase_date: Sale date; the first installment is due one period later
        vehicle_sale_ref: ID of the owning sale

    Returns:
        New schedule in the SCHEDULED state

    Raises:
        InvalidAmountError: If the price or down payment is invalid
        ValidationError: If the rate or installment count is invalid, or the
            financed amount is too small to split into that many installments
    """
    frequency = EmiFrequency.parse(frequency)
    if total_price <= 0:
        raise InvalidAmountError(amount_not_positive(total_price))
    for value in (total_price, down_payment):
        if not is_whole(value):
            raise InvalidAmountError(amount_not_whole(value))
    if down_payment < 0 or down_payment >= total_price:
        raise InvalidAmountError(
            f"Down payment must be at least 0 and less than the total price {total_price}, got {down_payment}"
        )
    if interest_rate < 0:
        raise ValidationError(f"Interest rate cannot be negative, got {interest_rate}")
    if installments_count < 1:
        raise ValidationError(f"Installments count must be at least 1, got {installments_count}")

    financed = total_price - down_payment
    price_with_interest = _whole_units(financed * (1 + Decimal(interest_rate) / HUNDRED))
    installment_amount = _whole_units(price_with_interest / installments_count)
    final_amount = price_with_interest - installment_amount * (installments_count - 1)
    if installment_amount < 1 or final_amount < 1:
        raise ValidationError(
            f"{price_with_interest} cannot be split into {installments_count} installments "
            f"of at least 1 each (regular {installment_amount}, final {final_amount})"
        )

    return EmiDetails(
        vehicle_sale_ref=vehicle_sale_ref,
        interest_rate=Decimal(interest_rate),
        frequency=frequency,
        installments_count=installments_count,
        installment_amount=installment_amount,
        price_with_interest=price_with_interest,
        next_due_date=advance_due_date(purchase_date, frequency),
        remaining_installments=installments_count,
        paid_installments=0,
        pending_extra_balance=ZERO,
    )


def final_installment_amount(details: EmiDetails) -> Decimal:
    """Amount of the last installment, which absorbs the rounding."""
    return details.price_with_interest - details.installment_amount * (details.installments_count - 1)


def _due_for(details: EmiDetails, remaining: int) -> Decimal:
    if remaining <= 0:
        return ZERO
    if remaining == 1:
        return final_installment_amount(details)
    return details.installment_amount


def installment_due(details: EmiDetails) -> Decimal:
    """Full amount of the current (oldest unpaid) installment."""
    return _due_for(details, details.remaining_installments)


def _progress(details: EmiDetails) -> Decimal:
    # Money already held toward the current installment
    pending = details.pending_extra_balance
    if pending < 0:
        return installment_due(details) + pending
    return pending


def amount_to_clear_current(details: EmiDetails) -> Decimal:
    """What still has to be paid to consume the current installment."""
    if details.remaining_installments == 0:
        return ZERO
    return max(installment_due(details) - _progress(details), ZERO)


def outstanding_amount(details: EmiDetails) -> Decimal:
    """Total still owed on the schedule; negative when overpaid."""
    remaining = details.remaining_installments
    if remaining == 0:
        return -details.pending_extra_balance
    scheduled = details.installment_amount * (remaining - 1) + final_installment_amount(details)
    return scheduled - _progress(details)


def schedule_state(details: EmiDetails) -> EmiState:
    """Derive the schedule's state from its counters."""
    if details.remaining_installments == 0:
        return EmiState.COMPLETED
    if details.paid_installments > 0:
        return EmiState.IN_PROGRESS
    return EmiState.SCHEDULED


def apply_payment(details: EmiDetails, paid_amount: Decimal, payment_date: date) -> EmiDetails:
    """Advance a schedule by one payment.

    The payment plus whatever is already held toward the current installment
    consumes as many whole installments as it covers; the remainder is carried
    forward. A payment that covers no installment leaves the shortfall on the
    current one as a negative pending balance.

    Args:
        details: Current schedule
        paid_amount: Amount paid (positive, whole units)
        payment_date: Date of the payment

    Returns:
        The advanced schedule

    Raises:
        ScheduleAlreadyCompleteError: If no installments remain
        InvalidAmountError: If paid_amount is not positive or not whole
    """
    if details.remaining_installments == 0:
        raise ScheduleAlreadyCompleteError(
            f"EMI schedule for sale {details.vehicle_sale_ref} is already complete"
        )
    if paid_amount <= 0:
        raise InvalidAmountError(amount_not_positive(paid_amount))
    if not is_whole(paid_amount):
        raise InvalidAmountError(amount_not_whole(paid_amount))

    available = paid_amount + _progress(details)
    paid = details.paid_installments
    remaining = details.remaining_installments
    next_due = details.next_due_date
    consumed = 0

    while remaining > 0:
        due = _due_for(details, remaining)
        if available < due:
            break
        available -= due
        paid += 1
        remaining -= 1
        next_due = advance_due_date(next_due, details.frequency)
        consumed += 1

    if consumed == 0:
        pending = available - _due_for(details, remaining)
    else:
        pending = available

    return replace(
        details,
        paid_installments=paid,
        remaining_installments=remaining,
        next_due_date=next_due,
        pending_extra_balance=pending,
        last_paid_date=payment_date,
    )


def replay_payments(
    details: EmiDetails,
    first_due_date: date,
    payments: Iterable[tuple[Decimal, date]],
) -> EmiDetails:
    """Rebuild a schedule's progress from its terms and a list of payments.

    Used when a payment is reversed: the schedule is reset to its state at
    sale time and every payment that still stands is applied again, in the
    order given. A payment that arrives after the schedule is complete is
    kept as credit.

    Args:
        details: Schedule whose terms (amounts, count, frequency) are kept
        first_due_date: Due date of the first installment
        payments: (amount, payment date) pairs

    Returns:
        The rebuilt schedule
    """
    rebuilt = replace(
        details,
        paid_installments=0,
        remaining_installments=details.installments_count,
        pending_extra_balance=ZERO,
        next_due_date=first_due_date,
        last_paid_date=None,
    )
    for amount, payment_date in payments:
        if rebuilt.remaining_installments == 0:
            # Completed earlier in this order than when first applied
            rebuilt = replace(
                rebuilt,
                pending_extra_balance=rebuilt.pending_extra_balance + amount,
                last_paid_date=payment_date,
            )
            continue
        rebuilt = apply_payment(rebuilt, amount, payment_date)
    return rebuilt
