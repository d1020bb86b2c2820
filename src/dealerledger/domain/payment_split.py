"""Payment split validation.

A payment is split across cash, bank and credit. For a single method the
whole amount sits in that method's slot; for MIXED the three slots must add
up to the total exactly. Amounts are whole currency units, so there is no
rounding tolerance.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from dealerledger.domain.entities import PaymentMethod
from dealerledger.domain.errors import (
    InvalidAmountError,
    SplitMismatchError,
    amount_not_whole,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentSplit:
    """Breakdown of one payment across the three money sources."""

    method: PaymentMethod
    cash: Decimal = ZERO
    bank: Decimal = ZERO
    credit: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cash + self.bank + self.credit


def is_whole(amount: Decimal) -> bool:
    """Return True if the amount has no fractional currency units."""
    return amount == amount.to_integral_value()


def _slot(method: PaymentMethod, cash: Decimal, bank: Decimal, credit: Decimal) -> Decimal:
    return {
        PaymentMethod.CASH: cash,
        PaymentMethod.BANK: bank,
        PaymentMethod.CREDIT: credit,
    }[method]


def validate_split(
    total: Decimal,
    method: PaymentMethod,
    cash: Decimal = ZERO,
    bank: Decimal = ZERO,
    credit: Decimal = ZERO,
) -> PaymentSplit:
    """Check that a payment split reconciles to the stated total.

    Args:
        total: Stated total (positive, whole units)
        method: Payment method
        cash: Cash portion
        bank: Bank portion
        credit: Credit portion

    Returns:
        The validated PaymentSplit

    Raises:
        InvalidAmountError: If any sub-amount is negative or fractional
        SplitMismatchError: If the relevant sub-amount(s) do not equal the total,
            or a single-method payment carries money in another slot
    """
    method = PaymentMethod.parse(method)
    for name, value in (("cash", cash), ("bank", bank), ("credit", credit)):
        if value < 0:
            raise InvalidAmountError(f"{name.capitalize()} amount cannot be negative, got {value}")
        if not is_whole(value):
            raise InvalidAmountError(amount_not_whole(value))

    if method is PaymentMethod.MIXED:
        actual = cash + bank + credit
        if actual != total:
            raise SplitMismatchError(total, actual)
    else:
        actual = _slot(method, cash, bank, credit)
        if actual != total:
            raise SplitMismatchError(total, actual)
        others = cash + bank + credit - actual
        if others != 0:
            # Money in a slot the method does not use
            raise SplitMismatchError(total, actual + others)

    return PaymentSplit(method=method, cash=cash, bank=bank, credit=credit)


def single_method_split(method: PaymentMethod, amount: Decimal) -> PaymentSplit:
    """Build the canonical split that puts the whole amount in one method."""
    method = PaymentMethod.parse(method)
    if method is PaymentMethod.MIXED:
        raise InvalidAmountError("A MIXED payment needs explicit cash/bank/credit amounts")
    return PaymentSplit(
        method=method,
        cash=amount if method is PaymentMethod.CASH else ZERO,
        bank=amount if method is PaymentMethod.BANK else ZERO,
        credit=amount if method is PaymentMethod.CREDIT else ZERO,
    )


def infer_method(cash: Decimal, bank: Decimal, credit: Decimal = ZERO) -> PaymentMethod:
    """Pick the payment method implied by which slots carry money."""
    used = [
        method
        for method, value in (
            (PaymentMethod.CASH, cash),
            (PaymentMethod.BANK, bank),
            (PaymentMethod.CREDIT, credit),
        )
        if value > 0
    ]
    if len(used) == 1:
        return used[0]
    if not used:
        return PaymentMethod.CASH
    return PaymentMethod.MIXED


def resolve_split(
    total: Decimal,
    method: Optional[PaymentMethod] = None,
    cash: Decimal = ZERO,
    bank: Decimal = ZERO,
    credit: Decimal = ZERO,
) -> PaymentSplit:
    """Build and validate the split for a workflow call.

    Without a method the method is inferred from the slots. A single method
    with every slot empty puts the whole total in that method's slot.
    """
    if method is None:
        method = infer_method(cash, bank, credit)
        if cash == bank == credit == 0:
            return single_method_split(method, total)
    method = PaymentMethod.parse(method)
    if method is not PaymentMethod.MIXED and cash == bank == credit == 0:
        return single_method_split(method, total)
    return validate_split(total, method, cash, bank, credit)
