"""Tests for payment split validation."""

import pytest
from decimal import Decimal

from dealerledger.domain.entities import PaymentMethod
from dealerledger.domain.errors import InvalidAmountError, SplitMismatchError
from dealerledger.domain.payment_split import (
    infer_method,
    resolve_split,
    single_method_split,
    validate_split,
)


class TestValidateSplit:
    """Tests for validate_split."""

    def test_single_method_exact(self):
        split = validate_split(Decimal("5000"), PaymentMethod.CASH, cash=Decimal("5000"))
        assert split.method is PaymentMethod.CASH
        assert split.cash == Decimal("5000")
        assert split.total == Decimal("5000")

    def test_single_method_short_raises(self):
        with pytest.raises(SplitMismatchError) as exc_info:
            validate_split(Decimal("5000"), PaymentMethod.CASH, cash=Decimal("4000"))
        assert exc_info.value.expected == Decimal("5000")
        assert exc_info.value.actual == Decimal("4000")

    def test_single_method_with_money_elsewhere_raises(self):
        with pytest.raises(SplitMismatchError):
            validate_split(
                Decimal("5000"), PaymentMethod.CASH, cash=Decimal("5000"), bank=Decimal("100")
            )

    def test_mixed_must_sum_exactly(self):
        split = validate_split(
            Decimal("10000"),
            PaymentMethod.MIXED,
            cash=Decimal("2000"),
            bank=Decimal("5000"),
            credit=Decimal("3000"),
        )
        assert split.cash + split.bank + split.credit == Decimal("10000")

    def test_mixed_mismatch_reports_sum(self):
        with pytest.raises(SplitMismatchError) as exc_info:
            validate_split(
                Decimal("10000"), PaymentMethod.MIXED, cash=Decimal("2000"), bank=Decimal("5000")
            )
        assert exc_info.value.actual == Decimal("7000")

    def test_negative_sub_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            validate_split(
                Decimal("1000"), PaymentMethod.MIXED, cash=Decimal("1500"), bank=Decimal("-500")
            )

    def test_fractional_sub_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            validate_split(Decimal("1000.50"), PaymentMethod.BANK, bank=Decimal("1000.50"))

    def test_accepts_method_string(self):
        split = validate_split(Decimal("700"), "bank", bank=Decimal("700"))
        assert split.method is PaymentMethod.BANK


def test_single_method_split_places_amount():
    split = single_method_split(PaymentMethod.CREDIT, Decimal("900"))
    assert (split.cash, split.bank, split.credit) == (0, 0, Decimal("900"))


def test_single_method_split_rejects_mixed():
    with pytest.raises(InvalidAmountError):
        single_method_split(PaymentMethod.MIXED, Decimal("900"))


@pytest.mark.parametrize(
    "cash,bank,credit,expected",
    [
        ("100", "0", "0", PaymentMethod.CASH),
        ("0", "100", "0", PaymentMethod.BANK),
        ("0", "0", "100", PaymentMethod.CREDIT),
        ("50", "50", "0", PaymentMethod.MIXED),
        ("0", "0", "0", PaymentMethod.CASH),
    ],
)
def test_infer_method(cash, bank, credit, expected):
    assert infer_method(Decimal(cash), Decimal(bank), Decimal(credit)) is expected


def test_resolve_split_fills_single_method():
    split = resolve_split(Decimal("5000"), PaymentMethod.BANK)
    assert split.bank == Decimal("5000")


def test_resolve_split_infers_mixed():
    split = resolve_split(Decimal("5000"), None, cash=Decimal("2000"), bank=Decimal("3000"))
    assert split.method is PaymentMethod.MIXED


def test_resolve_split_still_validates():
    with pytest.raises(SplitMismatchError):
        resolve_split(Decimal("5000"), PaymentMethod.CASH, cash=Decimal("4000"))
