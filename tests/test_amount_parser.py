"""Tests for amount parsing."""

import pytest
from decimal import Decimal

from dealerledger.utils.amount_parser import parse_amount


@pytest.mark.parametrize(
    "text,expected",
    [
        ("50000", Decimal("50000")),
        ("₹50,000", Decimal("50000")),
        ("Rs. 1,00,000", Decimal("100000")),
        ("rs 750", Decimal("750")),
        ("5000.00", Decimal("5000")),
        ("  1200 ", Decimal("1200")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


def test_negative_needs_permission():
    with pytest.raises(ValueError):
        parse_amount("-500")
    assert parse_amount("-500", allow_negative=True) == Decimal("-500")
    assert parse_amount("(1,500)", allow_negative=True) == Decimal("-1500")


@pytest.mark.parametrize("text", ["", "   ", "abc", "12.50"])
def test_invalid_amounts(text):
    with pytest.raises(ValueError):
        parse_amount(text)
