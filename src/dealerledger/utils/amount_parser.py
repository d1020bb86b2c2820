"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re


def parse_amount(amount_str: str, allow_negative: bool = False) -> Decimal:
    """Parse an amount string into a whole-unit Decimal.

    Handles various formats:
    - "50000"
    - "₹50,000"
    - "Rs. 1,00,000" (Indian digit grouping)
    - "(5000)" (negative in parentheses)
    - "5000.00" (a zero fractional part is accepted)

    Args:
        amount_str: Amount string
        allow_negative: Accept negative amounts (opening balances)

    Returns:
        Decimal amount with no fractional part

    Raises:
        ValueError: If the string cannot be parsed, has a fractional part, or
            is negative when negatives are not allowed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols
    amount_str = re.sub(r"(?i)^\s*rs\.?|[₹$€£¥]", "", amount_str)

    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")

    if is_negative:
        amount = -amount
    if amount != amount.to_integral_value():
        raise ValueError(f"Amount must be a whole number of currency units, got '{amount_str}'")
    if amount < 0 and not allow_negative:
        raise ValueError(f"Amount cannot be negative, got {amount}")
    return amount.quantize(Decimal("1"))
