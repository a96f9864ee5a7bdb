"""Amount parsing utilities."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

# Largest amount the record store holds (Numeric(14, 2))
MAX_AMOUNT = Decimal("999999999999.99")


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "1,234.56"
    - "(123.45)" (negative in parentheses)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    amount_str = re.sub(r"[$€£¥]", "", amount_str)
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}': not a finite number")
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Amount '{amount_str}' is out of range")
    return -amount if is_negative else amount


def coerce_amount(value: Any) -> Decimal:
    """Best-effort conversion to a non-negative Decimal. Never raises.

    Direction of money is carried by the record type, so the sign is
    dropped. Anything unusable, including amounts above MAX_AMOUNT,
    becomes zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = parse_amount(value)
        else:
            return Decimal("0")
    except (ValueError, InvalidOperation):
        return Decimal("0")
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        return Decimal("0")
    return abs(amount)
