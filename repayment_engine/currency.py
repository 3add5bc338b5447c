"""
Currency Arithmetic Module

All monetary values are integers in the smallest currency unit (e.g. rupiah,
cents). NEVER uses float for monetary values: amounts are parsed through
Decimal and every division in the engine is integer division.
"""

from decimal import Decimal, InvalidOperation
from typing import List, Union
import re


MinorUnits = int


def to_minor_units(value: Union[int, str, Decimal]) -> MinorUnits:
    """
    Convert an external amount to integer minor units

    Args:
        value: int, Decimal, or numeric string such as "1,000,000",
            "IDR 1.000.000" or "750000"

    Returns:
        Integer amount

    Raises:
        ValueError: If the value is a float, a bool, fractional, or unparseable
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Amounts must be integers or numeric strings, got {type(value).__name__}")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        value = _decimal_from_string(value)

    if not isinstance(value, Decimal):
        raise ValueError(f"Cannot convert {value!r} to minor units")

    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError(f"Amount {value} is not a whole number of minor units")

    return int(value)


def _decimal_from_string(value: str) -> Decimal:
    """Parse a display-formatted amount string into a Decimal"""
    if not value or not value.strip():
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    # A separator followed by exactly three digits, repeated, is a thousands separator
    if re.fullmatch(r'[-+]?\d{1,3}([.,]\d{3})+', clean_value):
        clean_value = re.sub(r'[.,]', '', clean_value)
    elif ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal mark
        decimal_mark = max(('.', ','), key=clean_value.rfind)
        thousands_mark = ',' if decimal_mark == '.' else '.'
        clean_value = clean_value.replace(thousands_mark, '').replace(decimal_mark, '.')
    else:
        clean_value = clean_value.replace(',', '.')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to an amount")


def split_evenly(total: MinorUnits, parts: int) -> List[MinorUnits]:
    """
    Split a total into `parts` integer amounts that sum exactly to the total.

    Every part gets floor(total / parts); the last part absorbs the remainder.
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")
    base = total // parts
    return [base] * (parts - 1) + [total - base * (parts - 1)]


def completion_percentage(total_paid: MinorUnits, remaining_balance: MinorUnits) -> int:
    """
    Percentage of the loan that has been repaid, as an integer in [0, 100].

    Rounds half up like the dashboard progress bar, but never reports 100
    while any balance remains outstanding.
    """
    total = total_paid + remaining_balance
    if total <= 0:
        return 0

    percentage = (200 * total_paid + total) // (2 * total)
    if remaining_balance > 0:
        percentage = min(percentage, 99)
    return max(0, min(percentage, 100))


def sum_amounts(amounts) -> MinorUnits:
    """Sum integer amounts, rejecting anything that is not an int"""
    total = 0
    for amount in amounts:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError(f"Amount {amount!r} is not an integer")
        total += amount
    return total
