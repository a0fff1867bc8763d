"""
Money helpers

Amounts are integers in minor units (centavos) everywhere; conversion to a
decimal string only happens when formatting for display.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

DEFAULT_SYMBOL = "₱"
CURRENCY_CODE = "PHP"
MINOR_UNITS = 100


def to_minor(amount: Union[str, int, Decimal]) -> int:
    """Convert a major-unit amount ("12.50") to minor units (1250)"""
    value = Decimal(str(amount)) * MINOR_UNITS
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(amount: int, symbol: str = DEFAULT_SYMBOL, show_code: bool = False) -> str:
    """Format minor units as e.g. '₱1,234.50'"""
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), MINOR_UNITS)
    text = f"{sign}{symbol}{major:,}.{minor:02d}"
    if show_code:
        text += f" {CURRENCY_CODE}"
    return text
