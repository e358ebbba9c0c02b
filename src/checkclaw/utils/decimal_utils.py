"""Decimal utilities for money amounts coming back from the API.

All monetary calculations must use Decimal to avoid floating-point precision issues.
JSON numbers are converted through str() so 0.1 stays 0.1.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

BAR_CHARACTER = "█"
ELLIPSIS = "…"


def _quantize(amount: Decimal, decimal_places: int) -> Decimal:
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def format_currency_plain(
    amount: Decimal,
    symbol: str = "$",
    decimal_places: int = 2,
) -> str:
    """Format the absolute value of an amount with grouping.

    Args:
        amount: The amount to format.
        symbol: Currency symbol prefix.
        decimal_places: Number of decimal places (default 2).

    Returns:
        Formatted string like "$1,234.56".
    """
    rounded = _quantize(abs(amount), decimal_places)
    return f"{symbol}{rounded:,.{decimal_places}f}"


def format_currency(
    amount: Decimal,
    symbol: str = "$",
    decimal_places: int = 2,
) -> str:
    """Format an amount with an explicit sign.

    Positive amounts get "+", negative amounts "-", zero has no sign.

    Args:
        amount: The amount to format.
        symbol: Currency symbol prefix.
        decimal_places: Number of decimal places (default 2).

    Returns:
        Formatted string like "+$1,234.56", "-$12.00" or "$0.00".
    """
    plain = format_currency_plain(amount, symbol, decimal_places)
    rounded = _quantize(amount, decimal_places)
    if rounded < 0:
        return f"-{plain}"
    if rounded > 0:
        return f"+{plain}"
    return plain


def safe_decimal(value: Optional[object], default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Safely convert a value to Decimal.

    Args:
        value: Value to convert (string, int, float, or None).
        default: Default value if conversion fails.

    Returns:
        Decimal value or default.
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, (int, str)):
            return Decimal(str(value))
        if isinstance(value, float):
            # Convert float to string first for precision
            return Decimal(str(value))
        return default
    except (InvalidOperation, ValueError):
        return default


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    """Sum a list of Decimal amounts."""
    return sum(amounts, Decimal("0"))


def bar_chart(fraction: float | Decimal, max_width: int = 20) -> str:
    """Render a horizontal bar for a 0..1 fraction."""
    width = int(_quantize(Decimal(str(fraction)) * max_width, 0))
    width = max(0, min(width, max_width))
    return BAR_CHARACTER * width


def truncate(text: str, length: int) -> str:
    """Shorten text to length characters, marking the cut with an ellipsis."""
    if len(text) <= length:
        return text
    return text[: length - 1] + ELLIPSIS
