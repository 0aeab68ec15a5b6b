"""
Formatting - Text and value formatting utilities
"""

from decimal import Decimal
from typing import List, Tuple, Union

from solifin.models.enums import Currency

Amount = Union[Decimal, float, int]


def format_currency(amount: Amount, currency: Currency = Currency.USD, decimals: int = 2) -> str:
    """
    Format a wallet amount

    Args:
        amount: Amount to format
        currency: USD or CDF
        decimals: Number of decimal places

    Returns:
        Formatted string (e.g., "1,234.56 $" or "12,000.00 FC")
    """
    return f"{Decimal(amount):,.{decimals}f} {Currency(currency).symbol}"


def format_percentage(value: Amount, decimals: int = 1) -> str:
    """
    Format percentage

    Args:
        value: Percentage value as sent by the API (2.5 = 2.5%)
        decimals: Number of decimal places

    Returns:
        Formatted string (e.g., "2.5%")
    """
    return f"{Decimal(value):.{decimals}f}%"


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to max length

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def format_table(rows: List[Tuple[str, str]]) -> str:
    """Align label / value pairs in two columns"""
    if not rows:
        return ""
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label.ljust(width)}  {value}" for label, value in rows)
