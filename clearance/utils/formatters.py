"""
Formatting utilities for money held in minor currency units.
"""


def format_cents(amount_cents: int, symbol: str = "$") -> str:
    """
    Format an integer amount of cents for display.

    Integer arithmetic only, no float conversion.

    Args:
        amount_cents: Amount in cents
        symbol: Currency symbol prefix

    Returns:
        Formatted string

    Example:
        >>> format_cents(123456)
        '$1,234.56'
        >>> format_cents(-5)
        '-$0.05'
    """
    sign = "-" if amount_cents < 0 else ""
    major, minor = divmod(abs(amount_cents), 100)
    return f"{sign}{symbol}{major:,}.{minor:02d}"
