"""
Formatting utilities.
"""

from typing import Optional


def format_currency(amount: Optional[float], currency: str = "INR") -> str:
    """
    Format an amount as currency.

    Args:
        amount: The amount in whole units (e.g., rupees, not paise).
        currency: Currency code (default INR).

    Returns:
        Formatted currency string, or a dash when no amount is known.
    """
    if amount is None:
        return "-"
    symbols = {
        "INR": "₹",
        "USD": "$",
    }
    symbol = symbols.get(currency, currency + " ")
    return f"{symbol}{amount:,.0f}"


def format_area(value: Optional[float], unit: str = "sq ft") -> str:
    """Format an area measurement, or a dash when not recorded."""
    if value is None:
        return "-"
    return f"{value:,.2f} {unit}"

