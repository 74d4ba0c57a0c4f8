"""
Utility functions for the hourly Bitcoin up/down bot.

Formatting helpers shared by the reporter and the notifier. All functions
are pure helpers with no domain logic.
"""


def format_currency(value: float, signed: bool = False) -> str:
    """
    Format a float value as a USD string with two decimals.

    Args:
        value: Float value to format
        signed: Prefix non-negative values with '+' (default: False)

    Returns:
        Formatted currency string (e.g., "$1,234.56", "+$20.00", "-$3.10")
    """
    sign = "-" if value < 0 else ("+" if signed else "")
    return f"{sign}${abs(value):,.2f}"


def format_percentage(value: float, decimals: int = 2) -> str:
    """Format a 0-1 probability as a percentage string (e.g., "70.00%")."""
    return f"{value * 100:.{decimals}f}%"


def format_countdown(seconds: int) -> str:
    """Format a second count as MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
