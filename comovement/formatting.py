"""Display formatting helpers for prices, percentages and correlations."""

from comovement.analytics.stats import is_finite_number


def format_number(value, decimals: int = 2) -> str:
    """Format with a fixed number of decimals, "N/A" if not finite."""
    if not is_finite_number(value):
        return "N/A"
    return f"{value:.{decimals}f}"


def format_currency(amount) -> str:
    """Format as US dollars (e.g., "$1,234.50", "-$3.10")."""
    if not is_finite_number(amount):
        return "N/A"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_percentage(value) -> str:
    """Format a percentage with an explicit sign (e.g., "+1.23%")."""
    if not is_finite_number(value):
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"


def percentage_change(current, previous) -> float:
    """
    Percentage change from previous to current.

    Returns 0.0 if either value is not finite or previous is zero.
    """
    if not is_finite_number(current) or not is_finite_number(previous) or previous == 0:
        return 0.0
    return (current - previous) / previous * 100
