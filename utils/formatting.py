"""
Formatting utilities.
"""

from typing import Optional

# Shown in numeric fields that have no data
PLACEHOLDER = "—"

CURRENCY_SYMBOLS = {
    "NGN": "₦",
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}


def _symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, currency + " ")


def format_currency(amount: Optional[float], currency: str = "NGN") -> str:
    """
    Format an amount as currency, rounded to whole units.

    Args:
        amount: The amount in whole units, or None for missing data.
        currency: Currency code (default NGN).

    Returns:
        Formatted currency string, or the placeholder when amount is None.
    """
    if amount is None:
        return PLACEHOLDER
    return f"{_symbol(currency)}{round(amount):,}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value, or None for missing data.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    if value is None:
        return PLACEHOLDER
    return f"{value:.{decimals}f}%"


def format_compact(amount: Optional[float], currency: str = "NGN") -> str:
    """Compact currency for chart axes: ₦1.2M, ₦15M, ₦2.5B."""
    if amount is None:
        return PLACEHOLDER
    symbol = _symbol(currency)
    magnitude = abs(amount)
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M")):
        if magnitude >= threshold:
            scaled = amount / threshold
            text = f"{scaled:.0f}" if abs(scaled) >= 10 else f"{scaled:.1f}"
            return f"{symbol}{text}{suffix}"
    return f"{symbol}{round(amount):,}"


def format_change(pct: float) -> str:
    """Trend line such as '↑ 4.2% in the last 6 months'."""
    arrow = "↑" if pct >= 0 else "↓"
    return f"{arrow} {abs(pct):.1f}% in the last 6 months"


def format_market_position(pct: float) -> str:
    """E.g. '15% Underpriced' or '8% Overpriced'."""
    label = "Overpriced" if pct >= 0 else "Underpriced"
    return f"{abs(pct):.0f}% {label}"
