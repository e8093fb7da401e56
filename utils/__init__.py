"""
Utility modules for the valuation engine.
"""

from .formatting import (
    PLACEHOLDER,
    format_currency,
    format_percent,
    format_compact,
    format_change,
    format_market_position,
)
from .config import Config

__all__ = [
    "PLACEHOLDER",
    "format_currency",
    "format_percent",
    "format_compact",
    "format_change",
    "format_market_position",
    "Config",
]
