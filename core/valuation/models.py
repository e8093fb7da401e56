"""
Data models for the valuation layer.

Defines the derived price/FMV series, ROI parameters and ROI results.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, List, Optional


# =============================================================================
# Price Series
# =============================================================================

SERIES_LENGTH = 12

# Market position beyond +/- this many percent is called out as off-market
MARKET_POSITION_BAND_PCT = 5.0


class SeriesSource(Enum):
    """Where the series values came from."""
    HISTORY = "history"
    SYNTHETIC = "synthetic"
    EMPTY = "empty"


@dataclass
class PriceSeries:
    """
    Monthly price and fair-market-value series, oldest first.

    Lists are either empty or exactly SERIES_LENGTH long. An empty series
    means "no data" and must not be charted as zeros.
    """
    months: List[str] = field(default_factory=list)
    fmv: List[int] = field(default_factory=list)
    price: List[int] = field(default_factory=list)
    window_label: str = ""
    change_6m_pct: float = 0.0
    market_position_pct: float = 0.0
    source: SeriesSource = SeriesSource.EMPTY

    # Scalars the series was derived from
    listing_price: Optional[float] = None
    listing_fmv: Optional[float] = None

    def __post_init__(self):
        """Validate series shape."""
        if not (len(self.months) == len(self.fmv) == len(self.price)):
            raise ValueError("months, fmv and price must have equal length")
        if len(self.months) not in (0, SERIES_LENGTH):
            raise ValueError(f"series length must be 0 or {SERIES_LENGTH}")

    @classmethod
    def empty(cls, listing_price: Optional[float] = None) -> "PriceSeries":
        return cls(listing_price=listing_price)

    @property
    def is_empty(self) -> bool:
        return not self.months

    @property
    def market_position_label(self) -> str:
        """'Overpriced' when asking exceeds fair value, else 'Underpriced'."""
        return "Overpriced" if self.market_position_pct >= 0 else "Underpriced"

    @property
    def market_position_band(self) -> str:
        """Coarse band: above / fair / below market."""
        if self.market_position_pct >= MARKET_POSITION_BAND_PCT:
            return "above"
        if self.market_position_pct <= -MARKET_POSITION_BAND_PCT:
            return "below"
        return "fair"

    @property
    def trend_direction(self) -> str:
        return "up" if self.change_6m_pct >= 0 else "down"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "months": list(self.months),
            "fmv": list(self.fmv),
            "price": list(self.price),
            "window_label": self.window_label,
            "change_6m_pct": round(self.change_6m_pct, 2),
            "market_position_pct": round(self.market_position_pct, 2),
            "market_position_label": self.market_position_label,
            "market_position_band": self.market_position_band,
            "source": self.source.value,
        }


# =============================================================================
# ROI
# =============================================================================

# Holding period used when the listing carries none
DEFAULT_HOLDING_PERIOD_YEARS = 3


class RentalMode(Enum):
    """Rental strategy the projection is computed for."""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def from_string(cls, value: str) -> Optional["RentalMode"]:
        normalised = (value or "").lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class AppreciationView(Enum):
    """Labelled appreciation figure shown to the user."""
    LOCAL_NOMINAL = "local_nominal"
    LOCAL_REAL = "local_real"
    USD_ADJ = "usd_adj"


class ROIField(Enum):
    """Editable ROI parameters."""
    PURCHASE_PRICE = "purchase_price"
    FINANCING_RATE = "financing_rate"
    FINANCING_TENURE_YEARS = "financing_tenure_years"
    HOLDING_PERIOD_YEARS = "holding_period_years"
    YIELD_LONG = "yield_long"
    YIELD_SHORT = "yield_short"
    EXPENSE_PCT = "expense_pct"
    APPRECIATION_LOCAL_NOMINAL = "appreciation_local_nominal"
    APPRECIATION_LOCAL_REAL = "appreciation_local_real"
    APPRECIATION_USD_ADJ = "appreciation_usd_adj"

    @classmethod
    def from_string(cls, value: str) -> Optional["ROIField"]:
        normalised = (value or "").strip()
        for member in cls:
            if member.value == normalised or member.name.lower() == normalised.lower():
                return member
        return None


@dataclass(frozen=True)
class ROIParameters:
    """Financial inputs to the ROI projection."""
    purchase_price: float = 0.0
    financing_rate: float = 0.0
    financing_tenure_years: float = 0.0
    holding_period_years: float = DEFAULT_HOLDING_PERIOD_YEARS
    yield_long: float = 0.0
    yield_short: float = 0.0
    expense_pct: float = 0.0
    appreciation_local_nominal: float = 0.0
    appreciation_local_real: float = 0.0
    appreciation_usd_adj: float = 0.0

    def get(self, roi_field: ROIField) -> float:
        return getattr(self, roi_field.value)

    def with_value(self, roi_field: ROIField, value: float) -> "ROIParameters":
        return replace(self, **{roi_field.value: value})

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ROIResult:
    """Outcome of one projection for one rental mode."""
    net_annual_income: float
    total_profit: float
    roi_pct: float
    mode: RentalMode

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "net_annual_income": self.net_annual_income,
            "total_profit": self.total_profit,
            "roi_pct": round(self.roi_pct, 2),
            "mode": self.mode.value,
        }


# Where a displayed ROI figure came from
FIGURE_SOURCE_ANALYTICS = "analytics"
FIGURE_SOURCE_LOCAL = "local"


@dataclass(frozen=True)
class ROIDisplay:
    """
    Figures to show for the selected mode.

    Each figure is None when neither analytics nor a local calculation
    for this mode provides it; renderers show a placeholder. ``sources``
    maps each provided figure to "analytics" or "local".
    """
    mode: RentalMode
    total_profit: Optional[float] = None
    roi_pct: Optional[float] = None
    annual_income: Optional[float] = None
    sources: Dict[str, str] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return self.total_profit is None and self.roi_pct is None and self.annual_income is None

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "total_profit": self.total_profit,
            "roi_pct": self.roi_pct,
            "annual_income": self.annual_income,
            "sources": dict(self.sources),
        }


@dataclass(frozen=True)
class MonthlyProjection:
    """One point of the analytics-provided monthly price projection."""
    month: int
    price: float
