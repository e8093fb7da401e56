"""
Series Synthesizer

Derives the 12-month price / fair-market-value series for a listing:
- Real history when the listing carries at least two points
- A bounded synthetic placeholder when only a price is known
- Nothing at all when there is no usable price

Also computes the trailing 6-month FMV change and the market position.
"""

import calendar
import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.models import ResolvedListing
from .fields import dig, first_list, first_match, first_number, to_number
from .models import PriceSeries, SeriesSource, SERIES_LENGTH


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

# Synthetic FMV factor bounds (display placeholder, not an estimate)
SYNTHETIC_FACTOR_MIN = 0.8
SYNTHETIC_FACTOR_MAX = 1.2

# Trailing window for the change metric, in months
CHANGE_WINDOW_MONTHS = 6

# Minimum history points before history is preferred over synthesis
MIN_HISTORY_POINTS = 2

PRICE_FIELDS = (
    dig("analytics", "price", "listingPriceNGN"),
    dig("analytics", "market", "purchasePrice"),
    dig("aiReport", "listingPriceNGN"),
    dig("aiReport", "priceNGN"),
    dig("snapshot", "priceNGN"),
    dig("priceNGN"),
)

FMV_FIELDS = (
    dig("analytics", "fmv", "valueNGN"),
    dig("analytics", "market", "fairValueNGN"),
    dig("aiReport", "fmvNGN"),
    dig("aiReport", "marketValue", "fmvNGN"),
)

HISTORY_FIELDS = (
    dig("analytics", "fmv", "history"),
    dig("analytics", "priceHistory"),
    dig("analytics", "history"),
    dig("aiReport", "priceHistory"),
    dig("snapshot", "priceHistory"),
    dig("priceHistory"),
)

ENTRY_LABEL_FIELDS = (dig("month"), dig("label"), dig("monthLabel"))
ENTRY_TIMESTAMP_FIELDS = (dig("date"), dig("timestamp"), dig("ts"), dig("recordedAt"))
ENTRY_FMV_FIELDS = (
    dig("fmv"),
    dig("fmvNGN"),
    dig("fairValue"),
    dig("fairValueNGN"),
    dig("valueNGN"),
    dig("value"),
)
ENTRY_PRICE_FIELDS = (
    dig("price"),
    dig("priceNGN"),
    dig("listingPriceNGN"),
    dig("askingPrice"),
)


# =============================================================================
# Extraction helpers
# =============================================================================


def listing_view(listing: ResolvedListing) -> Dict[str, Any]:
    """Flatten a listing into the dict shape the field accessors expect."""
    view = dict(listing.raw)
    view["analytics"] = listing.analytics
    view["aiReport"] = listing.ai_report
    view["snapshot"] = listing.snapshot
    return view


def extract_price(listing: Optional[ResolvedListing]) -> Optional[float]:
    """Asking price of the listing, or None if unknown."""
    if listing is None:
        return None
    return first_number(listing_view(listing), PRICE_FIELDS)


def extract_fmv(listing: Optional[ResolvedListing]) -> Optional[float]:
    """Explicit fair market value of the listing, or None if unknown."""
    if listing is None:
        return None
    return first_number(listing_view(listing), FMV_FIELDS)


def month_label(year: int, month: int) -> str:
    """Format as '{ShortMonth} {Year}', e.g. 'Mar 2025'."""
    return f"{calendar.month_abbr[month]} {year}"


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move (year, month) by ``delta`` calendar months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a history timestamp.

    Accepts ISO-8601 strings (with 'Z'), date/datetime objects and epoch
    numbers (milliseconds when large enough, else seconds).
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    number = to_number(value)
    if number is None:
        return None
    if abs(number) > 1e11:
        number = number / 1000
    try:
        return datetime.fromtimestamp(number, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def resolve_entry_label(entry: Any) -> str:
    """Month label for one history entry, '' when none can be derived."""
    label = first_match(entry, ENTRY_LABEL_FIELDS)
    if isinstance(label, str) and label.strip():
        return label.strip()
    stamp = parse_timestamp(first_match(entry, ENTRY_TIMESTAMP_FIELDS))
    if stamp is None:
        return ""
    return month_label(stamp.year, stamp.month)


def _clean_value(value: Optional[float]) -> int:
    return int(round(max(0.0, value or 0.0)))


def _parse_label(label: str) -> Optional[Tuple[int, int]]:
    try:
        parsed = datetime.strptime(label, "%b %Y")
    except ValueError:
        return None
    return parsed.year, parsed.month


# =============================================================================
# Synthesizer
# =============================================================================


class SeriesSynthesizer:
    """
    Builds the price/FMV series shown in the price-analysis panel.

    Randomness is injected so synthetic output is reproducible in tests.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        reference_date: date = None,
    ):
        """
        Initialize the synthesizer.

        Args:
            rng: Random source for synthetic FMV factors (default: unseeded)
            reference_date: Month the synthetic series ends at (default: today)
        """
        self._rng = rng or random.Random()
        self._reference_date = reference_date

    def derive(self, listing: Optional[ResolvedListing]) -> PriceSeries:
        """
        Derive the series and scalars for a listing.

        Args:
            listing: Resolved listing, or None

        Returns:
            PriceSeries (empty when there is neither history nor a price)
        """
        if listing is None:
            return PriceSeries.empty()

        price = extract_price(listing) or 0.0
        fmv = extract_fmv(listing) or 0.0

        history = first_list(listing_view(listing), HISTORY_FIELDS, MIN_HISTORY_POINTS)
        if history is not None:
            months, fmv_series, price_series = self._from_history(history)
            source = SeriesSource.HISTORY
        elif price > 0:
            months, fmv_series, price_series = self._synthesize(price, fmv)
            source = SeriesSource.SYNTHETIC
        else:
            logger.debug("No history and no price for %s; series empty", listing.identity)
            return PriceSeries.empty(listing_price=price or None)

        return PriceSeries(
            months=months,
            fmv=fmv_series,
            price=price_series,
            window_label=f"{months[0]} - {months[-1]}",
            change_6m_pct=self._change_pct(fmv_series),
            market_position_pct=self._market_position_pct(price, fmv, fmv_series),
            source=source,
            listing_price=price or None,
            listing_fmv=fmv or None,
        )

    def _from_history(self, history: list) -> Tuple[List[str], List[int], List[int]]:
        """Map the last 12 history entries, front-padding shorter histories."""
        entries = history[-SERIES_LENGTH:]
        months = [resolve_entry_label(e) for e in entries]
        fmv_series = [_clean_value(first_number(e, ENTRY_FMV_FIELDS)) for e in entries]
        price_series = [_clean_value(first_number(e, ENTRY_PRICE_FIELDS)) for e in entries]

        missing = SERIES_LENGTH - len(entries)
        if missing > 0:
            logger.debug("History has %d points; padding %d", len(entries), missing)
            months = self._backfill_labels(months[0], missing) + months
            fmv_series = [fmv_series[0]] * missing + fmv_series
            price_series = [price_series[0]] * missing + price_series

        return months, fmv_series, price_series

    def _backfill_labels(self, first_label: str, count: int) -> List[str]:
        """Labels for the padded months preceding ``first_label``."""
        parsed = _parse_label(first_label)
        if parsed is None:
            return [""] * count
        year, month = parsed
        return [month_label(*shift_month(year, month, -offset)) for offset in range(count, 0, -1)]

    def _synthesize(self, price: float, fmv: float) -> Tuple[List[str], List[int], List[int]]:
        """Twelve consecutive months ending at the reference month."""
        today = self._reference_date or date.today()
        base = fmv if fmv > 0 else price

        months = [
            month_label(*shift_month(today.year, today.month, -offset))
            for offset in range(SERIES_LENGTH - 1, -1, -1)
        ]
        fmv_series = [
            _clean_value(base * self._rng.uniform(SYNTHETIC_FACTOR_MIN, SYNTHETIC_FACTOR_MAX))
            for _ in range(SERIES_LENGTH)
        ]
        price_series = [_clean_value(price)] * SERIES_LENGTH
        return months, fmv_series, price_series

    def _change_pct(self, fmv_series: List[int]) -> float:
        """FMV change over the trailing window, 0 when the base is not positive."""
        last_idx = len(fmv_series) - 1
        base_idx = max(0, last_idx - CHANGE_WINDOW_MONTHS)
        base_val = fmv_series[base_idx]
        if base_val <= 0:
            return 0.0
        return (fmv_series[last_idx] - base_val) / base_val * 100

    def _market_position_pct(
        self,
        price: float,
        fmv: float,
        fmv_series: List[int],
    ) -> float:
        """
        Asking price versus fair value.

        Positive means overpriced, negative underpriced. Prefers the
        explicit FMV, falling back to the last series point.
        """
        if price <= 0:
            return 0.0
        fmv_for_market = fmv if fmv > 0 else (fmv_series[-1] if fmv_series else 0)
        if fmv_for_market <= 0:
            return 0.0
        return (price - fmv_for_market) / fmv_for_market * 100
