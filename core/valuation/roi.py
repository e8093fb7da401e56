"""
ROI Projector

Stateful calculator over the ROI parameters of a listing:
- Seeds parameters from the listing analytics block (or fallbacks)
- Tracks which parameters the user has overridden
- Projects net income, total profit and ROI% per rental mode on demand

Analytics-sourced projections always take precedence over local ones.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from core.models import ResolvedListing
from .fields import dig, first_number, to_number
from .models import (
    AppreciationView,
    DEFAULT_HOLDING_PERIOD_YEARS,
    FIGURE_SOURCE_ANALYTICS,
    FIGURE_SOURCE_LOCAL,
    MonthlyProjection,
    RentalMode,
    ROIDisplay,
    ROIField,
    ROIParameters,
    ROIResult,
)
from .series import extract_price


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

# Latency of the "Calculate" action
DEFAULT_CALC_DELAY_SECONDS = 0.6

# Minimum holding period applied to the profit multiplication
MIN_HOLDING_PERIOD_YEARS = 1

# Seed accessors per field, tried in order against the analytics block
SEED_FIELDS = {
    ROIField.PURCHASE_PRICE: (
        dig("market", "purchasePrice"),
        dig("price", "listingPriceNGN"),
    ),
    ROIField.FINANCING_RATE: (dig("financing", "interestRatePct"),),
    ROIField.FINANCING_TENURE_YEARS: (dig("financing", "tenorYearsDefault"),),
    ROIField.HOLDING_PERIOD_YEARS: (dig("holdingPeriodYears"),),
    ROIField.YIELD_LONG: (dig("yields", "longTermPct"), dig("roi", "longTermPct")),
    ROIField.YIELD_SHORT: (dig("yields", "shortTermPct"), dig("roi", "shortTermPct")),
    ROIField.EXPENSE_PCT: (dig("expenses", "totalExpensesPct"),),
    ROIField.APPRECIATION_LOCAL_NOMINAL: (dig("appreciation", "nominalPct"),),
    ROIField.APPRECIATION_LOCAL_REAL: (dig("appreciation", "realPct"),),
    ROIField.APPRECIATION_USD_ADJ: (dig("appreciation", "usdFxInflAdjPct"),),
}

# Analytics figures that override local results, per mode
ANALYTICS_PROFIT_FIELDS = {
    RentalMode.LONG: dig("projections", "projectedTotalProfitLongTerm"),
    RentalMode.SHORT: dig("projections", "projectedTotalProfitShortTerm"),
}
ANALYTICS_ROI_FIELDS = {
    RentalMode.LONG: dig("projections", "roiLongTermPct"),
    RentalMode.SHORT: dig("projections", "roiShortTermPct"),
}
ANALYTICS_INCOME_FIELDS = {
    RentalMode.LONG: dig("yields", "annualLongTermIncomeNGN"),
    RentalMode.SHORT: dig("yields", "annualShortTermIncomeNGN"),
}


# =============================================================================
# Pure computation
# =============================================================================


def project(params: ROIParameters, mode: RentalMode) -> ROIResult:
    """
    Project income, profit and ROI for one rental mode.

    Net yield is clamped at zero, so expenses at or above gross yield give
    zero income and profit, never negative. The holding period is floored
    at one year for the profit multiplication.

    Args:
        params: ROI parameters
        mode: Rental mode to project

    Returns:
        ROIResult for ``mode``
    """
    income_pct = params.yield_long if mode == RentalMode.LONG else params.yield_short
    net_pct = max(0.0, income_pct - params.expense_pct)
    annual_income = params.purchase_price * net_pct / 100
    profit = annual_income * max(MIN_HOLDING_PERIOD_YEARS, params.holding_period_years or 0)
    roi_pct = profit / params.purchase_price * 100 if params.purchase_price > 0 else 0.0

    return ROIResult(
        net_annual_income=annual_income,
        total_profit=profit,
        roi_pct=roi_pct,
        mode=mode,
    )


def seed_parameters(listing: Optional[ResolvedListing]) -> ROIParameters:
    """
    Default parameters for a listing.

    Every field is read from the analytics block when present. Purchase
    price falls back to the listing price, holding period to three years,
    everything else to zero.
    """
    if listing is None:
        return ROIParameters()

    analytics = listing.analytics or {}
    values: Dict[str, float] = {}
    for roi_field, accessors in SEED_FIELDS.items():
        value = first_number(analytics, accessors)
        if value is not None:
            values[roi_field.value] = value

    if ROIField.PURCHASE_PRICE.value not in values:
        values[ROIField.PURCHASE_PRICE.value] = extract_price(listing) or 0.0
    if not values.get(ROIField.HOLDING_PERIOD_YEARS.value):
        values[ROIField.HOLDING_PERIOD_YEARS.value] = DEFAULT_HOLDING_PERIOD_YEARS

    return ROIParameters(**values)


def parse_edit(raw: Union[str, int, float, None]) -> float:
    """Parse raw user input; thousands separators allowed, junk becomes 0."""
    value = to_number(raw)
    return value if value is not None else 0.0


# =============================================================================
# Projector
# =============================================================================


class ROIProjector:
    """
    ROI calculator state for the current listing.

    The projector owns its parameters, edited flags, selected mode and the
    last local result. Nothing else writes to them.
    """

    def __init__(self, calc_delay_seconds: float = DEFAULT_CALC_DELAY_SECONDS):
        """
        Initialize an empty projector.

        Args:
            calc_delay_seconds: Simulated latency of each calculation
        """
        self._calc_delay = calc_delay_seconds
        self._listing: Optional[ResolvedListing] = None
        self._params = ROIParameters()
        self._edited: Dict[ROIField, bool] = {f: False for f in ROIField}
        self._mode = RentalMode.LONG
        self._result: Optional[ROIResult] = None
        self._generation = 0
        self._calculating = 0

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def params(self) -> ROIParameters:
        return self._params

    @property
    def edited(self) -> Dict[ROIField, bool]:
        return dict(self._edited)

    @property
    def mode(self) -> RentalMode:
        return self._mode

    @property
    def result(self) -> Optional[ROIResult]:
        """Last local result, only if computed for the selected mode."""
        if self._result is not None and self._result.mode == self._mode:
            return self._result
        return None

    @property
    def is_calculating(self) -> bool:
        return self._calculating > 0

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def seed(self, listing: Optional[ResolvedListing], fresh: bool = False) -> None:
        """
        Seed parameters from a listing.

        A fresh resolution or a different listing resets every parameter
        and flag. An in-place update of the same listing only refreshes
        fields the user has not edited.

        Args:
            listing: Listing to seed from, or None for empty parameters
            fresh: True when ``listing`` comes from a new query
        """
        seeded = seed_parameters(listing)
        same_listing = (
            not fresh
            and listing is not None
            and self._listing is not None
            and listing.identity == self._listing.identity
        )

        if same_listing:
            params = self._params
            for roi_field in ROIField:
                if not self._edited[roi_field]:
                    params = params.with_value(roi_field, seeded.get(roi_field))
            self._params = params
        else:
            self._params = seeded
            self._edited = {f: False for f in ROIField}
            self._result = None
            self._mode = RentalMode.LONG
            self._generation += 1
            logger.debug(
                "ROI parameters reset for %s",
                listing.identity if listing else "no listing",
            )

        self._listing = listing

    def reset(self) -> None:
        """Drop the current listing and return to empty parameters."""
        self.seed(None)

    def update(self, roi_field: ROIField, raw: Union[str, int, float, None]) -> None:
        """Override one parameter and mark it edited."""
        self._params = self._params.with_value(roi_field, parse_edit(raw))
        self._edited[roi_field] = True

    def select_mode(self, mode: RentalMode) -> None:
        """Switch rental mode; the previous mode's local result is not reused."""
        if mode != self._mode:
            self._mode = mode
            self._result = None

    async def calculate(self) -> Optional[ROIResult]:
        """
        Run the projection for the selected mode after the configured delay.

        Parameters and mode are captured when the call starts. A result
        whose listing was replaced in the meantime is discarded.

        Returns:
            The new ROIResult, or None if it was discarded
        """
        generation = self._generation
        params = self._params
        mode = self._mode

        self._calculating += 1
        try:
            await asyncio.sleep(self._calc_delay)
        finally:
            self._calculating -= 1

        if generation != self._generation:
            logger.debug("Discarding ROI result for a replaced listing")
            return None

        result = project(params, mode)
        self._result = result
        return result

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def display(self) -> ROIDisplay:
        """
        Figures for the selected mode.

        Each figure comes from analytics when present, else from the local
        result for this mode, else None.
        """
        analytics = self._listing.analytics if self._listing else {}
        local = self.result
        sources: Dict[str, str] = {}

        def pick(name, accessor, local_value):
            value = to_number(accessor(analytics))
            if value is not None:
                sources[name] = FIGURE_SOURCE_ANALYTICS
                return value
            if local_value is not None:
                sources[name] = FIGURE_SOURCE_LOCAL
            return local_value

        return ROIDisplay(
            mode=self._mode,
            total_profit=pick(
                "total_profit",
                ANALYTICS_PROFIT_FIELDS[self._mode],
                local.total_profit if local else None,
            ),
            roi_pct=pick(
                "roi_pct",
                ANALYTICS_ROI_FIELDS[self._mode],
                local.roi_pct if local else None,
            ),
            annual_income=pick(
                "annual_income",
                ANALYTICS_INCOME_FIELDS[self._mode],
                local.net_annual_income if local else None,
            ),
            sources=sources,
        )

    def appreciation(self, view: AppreciationView) -> float:
        """
        Appreciation figure for a labelled view.

        Real falls back to nominal and USD-adjusted falls back to real
        when unset.
        """
        nominal = self._params.appreciation_local_nominal
        real = self._params.appreciation_local_real or nominal
        usd = self._params.appreciation_usd_adj or real
        return {
            AppreciationView.LOCAL_NOMINAL: nominal,
            AppreciationView.LOCAL_REAL: real,
            AppreciationView.USD_ADJ: usd,
        }[view]

    def monthly_projection(self) -> List[MonthlyProjection]:
        """Analytics-provided monthly price projection, if any."""
        analytics = self._listing.analytics if self._listing else {}
        raw = dig("projections", "monthlyProjection")(analytics)
        if not isinstance(raw, list):
            return []
        points = []
        for entry in raw:
            month = to_number(dig("month")(entry))
            price = to_number(dig("priceNGN")(entry))
            if month is None or price is None:
                continue
            points.append(MonthlyProjection(month=int(month), price=price))
        return points

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "params": self._params.to_dict(),
            "edited": {f.value: flag for f, flag in self._edited.items()},
            "mode": self._mode.value,
            "is_calculating": self.is_calculating,
            "display": self.display().to_dict(),
            "appreciation": {v.value: self.appreciation(v) for v in AppreciationView},
            "monthly_projection": [
                {"month": p.month, "price": p.price} for p in self.monthly_projection()
            ],
        }
