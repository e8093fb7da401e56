"""
Analysis Session - Resolver, Series and ROI pipeline

Coordinates one user's analysis of a listing:
1. Resolve the query
2. Derive the price / FMV series from a resolved listing
3. Seed the ROI projector from the same listing

The payment gate lives alongside and never touches the other components.
"""

import logging
import random
from datetime import date
from typing import Any, Dict, Optional

from utils.config import Config
from utils.formatting import (
    format_change,
    format_compact,
    format_currency,
    format_market_position,
    format_percent,
)
from .listing_api import ListingAPIClient, get_listing_api
from .models import LOADING_STAGES, QueryType, ResolutionState, ResolutionStatus
from .payment_gate import PaymentGate
from .resolver import ListingResolver
from .valuation import PriceSeries, ROIProjector, SeriesSynthesizer


logger = logging.getLogger(__name__)


class AnalysisSession:
    """
    Resolution, valuation and ROI state for a single analysis.

    Each component owns its own state; the session only sequences them.
    """

    def __init__(
        self,
        api: Optional[ListingAPIClient] = None,
        config: Optional[Config] = None,
        reference_date: date = None,
    ):
        """
        Initialize the session.

        Args:
            api: Listing API collaborator (default: process-wide client)
            config: Application configuration (default: loaded from env)
            reference_date: Month synthetic series end at (default: today)
        """
        self._config = config or Config.load()
        self._api = api or get_listing_api()
        rng = random.Random(self._config.series_seed)

        self.resolver = ListingResolver(self._api)
        self.synthesizer = SeriesSynthesizer(rng=rng, reference_date=reference_date)
        self.projector = ROIProjector(calc_delay_seconds=self._config.roi_calc_delay_seconds)
        self.payment_gate = PaymentGate(self._api)

        self._series = PriceSeries.empty()

    @property
    def state(self) -> ResolutionState:
        return self.resolver.state

    @property
    def series(self) -> PriceSeries:
        return self._series

    async def open(
        self,
        text: str,
        query_type: str = QueryType.LINK.value,
    ) -> ResolutionState:
        """
        Resolve a query and derive everything that depends on it.

        Outcomes of superseded calls are returned but change nothing.

        Args:
            text: Raw query text
            query_type: Declared query type

        Returns:
            ResolutionState of this call
        """
        state = await self.resolver.resolve(text, query_type)
        if not self.resolver.is_current(state.token):
            return state

        if state.status == ResolutionStatus.RESOLVED:
            self._series = self.synthesizer.derive(state.listing)
            self.projector.seed(state.listing, fresh=True)
            logger.debug(
                "Opened %s: series=%s, %d points",
                state.listing.identity, self._series.source.value, len(self._series.months),
            )
        else:
            self._series = PriceSeries.empty()
            self.projector.reset()

        return state

    def display(self) -> Dict[str, str]:
        """Formatted strings for the valuation and ROI panels."""
        currency = self._config.default_currency
        series = self._series
        roi = self.projector.display()

        fair_value = series.listing_fmv
        if fair_value is None and series.fmv:
            fair_value = series.fmv[-1]

        return {
            "fair_value": format_currency(fair_value, currency),
            "listing_price": format_currency(series.listing_price, currency),
            "fair_value_compact": format_compact(fair_value, currency),
            "change_6m": format_change(series.change_6m_pct) if not series.is_empty else "",
            "market_position": (
                format_market_position(series.market_position_pct) if not series.is_empty else ""
            ),
            "total_profit": format_currency(roi.total_profit, currency),
            "roi": format_percent(roi.roi_pct),
            "annual_income": format_currency(roi.annual_income, currency),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        state = self.state
        return {
            "resolution": state.to_dict(),
            "loading_stages": list(LOADING_STAGES) if state.is_loading else [],
            "series": self._series.to_dict(),
            "roi": self.projector.to_dict(),
            "payment": self.payment_gate.to_dict(),
            "display": self.display(),
        }
