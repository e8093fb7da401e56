"""
Tests for the ROI Projector

Ensures:
- Net yield is clamped at zero (no negative income or profit)
- Reference arithmetic: 120M / 20% / 5% / 3y -> 54M profit, 45% ROI
- Edited flags survive an in-place re-seed and reset on a new listing or query
- Local results are shown only for the mode they were computed for
- Analytics figures take precedence per figure
- Superseded calculations are discarded
"""

import pytest
import asyncio
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import ResolvedListing
from core.valuation import (
    AppreciationView,
    RentalMode,
    ROIField,
    ROIParameters,
    ROIProjector,
    project,
    seed_parameters,
)
from core.valuation.roi import parse_edit


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def make_listing():
    """Factory fixture for computed listings."""
    def _create(listing_id="L-1", analytics=None, **raw):
        payload = {"_id": listing_id, "listingUrl": f"https://example.com/{listing_id}"}
        payload.update(raw)
        if analytics is not None:
            payload["analytics"] = analytics
        return ResolvedListing.from_payload(payload)
    return _create


@pytest.fixture
def full_analytics():
    """Analytics block with every seed field populated."""
    return {
        "market": {"purchasePrice": 120_000_000},
        "financing": {"interestRatePct": 18, "tenorYearsDefault": 10},
        "yields": {"longTermPct": 6, "shortTermPct": 12},
        "expenses": {"totalExpensesPct": 4},
        "appreciation": {"nominalPct": 20, "realPct": 8, "usdFxInflAdjPct": 3},
    }


@pytest.fixture
def projector():
    """Projector with no calculation delay."""
    return ROIProjector(calc_delay_seconds=0)


# =============================================================================
# Pure Projection
# =============================================================================

class TestProject:
    """The clamped projection formula."""

    def test_reference_arithmetic(self):
        """120M at 20% gross, 5% expenses, 3 years -> 54M profit, 45% ROI."""
        params = ROIParameters(
            purchase_price=120_000_000,
            yield_long=20,
            expense_pct=5,
            holding_period_years=3,
        )
        result = project(params, RentalMode.LONG)
        assert result.net_annual_income == pytest.approx(18_000_000)
        assert result.total_profit == pytest.approx(54_000_000)
        assert result.roi_pct == pytest.approx(45)
        assert result.mode == RentalMode.LONG

    def test_expenses_above_yield_clamped(self):
        """Expenses exceeding yield give zero, never negative."""
        params = ROIParameters(
            purchase_price=120_000_000,
            yield_long=6,
            expense_pct=18,
            holding_period_years=3,
        )
        result = project(params, RentalMode.LONG)
        assert result.net_annual_income == 0
        assert result.total_profit == 0
        assert result.roi_pct == 0

    def test_expenses_equal_to_yield(self):
        params = ROIParameters(purchase_price=1_000_000, yield_short=7, expense_pct=7)
        assert project(params, RentalMode.SHORT).total_profit == 0

    def test_mode_selects_yield(self):
        """Short mode uses the short-term yield."""
        params = ROIParameters(purchase_price=100, yield_long=10, yield_short=30)
        assert project(params, RentalMode.SHORT).net_annual_income == pytest.approx(30)
        assert project(params, RentalMode.LONG).net_annual_income == pytest.approx(10)

    def test_holding_period_floored_at_one(self):
        """A zero or fractional holding period counts as one year."""
        params = ROIParameters(purchase_price=100, yield_long=10, holding_period_years=0)
        assert project(params, RentalMode.LONG).total_profit == pytest.approx(10)

    def test_zero_price_gives_zero_roi(self):
        params = ROIParameters(purchase_price=0, yield_long=10)
        result = project(params, RentalMode.LONG)
        assert result.roi_pct == 0
        assert result.total_profit == 0


# =============================================================================
# Seeding
# =============================================================================

class TestSeeding:
    """Default parameters from a listing."""

    def test_seed_from_analytics(self, make_listing, full_analytics):
        params = seed_parameters(make_listing(analytics=full_analytics))
        assert params.purchase_price == 120_000_000
        assert params.financing_rate == 18
        assert params.financing_tenure_years == 10
        assert params.yield_long == 6
        assert params.yield_short == 12
        assert params.expense_pct == 4
        assert params.appreciation_local_real == 8

    def test_purchase_price_falls_back_to_listing_price(self, make_listing):
        """Without market.purchasePrice, analytics listing price is used."""
        listing = make_listing(analytics={"price": {"listingPriceNGN": 95_000_000}})
        assert seed_parameters(listing).purchase_price == 95_000_000

    def test_purchase_price_falls_back_to_root_price(self, make_listing):
        listing = make_listing(priceNGN=70_000_000)
        assert seed_parameters(listing).purchase_price == 70_000_000

    def test_defaults_without_analytics(self, make_listing):
        """Missing fields default to 0, holding period to 3 years."""
        params = seed_parameters(make_listing())
        assert params.purchase_price == 0
        assert params.yield_long == 0
        assert params.holding_period_years == 3

    def test_no_listing(self):
        assert seed_parameters(None) == ROIParameters()


class TestParseEdit:
    """Raw edit input."""

    @pytest.mark.parametrize("raw,expected", [
        ("120,000,000", 120_000_000),
        ("  7.5 ", 7.5),
        (42, 42),
        ("abc", 0),
        ("", 0),
        (None, 0),
    ])
    def test_parse(self, raw, expected):
        assert parse_edit(raw) == expected


# =============================================================================
# Projector State
# =============================================================================

class TestEditedFlags:
    """Edits versus re-seeding."""

    def test_edit_sets_flag(self, projector, make_listing, full_analytics):
        projector.seed(make_listing(analytics=full_analytics))
        projector.update(ROIField.PURCHASE_PRICE, "100,000,000")
        assert projector.params.purchase_price == 100_000_000
        assert projector.edited[ROIField.PURCHASE_PRICE] is True
        assert projector.edited[ROIField.YIELD_LONG] is False

    def test_same_listing_reseed_keeps_edits(self, projector, make_listing, full_analytics):
        """Re-seeding the same listing only refreshes un-edited fields."""
        projector.seed(make_listing(analytics=full_analytics))
        projector.update(ROIField.PURCHASE_PRICE, 100_000_000)

        refreshed = dict(full_analytics, yields={"longTermPct": 9, "shortTermPct": 12})
        projector.seed(make_listing(analytics=refreshed))

        assert projector.params.purchase_price == 100_000_000
        assert projector.params.yield_long == 9
        assert projector.edited[ROIField.PURCHASE_PRICE] is True

    def test_fresh_seed_of_same_listing_resets(self, projector, make_listing, full_analytics):
        """A new query for the same listing clears edits like a new listing."""
        projector.seed(make_listing(analytics=full_analytics))
        projector.update(ROIField.PURCHASE_PRICE, "1,000")
        projector.select_mode(RentalMode.SHORT)

        projector.seed(make_listing(analytics=full_analytics), fresh=True)

        assert projector.params.purchase_price == 120_000_000
        assert not any(projector.edited.values())
        assert projector.mode == RentalMode.LONG

    def test_new_listing_resets_everything(self, projector, make_listing, full_analytics):
        """A different listing re-seeds every field and clears every flag."""
        projector.seed(make_listing("L-1", analytics=full_analytics))
        projector.update(ROIField.PURCHASE_PRICE, 1)
        projector.update(ROIField.EXPENSE_PCT, 1)
        projector.select_mode(RentalMode.SHORT)

        projector.seed(make_listing("L-2", analytics={"market": {"purchasePrice": 50}}))

        assert projector.params.purchase_price == 50
        assert projector.params.expense_pct == 0
        assert not any(projector.edited.values())
        assert projector.mode == RentalMode.LONG
        assert projector.result is None


class TestCalculate:
    """Delayed calculation and mode independence."""

    def test_calculate_reference_case(self, projector, make_listing):
        projector.seed(make_listing(analytics={"market": {"purchasePrice": 120_000_000}}))
        projector.update(ROIField.YIELD_LONG, 20)
        projector.update(ROIField.EXPENSE_PCT, 5)

        result = asyncio.run(projector.calculate())

        assert result.total_profit == pytest.approx(54_000_000)
        assert projector.result is result
        assert projector.display().roi_pct == pytest.approx(45)
        assert not projector.is_calculating

    def test_mode_switch_hides_result(self, projector, make_listing, full_analytics):
        """A long-mode result is not shown in short mode."""
        projector.seed(make_listing(analytics=full_analytics))
        asyncio.run(projector.calculate())
        assert projector.result is not None

        projector.select_mode(RentalMode.SHORT)

        assert projector.result is None
        assert projector.display().is_placeholder

    def test_selecting_same_mode_keeps_result(self, projector, make_listing, full_analytics):
        projector.seed(make_listing(analytics=full_analytics))
        asyncio.run(projector.calculate())
        projector.select_mode(RentalMode.LONG)
        assert projector.result is not None

    def test_edit_keeps_previous_result_until_recalculated(self, projector, make_listing, full_analytics):
        projector.seed(make_listing(analytics=full_analytics))
        first = asyncio.run(projector.calculate())
        projector.update(ROIField.YIELD_LONG, 50)
        assert projector.result is first

    def test_superseded_calculation_discarded(self, make_listing, full_analytics):
        """A re-seed to another listing during the delay drops the result."""
        projector = ROIProjector(calc_delay_seconds=0.01)
        projector.seed(make_listing("L-1", analytics=full_analytics))

        async def scenario():
            pending = asyncio.ensure_future(projector.calculate())
            await asyncio.sleep(0)
            assert projector.is_calculating
            projector.seed(make_listing("L-2", analytics=full_analytics))
            return await pending

        assert asyncio.run(scenario()) is None
        assert projector.result is None

    def test_uses_parameters_captured_at_start(self, make_listing, full_analytics):
        """Edits during the delay do not change the running calculation."""
        projector = ROIProjector(calc_delay_seconds=0.01)
        projector.seed(make_listing(analytics={"market": {"purchasePrice": 100}, "yields": {"longTermPct": 10}}))

        async def scenario():
            pending = asyncio.ensure_future(projector.calculate())
            await asyncio.sleep(0)
            projector.update(ROIField.YIELD_LONG, 50)
            return await pending

        result = asyncio.run(scenario())
        assert result.net_annual_income == pytest.approx(10)


class TestDisplay:
    """Analytics precedence and appreciation views."""

    def test_analytics_figures_take_precedence(self, projector, make_listing, full_analytics):
        analytics = dict(
            full_analytics,
            projections={"projectedTotalProfitLongTerm": 1_000, "roiLongTermPct": 12.5},
        )
        projector.seed(make_listing(analytics=analytics))
        asyncio.run(projector.calculate())

        display = projector.display()
        assert display.total_profit == 1_000
        assert display.roi_pct == 12.5
        # No analytics income figure: local result fills in
        assert display.annual_income == pytest.approx(projector.result.net_annual_income)
        assert display.sources == {
            "total_profit": "analytics",
            "roi_pct": "analytics",
            "annual_income": "local",
        }

    def test_analytics_shown_without_calculation(self, projector, make_listing):
        projector.seed(make_listing(analytics={"yields": {"annualShortTermIncomeNGN": 7_000_000}}))
        projector.select_mode(RentalMode.SHORT)
        assert projector.display().annual_income == 7_000_000
        assert projector.display().total_profit is None

    def test_placeholder_before_calculation(self, projector, make_listing, full_analytics):
        projector.seed(make_listing(analytics=full_analytics))
        assert projector.display().is_placeholder
        assert projector.display().sources == {}

    def test_appreciation_views(self, projector, make_listing, full_analytics):
        projector.seed(make_listing(analytics=full_analytics))
        assert projector.appreciation(AppreciationView.LOCAL_NOMINAL) == 20
        assert projector.appreciation(AppreciationView.LOCAL_REAL) == 8
        assert projector.appreciation(AppreciationView.USD_ADJ) == 3

    def test_appreciation_fallbacks(self, projector, make_listing):
        """Real falls back to nominal, USD-adjusted to real."""
        projector.seed(make_listing(analytics={"appreciation": {"nominalPct": 15}}))
        assert projector.appreciation(AppreciationView.LOCAL_REAL) == 15
        assert projector.appreciation(AppreciationView.USD_ADJ) == 15

    def test_monthly_projection(self, projector, make_listing):
        projections = {"monthlyProjection": [
            {"month": 1, "priceNGN": 100},
            {"month": 2, "priceNGN": "110"},
            {"month": 3},
        ]}
        projector.seed(make_listing(analytics={"projections": projections}))
        points = projector.monthly_projection()
        assert [(p.month, p.price) for p in points] == [(1, 100), (2, 110)]
