"""
Tests for the Listing Resolver

Ensures:
- Invalid queries resolve to NOT_FOUND without a network call
- Only a confirmed-absent listing triggers reactive search
- Unexpected collaborator errors still end in NOT_FOUND, never LOADING
- Listing and reactive result are never both populated
- The latest query wins; stale completions are not committed
"""

import pytest
import asyncio
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import ListingResolver, ResolutionStatus, LOADING_STAGES
from core.errors import ListingNotFoundError, TransientListingError
from core.models import ReactiveSearchResult, ResolvedListing


LISTING_URL = "https://propertypro.ng/property/3-bed-flat-lekki"


# =============================================================================
# Test Fixtures
# =============================================================================

class FakeListingAPI:
    """In-memory stand-in for ListingAPIClient."""

    def __init__(self, listing=None, listing_error=None, reactive=None, reactive_error=None):
        self.listing = listing
        self.listing_error = listing_error
        self.reactive = reactive
        self.reactive_error = reactive_error
        self.listing_calls = []
        self.reactive_calls = []
        self.gates = {}

    async def fetch_computed_listing(self, url):
        self.listing_calls.append(url)
        gate = self.gates.get(url)
        if gate is not None:
            await gate.wait()
        if self.listing_error is not None:
            raise self.listing_error
        if callable(self.listing):
            return self.listing(url)
        return self.listing

    async def fetch_reactive_search(self, query):
        self.reactive_calls.append(query)
        if self.reactive_error is not None:
            raise self.reactive_error
        return self.reactive


@pytest.fixture
def listing():
    return ResolvedListing.from_payload({
        "_id": "abc123",
        "listingUrl": LISTING_URL,
        "title": "3 Bed Flat, Lekki",
    })


@pytest.fixture
def reactive():
    return ReactiveSearchResult.from_payload({"merged_data": {"title": "2 Bed Terrace"}})


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Validation
# =============================================================================

class TestValidation:
    """Pre-flight query checks."""

    @pytest.mark.parametrize("text,query_type", [
        ("not a url", "link"),
        ("ftp://example.com/listing", "link"),
        ("https://", "link"),
        ("", "link"),
        (LISTING_URL, "address"),
        (LISTING_URL, "agent"),
        (LISTING_URL, "LINK"),
        (LISTING_URL, " link "),
    ])
    def test_invalid_query_short_circuits(self, listing, text, query_type):
        api = FakeListingAPI(listing=listing)
        resolver = ListingResolver(api)

        state = run(resolver.resolve(text, query_type))

        assert state.status == ResolutionStatus.NOT_FOUND
        assert api.listing_calls == []
        assert api.reactive_calls == []

    def test_initial_state_is_idle(self):
        resolver = ListingResolver(FakeListingAPI())
        assert resolver.state.status == ResolutionStatus.NOT_FOUND
        assert resolver.state.query is None


# =============================================================================
# Resolution Outcomes
# =============================================================================

class TestOutcomes:
    """Resolved, reactive and not-found paths."""

    def test_resolved(self, listing):
        api = FakeListingAPI(listing=listing)
        resolver = ListingResolver(api)

        state = run(resolver.resolve(LISTING_URL))

        assert state.status == ResolutionStatus.RESOLVED
        assert state.listing is listing
        assert state.reactive is None
        assert resolver.state is state
        assert api.reactive_calls == []

    def test_not_found_tries_reactive(self, reactive):
        api = FakeListingAPI(
            listing_error=ListingNotFoundError("Not found", status_code=404),
            reactive=reactive,
        )
        state = run(ListingResolver(api).resolve(LISTING_URL))

        assert api.reactive_calls == [LISTING_URL]
        assert state.status == ResolutionStatus.REACTIVE_FOUND
        assert state.reactive is reactive
        assert state.listing is None

    def test_reactive_empty_is_not_found(self):
        api = FakeListingAPI(listing_error=ListingNotFoundError("Not found", 404))
        state = run(ListingResolver(api).resolve(LISTING_URL))

        assert api.reactive_calls == [LISTING_URL]
        assert state.status == ResolutionStatus.NOT_FOUND

    def test_reactive_failure_is_not_found(self):
        api = FakeListingAPI(
            listing_error=ListingNotFoundError("Not found", 404),
            reactive_error=TransientListingError("timeout"),
        )
        state = run(ListingResolver(api).resolve(LISTING_URL))
        assert state.status == ResolutionStatus.NOT_FOUND

    @pytest.mark.parametrize("status_code", [500, 502, None])
    def test_transient_error_skips_reactive(self, reactive, status_code):
        """Only a confirmed-absent listing triggers reactive search."""
        api = FakeListingAPI(
            listing_error=TransientListingError("boom", status_code=status_code),
            reactive=reactive,
        )
        state = run(ListingResolver(api).resolve(LISTING_URL))

        assert api.reactive_calls == []
        assert state.status == ResolutionStatus.NOT_FOUND

    def test_unexpected_lookup_error_is_not_found(self, reactive):
        api = FakeListingAPI(listing_error=AttributeError("'str' object has no attribute 'get'"),
                             reactive=reactive)
        resolver = ListingResolver(api)

        state = run(resolver.resolve(LISTING_URL))

        assert state.status == ResolutionStatus.NOT_FOUND
        assert resolver.state is state
        assert api.reactive_calls == []

    def test_unexpected_reactive_error_is_not_found(self):
        api = FakeListingAPI(
            listing_error=ListingNotFoundError("Not found", 404),
            reactive_error=AttributeError("'list' object has no attribute 'get'"),
        )
        resolver = ListingResolver(api)

        state = run(resolver.resolve(LISTING_URL))

        assert state.status == ResolutionStatus.NOT_FOUND
        assert not resolver.state.is_loading

    def test_url_whitespace_trimmed(self, listing):
        api = FakeListingAPI(listing=listing)
        run(ListingResolver(api).resolve(f"  {LISTING_URL}  "))
        assert api.listing_calls == [LISTING_URL]

    def test_exclusive_over_many_cycles(self, listing, reactive):
        """After any sequence of cycles at most one result is populated."""
        api = FakeListingAPI(listing=listing, reactive=reactive)
        resolver = ListingResolver(api)
        errors = [None, ListingNotFoundError("not found"), TransientListingError("x"), None]

        for error in errors:
            api.listing_error = error
            state = run(resolver.resolve(LISTING_URL))
            assert state.listing is None or state.reactive is None


# =============================================================================
# Concurrency
# =============================================================================

class TestLatestQueryWins:
    """Stale-response guard."""

    def test_loading_while_in_flight(self, listing):
        api = FakeListingAPI(listing=listing)
        resolver = ListingResolver(api)

        async def scenario():
            api.gates[LISTING_URL] = asyncio.Event()
            pending = asyncio.ensure_future(resolver.resolve(LISTING_URL))
            await asyncio.sleep(0)
            assert resolver.state.is_loading
            api.gates[LISTING_URL].set()
            return await pending

        state = run(scenario())
        assert state.status == ResolutionStatus.RESOLVED
        assert not resolver.state.is_loading

    def test_stale_completion_not_committed(self):
        """A slow first query finishing after a second one is dropped."""
        first_url = "https://example.com/listing/first"
        second_url = "https://example.com/listing/second"
        api = FakeListingAPI(
            listing=lambda url: ResolvedListing.from_payload({"_id": url, "listingUrl": url})
        )
        resolver = ListingResolver(api)

        async def scenario():
            api.gates[first_url] = asyncio.Event()
            slow = asyncio.ensure_future(resolver.resolve(first_url))
            await asyncio.sleep(0)
            fast = await resolver.resolve(second_url)
            api.gates[first_url].set()
            stale = await slow
            return stale, fast

        stale, fast = run(scenario())

        assert stale.status == ResolutionStatus.RESOLVED
        assert stale.listing.listing_url == first_url
        assert resolver.state is fast
        assert resolver.state.listing.listing_url == second_url
        assert resolver.is_current(fast.token)
        assert not resolver.is_current(stale.token)

    def test_loading_stages_published(self):
        assert len(LOADING_STAGES) == 4
        assert LOADING_STAGES[0] == "Fetching property data..."
