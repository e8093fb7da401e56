"""
Listing Resolver

Turns a query into a ResolutionState:
1. Invalid queries go straight to NOT_FOUND, no network call
2. Computed listing lookup
3. Reactive search, only when the listing is confirmed absent

Only the latest resolve() call may commit its outcome.
"""

import logging

from .errors import ListingAPIError, ListingNotFoundError
from .listing_api import ListingAPIClient
from .models import Query, QueryType, ResolutionState


logger = logging.getLogger(__name__)


class ListingResolver:
    """
    Resolves listing queries through the listing API.

    Errors from the API never escape: every outcome is a state value.
    """

    def __init__(self, api: ListingAPIClient):
        """
        Initialize the resolver.

        Args:
            api: Listing API collaborator
        """
        self._api = api
        self._token = 0
        self._state = ResolutionState.idle()

    @property
    def state(self) -> ResolutionState:
        """Current committed state."""
        return self._state

    @property
    def latest_token(self) -> int:
        return self._token

    def is_current(self, token: int) -> bool:
        return token == self._token

    async def resolve(
        self,
        text: str,
        query_type: str = QueryType.LINK.value,
    ) -> ResolutionState:
        """
        Resolve a query.

        The returned state is always the outcome of this call. It is also
        committed as ``state`` unless a newer call started in the meantime.

        Args:
            text: Raw query text
            query_type: Declared query type ('link' is the only resolvable one)

        Returns:
            Final ResolutionState for this call
        """
        self._token += 1
        token = self._token
        query = Query(text=text or "", query_type=query_type or QueryType.LINK.value)

        if not query.is_valid:
            logger.debug("Rejected query %r (type=%s)", query.text, query.query_type)
            return self._commit(ResolutionState.not_found(query, token))

        self._state = ResolutionState.loading(query, token)
        outcome = await self._lookup(query, token)
        return self._commit(outcome)

    async def _lookup(self, query: Query, token: int) -> ResolutionState:
        try:
            listing = await self._api.fetch_computed_listing(query.url)
        except ListingNotFoundError:
            logger.debug("No computed listing for %s, trying reactive search", query.url)
            return await self._reactive(query, token)
        except ListingAPIError as e:
            logger.warning("Listing lookup failed for %s: %s", query.url, e)
            return ResolutionState.not_found(query, token)
        except Exception:
            logger.exception("Unexpected error looking up %s", query.url)
            return ResolutionState.not_found(query, token)

        return ResolutionState.resolved(query, token, listing)

    async def _reactive(self, query: Query, token: int) -> ResolutionState:
        try:
            result = await self._api.fetch_reactive_search(query.url)
        except ListingAPIError as e:
            logger.warning("Reactive search failed for %s: %s", query.url, e)
            return ResolutionState.not_found(query, token)
        except Exception:
            logger.exception("Unexpected error in reactive search for %s", query.url)
            return ResolutionState.not_found(query, token)

        if result is None:
            return ResolutionState.not_found(query, token)
        return ResolutionState.reactive_found(query, token, result)

    def _commit(self, outcome: ResolutionState) -> ResolutionState:
        if self.is_current(outcome.token):
            self._state = outcome
            logger.debug("Resolution %d -> %s", outcome.token, outcome.status.value)
        else:
            logger.debug(
                "Dropping stale resolution %d (latest is %d)", outcome.token, self._token
            )
        return outcome
