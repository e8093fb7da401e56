"""
Listing API Service

Async client for the listing backend: computed listings, reactive search
and payments. Responses use the JSON envelope ``{status, data, message}``;
payload shapes are treated as opaque and read by the valuation layer.

Failures are raised as engine errors; callers map them to state.
"""

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx

from utils.config import Config
from .errors import (
    ListingNotFoundError,
    PaymentVerificationError,
    TransientListingError,
    classify_listing_error,
)
from .models import PaymentRecord, PaymentSession, ReactiveSearchResult, ResolvedListing


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

COMPUTED_BY_URL_PATH = "/listings/computed/by-url"
REACTIVE_SEARCH_PATH = "/listings/reactive-search"
PAYMENT_START_PATH = "/payments/start"
PAYMENT_VERIFY_PATH = "/payments/verify"
PAYMENT_HAS_PAID_PATH = "/payments/has-paid"

DEFAULT_PLAN = "instant"

T = TypeVar("T")


def _error_message(response: httpx.Response) -> Optional[str]:
    """Pull the message out of an error payload, if it is JSON."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None


def _envelope_data(body: Any) -> Any:
    """Unwrap ``{status, data}``; bare payloads pass through."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _parse(path: str, parser: Callable[[Any], T], data: Any) -> T:
    """Run a payload parser; shape errors become TransientListingError."""
    try:
        return parser(data)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("Malformed payload from %s: %s", path, exc)
        raise TransientListingError(f"Malformed payload from {path}: {exc}") from exc


class ListingAPIClient:
    """
    Data-access collaborator for the valuation engine.

    Wraps an ``httpx.AsyncClient``. A client may be injected (tests use
    ``httpx.MockTransport``); otherwise one is built from Config.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the API client.

        Args:
            config: Application configuration (default: loaded from env)
            client: Pre-built async HTTP client
        """
        self._config = config or Config.load()
        if client is None:
            headers = {"Content-Type": "application/json"}
            if self._config.api_token:
                headers["Authorization"] = f"Bearer {self._config.api_token}"
            client = httpx.AsyncClient(
                base_url=self._config.api_base_url,
                headers=headers,
                timeout=self._config.request_timeout,
            )
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Listings
    # =========================================================================

    async def fetch_computed_listing(self, url: str) -> ResolvedListing:
        """
        Fetch the computed listing for a listing URL.

        Raises:
            ListingNotFoundError: HTTP 404 or a 'not found' error message
            TransientListingError: Any other failure
        """
        body = await self._get_json(COMPUTED_BY_URL_PATH, {"url": url})
        data = _envelope_data(body)
        if not isinstance(data, dict) or not data:
            message = body.get("message") if isinstance(body, dict) else None
            raise classify_listing_error(None, message or "Listing not found")
        return _parse(COMPUTED_BY_URL_PATH, ResolvedListing.from_payload, data)

    async def fetch_reactive_search(self, query: str) -> Optional[ReactiveSearchResult]:
        """
        Run a live search for a query with no computed listing.

        Returns:
            ReactiveSearchResult, or None when the search found nothing

        Raises:
            TransientListingError: On any failure
        """
        try:
            body = await self._get_json(REACTIVE_SEARCH_PATH, {"query": query})
        except ListingNotFoundError as exc:
            raise TransientListingError(str(exc), status_code=exc.status_code) from exc
        data = _envelope_data(body)
        return _parse(REACTIVE_SEARCH_PATH, ReactiveSearchResult.from_payload, data)

    # =========================================================================
    # Payments
    # =========================================================================

    async def verify_payment(self, reference: str) -> PaymentRecord:
        """
        Verify a payment reference.

        Raises:
            PaymentVerificationError: Invalid reference, unpaid, or API failure
        """
        try:
            body = await self._get_json(PAYMENT_VERIFY_PATH, {"reference": reference})
        except (ListingNotFoundError, TransientListingError) as exc:
            raise PaymentVerificationError(reference, str(exc)) from exc

        data = _envelope_data(body)
        if not isinstance(data, dict):
            raise PaymentVerificationError(reference, "empty verification payload")

        try:
            record = PaymentRecord.from_payload(reference, data)
        except (AttributeError, TypeError, ValueError) as exc:
            raise PaymentVerificationError(reference, f"malformed payload: {exc}") from exc
        if not record.is_paid:
            raise PaymentVerificationError(reference, f"status={record.status or 'unknown'}")
        return record

    async def start_listing_payment(
        self,
        listing_url: str,
        callback_url: str,
        plan: str = DEFAULT_PLAN,
    ) -> PaymentSession:
        """
        Start a paywall session for a listing.

        Raises:
            TransientListingError: On any failure
        """
        payload = {"listingUrl": listing_url, "plan": plan, "callbackUrl": callback_url}
        try:
            response = await self._client.post(PAYMENT_START_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise TransientListingError(f"Transport error: {exc}") from exc
        if response.is_error:
            raise TransientListingError(
                _error_message(response) or "Payment start failed",
                status_code=response.status_code,
            )
        data = _envelope_data(self._decode(response))
        return _parse(PAYMENT_START_PATH, PaymentSession.from_payload, data)

    async def has_paid(self, listing_url: str, plan: str = DEFAULT_PLAN) -> bool:
        """
        Ask whether the current user already paid for a listing.

        Raises:
            TransientListingError: On any failure
        """
        try:
            body = await self._get_json(
                PAYMENT_HAS_PAID_PATH, {"listingUrl": listing_url, "plan": plan}
            )
        except ListingNotFoundError as exc:
            raise TransientListingError(str(exc), status_code=exc.status_code) from exc
        data = _envelope_data(body)
        return bool(isinstance(data, dict) and data.get("paid"))

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get_json(self, path: str, params: Dict[str, str]) -> Any:
        """GET ``path`` and decode JSON, classifying failures."""
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Transport error on %s: %s", path, exc)
            raise TransientListingError(f"Transport error: {exc}") from exc

        if response.is_error:
            error = classify_listing_error(response.status_code, _error_message(response))
            logger.debug("GET %s -> %s (%s)", path, response.status_code, error)
            raise error

        body = self._decode(response)
        if isinstance(body, dict) and str(body.get("status", "")).lower() == "error":
            raise classify_listing_error(None, body.get("message"))
        return body

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransientListingError(
                "Malformed JSON response", status_code=response.status_code
            ) from exc


# Singleton instance for the application
_listing_api: Optional[ListingAPIClient] = None


def get_listing_api() -> ListingAPIClient:
    """Get the listing API client singleton."""
    global _listing_api
    if _listing_api is None:
        _listing_api = ListingAPIClient()
    return _listing_api
