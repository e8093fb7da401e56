"""
Error taxonomy for the valuation engine.

Errors are raised by the listing API collaborator and mapped to state
values at each component boundary. None of them is fatal.
"""

from typing import Optional


# =============================================================================
# Exceptions
# =============================================================================


class EngineError(Exception):
    """Base class for all engine errors."""

    pass


class InvalidQueryError(EngineError, ValueError):
    """Raised when a query fails pre-flight validation."""

    def __init__(self, query: str, query_type: str):
        self.query = query
        self.query_type = query_type
        super().__init__(f"Invalid query {query!r} (type={query_type!r})")


class ListingAPIError(EngineError):
    """Raised when a call to the listing API fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ListingNotFoundError(ListingAPIError):
    """The API confirmed the listing does not exist (404 or 'not found')."""

    pass


class TransientListingError(ListingAPIError):
    """Any other listing API failure: transport, 5xx, malformed payload."""

    pass


class PaymentVerificationError(EngineError):
    """Raised when a payment reference is invalid or unpaid."""

    def __init__(self, reference: str, reason: str = ""):
        self.reference = reference
        self.reason = reason
        message = f"Payment verification failed for {reference!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


# =============================================================================
# Classification
# =============================================================================


NOT_FOUND_MARKER = "not found"


def is_not_found(status_code: Optional[int], message: Optional[str]) -> bool:
    """
    Classify a failed response as 'confirmed absent'.

    True for HTTP 404, or for any error payload whose message contains
    'not found' (case-insensitive).
    """
    if status_code == 404:
        return True
    return bool(message) and NOT_FOUND_MARKER in message.lower()


def classify_listing_error(
    status_code: Optional[int],
    message: Optional[str],
) -> ListingAPIError:
    """Build the matching ListingAPIError subclass for a failed response."""
    text = message or f"Listing API error (HTTP {status_code})"
    if is_not_found(status_code, message):
        return ListingNotFoundError(text, status_code=status_code)
    return TransientListingError(text, status_code=status_code)
