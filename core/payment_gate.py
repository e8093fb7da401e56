"""
Payment Gate

Tracks whether gated content is unlocked:

    UNVERIFIED -> VERIFYING -> PAID
                            -> UNVERIFIED

PAID is absorbing. Transitions are a pure function of (status, event);
the gate drives them from payment callbacks and explicit unlocks.
"""

import logging
from enum import Enum
from typing import Dict, Mapping, Optional, Set, Tuple

from .errors import ListingAPIError, PaymentVerificationError
from .listing_api import DEFAULT_PLAN, ListingAPIClient
from .models import PaymentSession


logger = logging.getLogger(__name__)


# Callback parameters that may carry the payment reference, in priority order
CALLBACK_REFERENCE_PARAMS = ("reference", "tx_ref", "trxref")

# Flag the payment provider appends to the callback URL
CALLBACK_VERIFY_PARAM = "verify"


class PaymentStatus(Enum):
    """Unlock status of gated content."""
    UNVERIFIED = "unverified"
    VERIFYING = "verifying"
    PAID = "paid"


class PaymentEvent(Enum):
    """Inputs to the payment state machine."""
    VERIFY_STARTED = "verify_started"
    VERIFY_SUCCEEDED = "verify_succeeded"
    VERIFY_FAILED = "verify_failed"
    ALREADY_PAID = "already_paid"


_TRANSITIONS: Dict[Tuple[PaymentStatus, PaymentEvent], PaymentStatus] = {
    (PaymentStatus.UNVERIFIED, PaymentEvent.VERIFY_STARTED): PaymentStatus.VERIFYING,
    (PaymentStatus.UNVERIFIED, PaymentEvent.ALREADY_PAID): PaymentStatus.PAID,
    (PaymentStatus.VERIFYING, PaymentEvent.VERIFY_SUCCEEDED): PaymentStatus.PAID,
    (PaymentStatus.VERIFYING, PaymentEvent.VERIFY_FAILED): PaymentStatus.UNVERIFIED,
    (PaymentStatus.VERIFYING, PaymentEvent.ALREADY_PAID): PaymentStatus.PAID,
}


def next_payment_status(current: PaymentStatus, event: PaymentEvent) -> PaymentStatus:
    """
    Apply one event to a payment status.

    Pairs without a transition leave the status unchanged, so PAID never
    reverts.
    """
    if current == PaymentStatus.PAID:
        return current
    return _TRANSITIONS.get((current, event), current)


def extract_reference(params: Mapping[str, str]) -> Optional[str]:
    """First non-empty payment reference in callback parameters."""
    for name in CALLBACK_REFERENCE_PARAMS:
        value = (params.get(name) or "").strip()
        if value:
            return value
    return None


def strip_callback_params(params: Mapping[str, str]) -> Dict[str, str]:
    """Navigable parameters with the payment reference and verify flag removed."""
    drop = set(CALLBACK_REFERENCE_PARAMS) | {CALLBACK_VERIFY_PARAM}
    return {key: value for key, value in params.items() if key not in drop}


class PaymentGate:
    """
    Payment state for the current user session.

    Verification failures are logged and revert to UNVERIFIED; they are
    never raised to the caller.
    """

    def __init__(self, api: ListingAPIClient):
        self._api = api
        self._status = PaymentStatus.UNVERIFIED
        self._processed: Set[str] = set()

    @property
    def status(self) -> PaymentStatus:
        return self._status

    @property
    def is_paid(self) -> bool:
        return self._status == PaymentStatus.PAID

    def _apply(self, event: PaymentEvent) -> PaymentStatus:
        previous = self._status
        self._status = next_payment_status(previous, event)
        if self._status != previous:
            logger.debug(
                "Payment status %s -> %s (%s)",
                previous.value, self._status.value, event.value,
            )
        return self._status

    async def handle_callback(self, params: Mapping[str, str]) -> Dict[str, str]:
        """
        Process payment-provider callback parameters.

        A reference is verified once. Callbacks arriving while PAID, or
        repeating a handled reference, skip verification.

        Args:
            params: Query parameters of the callback URL

        Returns:
            The parameters with the reference and verify flag stripped
        """
        cleaned = strip_callback_params(params)
        reference = extract_reference(params)
        if reference is None:
            return cleaned

        if self.is_paid or reference in self._processed:
            logger.debug("Skipping verification of handled reference %s", reference)
            return cleaned

        self._processed.add(reference)
        self._apply(PaymentEvent.VERIFY_STARTED)
        try:
            await self._api.verify_payment(reference)
        except PaymentVerificationError as e:
            logger.warning("Payment verification failed: %s", e)
            self._apply(PaymentEvent.VERIFY_FAILED)
        except Exception:
            logger.exception("Unexpected error verifying payment %s", reference)
            self._apply(PaymentEvent.VERIFY_FAILED)
        else:
            logger.info("Payment %s verified", reference)
            self._apply(PaymentEvent.VERIFY_SUCCEEDED)

        return cleaned

    async def unlock(
        self,
        listing_url: str,
        callback_url: str,
        plan: str = DEFAULT_PLAN,
    ) -> Optional[PaymentSession]:
        """
        Start an explicit unlock for a listing.

        Returns:
            The payment session (redirect to its authorization URL unless
            already paid), or None if the payment could not be started
        """
        if self.is_paid:
            return PaymentSession(already_paid=True)

        try:
            session = await self._api.start_listing_payment(listing_url, callback_url, plan)
        except ListingAPIError as e:
            logger.warning("Could not start payment for %s: %s", listing_url, e)
            return None

        if session.already_paid:
            self._apply(PaymentEvent.ALREADY_PAID)
        return session

    def complete_unlock(self) -> PaymentStatus:
        """Mark an explicit unlock as completed by the provider."""
        if self._status == PaymentStatus.UNVERIFIED:
            self._apply(PaymentEvent.VERIFY_STARTED)
        return self._apply(PaymentEvent.VERIFY_SUCCEEDED)

    async def check_access(self, listing_url: str, plan: str = DEFAULT_PLAN) -> PaymentStatus:
        """Consult the backend for an earlier payment on this listing."""
        if self.is_paid:
            return self._status
        try:
            paid = await self._api.has_paid(listing_url, plan)
        except ListingAPIError as e:
            logger.warning("Access check failed for %s: %s", listing_url, e)
            return self._status
        if paid:
            self._apply(PaymentEvent.ALREADY_PAID)
        return self._status

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "status": self._status.value,
            "is_paid": self.is_paid,
        }
