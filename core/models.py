"""
Data models for listing resolution.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .errors import InvalidQueryError


# Cosmetic progress stages a caller may overlay while resolution is in flight
LOADING_STAGES = (
    "Fetching property data...",
    "Verifying documents...",
    "Running market analysis...",
    "Generating insights...",
)


class QueryType(Enum):
    """Declared type of a search query. Only links are resolvable."""
    LINK = "link"
    ADDRESS = "address"
    AGENT = "agent"
    DEVELOPER = "developer"


def is_listing_url(value: str) -> bool:
    """True if ``value`` is an absolute http(s) URL with a host."""
    try:
        parsed = urlparse((value or "").strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class Query:
    """A raw user query plus its declared type."""

    text: str
    query_type: str = QueryType.LINK.value

    @property
    def is_valid(self) -> bool:
        """Only 'link' queries (exact, case-sensitive) holding an absolute http(s) URL are valid."""
        return self.query_type == QueryType.LINK.value and is_listing_url(self.text)

    @property
    def url(self) -> str:
        return self.text.strip()

    def require_valid(self) -> "Query":
        """Return self, or raise InvalidQueryError."""
        if not self.is_valid:
            raise InvalidQueryError(self.text, self.query_type)
        return self


def _as_dict(value: Any) -> Dict[str, Any]:
    """``value`` if it is a non-empty object, else an empty dict."""
    return value if isinstance(value, dict) and value else {}


@dataclass(frozen=True)
class ResolvedListing:
    """
    Canonical computed listing.

    Wraps the opaque API payload; analytics, AI report and snapshot blocks
    are kept as plain dicts and read through first-match accessors.
    """

    listing_id: str
    listing_url: str
    title: str = ""
    analytics: Dict[str, Any] = field(default_factory=dict)
    ai_report: Dict[str, Any] = field(default_factory=dict)
    snapshot: Dict[str, Any] = field(default_factory=dict)
    computed_at: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ResolvedListing":
        """
        Build a listing from the computed-listing API payload.

        Blocks of the wrong shape are treated as absent.

        Raises:
            ValueError: If the payload itself is not an object
        """
        if not isinstance(data, dict):
            raise ValueError(f"computed listing payload is {type(data).__name__}, not an object")
        snapshot = _as_dict(data.get("snapshot"))

        def pick(key):
            return data.get(key) or snapshot.get(key)

        return cls(
            listing_id=str(data.get("listingId") or pick("_id") or ""),
            listing_url=str(pick("listingUrl") or ""),
            title=str(pick("title") or ""),
            analytics=_as_dict(data.get("analytics")) or _as_dict(snapshot.get("analytics")),
            ai_report=_as_dict(data.get("aiReport")) or _as_dict(snapshot.get("aiReport")),
            snapshot=snapshot,
            computed_at=str(data.get("computedAt") or ""),
            raw=data,
        )

    @property
    def identity(self) -> str:
        """Stable key used to tell one listing from another."""
        return self.listing_id or self.listing_url

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "listing_id": self.listing_id,
            "listing_url": self.listing_url,
            "title": self.title,
            "analytics": self.analytics,
            "ai_report": self.ai_report,
            "computed_at": self.computed_at,
        }


# Reactive search distance fields, keyed by the amenity they measure
AMENITY_DISTANCE_FIELDS = {
    "school": "school_distance_meters",
    "hospital": "hospital_distance_meters",
    "clinic": "clinic_distance_meters",
    "mall": "mall_distance_meters",
    "pharmacy": "pharmacy_distance_meters",
    "police_station": "police_station_distance_meters",
    "aerodrome": "aerodrome_distance_meters",
}


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ReactiveSearchResult:
    """
    Lower-confidence listing found by a live search.

    Only produced when no canonical computed listing exists.
    """

    title: str
    detail_url: str = ""
    address: str = ""
    source_site: str = ""
    description: str = ""
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    toilets: Optional[int] = None
    price: Optional[int] = None
    amenities: List[str] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distances_m: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["ReactiveSearchResult"]:
        """
        Build a result from the reactive search payload.

        Returns None when the payload carries no ``merged_data`` object.
        """
        if not isinstance(payload, dict):
            return None
        data = _as_dict(payload.get("merged_data"))
        if not data:
            return None

        amenities_raw = data.get("amenities") or ""
        if isinstance(amenities_raw, list):
            amenities = [str(a).strip() for a in amenities_raw if str(a).strip()]
        else:
            amenities = [a.strip() for a in str(amenities_raw).split("|") if a.strip()]

        distances = {}
        for name, key in AMENITY_DISTANCE_FIELDS.items():
            value = _as_float(data.get(key))
            if value is not None:
                distances[name] = value

        return cls(
            title=str(data.get("title") or ""),
            detail_url=str(data.get("detail_url") or ""),
            address=str(data.get("address") or ""),
            source_site=str(data.get("source_site") or ""),
            description=str(data.get("description_raw") or ""),
            bedrooms=_as_int(data.get("detail_beds")),
            bathrooms=_as_int(data.get("detail_baths")),
            toilets=_as_int(data.get("detail_toilets")),
            price=_as_int(data.get("price_naira")),
            amenities=amenities,
            latitude=_as_float(data.get("latitude")),
            longitude=_as_float(data.get("longitude")),
            distances_m=distances,
        )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def distance_km(self, amenity: str) -> Optional[float]:
        """Distance to an amenity in km, rounded to 2 decimals."""
        meters = self.distances_m.get(amenity)
        if meters is None:
            return None
        return round(meters / 1000, 2)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "title": self.title,
            "detail_url": self.detail_url,
            "address": self.address,
            "source_site": self.source_site,
            "description": self.description,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "toilets": self.toilets,
            "price": self.price,
            "amenities": list(self.amenities),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distances_km": {name: self.distance_km(name) for name in self.distances_m},
        }


class ResolutionStatus(Enum):
    """Where the resolution flow currently stands."""
    LOADING = "loading"
    RESOLVED = "resolved"
    REACTIVE_FOUND = "reactive_found"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ResolutionState:
    """
    Immutable snapshot of the resolution flow.

    At most one of ``listing`` and ``reactive`` is populated, and only in
    the matching status.
    """

    status: ResolutionStatus
    query: Optional[Query] = None
    token: int = 0
    listing: Optional[ResolvedListing] = None
    reactive: Optional[ReactiveSearchResult] = None

    def __post_init__(self):
        """Enforce mutual exclusivity of listing and reactive result."""
        if self.listing is not None and self.reactive is not None:
            raise ValueError("listing and reactive result are mutually exclusive")
        if self.listing is not None and self.status != ResolutionStatus.RESOLVED:
            raise ValueError("listing requires RESOLVED status")
        if self.reactive is not None and self.status != ResolutionStatus.REACTIVE_FOUND:
            raise ValueError("reactive result requires REACTIVE_FOUND status")
        if self.status == ResolutionStatus.RESOLVED and self.listing is None:
            raise ValueError("RESOLVED status requires a listing")
        if self.status == ResolutionStatus.REACTIVE_FOUND and self.reactive is None:
            raise ValueError("REACTIVE_FOUND status requires a reactive result")

    @classmethod
    def idle(cls) -> "ResolutionState":
        """State before any query was issued."""
        return cls(status=ResolutionStatus.NOT_FOUND)

    @classmethod
    def loading(cls, query: Query, token: int) -> "ResolutionState":
        return cls(status=ResolutionStatus.LOADING, query=query, token=token)

    @classmethod
    def resolved(cls, query: Query, token: int, listing: ResolvedListing) -> "ResolutionState":
        return cls(status=ResolutionStatus.RESOLVED, query=query, token=token, listing=listing)

    @classmethod
    def reactive_found(
        cls, query: Query, token: int, reactive: ReactiveSearchResult
    ) -> "ResolutionState":
        return cls(
            status=ResolutionStatus.REACTIVE_FOUND, query=query, token=token, reactive=reactive
        )

    @classmethod
    def not_found(cls, query: Optional[Query], token: int) -> "ResolutionState":
        return cls(status=ResolutionStatus.NOT_FOUND, query=query, token=token)

    @property
    def is_loading(self) -> bool:
        return self.status == ResolutionStatus.LOADING

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "status": self.status.value,
            "query": self.query.text if self.query else "",
            "type": self.query.query_type if self.query else "",
            "listing": self.listing.to_dict() if self.listing else None,
            "reactive": self.reactive.to_dict() if self.reactive else None,
        }


# =============================================================================
# Payments
# =============================================================================


@dataclass(frozen=True)
class PaymentRecord:
    """A verified payment as reported by the payments API."""

    reference: str
    status: str = ""
    plan: str = ""
    listing_url: str = ""
    amount: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    # Statuses the payments API uses for a settled payment
    PAID_STATUSES = ("success", "successful", "paid", "completed")

    @classmethod
    def from_payload(cls, reference: str, data: Dict[str, Any]) -> "PaymentRecord":
        payment = data.get("payment") if isinstance(data.get("payment"), dict) else data
        amount = payment.get("amount")
        return cls(
            reference=payment.get("reference") or reference,
            status=str(payment.get("status") or "").lower(),
            plan=payment.get("plan") or "",
            listing_url=payment.get("listingUrl") or "",
            amount=float(amount) if isinstance(amount, (int, float)) else None,
            raw=data,
        )

    @property
    def is_paid(self) -> bool:
        if self.raw.get("paid") is True:
            return True
        return self.status in self.PAID_STATUSES


@dataclass(frozen=True)
class PaymentSession:
    """Result of starting a listing payment."""

    authorization_url: Optional[str] = None
    already_paid: bool = False
    reference: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "PaymentSession":
        data = data or {}
        return cls(
            authorization_url=data.get("authorizationUrl") or data.get("authorization_url"),
            already_paid=bool(data.get("alreadyPaid") or data.get("already_paid")),
            reference=data.get("reference"),
        )
