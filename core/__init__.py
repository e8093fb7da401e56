"""
Listing Valuation Engine - Core Business Logic

This module provides the analysis pipeline for a property listing:
1. Resolution (computed listing, else reactive search)
2. Price / FMV series and market position
3. ROI projection per rental mode
4. Payment gate for gated content
"""

from .models import (
    LOADING_STAGES,
    QueryType,
    Query,
    ResolvedListing,
    ReactiveSearchResult,
    ResolutionStatus,
    ResolutionState,
    PaymentRecord,
    PaymentSession,
    is_listing_url,
)
from .errors import (
    EngineError,
    InvalidQueryError,
    ListingAPIError,
    ListingNotFoundError,
    TransientListingError,
    PaymentVerificationError,
)

# Listing API Service
from .listing_api import ListingAPIClient, get_listing_api

# Listing Resolver
from .resolver import ListingResolver

# Payment Gate
from .payment_gate import (
    PaymentGate,
    PaymentStatus,
    PaymentEvent,
    next_payment_status,
    strip_callback_params,
)

# Valuation (series + ROI)
from .valuation import (
    PriceSeries,
    SeriesSource,
    SeriesSynthesizer,
    RentalMode,
    AppreciationView,
    ROIField,
    ROIParameters,
    ROIResult,
    ROIProjector,
)

# Analysis Session
from .session import AnalysisSession

__all__ = [
    # Models
    "LOADING_STAGES",
    "QueryType",
    "Query",
    "ResolvedListing",
    "ReactiveSearchResult",
    "ResolutionStatus",
    "ResolutionState",
    "PaymentRecord",
    "PaymentSession",
    "is_listing_url",
    # Errors
    "EngineError",
    "InvalidQueryError",
    "ListingAPIError",
    "ListingNotFoundError",
    "TransientListingError",
    "PaymentVerificationError",
    # Listing API Service
    "ListingAPIClient",
    "get_listing_api",
    # Resolver
    "ListingResolver",
    # Payment Gate
    "PaymentGate",
    "PaymentStatus",
    "PaymentEvent",
    "next_payment_status",
    "strip_callback_params",
    # Valuation
    "PriceSeries",
    "SeriesSource",
    "SeriesSynthesizer",
    "RentalMode",
    "AppreciationView",
    "ROIField",
    "ROIParameters",
    "ROIResult",
    "ROIProjector",
    # Session
    "AnalysisSession",
]
