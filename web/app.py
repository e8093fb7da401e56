"""
FastAPI application for the listing valuation engine.

JSON surface for the presentation layer: resolution, valuation series,
ROI calculation and the payment gate. Rendering happens client-side.

The service keeps no state between requests. Each request builds its own
AnalysisSession or PaymentGate, so "paid never reverts" and "a reference
is verified once" hold within one request only. Callers that need them
across requests keep the returned payment status themselves; persistence
lives with the payments backend.

Production deployment configuration via environment variables.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from core import (
    AnalysisSession,
    InvalidQueryError,
    ListingAPIClient,
    PaymentGate,
    Query,
    ResolutionStatus,
    RentalMode,
    ROIField,
    get_listing_api,
)
from core.listing_api import DEFAULT_PLAN
from utils.config import Config


logger = logging.getLogger(__name__)


# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("RAILWAY_ENVIRONMENT") is not None or os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

# Debug mode - never enabled in production
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true" and not IS_PRODUCTION

APP_VERSION = "0.1.0"


def get_config() -> Config:
    """Configuration dependency (overridable in tests)."""
    return Config.load()


# =============================================================================
# Request Models
# =============================================================================


class ROICalculateRequest(BaseModel):
    """Request body for an ROI calculation on a listing."""
    url: str
    type: str = "link"
    mode: str = RentalMode.LONG.value
    overrides: Dict[str, Union[float, str]] = {}


class PaymentStartRequest(BaseModel):
    """Request body for starting a listing payment."""
    listing_url: str
    callback_url: str
    plan: str = DEFAULT_PLAN


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks."""
    logger.info("Listing Valuation Engine started (version %s)", APP_VERSION)
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Listing Valuation Engine",
        description="Valuation and investment analytics for property listings",
        version=APP_VERSION,
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=DEBUG_MODE,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Healthcheck endpoints are registered first. They perform no IO.
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Health endpoint. No dependencies, no IO."""
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
        }

    # CORS middleware - locked down for production
    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    # ==========================================================================
    # Resolution + valuation
    # ==========================================================================

    @app.get("/api/resolve")
    async def resolve(
        q: str,
        type: str = "link",
        api: ListingAPIClient = Depends(get_listing_api),
        config: Config = Depends(get_config),
    ):
        """
        Resolve a listing query.

        Returns the resolution state, the price/FMV series, the seeded ROI
        parameters and formatted display strings.
        """
        session = AnalysisSession(api=api, config=config)
        await session.open(q, type)
        return session.to_dict()

    @app.post("/api/roi/calculate")
    async def calculate_roi(
        request_data: ROICalculateRequest,
        api: ListingAPIClient = Depends(get_listing_api),
        config: Config = Depends(get_config),
    ):
        """
        Run an ROI projection for a listing.

        Overrides are keyed by ROI field name; values may be numbers or
        strings with thousands separators.
        """
        mode = RentalMode.from_string(request_data.mode)
        if mode is None:
            raise HTTPException(status_code=422, detail=f"Unknown rental mode: {request_data.mode}")

        overrides = {}
        for name, raw in request_data.overrides.items():
            roi_field = ROIField.from_string(name)
            if roi_field is None:
                raise HTTPException(status_code=422, detail=f"Unknown ROI field: {name}")
            overrides[roi_field] = raw

        session = AnalysisSession(api=api, config=config)
        state = await session.open(request_data.url, request_data.type)
        if state.status != ResolutionStatus.RESOLVED:
            raise HTTPException(status_code=404, detail="Listing not found")

        projector = session.projector
        for roi_field, raw in overrides.items():
            projector.update(roi_field, raw)
        projector.select_mode(mode)
        result = await projector.calculate()

        return {
            "result": result.to_dict() if result else None,
            "roi": projector.to_dict(),
            "display": session.display(),
        }

    # ==========================================================================
    # Payments
    # ==========================================================================

    @app.get("/api/payments/verify")
    async def verify_payment(
        request: Request,
        api: ListingAPIClient = Depends(get_listing_api),
    ):
        """
        Handle a payment-provider callback.

        Returns the payment status and the navigable parameters with the
        payment reference removed.
        """
        gate = PaymentGate(api)
        cleaned = await gate.handle_callback(dict(request.query_params))
        return {
            "payment": gate.to_dict(),
            "params": cleaned,
        }

    @app.post("/api/payments/start")
    async def start_payment(
        request_data: PaymentStartRequest,
        api: ListingAPIClient = Depends(get_listing_api),
    ):
        """Start an unlock for a listing."""
        try:
            Query(request_data.listing_url).require_valid()
        except InvalidQueryError as e:
            raise HTTPException(status_code=422, detail=str(e))

        gate = PaymentGate(api)
        session = await gate.unlock(
            request_data.listing_url, request_data.callback_url, request_data.plan
        )
        if session is None:
            raise HTTPException(status_code=502, detail="Could not start payment")

        return {
            "authorization_url": session.authorization_url,
            "already_paid": session.already_paid,
            "payment": gate.to_dict(),
        }

    @app.get("/api/payments/access")
    async def payment_access(
        listing_url: str,
        plan: Optional[str] = None,
        api: ListingAPIClient = Depends(get_listing_api),
    ):
        """Report whether the listing is already unlocked."""
        gate = PaymentGate(api)
        await gate.check_access(listing_url, plan or DEFAULT_PLAN)
        return {"payment": gate.to_dict()}

    return app


# Create app instance for uvicorn
app = create_app()
