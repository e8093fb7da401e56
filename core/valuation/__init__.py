"""
Valuation layer

Price/FMV series synthesis, market-position metrics and the ROI
projection for a resolved listing.
"""

from .models import (
    PriceSeries,
    SeriesSource,
    SERIES_LENGTH,
    RentalMode,
    AppreciationView,
    ROIField,
    ROIParameters,
    ROIResult,
    ROIDisplay,
    MonthlyProjection,
)
from .fields import dig, first_match, first_number, first_list, to_number
from .series import SeriesSynthesizer, extract_price, extract_fmv
from .roi import ROIProjector, project, seed_parameters

__all__ = [
    # Models
    "PriceSeries",
    "SeriesSource",
    "SERIES_LENGTH",
    "RentalMode",
    "AppreciationView",
    "ROIField",
    "ROIParameters",
    "ROIResult",
    "ROIDisplay",
    "MonthlyProjection",
    # Field extraction
    "dig",
    "first_match",
    "first_number",
    "first_list",
    "to_number",
    # Engines
    "SeriesSynthesizer",
    "extract_price",
    "extract_fmv",
    "ROIProjector",
    "project",
    "seed_parameters",
]
