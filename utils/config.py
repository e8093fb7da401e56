"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Listing API
    api_base_url: str = field(
        default_factory=lambda: os.getenv("API_BASE_URL", "http://localhost:4000")
    )
    api_token: str = field(default_factory=lambda: os.getenv("API_TOKEN", ""))
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "30"))
    )

    # Analytics
    roi_calc_delay_ms: int = field(
        default_factory=lambda: int(os.getenv("ROI_CALC_DELAY_MS", "600"))
    )
    series_seed: Optional[int] = field(default_factory=lambda: _optional_int("SERIES_SEED"))
    default_currency: str = field(
        default_factory=lambda: os.getenv("DEFAULT_CURRENCY", "NGN").upper()
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def roi_calc_delay_seconds(self) -> float:
        return self.roi_calc_delay_ms / 1000

    def to_dict(self) -> dict:
        """Convert config to dictionary. The API token is never included."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "api_base_url": self.api_base_url,
            "request_timeout": self.request_timeout,
            "roi_calc_delay_ms": self.roi_calc_delay_ms,
            "series_seed": self.series_seed,
            "default_currency": self.default_currency,
        }
