"""Error types raised by the territory geometry core"""
from typing import List, Optional


class KnockwiseGeoError(Exception):
    """Base class for all errors raised by this package."""


class GeometryUnavailable(KnockwiseGeoError):
    """Raised when the geometry engine (shapely) cannot be loaded."""


class InvalidPolygonError(KnockwiseGeoError, ValueError):
    """Raised when a coordinate ring cannot describe a polygon."""


class ProviderError(KnockwiseGeoError):
    """Raised when a third-party geodata provider returns a failure."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class ProviderAuthError(ProviderError):
    """Raised when a provider rejects the configured credentials (not retried)."""


class ProviderTimeout(ProviderError):
    """Raised when a provider times out, either server side (HTTP 504) or client side."""


class BackendUnreachable(KnockwiseGeoError):
    """Raised when the Knockwise backend cannot answer a request."""


class OverlapDetected(KnockwiseGeoError):
    """A candidate boundary overlaps existing territories."""

    def __init__(self, zone_names: List[str], message: str):
        super().__init__(message)
        self.zone_names = zone_names
