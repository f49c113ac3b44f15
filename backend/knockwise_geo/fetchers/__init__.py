"""Async clients for the backend and the external geodata services"""
from .backend_api_fetcher import BackendApiFetcher
from .base_fetcher import BaseFetcher
from .geonames_fetcher import GeoNamesFetcher
from .google_maps_fetcher import GoogleMapsFetcher
from .nominatim_fetcher import NominatimFetcher
from .overpass_fetcher import OverpassFetcher
from .rate_limiter import RateLimiter

__all__ = [
    "BackendApiFetcher",
    "BaseFetcher",
    "GeoNamesFetcher",
    "GoogleMapsFetcher",
    "NominatimFetcher",
    "OverpassFetcher",
    "RateLimiter",
]
