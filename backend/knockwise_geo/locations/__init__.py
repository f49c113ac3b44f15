"""Place-name resolution across the open geodata providers"""
from .cache import TTLCache
from .location_resolver import CascadingResults, LocationResolver
from .provinces import PROVINCES, get_provinces
from .strategies import NeighbourhoodStrategy, NominatimNeighbourhoodStrategy, OverpassNeighbourhoodStrategy

__all__ = [
    "CascadingResults",
    "LocationResolver",
    "NeighbourhoodStrategy",
    "NominatimNeighbourhoodStrategy",
    "OverpassNeighbourhoodStrategy",
    "PROVINCES",
    "TTLCache",
    "get_provinces",
]
