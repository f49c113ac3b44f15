"""Fetcher for Google Maps Platform web services (Geocoding, Places, Roads)"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..config import GOOGLE_MAPS_API_KEY, GOOGLE_MAPS_BASE_URL, GOOGLE_ROADS_URL, GOOGLE_REQUEST_DELAY
from ..errors import ProviderAuthError, ProviderError
from ..models import GeocodedAddress, LatLng
from .base_fetcher import BaseFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ROADS_BATCH_SIZE = 100

PLACE_SEARCH_FIELDS = "place_id,name,geometry,types,formatted_address"
PLACE_DETAIL_FIELDS = "place_id,name,geometry,types,formatted_address,address_components"


def find_route(components: List[Dict[str, Any]]) -> Optional[str]:
    for component in components or []:
        if "route" in component.get("types", []):
            return component.get("long_name")
    return None


class GoogleMapsFetcher(BaseFetcher):
    """
    Thin client over the Google Geocoding, Places and Roads web services.

    Google reports most failures in the body's `status` field with HTTP 200;
    REQUEST_DENIED maps to ProviderAuthError, any other non-OK status
    except ZERO_RESULTS to ProviderError.
    """

    def __init__(self, api_key: str = GOOGLE_MAPS_API_KEY, base_url: str = GOOGLE_MAPS_BASE_URL,
                 roads_url: str = GOOGLE_ROADS_URL, **kwargs):
        kwargs.setdefault("rate_limiter", RateLimiter(GOOGLE_REQUEST_DELAY))
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self.roads_url = roads_url

    def get_source_name(self) -> str:
        return "Google Maps"

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.fetch_with_retry(
            f"{self.base_url}{path}",
            params={**params, "key": self.api_key},
        )
        data = data or {}
        status = data.get("status", "OK")
        if status == "REQUEST_DENIED":
            raise ProviderAuthError(self.get_source_name(), data.get("error_message", "request denied"))
        if status not in ("OK", "ZERO_RESULTS"):
            raise ProviderError(self.get_source_name(), data.get("error_message") or status)
        return data

    async def reverse_geocode(self, point: LatLng) -> Optional[GeocodedAddress]:
        data = await self._get("/geocode/json", {"latlng": f"{point.lat},{point.lng}"})
        results = data.get("results") or []
        if not results:
            return None
        first = results[0]
        location = (first.get("geometry") or {}).get("location") or {}
        if location.get("lat") is None or location.get("lng") is None:
            raise ProviderError(self.get_source_name(), "geocoding result has no location")
        return GeocodedAddress(
            formatted_address=first.get("formatted_address", ""),
            location=LatLng(lat=location["lat"], lng=location["lng"]),
            route=find_route(first.get("address_components")),
        )

    async def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        """First forward-geocoding result (with geometry bounds/viewport), or None"""
        data = await self._get("/geocode/json", {"address": address})
        results = data.get("results") or []
        return results[0] if results else None

    async def text_search(self, query: str) -> List[Dict[str, Any]]:
        data = await self._get("/place/textsearch/json", {"query": query, "fields": PLACE_SEARCH_FIELDS})
        return data.get("results") or []

    async def place_details(self, place_id: str) -> Optional[Dict[str, Any]]:
        data = await self._get("/place/details/json", {"place_id": place_id, "fields": PLACE_DETAIL_FIELDS})
        return data.get("result")

    async def nearest_roads(self, points: Sequence[LatLng]) -> List[Dict[str, Any]]:
        """Snap points to their nearest road segments, ROADS_BATCH_SIZE points per request"""
        snapped = []
        for start in range(0, len(points), ROADS_BATCH_SIZE):
            batch = points[start:start + ROADS_BATCH_SIZE]
            data = await self.fetch_with_retry(
                self.roads_url,
                params={
                    "points": "|".join(f"{p.lat},{p.lng}" for p in batch),
                    "key": self.api_key,
                },
            )
            snapped.extend((data or {}).get("snappedPoints") or [])
        return snapped
