"""Fetcher for GeoNames Canadian populated-place search"""
import logging
from typing import Any, Dict, List, Optional

from ..config import (
    GEONAMES_BASE_URL,
    GEONAMES_USERNAME,
    GEONAMES_COUNTRY,
    GEONAMES_FEATURE_CLASS,
    GEONAMES_MAX_ROWS,
    GEONAMES_PROVINCE_MAX_ROWS,
    GEONAMES_REQUEST_DELAY,
)
from ..models import LocationSearchResult
from .base_fetcher import BaseFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Feature codes accepted as municipalities (towns, cities, regional seats)
MUNICIPALITY_FEATURE_CODES = {"PPL", "PPLA", "PPLA2"}

PLACE_TYPES = {
    "PPL": "Town",
    "PPLA": "City",
    "PPLA2": "City",
    "PPLA3": "Village",
    "PPLA4": "Hamlet",
    "PPLC": "Capital",
}


def get_place_type(fcode: Optional[str]) -> str:
    return PLACE_TYPES.get(fcode, "Place")


class GeoNamesFetcher(BaseFetcher):
    """
    Searches the GeoNames gazetteer for Canadian municipalities.

    API: {base}/searchJSON (free tier, 1000 requests per day, so requests
    are spaced GEONAMES_REQUEST_DELAY apart).

    A 401 means the configured username is invalid; it surfaces as
    ProviderAuthError instead of an empty result.
    """

    def __init__(self, username: str = GEONAMES_USERNAME, base_url: str = GEONAMES_BASE_URL, **kwargs):
        kwargs.setdefault("rate_limiter", RateLimiter(GEONAMES_REQUEST_DELAY))
        super().__init__(**kwargs)
        self.username = username
        self.search_url = f"{base_url}/searchJSON"

    def get_source_name(self) -> str:
        return "GeoNames"

    def _base_params(self, max_rows: int) -> Dict[str, Any]:
        return {
            "country": GEONAMES_COUNTRY,
            "featureClass": GEONAMES_FEATURE_CLASS,
            "maxRows": str(max_rows),
            "orderby": "population",
            "style": "FULL",
            "username": self.username,
        }

    async def search_municipalities(self, query: str) -> List[LocationSearchResult]:
        """Municipalities whose name starts with `query`, most populous first"""
        if not query or len(query) < 2:
            return []

        params = self._base_params(GEONAMES_MAX_ROWS)
        params["name_startsWith"] = query

        data = await self.fetch_with_retry(self.search_url, params=params)
        places = [p for p in (data or {}).get("geonames") or [] if self._is_municipality(p)]
        logger.info(f"GeoNames: {len(places)} municipalities for '{query}'")
        return self._to_results(places)

    async def get_municipalities_by_province(self, province: str) -> List[LocationSearchResult]:
        params = self._base_params(GEONAMES_PROVINCE_MAX_ROWS)
        params["adminName1"] = province

        data = await self.fetch_with_retry(self.search_url, params=params)
        places = [
            p for p in (data or {}).get("geonames") or []
            if self._is_municipality(p) and p.get("adminName1") == province
        ]
        logger.info(f"GeoNames: {len(places)} municipalities in {province}")
        return self._to_results(places)

    @staticmethod
    def _is_municipality(place: Dict[str, Any]) -> bool:
        return (
            place.get("countryName") == "Canada"
            and bool(place.get("adminName1"))
            and place.get("fcode") in MUNICIPALITY_FEATURE_CODES
        )

    @staticmethod
    def _to_results(places: List[Dict[str, Any]]) -> List[LocationSearchResult]:
        results = [
            LocationSearchResult(
                name=place["name"],
                type="municipality",
                province=place.get("adminName1"),
                lat=float(place["lat"]),
                lng=float(place["lng"]),
                id=place.get("geonameId"),
                population=place.get("population"),
                place_type=get_place_type(place.get("fcode")),
            )
            for place in places
        ]
        results.sort(key=lambda r: r.population or 0, reverse=True)
        return results
