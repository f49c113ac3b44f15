"""Fetcher for the OpenStreetMap Nominatim search service"""
import logging
from typing import Any, Dict, List, Optional

from ..config import NOMINATIM_URL, NOMINATIM_USER_AGENT, NOMINATIM_REQUEST_DELAY
from ..models import Bounds, Neighbourhood
from .base_fetcher import BaseFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

NEIGHBOURHOOD_PLACE_TYPES = {"neighbourhood", "suburb", "quarter", "district"}
NEIGHBOURHOOD_BOUNDARY_TYPES = {"administrative", "neighbourhood", "suburb"}


def is_neighbourhood(result: Dict[str, Any]) -> bool:
    cls = result.get("class")
    typ = result.get("type")
    return (
        (cls == "place" and typ in NEIGHBOURHOOD_PLACE_TYPES)
        or (cls == "boundary" and typ in NEIGHBOURHOOD_BOUNDARY_TYPES)
    )


class NominatimFetcher(BaseFetcher):
    """
    Neighbourhood search inside a city's bounding box.

    Nominatim's usage policy requires an identifying User-Agent and at most
    one request per second.
    """

    def __init__(self, base_url: str = NOMINATIM_URL, user_agent: str = NOMINATIM_USER_AGENT, **kwargs):
        kwargs.setdefault("rate_limiter", RateLimiter(NOMINATIM_REQUEST_DELAY))
        super().__init__(**kwargs)
        self.search_url = f"{base_url}/search"
        self.headers = {"User-Agent": user_agent, "Accept": "application/json"}

    def get_source_name(self) -> str:
        return "Nominatim"

    async def search(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self.fetch_with_retry(
            self.search_url,
            params={"format": "jsonv2", **params},
            headers=self.headers,
        )
        return data if isinstance(data, list) else []

    async def get_city_bounds(self, city: str) -> Optional[Bounds]:
        results = await self.search({
            "limit": "1",
            "addressdetails": "1",
            "polygon_geojson": "0",
            "city": city,
        })
        if not results or not results[0].get("boundingbox"):
            return None

        # boundingbox is [south, north, west, east] as strings
        south, north, west, east = (float(v) for v in results[0]["boundingbox"])
        return Bounds(north=north, south=south, east=east, west=west)

    async def get_neighbourhoods(self, city: str, query: Optional[str] = None) -> List[Neighbourhood]:
        bounds = await self.get_city_bounds(city)
        if bounds is None:
            logger.info(f"Nominatim: no bounding box for '{city}'")
            return []

        params = {
            "bounded": "1",
            # viewbox order is left,top,right,bottom
            "viewbox": f"{bounds.west},{bounds.north},{bounds.east},{bounds.south}",
            "extratags": "1",
            "namedetails": "1",
            "limit": "50",
        }
        q = (query or "").strip()
        if q:
            params["q"] = q

        results = [r for r in await self.search(params) if is_neighbourhood(r)]
        neighbourhoods = []
        for result in results:
            name = (
                (result.get("namedetails") or {}).get("name")
                or (result.get("display_name") or "").split(",")[0]
                or result.get("name")
            )
            neighbourhoods.append(Neighbourhood(
                id=f"nominatim_{result.get('osm_type')}_{result.get('osm_id')}",
                name=name,
                type=result.get("type"),
                lat=float(result["lat"]),
                lon=float(result["lon"]),
                source="nominatim",
            ))
        logger.info(f"Nominatim: {len(neighbourhoods)} neighbourhoods in {city}")
        return neighbourhoods
