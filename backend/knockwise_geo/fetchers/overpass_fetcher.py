"""Fetcher for OpenStreetMap data through the Overpass API"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..config import OVERPASS_URL, OVERPASS_TIMEOUT, OVERPASS_REQUEST_DELAY
from ..models import Bounds, LatLng, LocationSearchResult, Neighbourhood, StreetResult
from .base_fetcher import BaseFetcher
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Overpass derives an area id from a relation id by adding this offset
AREA_ID_OFFSET = 3600000000

STREET_RADIUS_M = 1000
REDUCED_STREET_RADIUS_M = 500
REDUCED_QUERY_TIMEOUT = 15

PREFERRED_ADMIN_LEVELS = ("8", "7", "6")

STREET_TYPE_PRIORITY = {
    "primary": 1,
    "secondary": 2,
    "tertiary": 3,
    "residential": 4,
    "service": 5,
    "unclassified": 6,
    "living_street": 7,
    "pedestrian": 8,
    "footway": 9,
    "path": 10,
    "track": 11,
    "alley": 12,
    "cul_de_sac": 13,
}

EXCLUDED_HIGHWAYS = {"steps", "cycleway", "bridleway"}

STREET_HIGHWAY_FILTERS = [
    "residential|tertiary|secondary|primary|service|unclassified|living_street|pedestrian",
    "residential_link|tertiary_link|secondary_link|primary_link",
    "trunk|trunk_link|motorway|motorway_link",
    "footway|path|track|cycleway",
    "alley|cul_de_sac|drive|avenue|boulevard|crescent|circle|court|place|terrace|lane|road|street",
]

COMMUNITY_PLACE_TYPES = ("neighbourhood", "suburb", "quarter", "hamlet")


def escape(value: str) -> str:
    """Minimal escaping for string literals inside Overpass QL"""
    return re.sub(r'(["\\])', r"\\\1", value)


def to_area_id(element: Dict[str, Any]) -> int:
    if element.get("type") == "area":
        return element["id"]
    return AREA_ID_OFFSET + element["id"]


def street_priority(highway: Optional[str]) -> int:
    return STREET_TYPE_PRIORITY.get(highway, 99)


def _element_position(element: Dict[str, Any]):
    center = element.get("center") or {}
    lat = element.get("lat", center.get("lat"))
    lon = element.get("lon", center.get("lon"))
    return lat, lon


def elements_to_neighbourhoods(elements: List[Dict[str, Any]], source: str) -> List[Neighbourhood]:
    neighbourhoods = []
    for element in elements:
        tags = element.get("tags") or {}
        name = tags.get("name") or tags.get("name:en")
        lat, lon = _element_position(element)
        if not name or lat is None or lon is None:
            continue

        place_type = tags.get("place")
        if not place_type and tags.get("boundary") in ("neighbourhood", "suburb", "administrative"):
            place_type = tags["boundary"]

        neighbourhoods.append(Neighbourhood(
            id=f"{source}_{element.get('type')}_{element.get('id')}",
            name=name,
            type=place_type or "unknown",
            lat=lat,
            lon=lon,
            source=source,
        ))
    return neighbourhoods


def elements_to_streets(elements: List[Dict[str, Any]], exclude=EXCLUDED_HIGHWAYS) -> List[StreetResult]:
    """Named highways, first occurrence per name kept"""
    seen = set()
    streets = []
    for element in elements:
        tags = element.get("tags") or {}
        name = tags.get("name")
        highway = tags.get("highway")
        if not name or not highway or highway in exclude or name in seen:
            continue
        seen.add(name)
        lat, lon = _element_position(element)
        streets.append(StreetResult(
            id=f"osm_way_{element.get('id')}",
            name=name,
            type=highway,
            lat=lat,
            lon=lon,
            source="overpass",
        ))
    return streets


def elements_to_building_centres(elements: List[Dict[str, Any]]) -> List[Tuple[Any, LatLng]]:
    """(OSM id, centre) of each building whose centre is a valid coordinate"""
    centres = []
    for element in elements:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
        if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
            continue
        if not (-90 <= lat <= 90 and -180 <= lon <= 180) or lat == 0 or lon == 0:
            continue
        centres.append((element.get("id"), LatLng(lat=lat, lng=lon)))
    return centres


class OverpassFetcher(BaseFetcher):
    """
    Runs Overpass QL queries against a public Overpass instance.

    API: POST {OVERPASS_URL} with a text/plain QL body.
    Requests are spaced OVERPASS_REQUEST_DELAY apart; a 504 from the server
    raises ProviderTimeout so callers can retry with a narrower query.
    """

    def __init__(self, url: str = OVERPASS_URL, **kwargs):
        kwargs.setdefault("rate_limiter", RateLimiter(OVERPASS_REQUEST_DELAY))
        kwargs.setdefault("timeout", OVERPASS_TIMEOUT)
        super().__init__(**kwargs)
        self.url = url

    def get_source_name(self) -> str:
        return "Overpass"

    async def query(self, ql: str) -> List[Dict[str, Any]]:
        data = await self.fetch_with_retry(
            self.url,
            method="POST",
            data=ql,
            headers={"Content-Type": "text/plain"},
        )
        return (data or {}).get("elements") or []

    async def get_city_area_id(self, city: str) -> Optional[int]:
        """Overpass area id of a city's administrative boundary, or None"""
        ql = f"""
            [out:json][timeout:{OVERPASS_TIMEOUT}];
            area["name"="{escape(city)}"]["boundary"="administrative"];
            out ids tags;
        """
        elements = await self.query(ql)
        if not elements:
            logger.info(f"Overpass: no administrative area named '{city}'")
            return None

        preferred = next(
            (e for e in elements if (e.get("tags") or {}).get("admin_level") in PREFERRED_ADMIN_LEVELS),
            elements[0],
        )
        return to_area_id(preferred)

    async def get_neighbourhoods_by_area_id(self, area_id: int, name_like: Optional[str] = None) -> List[Neighbourhood]:
        name_filter = f'["name"~"{escape(name_like)}",i]' if name_like else ""
        place = '["place"~"neighbourhood|suburb|quarter|district"]'
        ql = f"""
            [out:json][timeout:30];
            area({area_id})->.searchArea;
            (
              node{place}{name_filter}(area.searchArea);
              way{place}{name_filter}(area.searchArea);
              relation{place}{name_filter}(area.searchArea);
              relation["boundary"="neighbourhood"]{name_filter}(area.searchArea);
              relation["boundary"="suburb"]{name_filter}(area.searchArea);
              relation["boundary"="administrative"]["admin_level"~"9|10"]{name_filter}(area.searchArea);
            );
            out center;
        """
        return elements_to_neighbourhoods(await self.query(ql), "overpass")

    async def get_communities_in_municipality(self, municipality: str) -> List[LocationSearchResult]:
        """Neighbourhood-like places inside a municipality (admin_level 8), sorted by name"""
        place = f'["place"~"{"|".join(COMMUNITY_PLACE_TYPES)}"]'
        ql = f"""
            [out:json][timeout:{OVERPASS_TIMEOUT}];
            area[name="{escape(municipality)}"][admin_level=8]->.a;
            (
              node{place}(area.a);
              way{place}(area.a);
              relation{place}(area.a);
            );
            out center tags;
        """
        elements = await self.query(ql)
        results = []
        for element in elements:
            tags = element.get("tags") or {}
            if not tags.get("name") or tags.get("place") not in COMMUNITY_PLACE_TYPES:
                continue
            lat, lon = _element_position(element)
            results.append(LocationSearchResult(
                name=tags["name"],
                type="community",
                lat=lat or 0,
                lng=lon or 0,
                id=element.get("id"),
                place_type=tags["place"],
            ))
        results.sort(key=lambda r: r.name)
        return results

    async def search_places(self, query: str, place_type: str = "neighbourhood") -> List[LocationSearchResult]:
        """Places whose name matches `query` (case-insensitive); first 10 hits, sorted by name"""
        name = escape(query)
        ql = f"""
            [out:json][timeout:{OVERPASS_TIMEOUT}];
            (
              node["name"~"{name}",i]["place"="{place_type}"];
              way["name"~"{name}",i]["place"="{place_type}"];
              relation["name"~"{name}",i]["place"="{place_type}"];
            );
            out center tags;
        """
        elements = [e for e in await self.query(ql) if (e.get("tags") or {}).get("name")]
        results = []
        for element in elements[:10]:
            lat, lon = _element_position(element)
            results.append(LocationSearchResult(
                name=element["tags"]["name"],
                type="community",
                lat=lat or 0,
                lng=lon or 0,
                id=element.get("id"),
                place_type=element["tags"].get("place") or place_type,
            ))
        results.sort(key=lambda r: r.name)
        return results

    async def get_streets(self, neighbourhood: Neighbourhood) -> List[StreetResult]:
        """
        Named streets in or around a neighbourhood, main roads first.

        An OSM relation is searched as an area; anything else by radius
        around its position. Raises ProviderTimeout on a server-side 504.
        """
        if neighbourhood.osm_type == "relation" and neighbourhood.osm_id is not None:
            scope = "(area.searchArea)"
            header = f"area({AREA_ID_OFFSET + neighbourhood.osm_id})->.searchArea;"
        else:
            scope = f"(around:{STREET_RADIUS_M},{neighbourhood.lat},{neighbourhood.lon})"
            header = ""

        ways = "\n".join(f'  way["highway"~"{f}"]{scope};' for f in STREET_HIGHWAY_FILTERS)
        ql = f"""
            [out:json][timeout:{OVERPASS_TIMEOUT}];
            {header}
            (
            {ways}
            );
            out center;
        """
        streets = elements_to_streets(await self.query(ql))
        streets.sort(key=lambda s: street_priority(s.type))
        return streets

    async def fetch_buildings(self, bounds: Bounds) -> List[Tuple[Any, LatLng]]:
        """Centres of building ways and relations inside a bounding box"""
        bbox = f"{bounds.south},{bounds.west},{bounds.north},{bounds.east}"
        ql = f"""
            [out:json][timeout:{OVERPASS_TIMEOUT}];
            (
              way["building"]({bbox});
              relation["building"]({bbox});
            );
            out center;
        """
        return elements_to_building_centres(await self.query(ql))

    async def get_streets_reduced(self, neighbourhood: Neighbourhood) -> List[StreetResult]:
        """Smaller radius and narrower highway filter, used after a timeout"""
        around = f"(around:{REDUCED_STREET_RADIUS_M},{neighbourhood.lat},{neighbourhood.lon})"
        ql = f"""
            [out:json][timeout:{REDUCED_QUERY_TIMEOUT}];
            (
              way["highway"~"residential|service|unclassified|living_street"]["name"]{around};
              way["highway"~"alley|cul_de_sac|drive|avenue|crescent|circle|court|place|terrace|lane"]{around};
            );
            out center;
        """
        return elements_to_streets(await self.query(ql), exclude=())
