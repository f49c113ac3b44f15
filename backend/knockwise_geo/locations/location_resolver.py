"""Cascading province → municipality → community → street lookup"""
import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import ProviderAuthError, ProviderError, ProviderTimeout
from ..fetchers import GeoNamesFetcher, GoogleMapsFetcher, NominatimFetcher, OverpassFetcher
from ..fetchers.google_maps_fetcher import ROADS_BATCH_SIZE
from ..models import CommunityBoundary, LatLng, LocationSearchResult, Neighbourhood, StreetResult
from . import provinces
from .cache import TTLCache
from .community_boundary import fallback_boundary, find_best_match, place_to_boundary, places_query
from .strategies import NominatimNeighbourhoodStrategy, OverpassNeighbourhoodStrategy

logger = logging.getLogger(__name__)

# Spacing of the sample grid snapped to roads, about 50 m
ROAD_GRID_STEP = 0.0005


@dataclass
class CascadingResults:
    selected_province: str = ""
    selected_municipality: str = ""
    municipalities: List[LocationSearchResult] = field(default_factory=list)
    communities: List[LocationSearchResult] = field(default_factory=list)


def grid_points(south: float, west: float, north: float, east: float, step: float = ROAD_GRID_STEP) -> List[LatLng]:
    points = []
    lat = south
    while lat <= north:
        lng = west
        while lng <= east:
            points.append(LatLng(lat, lng))
            lng += step
        lat += step
    return points


class LocationResolver:
    """
    One search interface over GeoNames, Overpass, Nominatim and Google.

    Every provider keeps its own rate limiter. Results pass through a
    single TTL cache keyed by lookup and arguments. Provider outages
    degrade to empty results; GeoNames credential errors
    (ProviderAuthError) are raised to the caller.

    Usage:
        async with LocationResolver() as resolver:
            towns = await resolver.search_municipalities("Bramp")
    """

    def __init__(
        self,
        geonames: Optional[GeoNamesFetcher] = None,
        overpass: Optional[OverpassFetcher] = None,
        nominatim: Optional[NominatimFetcher] = None,
        google: Optional[GoogleMapsFetcher] = None,
        cache: Optional[TTLCache] = None,
        neighbourhood_strategies=None,
    ):
        self.geonames = geonames or GeoNamesFetcher()
        self.overpass = overpass or OverpassFetcher()
        self.nominatim = nominatim or NominatimFetcher()
        self.google = google or GoogleMapsFetcher()
        self.cache = cache or TTLCache()
        self.neighbourhood_strategies = neighbourhood_strategies or [
            OverpassNeighbourhoodStrategy(self.overpass),
            NominatimNeighbourhoodStrategy(self.nominatim),
        ]
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self):
        self._stack = AsyncExitStack()
        for fetcher in (self.geonames, self.overpass, self.nominatim, self.google):
            await self._stack.enter_async_context(fetcher)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    async def _cached(self, key: str, fetch, what: str):
        """Cached lookup that degrades provider failures (other than auth) to []"""
        try:
            return await self.cache.get_or_fetch(key, fetch)
        except ProviderAuthError:
            raise
        except ProviderError as e:
            logger.warning(f"{what} failed, returning no results: {e}")
            return []

    def get_provinces(self) -> List[LocationSearchResult]:
        return provinces.get_provinces()

    async def search_municipalities(self, query: str) -> List[LocationSearchResult]:
        if not query or len(query) < 2:
            return []
        return await self._cached(
            f"municipalities:{query}",
            lambda: self.geonames.search_municipalities(query),
            "Municipality search",
        )

    async def get_municipalities_by_province(self, province: str) -> List[LocationSearchResult]:
        return await self._cached(
            f"municipalities:province:{province}",
            lambda: self.geonames.get_municipalities_by_province(province),
            "Province municipality lookup",
        )

    async def get_communities_in_municipality(self, municipality: str) -> List[LocationSearchResult]:
        return await self._cached(
            f"communities:municipality:{municipality}",
            lambda: self.overpass.get_communities_in_municipality(municipality),
            "Community lookup",
        )

    async def search_communities(self, query: str) -> List[LocationSearchResult]:
        if not query or len(query) < 2:
            return []
        return await self._cached(
            f"communities:search:{query}",
            lambda: self.overpass.search_places(query, "neighbourhood"),
            "Community search",
        )

    async def get_city_neighbourhoods(self, city: str, query: Optional[str] = None) -> List[Neighbourhood]:
        """First non-empty answer from the ordered neighbourhood strategies"""
        return await self.cache.get_or_fetch(
            f"neighbourhoods:{city}:{query or ''}",
            lambda: self._discover_neighbourhoods(city, query),
        )

    async def _discover_neighbourhoods(self, city: str, query: Optional[str]) -> List[Neighbourhood]:
        for strategy in self.neighbourhood_strategies:
            try:
                found = await strategy.find(city, query)
            except ProviderError as e:
                logger.warning(f"Neighbourhood lookup via {strategy.name} failed: {e}")
                continue
            if found:
                logger.info(f"{len(found)} neighbourhoods for {city} via {strategy.name}")
                return found
            logger.warning(f"No neighbourhoods for {city} via {strategy.name}, trying next provider")
        return []

    async def get_streets_in_neighbourhood(self, neighbourhood: Neighbourhood) -> List[StreetResult]:
        """
        Named streets of a neighbourhood, main roads first.

        An Overpass timeout is retried once with a smaller radius and a
        narrower filter; if that fails too the result is empty.
        """
        return await self.cache.get_or_fetch(
            f"streets:{neighbourhood.id}",
            lambda: self._fetch_streets(neighbourhood),
        )

    async def _fetch_streets(self, neighbourhood: Neighbourhood) -> List[StreetResult]:
        try:
            return await self.overpass.get_streets(neighbourhood)
        except ProviderTimeout:
            logger.warning(f"Overpass timed out for {neighbourhood.name}, retrying with a reduced query")
        except ProviderError as e:
            logger.warning(f"Street lookup for {neighbourhood.name} failed: {e}")
            return []

        try:
            return await self.overpass.get_streets_reduced(neighbourhood)
        except ProviderError as e:
            logger.warning(f"Reduced street lookup for {neighbourhood.name} failed: {e}")
            return []

    async def get_streets_google(self, neighbourhood: str, city: str) -> List[StreetResult]:
        """Streets found by snapping a grid over the geocoded neighbourhood to nearby roads"""
        try:
            result = await self.google.geocode(f"{neighbourhood}, {city}")
        except ProviderError as e:
            logger.warning(f"Geocoding {neighbourhood} failed: {e}")
            return []
        if not result:
            return []

        geometry = result.get("geometry") or {}
        box = geometry.get("bounds") or geometry.get("viewport")
        if not box:
            return []

        points = grid_points(
            box["southwest"]["lat"], box["southwest"]["lng"],
            box["northeast"]["lat"], box["northeast"]["lng"],
        )
        streets: Dict[str, StreetResult] = {}
        for start in range(0, len(points), ROADS_BATCH_SIZE):
            try:
                snapped = await self.google.nearest_roads(points[start:start + ROADS_BATCH_SIZE])
            except ProviderAuthError:
                raise
            except ProviderError as e:
                logger.warning(f"Roads batch {start // ROADS_BATCH_SIZE + 1} failed: {e}")
                continue

            for point in snapped:
                location = point["location"]
                position = LatLng(location["latitude"], location["longitude"])
                try:
                    address = await self.google.reverse_geocode(position)
                except ProviderError as e:
                    logger.debug(f"Reverse geocoding snapped point failed: {e}")
                    continue
                if address and address.route and address.route not in streets:
                    streets[address.route] = StreetResult(
                        id=f"google_road_{point.get('placeId')}",
                        name=address.route,
                        type="road",
                        lat=position.lat,
                        lon=position.lng,
                        source="google",
                    )

        logger.info(f"Google: {len(streets)} streets in {neighbourhood}")
        return list(streets.values())

    async def fetch_community_boundary(
        self, community: str, municipality: Optional[str] = None
    ) -> Optional[CommunityBoundary]:
        """
        Rectangle around a community from Google Places. When Places fails
        and the municipality is known, a small square around the
        municipality's centre is returned instead.
        """
        try:
            match = find_best_match(await self.google.text_search(places_query(community, municipality)), community)
            if not match:
                logger.warning(f"No place found for community: {community}")
                return None
            details = await self.google.place_details(match["place_id"])
        except ProviderError as e:
            logger.warning(f"Places lookup for {community} failed: {e}")
            if municipality:
                return fallback_boundary(community, municipality)
            return None

        if not details:
            return None
        return place_to_boundary(details, community)

    async def get_cascading_results(
        self, province: Optional[str] = None, municipality: Optional[str] = None
    ) -> CascadingResults:
        state = CascadingResults(selected_province=province or "", selected_municipality=municipality or "")
        if province:
            state.municipalities = await self.get_municipalities_by_province(province)
        if municipality:
            state.communities = await self.get_communities_in_municipality(municipality)
        return state

    async def test_connections(self) -> Dict[str, bool]:
        async def geonames_ok():
            try:
                return len(await self.geonames.search_municipalities("Toronto")) > 0
            except ProviderError as e:
                logger.error(f"GeoNames connection test failed: {e}")
                return False

        async def overpass_ok():
            try:
                return isinstance(await self.overpass.get_communities_in_municipality("Toronto"), list)
            except ProviderError as e:
                logger.error(f"Overpass connection test failed: {e}")
                return False

        geonames, overpass = await asyncio.gather(geonames_ok(), overpass_ok())
        return {"geonames": geonames, "overpass": overpass}

    def clear_cache(self):
        self.cache.clear()

    def get_cache_stats(self) -> Dict[str, object]:
        return self.cache.stats()
