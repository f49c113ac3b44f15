"""Ordered provider strategies for neighbourhood discovery"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import Neighbourhood

logger = logging.getLogger(__name__)


class NeighbourhoodStrategy(ABC):
    """One way of finding the neighbourhoods of a city"""

    name = "strategy"

    @abstractmethod
    async def find(self, city: str, query: Optional[str] = None) -> List[Neighbourhood]:
        pass


class OverpassNeighbourhoodStrategy(NeighbourhoodStrategy):
    """
    Neighbourhoods inside the city's administrative area.

    When a typed query matches nothing, all neighbourhoods of the city are
    fetched and filtered by case-insensitive substring instead, since OSM
    names often differ from what users type.
    """

    name = "overpass"

    def __init__(self, overpass):
        self.overpass = overpass

    async def find(self, city, query=None):
        area_id = await self.overpass.get_city_area_id(city)
        if area_id is None:
            return []

        found = await self.overpass.get_neighbourhoods_by_area_id(area_id, query)
        if found or not (query and query.strip()):
            return found

        everything = await self.overpass.get_neighbourhoods_by_area_id(area_id)
        needle = query.lower()
        return [n for n in everything if needle in n.name.lower()]


class NominatimNeighbourhoodStrategy(NeighbourhoodStrategy):
    """Neighbourhood-like features inside the city's Nominatim bounding box"""

    name = "nominatim"

    def __init__(self, nominatim):
        self.nominatim = nominatim

    async def find(self, city, query=None):
        return await self.nominatim.get_neighbourhoods(city, query)
