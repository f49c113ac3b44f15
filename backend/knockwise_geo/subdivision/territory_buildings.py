"""Territory-wide building detection from OpenStreetMap footprints"""
import logging
import math
import random
import re
from typing import Callable, List, Optional

import aiohttp

from ..config import MIN_TERRITORY_BUILDINGS, SQ_METERS_PER_DETECTED_BUILDING
from ..errors import GeometryUnavailable, KnockwiseGeoError, ProviderAuthError, ProviderError
from ..geometry import SHAPELY_AVAILABLE, compute_area, compute_bounds, point_in_polygon, to_shape
from ..models import Bounds, DetectedBuilding, LatLng, Ring

logger = logging.getLogger(__name__)

# Geocoders sometimes answer with the coordinates themselves
COORDINATE_ADDRESS = re.compile(r"^-?\d+\.?\d*,\s*-?\d+\.?\d*$")
HOUSE_NUMBER = re.compile(r"^(\d+)")


def fallback_address(point: LatLng) -> str:
    return f"Building at {point.lat:.4f}, {point.lng:.4f}"


def house_number(address: str) -> int:
    match = HOUSE_NUMBER.match(address)
    return int(match.group(1)) if match else 0


class TerritoryBuildingDetector:
    """
    Finds the buildings inside a whole territory polygon.

    OSM building centres inside the polygon are reverse-geocoded one at a
    time; when fewer than the target count are found, random points inside
    the polygon make up the difference as simulated buildings. The target
    is one building per SQ_METERS_PER_DETECTED_BUILDING, never fewer than
    MIN_TERRITORY_BUILDINGS. An Overpass failure degrades to simulated
    buildings only; rejected geocoding credentials propagate.
    """

    def __init__(
        self,
        overpass,
        geocoder,
        area: Callable = compute_area,
        rng: Optional[random.Random] = None,
        sq_meters_per_building: float = SQ_METERS_PER_DETECTED_BUILDING,
        min_buildings: int = MIN_TERRITORY_BUILDINGS,
    ):
        if not SHAPELY_AVAILABLE:
            logger.error("Geometry engine unavailable: territory building detection is disabled")
            raise GeometryUnavailable("shapely is required for territory building detection")

        self.overpass = overpass
        self.geocoder = geocoder
        self.area = area
        self.random = rng or random.Random()
        self.sq_meters_per_building = sq_meters_per_building
        self.min_buildings = min_buildings

    def target_count(self, ring: Ring) -> int:
        return max(self.min_buildings, math.floor(self.area(ring) / self.sq_meters_per_building))

    async def _address_for(self, point: LatLng) -> str:
        try:
            geocoded = await self.geocoder.reverse_geocode(point)
        except ProviderAuthError:
            raise
        except (KnockwiseGeoError, aiohttp.ClientError) as e:
            logger.warning(f"Failed to geocode building at {point.lat:.6f},{point.lng:.6f}: {e}")
            return fallback_address(point)

        address = geocoded.formatted_address if geocoded else ""
        if not address or COORDINATE_ADDRESS.match(address):
            return fallback_address(point)
        return address

    async def _real_buildings(self, polygon, bounds: Bounds) -> List[DetectedBuilding]:
        try:
            centres = await self.overpass.fetch_buildings(bounds)
        except ProviderError as e:
            logger.warning(f"OSM building lookup failed, using simulated buildings only: {e}")
            centres = []
        logger.info(f"Found {len(centres)} buildings in bounds")

        inside = [(osm_id, point) for osm_id, point in centres if point_in_polygon(point.to_coordinate(), polygon)]
        logger.info(f"{len(inside)} buildings inside polygon")

        buildings = []
        for i, (osm_id, point) in enumerate(inside):
            address = await self._address_for(point)
            buildings.append(DetectedBuilding(
                id=f"real-{osm_id}",
                name=f"Building {i + 1}",
                location=point,
                address=address,
                number=house_number(address),
            ))
        return buildings

    def simulate(self, polygon, bounds: Bounds, missing: int) -> List[DetectedBuilding]:
        """One random draw per missing building; draws outside the polygon are dropped"""
        simulated = []
        for i in range(missing):
            point = LatLng(
                lat=bounds.south + self.random.random() * (bounds.north - bounds.south),
                lng=bounds.west + self.random.random() * (bounds.east - bounds.west),
            )
            if not point_in_polygon(point.to_coordinate(), polygon):
                continue
            simulated.append(DetectedBuilding(
                id=f"sim-{i}",
                name=f"Simulated Building {i + 1}",
                location=point,
                address=f"{point.lat:.6f}, {point.lng:.6f}",
                type="simulated",
            ))
        return simulated

    async def detect(self, ring: Ring) -> List[DetectedBuilding]:
        polygon = to_shape(ring)
        bounds = compute_bounds(ring)
        target = self.target_count(ring)
        logger.info(f"Target buildings: {target}")

        real = await self._real_buildings(polygon, bounds)
        simulated = self.simulate(polygon, bounds, max(0, target - len(real)))

        logger.info(f"Detected {len(real) + len(simulated)} buildings ({len(real)} real, {len(simulated)} simulated)")
        return real + simulated
