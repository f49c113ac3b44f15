"""Adaptive grid subdivision of territories and per-block building detection"""
import logging
import math
import random
from dataclasses import replace
from typing import Callable, Dict, List, Optional

import aiohttp

from ..config import SQ_METERS_PER_BUILDING
from ..errors import GeometryUnavailable, KnockwiseGeoError, ProviderAuthError
from ..geometry import (
    SHAPELY_AVAILABLE,
    approximate_area_km2,
    compute_area,
    point_in_polygon,
    to_shape,
)
from ..models import BlockDetails, Bounds, BuildingData, GridBlock, LatLng, StreetData
from .building_estimator import GeocodedEstimator, SyntheticEstimator

logger = logging.getLogger(__name__)

# (exclusive upper area bound in km², grid side)
GRID_THRESHOLDS = [
    (0.1, 2),
    (0.3, 3),
    (0.8, 4),
    (2.0, 5),
]
MAX_GRID_SIZE = 6

# Sample attempts allowed per expected building
MAX_ATTEMPTS_PER_BUILDING = 3


def choose_grid_size(bounds: Bounds) -> int:
    """Side N of the N×N grid for a territory's bounding box"""
    area_km2 = approximate_area_km2(bounds)
    for limit, size in GRID_THRESHOLDS:
        if area_km2 < limit:
            return size
    return MAX_GRID_SIZE


def generate_blocks(name: str, bounds: Bounds) -> List[GridBlock]:
    """
    Tile the bounding box with N×N equal rectangles, numbered row-major from
    the north-west corner. Blocks tile the rectangle, not the polygon, so
    some may fall outside a concave boundary.
    """
    size = choose_grid_size(bounds)
    block_lat = (bounds.north - bounds.south) / size
    block_lng = (bounds.east - bounds.west) / size

    blocks = []
    index = 1
    for row in range(size):
        for col in range(size):
            north = bounds.north - row * block_lat
            south = bounds.north - (row + 1) * block_lat
            west = bounds.west + col * block_lng
            east = bounds.west + (col + 1) * block_lng

            block_bounds = Bounds(north=north, south=south, east=east, west=west)
            center = block_bounds.center
            blocks.append(GridBlock(
                id=f"{name}-block-{index}",
                name=f"Block {index}",
                coordinates=[
                    LatLng(south, west),
                    LatLng(north, west),
                    LatLng(north, east),
                    LatLng(south, east),
                    LatLng(south, west),
                ],
                center=center,
                bounds=block_bounds,
                area=approximate_area_km2(block_bounds),
            ))
            index += 1

    logger.info(
        f"Subdivided {name} into {size}x{size} = {len(blocks)} blocks "
        f"({approximate_area_km2(bounds):.2f} km²)"
    )
    return blocks


def calculate_total_block_area(blocks: List[GridBlock]) -> float:
    return sum(block.area for block in blocks)


def update_block_with_data(blocks: List[GridBlock], block_id: str, details: BlockDetails) -> List[GridBlock]:
    """Copy of `blocks` with one block's streets and buildings filled in and marked loaded"""
    return [
        replace(
            block,
            streets=details.streets,
            buildings=details.buildings,
            is_data_loaded=True,
            is_loading=False,
        ) if block.id == block_id else block
        for block in blocks
    ]


def set_block_loading(blocks: List[GridBlock], block_id: str, loading: bool) -> List[GridBlock]:
    return [replace(block, is_loading=loading) if block.id == block_id else block for block in blocks]


class GridSubdivider:
    """
    Subdivides territories into blocks and detects buildings inside a block.

    Building detection lays a jittered grid of sample points over the block,
    reverse-geocodes each point that falls inside it, and keeps one building
    per distinct address. Requests are issued one at a time.

    Raises GeometryUnavailable at construction when shapely is missing.
    """

    def __init__(
        self,
        geocoder=None,
        area: Callable = compute_area,
        rng: Optional[random.Random] = None,
        geocoded_estimator: Optional[GeocodedEstimator] = None,
        synthetic_estimator: Optional[SyntheticEstimator] = None,
        sq_meters_per_building: float = SQ_METERS_PER_BUILDING,
    ):
        if not SHAPELY_AVAILABLE:
            logger.error("Geometry engine unavailable: block building detection is disabled")
            raise GeometryUnavailable("shapely is required for block building detection")

        # Anything with `async reverse_geocode(LatLng) -> Optional[GeocodedAddress]`
        self.geocoder = geocoder
        self.area = area
        self.random = rng or random.Random()
        self.geocoded_estimator = geocoded_estimator or GeocodedEstimator()
        self.synthetic_estimator = synthetic_estimator or SyntheticEstimator()
        self.sq_meters_per_building = sq_meters_per_building

    def choose_grid_size(self, bounds: Bounds) -> int:
        return choose_grid_size(bounds)

    def generate_blocks(self, name: str, bounds: Bounds) -> List[GridBlock]:
        return generate_blocks(name, bounds)

    def estimate_building_count(self, block: GridBlock) -> int:
        return max(1, math.floor(self.area(block.ring) / self.sq_meters_per_building))

    async def fetch_block_details(self, block: GridBlock) -> BlockDetails:
        if self.geocoder is None:
            raise ValueError("GridSubdivider needs a geocoder to fetch block details")

        polygon = to_shape(block.ring)
        estimated = self.estimate_building_count(block)
        side = math.sqrt(estimated)
        lat_step = (block.bounds.north - block.bounds.south) / side
        lng_step = (block.bounds.east - block.bounds.west) / side

        buildings: List[BuildingData] = []
        streets: Dict[str, StreetData] = {}
        used_addresses = set()
        building_count = 0
        attempts = 0

        for i in range(estimated * MAX_ATTEMPTS_PER_BUILDING):
            if building_count >= estimated:
                break

            row = math.floor(i / side)
            col = i % side
            sample = LatLng(
                lat=block.bounds.south + row * lat_step + self.random.random() * lat_step * 0.5,
                lng=block.bounds.west + col * lng_step + self.random.random() * lng_step * 0.5,
            )
            if not point_in_polygon(sample.to_coordinate(), polygon):
                continue

            attempts += 1
            try:
                geocoded = await self.geocoder.reverse_geocode(sample)
                if geocoded is None:
                    raise KnockwiseGeoError(f"no address at {sample.lat:.6f},{sample.lng:.6f}")
            except ProviderAuthError:
                raise
            except (KnockwiseGeoError, aiohttp.ClientError) as e:
                logger.info(f"Reverse geocoding failed for {block.id}: {e}")
                unresolved = self.synthetic_estimator.unresolved(block)
                buildings.append(BuildingData(number=unresolved.number, street=unresolved.street, coordinates=sample))
                building_count += 1
                continue

            candidate = (
                self.geocoded_estimator.estimate(block, sample, building_count, geocoded)
                or self.synthetic_estimator.estimate(block, sample, building_count)
            )
            if candidate.address in used_addresses:
                continue
            used_addresses.add(candidate.address)

            buildings.append(BuildingData(number=candidate.number, street=candidate.street, coordinates=sample))
            street = streets.setdefault(candidate.street, StreetData(name=candidate.street))
            street.building_numbers.append(candidate.number)
            building_count += 1

        for street in streets.values():
            street.building_numbers.sort()
            street.total_buildings = len(street.building_numbers)

        if buildings:
            logger.info(
                f"{block.id}: {len(buildings)} buildings on {len(streets)} streets "
                f"({attempts} geocoded samples, {estimated} expected)"
            )
        else:
            logger.info(f"{block.id}: no buildings found")
        return BlockDetails(streets=list(streets.values()), buildings=buildings)
