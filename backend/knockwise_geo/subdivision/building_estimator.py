"""Strategies that turn a sample point into a building address"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import GEOCODE_MATCH_RADIUS_M, PLACEHOLDER_HOUSE_NUMBER_START
from ..geometry import compute_distance_between
from ..models import GeocodedAddress, GridBlock, LatLng

logger = logging.getLogger(__name__)

UNKNOWN_STREET = "Unknown Street"

ADDRESS_PATTERN = re.compile(r"^(\d+)\s+(.+?)(?:,|$)")


@dataclass
class AddressCandidate:
    number: int
    street: str
    # Key used to deduplicate buildings within a block
    address: str


def parse_address(formatted_address: str):
    """Leading house number and street of a formatted address, or (0, UNKNOWN_STREET)"""
    match = ADDRESS_PATTERN.match(formatted_address or "")
    if match:
        return int(match.group(1)), match.group(2).strip()
    return 0, UNKNOWN_STREET


def placeholder_street(block: GridBlock) -> str:
    return f"Block {block.name} Street"


class BuildingEstimator(ABC):
    """Produces the address of a building found at a sample point"""

    @abstractmethod
    def estimate(
        self,
        block: GridBlock,
        sample: LatLng,
        building_count: int,
        geocoded: Optional[GeocodedAddress] = None,
    ) -> Optional[AddressCandidate]:
        """Return an address, or None when this estimator cannot place the building"""
        pass


class GeocodedEstimator(BuildingEstimator):
    """
    Accepts a reverse-geocoded address when it carries a house number and a
    street name and its location lies within `match_radius_m` of the sample.
    """

    def __init__(
        self,
        match_radius_m: float = GEOCODE_MATCH_RADIUS_M,
        distance: Callable = compute_distance_between,
    ):
        self.match_radius_m = match_radius_m
        self.distance = distance

    def estimate(self, block, sample, building_count, geocoded=None):
        if geocoded is None:
            return None

        number, street = parse_address(geocoded.formatted_address)
        if number <= 0 or street == UNKNOWN_STREET:
            return None

        meters = self.distance(sample.to_coordinate(), geocoded.location.to_coordinate())
        if meters > self.match_radius_m:
            logger.debug(f"Geocoded address {geocoded.formatted_address} is {meters:.0f}m away, ignoring")
            return None

        return AddressCandidate(number=number, street=street, address=geocoded.formatted_address)


class SyntheticEstimator(BuildingEstimator):
    """Placeholder addresses: an ascending odd sequence on a per-block street name"""

    def __init__(self, start: int = PLACEHOLDER_HOUSE_NUMBER_START):
        self.start = start

    def estimate(self, block, sample, building_count, geocoded=None):
        number = self.start + building_count * 2
        street = placeholder_street(block)
        return AddressCandidate(number=number, street=street, address=f"{number} {street}")

    def unresolved(self, block: GridBlock) -> AddressCandidate:
        """Building whose reverse geocoding failed outright: number 0"""
        street = placeholder_street(block)
        return AddressCandidate(number=0, street=street, address=f"0 {street}")
