"""Data records shared by the geometry, subdivision, validation and location modules"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import OverlapDetected

# A vertex as (longitude, latitude), the GeoJSON order used on the wire
Coordinate = Tuple[float, float]
Ring = List[Coordinate]


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def to_coordinate(self) -> Coordinate:
        return (self.lng, self.lat)


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned degree bounds (no antimeridian handling)"""
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> LatLng:
        return LatLng(lat=(self.north + self.south) / 2, lng=(self.east + self.west) / 2)

    def contains(self, lng: float, lat: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def to_dict(self) -> Dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


class TerritoryStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TerritoryStatus":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.DRAFT


@dataclass
class Assignment:
    """Current owner of a territory: an agent or a team"""
    agent_id: Optional[str] = None
    team_id: Optional[str] = None
    effective_from: Optional[datetime] = None


@dataclass
class Territory:
    """A canvassing zone as stored by the backend (read-only here)"""
    id: str
    name: str
    boundary: Optional[Ring]
    status: TerritoryStatus = TerritoryStatus.DRAFT
    assignment: Optional[Assignment] = None
    # Building addresses already attributed to this territory
    addresses: List[str] = field(default_factory=list)


@dataclass
class StreetData:
    name: str
    coordinates: List[LatLng] = field(default_factory=list)
    building_numbers: List[int] = field(default_factory=list)
    total_buildings: int = 0


@dataclass
class BuildingData:
    number: int
    street: str
    coordinates: LatLng
    type: str = "residential"

    @property
    def address(self) -> str:
        return f"{self.number} {self.street}"


@dataclass
class DetectedBuilding:
    """A building found anywhere inside a territory, from OSM (real) or filler (simulated)"""
    id: str
    name: str
    location: LatLng
    address: str
    number: int = 0
    type: str = "real"  # real | simulated


@dataclass
class BlockDetails:
    """Streets and buildings detected inside one block"""
    streets: List[StreetData] = field(default_factory=list)
    buildings: List[BuildingData] = field(default_factory=list)


@dataclass
class GridBlock:
    """A rectangular subdivision of a territory's bounding box"""
    id: str
    name: str
    coordinates: List[LatLng]  # Closed ring: SW, NW, NE, SE, SW
    center: LatLng
    bounds: Bounds
    area: float  # km²
    streets: Optional[List[StreetData]] = None
    buildings: Optional[List[BuildingData]] = None
    is_data_loaded: bool = False
    is_loading: bool = False

    @property
    def ring(self) -> Ring:
        return [point.to_coordinate() for point in self.coordinates]


@dataclass
class GeocodedAddress:
    """First reverse-geocoding hit for a point"""
    formatted_address: str
    location: LatLng
    route: Optional[str] = None


@dataclass
class LocationSearchResult:
    """Normalized province / municipality / community search hit"""
    name: str
    type: str  # province | municipality | community
    province: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    id: Optional[Any] = None
    population: Optional[int] = None
    place_type: Optional[str] = None


@dataclass
class Neighbourhood:
    """Neighbourhood found in OSM; id is `{source}_{osm type}_{osm id}`"""
    id: str
    name: str
    type: str
    lat: float
    lon: float
    source: str  # overpass | nominatim

    @property
    def osm_type(self) -> Optional[str]:
        parts = self.id.split("_")
        return parts[1] if len(parts) >= 3 else None

    @property
    def osm_id(self) -> Optional[int]:
        parts = self.id.split("_")
        if len(parts) >= 3 and parts[2].isdigit():
            return int(parts[2])
        return None


@dataclass
class StreetResult:
    id: str
    name: str
    type: Optional[str]
    lat: Optional[float]
    lon: Optional[float]
    source: str


@dataclass
class CommunityBoundary:
    name: str
    coordinates: List[LatLng]
    center: LatLng
    bounds: Bounds
    source: str  # google | fallback


@dataclass
class ValidationResult:
    """Outcome of a boundary validation; the same shape for backend and local checks"""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    overlapping_zones: List[str] = field(default_factory=list)
    duplicate_buildings: List[Any] = field(default_factory=list)
    backend_result: Optional[Dict[str, Any]] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def used_backend(self) -> bool:
        return self.backend_result is not None

    def add_error(self, message: str):
        self.errors.append(message)

    def add_warning(self, message: str):
        self.warnings.append(message)

    def raise_for_overlap(self):
        if self.errors:
            raise OverlapDetected(self.overlapping_zones, "; ".join(self.errors))
