"""Territory submission pipeline from a drawn boundary to canvassable blocks"""
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .errors import BackendUnreachable, InvalidPolygonError
from .fetchers import BackendApiFetcher, GoogleMapsFetcher, OverpassFetcher
from .geometry import close_ring, compute_bounds, validate_ring
from .models import Bounds, Coordinate, DetectedBuilding, GridBlock, Ring, Territory, ValidationResult
from .subdivision import GridSubdivider, TerritoryBuildingDetector, set_block_loading, update_block_with_data
from .validators import BoundaryValidator

logger = logging.getLogger(__name__)


@dataclass
class TerritoryPlan:
    """A submitted boundary, its validation outcome and, when clean, its blocks"""
    name: str
    ring: Ring
    validation: ValidationResult
    bounds: Optional[Bounds] = None
    blocks: List[GridBlock] = field(default_factory=list)
    buildings: List[DetectedBuilding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ring": [list(c) for c in self.ring],
            "valid": self.validation.is_valid,
            "usedBackend": self.validation.used_backend,
            "errors": self.validation.errors,
            "warnings": self.validation.warnings,
            "overlappingZones": self.validation.overlapping_zones,
            "bounds": self.bounds.to_dict() if self.bounds else None,
            "blocks": [asdict(block) for block in self.blocks],
            "buildings": [asdict(building) for building in self.buildings],
        }


class TerritoryPipeline:
    """
    Runs a drawn territory through overlap validation and grid subdivision.

    Unless the caller supplies addresses, the territory's buildings are
    detected first and their addresses sent with the overlap check.
    Block building detection is not run eagerly; call load_block() for the
    blocks a user actually opens.
    """

    def __init__(self, backend=None, geocoder=None, validator=None, subdivider=None,
                 overpass=None, building_detector=None):
        self.backend = backend or BackendApiFetcher()
        self.geocoder = geocoder or GoogleMapsFetcher()
        self.overpass = overpass or OverpassFetcher()
        self.validator = validator or BoundaryValidator(self.backend)
        self.subdivider = subdivider or GridSubdivider(geocoder=self.geocoder)
        self.building_detector = building_detector or TerritoryBuildingDetector(self.overpass, self.geocoder)
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self):
        self._stack = AsyncExitStack()
        for client in (self.backend, self.geocoder, self.overpass):
            if hasattr(client, "__aenter__"):
                await self._stack.enter_async_context(client)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    async def load_territories(self) -> List[Territory]:
        try:
            return await self.backend.list_territories()
        except BackendUnreachable as e:
            logger.warning(f"Could not load existing territories, validating without them: {e}")
            return []

    async def submit(
        self,
        name: str,
        ring: Sequence[Coordinate],
        exclude_id: Optional[str] = None,
        addresses: Optional[Sequence[str]] = None,
    ) -> TerritoryPlan:
        logger.info("=" * 60)
        logger.info(f"Submitting territory: {name}")
        logger.info("=" * 60)

        closed = close_ring(ring)
        buildings: List[DetectedBuilding] = []
        if addresses is None:
            buildings = await self.building_detector.detect(validate_ring(closed))
            addresses = [building.address for building in buildings]

        territories = await self.load_territories()
        validation = await self.validator.validate(closed, territories, exclude_id, addresses)
        plan = TerritoryPlan(name=name, ring=closed, validation=validation, buildings=buildings)

        if not validation.is_valid:
            for error in validation.errors:
                logger.error(f"  {error}")
            return plan

        for warning in validation.warnings:
            logger.warning(f"  {warning}")

        plan.bounds = compute_bounds(closed)
        plan.blocks = self.subdivider.generate_blocks(name, plan.bounds)
        return plan

    async def load_block(self, plan: TerritoryPlan, block_id: str) -> List[GridBlock]:
        """Detect one block's streets and buildings; returns the updated block list"""
        if not any(block.id == block_id for block in plan.blocks):
            raise KeyError(f"No block {block_id} in {plan.name}")

        plan.blocks = set_block_loading(plan.blocks, block_id, True)
        block = next(b for b in plan.blocks if b.id == block_id)
        try:
            details = await self.subdivider.fetch_block_details(block)
        except Exception:
            plan.blocks = set_block_loading(plan.blocks, block_id, False)
            raise

        plan.blocks = update_block_with_data(plan.blocks, block_id, details)
        return plan.blocks


def load_polygon(path: Path):
    """Name and outer ring of the first Polygon in a GeoJSON file"""
    with open(path) as f:
        data = json.load(f)

    if data.get("type") == "FeatureCollection":
        data = (data.get("features") or [{}])[0]
    feature = data if data.get("type") == "Feature" else None
    properties = (feature or {}).get("properties") or {}
    geometry = feature.get("geometry") if feature else data

    if not geometry or geometry.get("type") != "Polygon":
        raise InvalidPolygonError(f"{path} does not contain a Polygon")

    ring = [(float(lng), float(lat)) for lng, lat, *_ in geometry["coordinates"][0]]
    return properties.get("name") or path.stem, ring


async def run_pipeline(path: Path, exclude_id: Optional[str] = None) -> bool:
    """Entry point for submitting one GeoJSON polygon"""
    name, ring = load_polygon(path)
    async with TerritoryPipeline() as pipeline:
        plan = await pipeline.submit(name, ring, exclude_id=exclude_id)
    print(json.dumps(plan.to_dict(), indent=2))
    return plan.validation.is_valid


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if len(sys.argv) < 2:
        print("usage: python -m knockwise_geo.pipeline <polygon.geojson> [--exclude ZONE_ID]")
        sys.exit(2)

    exclude = None
    if "--exclude" in sys.argv:
        exclude = sys.argv[sys.argv.index("--exclude") + 1]

    success = asyncio.run(run_pipeline(Path(sys.argv[1]), exclude_id=exclude))
    sys.exit(0 if success else 1)
