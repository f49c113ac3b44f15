"""Overlap validation for newly drawn or edited territory boundaries"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..errors import BackendUnreachable
from ..geometry import close_ring, polygons_overlap, validate_ring
from ..models import Coordinate, Territory, ValidationResult

logger = logging.getLogger(__name__)


class BoundaryValidator:
    """
    Decides whether a candidate polygon may become a territory boundary.

    The backend overlap check is authoritative. When it cannot be reached
    the validator falls back to local vertex-containment checks against the
    known territories, so a backend outage never blocks territory creation.
    Both paths fill the same ValidationResult.
    """

    def __init__(self, backend=None):
        # Anything with `async check_overlap(ring, exclude_id, addresses) -> dict`
        self.backend = backend

    async def validate(
        self,
        candidate: Sequence[Coordinate],
        territories: Sequence[Territory],
        exclude_id: Optional[str] = None,
        addresses: Sequence[str] = (),
    ) -> ValidationResult:
        ring = validate_ring(close_ring(candidate))

        backend_data = await self._check_backend(ring, exclude_id, addresses)
        if backend_data is not None:
            result = self._from_backend(backend_data)
        else:
            result = self._validate_locally(ring, territories, exclude_id, addresses)

        logger.info(
            f"Validation complete: valid={result.is_valid}, backend={result.used_backend}, "
            f"errors={len(result.errors)}, warnings={len(result.warnings)}"
        )
        return result

    async def _check_backend(self, ring, exclude_id, addresses) -> Optional[Dict[str, Any]]:
        if self.backend is None:
            return None
        try:
            return await self.backend.check_overlap(ring, exclude_id=exclude_id, addresses=addresses)
        except BackendUnreachable as e:
            logger.warning(f"Backend overlap check failed, falling back to local validation: {e}")
            return None

    def _from_backend(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult(backend_result=data)

        if data.get("hasOverlap"):
            names = [zone.get("name", "") for zone in data.get("overlappingZones") or []]
            result.overlapping_zones = names
            result.add_error(f"This area overlaps with existing territory(ies): {', '.join(names)}")

        duplicates = data.get("duplicateBuildings") or []
        if duplicates:
            result.duplicate_buildings = list(duplicates)
            result.add_warning(f"{len(duplicates)} buildings are already assigned to other territories")

        return result

    def _validate_locally(
        self,
        ring: List[Coordinate],
        territories: Sequence[Territory],
        exclude_id: Optional[str],
        addresses: Sequence[str],
    ) -> ValidationResult:
        result = ValidationResult()
        others = [t for t in territories if t.id != exclude_id]

        for territory in others:
            if not territory.boundary:
                continue
            boundary = close_ring(territory.boundary)
            if len(boundary) < 4:
                logger.warning(f"Skipping territory {territory.id}: boundary has {len(boundary)} points")
                continue
            if polygons_overlap(ring, boundary):
                result.overlapping_zones.append(territory.name)

        if result.overlapping_zones:
            result.add_error(
                f"This area overlaps with an existing territory: {', '.join(result.overlapping_zones)}"
            )

        if addresses:
            taken = {address for t in others for address in t.addresses}
            duplicates = [address for address in addresses if address in taken]
            if duplicates:
                result.duplicate_buildings = duplicates
                result.add_warning(f"{len(duplicates)} buildings are already in other territories")

        return result
