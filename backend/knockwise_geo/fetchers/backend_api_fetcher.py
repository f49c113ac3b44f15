"""Client for the Knockwise backend zone endpoints"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..config import BACKEND_API_URL, BACKEND_ACCESS_TOKEN, OVERLAP_CHECK_PATH, TERRITORY_LIST_PATH
from ..errors import BackendUnreachable, ProviderError
from ..geometry import close_ring
from ..models import Assignment, Coordinate, Territory, TerritoryStatus
from .base_fetcher import BaseFetcher

logger = logging.getLogger(__name__)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable assignment date: {value}")
        return None


def _id_of(value: Any) -> Optional[str]:
    """Backend references are either an id string or a populated document"""
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    return str(value) if value else None


def parse_assignment(record: Dict[str, Any]) -> Optional[Assignment]:
    current = record.get("currentAssignment")
    if isinstance(current, dict):
        return Assignment(
            agent_id=_id_of(current.get("agentId")),
            team_id=_id_of(current.get("teamId")),
            effective_from=_parse_datetime(current.get("effectiveFrom")),
        )
    assigned = record.get("assignedTo")
    if assigned:
        return Assignment(agent_id=_id_of(assigned))
    return None


def parse_territory(record: Dict[str, Any]) -> Territory:
    boundary = None
    coordinates = (record.get("boundary") or {}).get("coordinates")
    if coordinates and coordinates[0]:
        boundary = [(float(lng), float(lat)) for lng, lat, *_ in coordinates[0]]

    addresses = [
        b.get("address") if isinstance(b, dict) else str(b)
        for b in (record.get("buildingData") or {}).get("addresses") or []
    ]

    return Territory(
        id=str(record.get("_id") or record.get("id")),
        name=record.get("name", ""),
        boundary=boundary,
        status=TerritoryStatus.parse(record.get("status")),
        assignment=parse_assignment(record),
        addresses=[a for a in addresses if a],
    )


class BackendApiFetcher(BaseFetcher):
    """
    Reads territories from, and asks overlap questions of, the backend.

    Every failure (network error, non-2xx status, `success: false`) is
    reported as BackendUnreachable so validation can fall back locally.
    """

    def __init__(self, base_url: str = BACKEND_API_URL, access_token: str = BACKEND_ACCESS_TOKEN,
                 overlap_path: str = OVERLAP_CHECK_PATH, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.overlap_path = overlap_path
        self.headers = {"Content-Type": "application/json"}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"

    def get_source_name(self) -> str:
        return "Knockwise backend"

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            body = await self.fetch_with_retry(url, method=method, headers=self.headers, **kwargs)
        except (ProviderError, aiohttp.ClientError) as e:
            raise BackendUnreachable(f"{method} {path} failed: {e}") from e

        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise BackendUnreachable(message or f"{method} {path} did not succeed")
        return body.get("data")

    async def check_overlap(
        self,
        ring: Sequence[Coordinate],
        exclude_id: Optional[str] = None,
        addresses: Sequence[str] = (),
    ) -> Dict[str, Any]:
        """
        POST the candidate boundary to the overlap-check endpoint.

        Returns the response `data` ({hasOverlap, overlappingZones,
        duplicateBuildings?}). The ring is closed before sending.
        """
        payload: Dict[str, Any] = {
            "boundary": {
                "type": "Polygon",
                "coordinates": [[list(c) for c in close_ring(ring)]],
            }
        }
        if exclude_id:
            payload["excludeZoneId"] = exclude_id
        if addresses:
            payload["buildingData"] = {"addresses": list(addresses)}

        data = await self._call("POST", self.overlap_path, json=payload)
        return data or {}

    async def list_territories(self) -> List[Territory]:
        """All territories regardless of the caller's role, for overlap checks"""
        data = await self._call("GET", TERRITORY_LIST_PATH, params={"visualization": "true"})
        territories = [parse_territory(record) for record in data or []]
        logger.info(
            f"Loaded {len(territories)} territories "
            f"({sum(1 for t in territories if t.boundary)} with boundaries)"
        )
        return territories
