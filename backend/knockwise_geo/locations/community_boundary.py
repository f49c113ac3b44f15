"""Approximate community boundaries from Google Places geometry"""
import logging
from typing import Any, Dict, List, Optional

from ..geometry import bounds_to_ring, compute_bounds
from ..models import Bounds, CommunityBoundary, LatLng

logger = logging.getLogger(__name__)

PLACE_TYPE_PRIORITY = [
    "neighborhood",
    "sublocality",
    "sublocality_level_1",
    "sublocality_level_2",
    "locality",
    "administrative_area_level_3",
    "administrative_area_level_2",
]

# Centres of Greater Toronto Area municipalities, used when Places is unavailable
MUNICIPALITY_CENTRES = {
    "Brampton": LatLng(43.6834, -79.7663),
    "Mississauga": LatLng(43.589, -79.6441),
    "Toronto": LatLng(43.6532, -79.3832),
    "Markham": LatLng(43.8668, -79.2663),
    "Vaughan": LatLng(43.8361, -79.4983),
    "Richmond Hill": LatLng(43.8828, -79.4403),
    "Oakville": LatLng(43.4675, -79.6877),
    "Burlington": LatLng(43.3255, -79.799),
    "Ajax": LatLng(43.8501, -79.0329),
    "Pickering": LatLng(43.8361, -79.0863),
    "Whitby": LatLng(43.8975, -78.9428),
    "Oshawa": LatLng(43.8971, -78.8658),
    "Clarington": LatLng(43.9361, -78.6075),
    "Newmarket": LatLng(44.0501, -79.4663),
    "Aurora": LatLng(44.0001, -79.4663),
    "Whitchurch-Stouffville": LatLng(44.0001, -79.25),
    "Milton": LatLng(43.5083, -79.8833),
    "Halton Hills": LatLng(43.5833, -79.9167),
    "Caledon": LatLng(43.8667, -79.8667),
}
DEFAULT_CENTRE = MUNICIPALITY_CENTRES["Toronto"]

# Half-width of the fallback square, roughly 1 km
FALLBACK_OFFSET = 0.01


def places_query(community: str, municipality: Optional[str] = None) -> str:
    if municipality:
        return f"{community}, {municipality}, Ontario, Canada"
    return f"{community}, Ontario, Canada"


def type_score(types: Optional[List[str]]) -> int:
    for i, place_type in enumerate(PLACE_TYPE_PRIORITY):
        if place_type in (types or []):
            return len(PLACE_TYPE_PRIORITY) - i
    return 0


def find_best_match(results: List[Dict[str, Any]], community: str) -> Optional[Dict[str, Any]]:
    """Most neighbourhood-like result, preferring names that contain the community name"""
    if not results:
        return None
    needle = community.lower()
    ranked = sorted(
        results,
        key=lambda r: (-type_score(r.get("types")), needle not in (r.get("name") or "").lower()),
    )
    return ranked[0]


def _corner(box: Dict[str, Any], name: str) -> Dict[str, float]:
    return box.get(name) or box.get(name.replace("east", "_east").replace("west", "_west"))


def place_to_boundary(details: Dict[str, Any], community: str) -> Optional[CommunityBoundary]:
    """Rectangle from the place's viewport (or bounds); None when neither is present"""
    geometry = details.get("geometry") or {}
    location = geometry.get("location")
    if not location:
        return None

    box = geometry.get("viewport") or geometry.get("bounds")
    if not box:
        logger.info(f"No viewport or bounds for {community}")
        return None

    northeast = _corner(box, "northeast")
    southwest = _corner(box, "southwest")
    bounds = Bounds(
        north=northeast["lat"], south=southwest["lat"],
        east=northeast["lng"], west=southwest["lng"],
    )
    return CommunityBoundary(
        name=community,
        coordinates=[LatLng(lat, lng) for lng, lat in bounds_to_ring(bounds)],
        center=LatLng(location["lat"], location["lng"]),
        bounds=bounds,
        source="google",
    )


def fallback_boundary(community: str, municipality: str) -> CommunityBoundary:
    """Square of ±FALLBACK_OFFSET degrees around the municipality's centre"""
    center = MUNICIPALITY_CENTRES.get(municipality, DEFAULT_CENTRE)
    ring = bounds_to_ring(Bounds(
        north=center.lat + FALLBACK_OFFSET,
        south=center.lat - FALLBACK_OFFSET,
        east=center.lng + FALLBACK_OFFSET,
        west=center.lng - FALLBACK_OFFSET,
    ))
    return CommunityBoundary(
        name=community,
        coordinates=[LatLng(lat, lng) for lng, lat in ring],
        center=center,
        bounds=compute_bounds(ring),
        source="fallback",
    )
