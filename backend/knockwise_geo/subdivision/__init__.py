"""Grid subdivision of territories into canvassable blocks"""
from .building_estimator import (
    AddressCandidate,
    BuildingEstimator,
    GeocodedEstimator,
    SyntheticEstimator,
    parse_address,
)
from .grid_subdivider import (
    GridSubdivider,
    calculate_total_block_area,
    choose_grid_size,
    generate_blocks,
    set_block_loading,
    update_block_with_data,
)
from .territory_buildings import TerritoryBuildingDetector

__all__ = [
    "AddressCandidate",
    "BuildingEstimator",
    "GeocodedEstimator",
    "GridSubdivider",
    "SyntheticEstimator",
    "TerritoryBuildingDetector",
    "calculate_total_block_area",
    "choose_grid_size",
    "generate_blocks",
    "parse_address",
    "set_block_loading",
    "update_block_with_data",
]
