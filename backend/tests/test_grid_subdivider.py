"""Tests for grid subdivision and block building detection"""
import pytest

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from knockwise_geo.errors import ProviderAuthError, ProviderError
from knockwise_geo.fetchers import GoogleMapsFetcher
from knockwise_geo.geometry import approximate_area_km2, compute_bounds
from knockwise_geo.models import BlockDetails, Bounds, GeocodedAddress, GridBlock, LatLng, StreetData
from knockwise_geo.subdivision import (
    GridSubdivider,
    calculate_total_block_area,
    choose_grid_size,
    generate_blocks,
    parse_address,
    set_block_loading,
    update_block_with_data,
)

# About 0.07 km² by the flat approximation
SMALL_BOUNDS = Bounds(north=43.652, south=43.650, east=-79.380, west=-79.384)
# About 1.0 km²
KM2_BOUNDS = Bounds(north=43.659, south=43.650, east=-79.3675, west=-79.380)


def make_block(name="Block 1"):
    bounds = Bounds(north=43.651, south=43.650, east=-79.380, west=-79.381)
    return GridBlock(
        id="Test-block-1",
        name=name,
        coordinates=[
            LatLng(bounds.south, bounds.west),
            LatLng(bounds.north, bounds.west),
            LatLng(bounds.north, bounds.east),
            LatLng(bounds.south, bounds.east),
            LatLng(bounds.south, bounds.west),
        ],
        center=bounds.center,
        bounds=bounds,
        area=approximate_area_km2(bounds),
    )


class FakeGeocoder:
    """Reverse geocoder returning a fixed answer (or raising) and counting calls"""

    def __init__(self, answer=None, error=None, at_sample=False):
        self.answer = answer
        self.error = error
        self.at_sample = at_sample
        self.calls = []

    async def reverse_geocode(self, point):
        self.calls.append(point)
        if self.error is not None:
            raise self.error
        if self.at_sample:
            return GeocodedAddress(formatted_address=self.answer, location=point)
        return self.answer


class TestGridSize:
    """Tests for choose_grid_size and generate_blocks"""

    def test_small_area_gets_two_by_two(self):
        """Test a territory under 0.1 km² becomes 4 blocks"""
        assert approximate_area_km2(SMALL_BOUNDS) < 0.1
        assert choose_grid_size(SMALL_BOUNDS) == 2
        assert len(generate_blocks("Small", SMALL_BOUNDS)) == 4

    def test_one_square_km_gets_five_by_five(self):
        """Test a territory of about 1 km² becomes 25 blocks"""
        assert approximate_area_km2(KM2_BOUNDS) == pytest.approx(1.0, abs=0.05)
        assert choose_grid_size(KM2_BOUNDS) == 5
        assert len(generate_blocks("Medium", KM2_BOUNDS)) == 25

    def test_wide_toronto_bounds_use_largest_grid(self):
        """Test 0.02° × 0.04° near Toronto (about 7 km²) is a 6x6 grid"""
        bounds = Bounds(north=43.66, south=43.64, east=-79.36, west=-79.40)

        assert approximate_area_km2(bounds) > 2.0
        assert choose_grid_size(bounds) == 6

    def test_grid_size_is_monotonic(self):
        """Test grid size never shrinks as area grows and stays in 2..6"""
        sizes = [
            choose_grid_size(Bounds(north=span, south=0.0, east=0.01, west=0.0))
            for span in [0.0001 * 1.5 ** k for k in range(30)]
        ]

        assert sizes == sorted(sizes)
        assert min(sizes) == 2
        assert max(sizes) == 6

    def test_blocks_are_closed_rectangles(self):
        """Test every block has a closed 5-point ring and sequential ids"""
        blocks = generate_blocks("Downtown", KM2_BOUNDS)

        for i, block in enumerate(blocks, start=1):
            assert block.id == f"Downtown-block-{i}"
            assert block.name == f"Block {i}"
            assert len(block.coordinates) == 5
            assert block.coordinates[0] == block.coordinates[-1]

    def test_row_major_from_north_west(self):
        """Test block 1 is the north-west corner and block N the north-east"""
        blocks = generate_blocks("T", SMALL_BOUNDS)

        assert blocks[0].bounds.north == SMALL_BOUNDS.north
        assert blocks[0].bounds.west == SMALL_BOUNDS.west
        assert blocks[1].bounds.east == pytest.approx(SMALL_BOUNDS.east)
        assert blocks[-1].bounds.south == pytest.approx(SMALL_BOUNDS.south)

    def test_blocks_tile_parent_area(self):
        """Test block areas add up to the parent area"""
        blocks = generate_blocks("T", KM2_BOUNDS)

        assert calculate_total_block_area(blocks) == pytest.approx(approximate_area_km2(KM2_BOUNDS), rel=1e-6)

    def test_block_ring_round_trip(self):
        """Test recomputing bounds from a block ring gives the block bounds"""
        for block in generate_blocks("T", KM2_BOUNDS):
            assert compute_bounds(block.ring) == block.bounds


class TestBlockHelpers:
    """Tests for block list helpers"""

    def test_update_block_with_data(self):
        """Test one block is filled in and marked loaded"""
        blocks = generate_blocks("T", SMALL_BOUNDS)
        details = BlockDetails(streets=[StreetData(name="Main St")], buildings=[])

        updated = update_block_with_data(blocks, "T-block-2", details)

        assert updated[1].is_data_loaded
        assert updated[1].streets[0].name == "Main St"
        assert not updated[0].is_data_loaded
        assert blocks[1].streets is None

    def test_set_block_loading(self):
        """Test the loading flag is set on one block only"""
        blocks = set_block_loading(generate_blocks("T", SMALL_BOUNDS), "T-block-3", True)

        assert [b.is_loading for b in blocks] == [False, False, True, False]


class TestParseAddress:
    """Tests for house number extraction"""

    def test_number_and_street(self):
        assert parse_address("12 Main St, Toronto, ON M5V 2T6, Canada") == (12, "Main St")

    def test_no_number(self):
        assert parse_address("Main St, Toronto, ON") == (0, "Unknown Street")


class TestFetchBlockDetails:
    """Tests for GridSubdivider.fetch_block_details"""

    @pytest.mark.asyncio
    async def test_attempts_are_capped(self, fixed_random):
        """Test 1500 m² means 10 expected buildings and at most 30 samples"""
        geocoder = FakeGeocoder(answer="12 Main St, Toronto, ON", at_sample=True)
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 1500.0, rng=fixed_random)
        block = make_block()

        assert subdivider.estimate_building_count(block) == 10

        details = await subdivider.fetch_block_details(block)

        assert len(geocoder.calls) <= 30
        assert len(details.buildings) == 1

    @pytest.mark.asyncio
    async def test_duplicate_addresses_kept_once(self, fixed_random):
        """Test two samples geocoding to the same address give one building"""
        geocoder = FakeGeocoder(answer="12 Main St, Toronto, ON", at_sample=True)
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 300.0, rng=fixed_random)

        details = await subdivider.fetch_block_details(make_block())

        assert len(geocoder.calls) >= 2
        assert len(details.buildings) == 1
        assert details.buildings[0].number == 12
        assert details.streets == [StreetData(name="Main St", building_numbers=[12], total_buildings=1)]

    @pytest.mark.asyncio
    async def test_far_geocodes_get_placeholder_addresses(self, fixed_random):
        """Test addresses more than 50 m away are replaced by the placeholder sequence"""
        far_away = GeocodedAddress(formatted_address="99 King St, Toronto, ON", location=LatLng(43.7, -79.4))
        geocoder = FakeGeocoder(answer=far_away)
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 1500.0, rng=fixed_random)

        details = await subdivider.fetch_block_details(make_block())

        assert [b.number for b in details.buildings] == list(range(65, 85, 2))
        assert len(details.streets) == 1
        street = details.streets[0]
        assert street.name == "Block Block 1 Street"
        assert street.total_buildings == 10
        assert street.building_numbers == sorted(street.building_numbers)

    @pytest.mark.asyncio
    async def test_geocoding_failure_keeps_building(self, fixed_random):
        """Test a failed lookup still records a building numbered 0"""
        geocoder = FakeGeocoder(error=ProviderError("Google Maps", "OVER_QUERY_LIMIT"))
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 300.0, rng=fixed_random)

        details = await subdivider.fetch_block_details(make_block())

        assert len(details.buildings) == 2
        assert all(b.number == 0 for b in details.buildings)
        assert all(b.street == "Block Block 1 Street" for b in details.buildings)
        assert details.streets == []

    @pytest.mark.asyncio
    async def test_no_result_counts_as_failure(self, fixed_random):
        """Test an empty geocoding answer is treated like a failed lookup"""
        subdivider = GridSubdivider(geocoder=FakeGeocoder(answer=None), area=lambda ring: 150.0, rng=fixed_random)

        details = await subdivider.fetch_block_details(make_block())

        assert [b.number for b in details.buildings] == [0]

    @pytest.mark.asyncio
    async def test_result_without_geometry_keeps_building(self, fake_session, fixed_random, fast_fetcher_kwargs):
        """Test a Google result lacking its location is handled like a failed lookup"""
        payload = {"status": "OK", "results": [{"formatted_address": "1 A St"}]}
        session = fake_session(handler=lambda method, url, kwargs: (200, payload))
        geocoder = GoogleMapsFetcher(api_key="key", session=session, **fast_fetcher_kwargs)
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 1500.0, rng=fixed_random)

        details = await subdivider.fetch_block_details(make_block())

        assert len(details.buildings) == 10
        assert all(b.number == 0 for b in details.buildings)

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, fixed_random):
        """Test rejected credentials abort detection instead of producing placeholders"""
        geocoder = FakeGeocoder(error=ProviderAuthError("Google Maps", "REQUEST_DENIED"))
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 300.0, rng=fixed_random)

        with pytest.raises(ProviderAuthError):
            await subdivider.fetch_block_details(make_block())

    @pytest.mark.asyncio
    async def test_samples_stay_inside_block(self):
        """Test only points inside the block are geocoded"""
        geocoder = FakeGeocoder(answer="1 A St", at_sample=True)
        subdivider = GridSubdivider(geocoder=geocoder, area=lambda ring: 3000.0)
        block = make_block()

        await subdivider.fetch_block_details(block)

        for point in geocoder.calls:
            assert block.bounds.contains(point.lng, point.lat)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
