"""
Tests for geohash encode/decode, neighbours and prefix ranges.
"""

from __future__ import annotations

import math
import random

import pytest

from placemap_geo.errors import InvalidGeohash, SearchRadiusUnsupported
from placemap_geo.geo import EARTH_RADIUS_M, distance_meters
from placemap_geo.geohash import (
    cell_size_deg,
    decode,
    decode_bbox,
    encode,
    neighbors,
    prefix_range,
    prefix_successor,
    prefixes_for_nearby_search,
    search_rings,
)

SEOUL = (37.5665, 126.978)


def _destination(lat: float, lng: float, meters: float, bearing_deg: float) -> tuple[float, float]:
    """Great-circle destination point on the same sphere as distance_meters."""
    d = meters / EARTH_RADIUS_M
    b = math.radians(bearing_deg)
    phi = math.radians(lat)
    phi2 = math.asin(math.sin(phi) * math.cos(d) + math.cos(phi) * math.sin(d) * math.cos(b))
    lam = math.atan2(math.sin(b) * math.sin(d) * math.cos(phi), math.cos(d) - math.sin(phi) * math.sin(phi2))
    return math.degrees(phi2), lng + math.degrees(lam)


class TestEncode:
    def test_reference_vector(self):
        assert encode(57.64911, 10.40744, 11) == "u4pruydqqvj"

    def test_default_precision_is_nine(self):
        assert len(encode(*SEOUL)) == 9

    def test_prefix_property(self):
        full = encode(*SEOUL, 9)
        assert encode(*SEOUL, 7) == full[:7]

    def test_extremes_do_not_raise(self):
        for lat, lng in [(90, 180), (-90, -180), (90, -180), (-90, 180), (0, 0)]:
            h = encode(lat, lng, 9)
            assert len(h) == 9

    def test_invalid_precision(self):
        with pytest.raises(ValueError):
            encode(0, 0, 0)


class TestDecode:
    def test_reference_vector(self):
        lat, lng = decode("u4pruydqqvj")
        assert lat == pytest.approx(57.64911, abs=1e-5)
        assert lng == pytest.approx(10.40744, abs=1e-5)

    @pytest.mark.parametrize("precision", [5, 7, 9])
    def test_round_trip_within_one_cell(self, precision):
        rng = random.Random(precision)
        for _ in range(200):
            lat = rng.uniform(-90, 90)
            lng = rng.uniform(-180, 180)
            h = encode(lat, lng, precision)
            lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(h)
            d_lat, d_lng = decode(h)
            assert abs(d_lat - lat) <= (lat_hi - lat_lo)
            assert abs(d_lng - lng) <= (lng_hi - lng_lo)
            assert lat_lo <= lat <= lat_hi
            assert lng_lo <= lng <= lng_hi

    def test_uppercase_accepted(self):
        assert decode("U4PRUYDQQVJ") == decode("u4pruydqqvj")

    @pytest.mark.parametrize("bad", ["", "abc", "u4pr!"])
    def test_invalid_hash(self, bad):
        with pytest.raises(InvalidGeohash):
            decode(bad)


class TestNeighbors:
    def test_known_neighbors_in_order(self):
        assert neighbors("dqcjq") == [
            "dqcjw",  # N
            "dqcjx",  # NE
            "dqcjr",  # E
            "dqcjp",  # SE
            "dqcjn",  # S
            "dqcjj",  # SW
            "dqcjm",  # W
            "dqcjt",  # NW
        ]

    def test_eight_distinct_same_precision(self):
        rng = random.Random(42)
        for _ in range(200):
            precision = rng.randint(1, 9)
            h = encode(rng.uniform(-90, 90), rng.uniform(-180, 180), precision)
            ring = neighbors(h)
            assert len(ring) == 8
            assert len(set(ring)) == 8
            assert h not in ring
            assert all(len(n) == precision for n in ring)

    def test_east_wraps_at_date_line(self):
        h = encode(0.01, 179.99, 5)
        east = neighbors(h)[2]
        assert east == encode(0.01, -179.99, 5)

    def test_west_wraps_at_date_line(self):
        h = encode(0.01, -179.99, 5)
        west = neighbors(h)[6]
        assert west == encode(0.01, 179.99, 5)

    def test_north_of_north_pole_cell_crosses_pole(self):
        h = encode(89.99, 0.5, 3)
        north = neighbors(h)[0]
        h_lat, h_lng = decode(h)
        n_lat, n_lng = decode(north)
        assert n_lat == pytest.approx(h_lat)
        assert abs(n_lng - h_lng) == pytest.approx(180.0)

    def test_south_of_south_pole_cell_crosses_pole(self):
        h = encode(-89.99, -120.0, 4)
        south = neighbors(h)[4]
        h_lat, h_lng = decode(h)
        s_lat, s_lng = decode(south)
        assert s_lat == pytest.approx(h_lat)
        assert abs(s_lng - h_lng) == pytest.approx(180.0)

    def test_pole_cells_still_have_eight_distinct(self):
        for lat in (89.999, -89.999):
            for lng in (-179.999, 0.0, 179.999):
                for precision in (1, 2, 5, 7):
                    ring = neighbors(encode(lat, lng, precision))
                    assert len(set(ring)) == 8


class TestSearchRings:
    def test_equator_needs_one_ring(self):
        assert search_rings(0.0, 150, 7) == (1, 1)

    def test_seoul_needs_two_columns_at_150m(self):
        # A 7-char cell is ~121m wide at 37.5N
        assert search_rings(SEOUL[0], 150, 7) == (1, 2)
        assert search_rings(SEOUL[0], 30, 7) == (1, 1)

    def test_columns_grow_with_latitude(self):
        cols = [search_rings(lat, 100, 7)[1] for lat in (0, 30, 50, 60, 70)]
        assert cols == sorted(cols)
        assert cols[0] == 1
        assert cols[-1] > 1

    def test_circle_over_pole(self):
        with pytest.raises(SearchRadiusUnsupported):
            search_rings(89.9999, 150, 7)

    def test_cell_size(self):
        height, width = cell_size_deg(7)
        assert height == pytest.approx(180 / 2**17)
        assert width == pytest.approx(360 / 2**18)


class TestNearbySearchPrefixes:
    def test_one_ring_shape(self):
        prefixes = prefixes_for_nearby_search(*SEOUL, 30)
        assert len(prefixes) == 9
        assert len(set(prefixes)) == 9
        assert all(len(p) == 7 for p in prefixes)
        assert prefixes[0] == encode(*SEOUL, 9)[:7]
        assert prefixes[1:] == neighbors(prefixes[0])

    def test_equator_default_is_one_ring(self):
        assert len(prefixes_for_nearby_search(0.0005, 10.0)) == 9

    def test_widened_block_at_seoul(self):
        prefixes = prefixes_for_nearby_search(*SEOUL)
        # 3 rows x 5 columns, still starting with the cell and its neighbours
        assert len(prefixes) == 15
        assert len(set(prefixes)) == 15
        assert prefixes[1:9] == neighbors(prefixes[0])

    def test_too_many_rings(self):
        with pytest.raises(SearchRadiusUnsupported):
            prefixes_for_nearby_search(85.0, 10.0, 150)

    @pytest.mark.parametrize("bearing", range(0, 360, 15))
    def test_points_within_100m_are_covered(self, bearing):
        prefixes = set(prefixes_for_nearby_search(*SEOUL))
        lat, lng = _destination(*SEOUL, 100, bearing)
        assert distance_meters(*SEOUL, lat, lng) <= 100.01
        assert encode(lat, lng, 9)[:7] in prefixes

    @pytest.mark.parametrize("base_lat", [0.0005, 37.5, 60.0])
    @pytest.mark.parametrize("edge", ["N", "E", "S", "W", "NE", "SW"])
    def test_max_radius_covered_from_cell_edges(self, base_lat, edge):
        lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(encode(base_lat, 126.978, 7))
        lat_mid, lng_mid = (lat_lo + lat_hi) / 2, (lng_lo + lng_hi) / 2
        edge_lat = {"N": lat_hi - 1e-7, "S": lat_lo + 1e-7}.get(edge[0], lat_mid)
        edge_lng = {"E": lng_hi - 1e-7, "W": lng_lo + 1e-7}.get(edge[-1], lng_mid)
        assert encode(edge_lat, edge_lng, 7) == encode(base_lat, 126.978, 7)

        prefixes = set(prefixes_for_nearby_search(edge_lat, edge_lng, 150))
        for bearing in range(0, 360, 10):
            lat, lng = _destination(edge_lat, edge_lng, 149.9, bearing)
            assert distance_meters(edge_lat, edge_lng, lat, lng) <= 150
            assert encode(lat, lng, 9)[:7] in prefixes

    def test_second_column_east_at_seoul(self):
        lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(encode(*SEOUL, 7))
        edge_point = ((lat_lo + lat_hi) / 2, lng_hi - 1e-7)
        target = _destination(*edge_point, 140, 90)
        # Two cells east of the edge point's cell, beyond the plain 1-ring
        assert encode(*target, 7) not in [encode(*edge_point, 7), *neighbors(encode(*edge_point, 7))]
        assert encode(*target, 7) in prefixes_for_nearby_search(*edge_point, 150)

    def test_point_near_cell_edge_is_covered(self):
        # The point sits just inside the east edge of its 7-char cell
        lat_lo, lat_hi, lng_lo, lng_hi = decode_bbox(encode(*SEOUL, 7))
        edge_point = ((lat_lo + lat_hi) / 2, lng_hi - 1e-6)
        other = (edge_point[0], lng_hi + 1e-4)
        assert encode(*edge_point, 7) != encode(*other, 7)
        assert encode(*other, 9)[:7] in prefixes_for_nearby_search(*edge_point)

    def test_far_point_not_covered(self):
        lat, lng = _destination(*SEOUL, 1000, 90)
        assert encode(lat, lng, 9)[:7] not in prefixes_for_nearby_search(*SEOUL)


class TestPrefixRange:
    def test_successor_increments_last_digit(self):
        assert prefix_successor("wydm9qb") == "wydm9qc"
        assert prefix_successor("0") == "1"
        assert prefix_successor("9") == "b"

    def test_successor_carries_over_z(self):
        assert prefix_successor("wydm9qz") == "wydm9r"
        assert prefix_successor("wyzz") == "wz"

    def test_all_z_is_unbounded(self):
        assert prefix_successor("zzz") is None
        assert prefix_range("zz") == ("zz", None)

    def test_range_contains_every_extension(self):
        lower, upper = prefix_range("wydm9qz")
        for suffix in ("", "0", "zz", "b7"):
            value = "wydm9qz" + suffix
            assert lower <= value < upper
        assert not ("wydm9r0" < upper)
        assert "wydm9qy" < lower

    def test_invalid_prefix(self):
        with pytest.raises(InvalidGeohash):
            prefix_successor("wyda")
