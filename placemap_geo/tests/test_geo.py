"""
Tests for coordinate validation and haversine distance.
"""

from __future__ import annotations

import math

import pytest

from placemap_geo.errors import InvalidCoordinate
from placemap_geo.geo import EARTH_RADIUS_M, distance_meters, validate_coordinate


class TestDistance:
    def test_identical_points(self):
        assert distance_meters(37.5665, 126.978, 37.5665, 126.978) == 0.0
        assert distance_meters(-90.0, 0.0, -90.0, 0.0) == 0.0

    def test_symmetric(self):
        a = (37.5665, 126.978)
        b = (35.1796, 129.0756)
        assert distance_meters(*a, *b) == pytest.approx(distance_meters(*b, *a))

    def test_one_degree_latitude(self):
        expected = EARTH_RADIUS_M * math.pi / 180
        assert distance_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected, rel=1e-9)

    def test_seoul_to_busan(self):
        # ~325km
        d = distance_meters(37.5665, 126.978, 35.1796, 129.0756)
        assert 320_000 < d < 330_000

    def test_short_distance(self):
        # 0.00005 deg in each axis at Seoul is roughly 7m
        d = distance_meters(37.5665, 126.9780, 37.56655, 126.97805)
        assert 5 < d < 9

    def test_monotonic_in_separation(self):
        distances = [distance_meters(10.0, 20.0, 10.0 + step, 20.0) for step in (0.001, 0.01, 0.1, 1.0)]
        assert distances == sorted(distances)

    def test_antipodal_points(self):
        d = distance_meters(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(EARTH_RADIUS_M * math.pi)

    def test_across_date_line(self):
        d = distance_meters(0.0, 179.9995, 0.0, -179.9995)
        assert d == pytest.approx(111.2, abs=0.5)


class TestValidateCoordinate:
    @pytest.mark.parametrize("lat,lng", [(0, 0), (90, 180), (-90, -180), (37.5665, 126.978)])
    def test_valid(self, lat, lng):
        validate_coordinate(lat, lng)

    @pytest.mark.parametrize("lat,lng", [
        (90.0001, 0),
        (-91, 0),
        (0, 180.5),
        (0, -181),
        (float("nan"), 0),
        (0, float("inf")),
    ])
    def test_invalid(self, lat, lng):
        with pytest.raises(InvalidCoordinate):
            validate_coordinate(lat, lng)

    def test_non_numeric(self):
        with pytest.raises(InvalidCoordinate):
            validate_coordinate("37.5", 126.9)

    @pytest.mark.parametrize("lat,lng", [(True, 126.9), (37.5, False), (True, True)])
    def test_bool_is_not_a_coordinate(self, lat, lng):
        with pytest.raises(InvalidCoordinate):
            validate_coordinate(lat, lng)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            validate_coordinate(100, 0)
