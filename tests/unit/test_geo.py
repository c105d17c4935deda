"""
Unit tests for the geo helpers (great-circle distance and the search box).
"""
import math

import pytest

from carrier_match.services.geo import bounding_box, clamp, haversine_km

NAIROBI = (-1.2833, 36.8167)
MOMBASA = (-4.0435, 39.6682)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(*NAIROBI, *NAIROBI) == 0

    def test_symmetric(self):
        assert haversine_km(*NAIROBI, *MOMBASA) == pytest.approx(haversine_km(*MOMBASA, *NAIROBI))

    def test_nairobi_to_mombasa(self):
        # ~440 km straight line
        assert haversine_km(*NAIROBI, *MOMBASA) == pytest.approx(440, rel=0.01)

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.195, rel=1e-4)

    def test_antipodes(self):
        assert haversine_km(0, 0, 0, 180) == pytest.approx(math.pi * 6371, rel=1e-9)


class TestBoundingBox:
    def test_equator_deltas(self):
        min_lat, max_lat, min_lng, max_lng = bounding_box(0, 0, 10)
        assert max_lat == pytest.approx(10 / 110.574)
        assert min_lat == pytest.approx(-10 / 110.574)
        assert max_lng == pytest.approx(10 / 111.32)
        assert min_lng == pytest.approx(-10 / 111.32)

    def test_longitude_widens_away_from_equator(self):
        _, _, min_lng_eq, max_lng_eq = bounding_box(0, 0, 10)
        _, _, min_lng_hi, max_lng_hi = bounding_box(60, 0, 10)
        assert (max_lng_hi - min_lng_hi) == pytest.approx(2 * (max_lng_eq - min_lng_eq), rel=1e-6)

    def test_box_contains_circle(self):
        lat, lng, radius = -1.2833, 36.8167, 5
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius)
        # Points exactly `radius` away along each axis must sit inside the box
        assert haversine_km(lat, lng, max_lat, lng) >= radius * 0.99
        assert haversine_km(lat, lng, lat, max_lng) >= radius * 0.99
        assert min_lat < lat < max_lat
        assert min_lng < lng < max_lng

    def test_corner_is_outside_circle(self):
        min_lat, max_lat, min_lng, max_lng = bounding_box(0, 0, 10)
        assert haversine_km(0, 0, max_lat, max_lng) > 10

    def test_pole_does_not_divide_by_zero(self):
        box = bounding_box(90, 0, 10)
        assert all(math.isfinite(v) for v in box)


class TestClamp:
    def test_within(self):
        assert clamp(5, 0, 10) == 5

    def test_below(self):
        assert clamp(0.1, 0.5, 50) == 0.5

    def test_above(self):
        assert clamp(120, -90, 90) == 90
