"""Tests for the static route geography."""

import math

import numpy as np
import pytest

from swapdispatch.config.params import DEFAULT_POINTS, GeographyParams
from swapdispatch.core_types import LocationLabel, Point, RouteSegment
from swapdispatch.geography import (
    StaticGeography,
    angle_difference,
    bearing_deg,
    haversine_m,
    haversine_m_many,
)


def test_haversine_one_degree_of_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111195.08, rel=1e-6)


def test_haversine_many_matches_scalar():
    lats = np.array([1.0, 21.36, -10.0])
    lons = np.array([0.0, 110.05, 45.0])
    many = haversine_m_many(0.0, 0.0, lats, lons)
    for i in range(3):
        assert many[i] == pytest.approx(haversine_m(0.0, 0.0, lats[i], lons[i]))


@pytest.mark.parametrize(
    "target, expected",
    [((1.0, 0.0), 0.0), ((0.0, 1.0), 90.0), ((-1.0, 0.0), 180.0), ((0.0, -1.0), 270.0)],
)
def test_bearing_cardinal_directions(target, expected):
    assert bearing_deg(0.0, 0.0, *target) == pytest.approx(expected, abs=1e-9)


@pytest.mark.parametrize("a, b, expected", [(350, 10, 20), (10, 350, 20), (0, 180, 180), (90, 90, 0)])
def test_angle_difference(a, b, expected):
    assert angle_difference(a, b) == pytest.approx(expected)


class TestStaticGeography:
    def setup_method(self):
        self.geo = StaticGeography()

    def test_table_distances(self):
        assert self.geo.distance_km(Point.LOADING, Point.UNLOADING) == 21.3
        assert self.geo.distance_km(Point.UNLOADING, Point.CHARGING) == 13.7
        assert self.geo.distance_km(Point.CHARGING, Point.LOADING) == 7.6

    def test_distances_are_symmetric(self):
        assert self.geo.distance_km(Point.CHARGING, Point.UNLOADING) == 13.7
        assert self.geo.distance_km(Point.LOADING, Point.CHARGING) == 7.6

    def test_same_point_is_zero(self):
        assert self.geo.distance_km(Point.LOADING, Point.LOADING) == 0.0

    def test_missing_pair_falls_back_to_great_circle(self):
        # START and UNLOADING share coordinates in the default geography
        assert self.geo.distance_km(Point.START, Point.UNLOADING) == 0.0

    def test_coordinates(self):
        assert self.geo.coordinates(Point.CHARGING) == DEFAULT_POINTS[Point.CHARGING]

    def test_identify_location_at_points(self):
        for point, label in (
            (Point.LOADING, LocationLabel.LOADING),
            (Point.UNLOADING, LocationLabel.UNLOADING),
            (Point.CHARGING, LocationLabel.CHARGING),
        ):
            assert self.geo.identify_location(*DEFAULT_POINTS[point]) == label

    def test_identify_location_within_threshold(self):
        lat, lon = DEFAULT_POINTS[Point.LOADING]
        # about 55 m north
        assert self.geo.identify_location(lat + 0.0005, lon) == LocationLabel.LOADING

    def test_identify_location_in_transit(self):
        lat, lon = DEFAULT_POINTS[Point.LOADING]
        assert self.geo.identify_location(lat + 0.01, lon) == LocationLabel.IN_TRANSIT

    def test_identify_location_without_position(self):
        assert self.geo.identify_location(None, 110.0) == LocationLabel.UNKNOWN

    def test_custom_threshold(self):
        geo = StaticGeography(GeographyParams(location_threshold_m=2000.0))
        lat, lon = DEFAULT_POINTS[Point.LOADING]
        assert geo.identify_location(lat + 0.01, lon) == LocationLabel.LOADING

    def test_segment_endpoints(self):
        assert self.geo.segment_endpoints(RouteSegment.UNLOADING_TO_CHARGING) == (
            Point.UNLOADING,
            Point.CHARGING,
        )
        assert self.geo.segment_endpoints(RouteSegment.UNKNOWN) == (
            Point.START,
            Point.LOADING,
        )

    def test_nominal_distance_of_composite_segment(self):
        assert self.geo.nominal_distance_km(
            RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING
        ) == pytest.approx(35.0)

    def test_bearing_to_point(self):
        lat, lon = DEFAULT_POINTS[Point.LOADING]
        bearing = self.geo.bearing_to_point(lat - 0.1, lon, Point.LOADING)
        assert bearing == pytest.approx(0.0, abs=1e-6)

    def test_distance_between_points(self):
        expected = haversine_m(*DEFAULT_POINTS[Point.LOADING], *DEFAULT_POINTS[Point.CHARGING])
        assert self.geo.distance_between_points_m(Point.LOADING, Point.CHARGING) == pytest.approx(expected)
        assert not math.isnan(expected)
