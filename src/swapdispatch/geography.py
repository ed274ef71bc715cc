"""
Static geography of the shuttle route: coordinates, nominal road distances,
great-circle helpers and coarse location labelling of GPS fixes.
"""

import math
from typing import Optional

import numpy as np

from swapdispatch.config.params import GeographyParams
from swapdispatch.core_types import LocationLabel, Point, RouteSegment

EARTH_RADIUS_M = 6371008.8

# Points a GPS fix can be snapped to, in tie-break order.
_LABELLED_POINTS = (
    (Point.LOADING, LocationLabel.LOADING),
    (Point.UNLOADING, LocationLabel.UNLOADING),
    (Point.CHARGING, LocationLabel.CHARGING),
)

SEGMENT_ENDPOINTS: dict[RouteSegment, tuple[Point, Point]] = {
    RouteSegment.START_TO_LOADING: (Point.START, Point.LOADING),
    RouteSegment.LOADING_TO_UNLOADING: (Point.LOADING, Point.UNLOADING),
    RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING: (Point.LOADING, Point.CHARGING),
    RouteSegment.UNLOADING_TO_CHARGING: (Point.UNLOADING, Point.CHARGING),
    RouteSegment.CHARGING_TO_LOADING: (Point.CHARGING, Point.LOADING),
    RouteSegment.UNLOADING_TO_LOADING: (Point.UNLOADING, Point.LOADING),
    RouteSegment.UNKNOWN: (Point.START, Point.LOADING),
}


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_m_many(
    lat: float, lon: float, lats: np.ndarray, lons: np.ndarray
) -> np.ndarray:
    """Vectorised great-circle distances from one point to many."""
    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    d_phi = phi2 - phi1
    d_lambda = np.radians(lons - lon)
    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing from the first to the second point, in [0, 360)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(
        d_lambda
    )
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def angle_difference(a: float, b: float) -> float:
    """Smallest absolute difference between two bearings, in [0, 180]."""
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


class StaticGeography:
    """Lookup table for route points and the distances between them."""

    def __init__(self, params: Optional[GeographyParams] = None):
        self.params = params or GeographyParams()
        self._points = dict(self.params.points)
        self._distances = dict(self.params.distances)
        self._label_lats = np.array([self._points[p][0] for p, _ in _LABELLED_POINTS])
        self._label_lons = np.array([self._points[p][1] for p, _ in _LABELLED_POINTS])

    @property
    def location_threshold_m(self) -> float:
        return self.params.location_threshold_m

    def coordinates(self, point: Point) -> tuple[float, float]:
        return self._points[point]

    def distance_km(self, origin: Point, destination: Point) -> float:
        """Nominal road distance, symmetric, falling back to great-circle distance."""
        if origin == destination:
            return 0.0
        if (origin, destination) in self._distances:
            return self._distances[(origin, destination)]
        if (destination, origin) in self._distances:
            return self._distances[(destination, origin)]
        lat1, lon1 = self._points[origin]
        lat2, lon2 = self._points[destination]
        return round(haversine_m(lat1, lon1, lat2, lon2) / 1000.0, 3)

    def distance_to_point_m(self, lat: float, lon: float, point: Point) -> float:
        p_lat, p_lon = self._points[point]
        return haversine_m(lat, lon, p_lat, p_lon)

    def distance_between_points_m(self, origin: Point, destination: Point) -> float:
        lat, lon = self._points[origin]
        return self.distance_to_point_m(lat, lon, destination)

    def bearing_to_point(self, lat: float, lon: float, point: Point) -> float:
        p_lat, p_lon = self._points[point]
        return bearing_deg(lat, lon, p_lat, p_lon)

    def identify_location(
        self, lat: Optional[float], lon: Optional[float]
    ) -> LocationLabel:
        """Snap a GPS fix to the nearest route point within the threshold."""
        if lat is None or lon is None:
            return LocationLabel.UNKNOWN
        distances = haversine_m_many(lat, lon, self._label_lats, self._label_lons)
        nearest = int(np.argmin(distances))
        if distances[nearest] <= self.location_threshold_m:
            return _LABELLED_POINTS[nearest][1]
        return LocationLabel.IN_TRANSIT

    # ------------------------------------------------------------------
    # Segment tables
    # ------------------------------------------------------------------

    def segment_endpoints(self, segment: RouteSegment) -> tuple[Point, Point]:
        return SEGMENT_ENDPOINTS.get(segment, SEGMENT_ENDPOINTS[RouteSegment.UNKNOWN])

    def nominal_distance_km(self, segment: RouteSegment) -> float:
        """Road distance of a whole segment."""
        if segment == RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING:
            return self.distance_km(Point.LOADING, Point.UNLOADING) + self.distance_km(
                Point.UNLOADING, Point.CHARGING
            )
        start, target = self.segment_endpoints(segment)
        return self.distance_km(start, target)
