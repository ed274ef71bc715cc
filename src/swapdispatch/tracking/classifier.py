"""
Route segment classification from GPS history.

A truck's recent fixes are snapped to coarse location labels, the last
transitions between labels give a preliminary segment, and the truck's
heading can override that guess when it points clearly at one of the route
points. Missing or too-short telemetry never raises: it yields the
``StartToLoading`` default with a low confidence.
"""

from typing import Optional

import numpy as np

from swapdispatch.config.params import ClassifierParams
from swapdispatch.core_types import (
    LocationLabel,
    Point,
    RouteInfo,
    RouteSegment,
    TelemetryRecord,
    Truck,
)
from swapdispatch.geography import StaticGeography, angle_difference, bearing_deg
from swapdispatch.interfaces import TelemetryFeed
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)

DEFAULT_CONFIDENCE = 0.3

_TRANSITIONS: dict[tuple[LocationLabel, LocationLabel], RouteSegment] = {
    (LocationLabel.LOADING, LocationLabel.IN_TRANSIT): RouteSegment.LOADING_TO_UNLOADING,
    (LocationLabel.LOADING, LocationLabel.UNLOADING): RouteSegment.LOADING_TO_UNLOADING,
    (LocationLabel.UNLOADING, LocationLabel.IN_TRANSIT): RouteSegment.UNLOADING_TO_CHARGING,
    (LocationLabel.UNLOADING, LocationLabel.CHARGING): RouteSegment.UNLOADING_TO_CHARGING,
    (LocationLabel.CHARGING, LocationLabel.IN_TRANSIT): RouteSegment.CHARGING_TO_LOADING,
    (LocationLabel.CHARGING, LocationLabel.LOADING): RouteSegment.CHARGING_TO_LOADING,
    (LocationLabel.UNLOADING, LocationLabel.LOADING): RouteSegment.UNLOADING_TO_LOADING,
}

# Bearing candidates in tie-break order.
_HEADING_CANDIDATES = (Point.UNLOADING, Point.CHARGING, Point.LOADING)


class RouteClassifier:
    """Infer current segment, remaining distance and confidence for a truck."""

    def __init__(
        self, geography: StaticGeography, params: Optional[ClassifierParams] = None
    ):
        self.geography = geography
        self.params = params or ClassifierParams()

    def classify_truck(
        self, feed: TelemetryFeed, truck_id: str, truck: Optional[Truck] = None
    ) -> RouteInfo:
        """Classify using the current status and history window from a feed."""
        current = feed.get_current_status(truck_id)
        history: list[TelemetryRecord] = []
        if current is not None:
            history = feed.get_history(truck_id, self.params.history_window_minutes)
        return self.classify(truck_id, current, history, truck)

    def classify(
        self,
        truck_id: str,
        current: Optional[TelemetryRecord],
        history: list[TelemetryRecord],
        truck: Optional[Truck] = None,
    ) -> RouteInfo:
        if current is None or not current.is_complete:
            logger.debug(f"Truck {truck_id}: incomplete telemetry, using default route")
            return self.default_route(truck_id, current, truck)

        usable = sorted(
            (r for r in history if r.is_complete), key=lambda r: r.timestamp
        )
        if not usable:
            return self.default_route(truck_id, current, truck)

        span_minutes = (usable[-1].timestamp - usable[0].timestamp).total_seconds() / 60
        if span_minutes < self.params.min_history_minutes:
            logger.debug(
                f"Truck {truck_id}: history spans {span_minutes:.1f} min, using default route"
            )
            return self.default_route(truck_id, current, truck)

        labels = self.label_sequence(usable, current)
        preliminary = self.infer_from_labels(labels)
        segment = self.validate_with_heading(preliminary, usable, current)

        start, target = self.geography.segment_endpoints(segment)
        nominal = self.geography.nominal_distance_km(segment)
        remaining = self.remaining_distance_km(current, start, target, nominal)
        fraction = min(max(remaining / nominal, 0.0), 1.0) if nominal > 0 else 0.0

        route = RouteInfo(
            truck_id=truck_id,
            segment=segment,
            start_point=start,
            target_point=target,
            total_distance_km=nominal,
            remaining_distance_km=round(remaining, 3),
            remaining_fraction=fraction,
            confidence=self.confidence(usable, segment),
            current_soc=current.soc,
            truck=truck,
            current=current,
            history_size=len(usable),
        )
        logger.debug(
            f"Truck {truck_id}: {preliminary.value} -> {segment.value}, "
            f"{route.remaining_distance_km:.2f} km left, confidence {route.confidence:.2f}"
        )
        return route

    def default_route(
        self,
        truck_id: str,
        current: Optional[TelemetryRecord] = None,
        truck: Optional[Truck] = None,
    ) -> RouteInfo:
        """Low-confidence ``StartToLoading`` with the full nominal distance."""
        segment = RouteSegment.START_TO_LOADING
        start, target = self.geography.segment_endpoints(segment)
        nominal = self.geography.nominal_distance_km(segment)
        return RouteInfo(
            truck_id=truck_id,
            segment=segment,
            start_point=start,
            target_point=target,
            total_distance_km=nominal,
            remaining_distance_km=nominal,
            remaining_fraction=1.0,
            confidence=DEFAULT_CONFIDENCE,
            current_soc=current.soc if current is not None else None,
            truck=truck,
            current=current,
            history_size=0,
        )

    # ------------------------------------------------------------------
    # Label sequence
    # ------------------------------------------------------------------

    def label_sequence(
        self, history: list[TelemetryRecord], current: TelemetryRecord
    ) -> list[LocationLabel]:
        """De-duplicated labels of the history, with the current label appended."""
        labels: list[LocationLabel] = []
        for record in history:
            label = self.geography.identify_location(record.lat, record.lon)
            if not labels or labels[-1] != label:
                labels.append(label)
        labels.append(self.geography.identify_location(current.lat, current.lon))
        return labels

    def infer_from_labels(self, labels: list[LocationLabel]) -> RouteSegment:
        if len(labels) < 2:
            return RouteSegment.START_TO_LOADING

        previous, recent = labels[-2], labels[-1]
        segment = _TRANSITIONS.get((previous, recent))
        if segment is not None:
            return segment

        if recent == LocationLabel.IN_TRANSIT:
            earliest = max(0, len(labels) - 1 - self.params.lookback_labels)
            for label in reversed(labels[earliest : len(labels) - 1]):
                if label == LocationLabel.LOADING:
                    return RouteSegment.LOADING_TO_UNLOADING
                if label == LocationLabel.UNLOADING:
                    if LocationLabel.CHARGING in labels:
                        return RouteSegment.UNLOADING_TO_LOADING
                    return RouteSegment.UNLOADING_TO_CHARGING
                if label == LocationLabel.CHARGING:
                    return RouteSegment.CHARGING_TO_LOADING

        return RouteSegment.START_TO_LOADING

    # ------------------------------------------------------------------
    # Heading validation
    # ------------------------------------------------------------------

    def validate_with_heading(
        self,
        preliminary: RouteSegment,
        history: list[TelemetryRecord],
        current: TelemetryRecord,
    ) -> RouteSegment:
        """Override the preliminary segment when the heading clearly points at a target.

        Exact ties prefer the preliminary segment's own target, then
        unloading, charging and loading in that order.
        """
        if len(history) < 2:
            return preliminary

        last = history[-1]
        if (last.lat, last.lon) == (current.lat, current.lon):
            return preliminary

        heading = bearing_deg(last.lat, last.lon, current.lat, current.lon)
        differences = {
            point: angle_difference(
                heading, self.geography.bearing_to_point(current.lat, current.lon, point)
            )
            for point in _HEADING_CANDIDATES
        }
        best = min(differences.values())
        if best >= self.params.heading_tolerance_deg:
            return preliminary

        tied = [p for p in _HEADING_CANDIDATES if differences[p] == best]
        preferred = self.geography.segment_endpoints(preliminary)[1]
        choice = preferred if preferred in tied else tied[0]

        if choice == Point.UNLOADING:
            return RouteSegment.LOADING_TO_UNLOADING
        if choice == Point.CHARGING:
            return RouteSegment.UNLOADING_TO_CHARGING
        if preliminary == RouteSegment.UNLOADING_TO_LOADING:
            return RouteSegment.UNLOADING_TO_LOADING
        return RouteSegment.CHARGING_TO_LOADING

    # ------------------------------------------------------------------
    # Distance and confidence
    # ------------------------------------------------------------------

    def remaining_distance_km(
        self, current: TelemetryRecord, start: Point, target: Point, nominal_km: float
    ) -> float:
        """Remaining road distance scaled from straight-line progress, in [0, nominal]."""
        total_m = self.geography.distance_between_points_m(start, target)
        if total_m <= 0:
            return nominal_km

        remaining_m = self.geography.distance_to_point_m(current.lat, current.lon, target)
        if remaining_m >= total_m:
            traveled_m = self.geography.distance_to_point_m(current.lat, current.lon, start)
            remaining_m = total_m - traveled_m

        remaining_km = remaining_m / total_m * nominal_km
        return min(max(remaining_km, 0.0), nominal_km)

    def confidence(self, history: list[TelemetryRecord], segment: RouteSegment) -> float:
        p = self.params
        n = len(history)
        score = 0.5 + min(n / p.density_points * 0.3, 0.3)

        if n >= 2:
            seconds = np.array([r.timestamp.timestamp() for r in history])
            gaps = np.diff(seconds)
            gaps = gaps[(gaps > 0) & (gaps < p.max_gap_seconds)]
            if gaps.size:
                average = float(gaps.mean())
                target = p.target_interval_seconds
                regularity = max(0.0, 1.0 - abs(average - target) / target)
                score += regularity * 0.2

        if segment != RouteSegment.UNKNOWN:
            score += 0.2

        return min(max(score, 0.0), 1.0)
