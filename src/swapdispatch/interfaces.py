"""Protocol definitions for the collaborators the dispatch core consumes."""

from typing import Optional, Protocol

from swapdispatch.core_types import Point, TelemetryRecord


class TelemetryFeed(Protocol):
    """Read-only source of truck telemetry keyed by truck id and time."""

    def get_current_status(self, truck_id: str) -> Optional[TelemetryRecord]:
        """Latest record for the truck, or None when nothing was reported."""
        ...

    def get_history(self, truck_id: str, window_minutes: int) -> list[TelemetryRecord]:
        """Records within the window before the current status, oldest first."""
        ...


class ConsumptionRateStore(Protocol):
    """Key-value store of learned consumption rates in kWh/km."""

    def get(self, truck_id: str, loaded: bool) -> Optional[float]: ...

    def put(self, truck_id: str, loaded: bool, rate: float) -> None: ...


class GeographyTable(Protocol):
    """Static distances and coordinates of the route points."""

    def distance_km(self, origin: Point, destination: Point) -> float: ...

    def coordinates(self, point: Point) -> tuple[float, float]: ...
