from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

import pandas as pd

from swapdispatch.utils.time_measurement import TimeMeasurement

FULL_SOC = 100.0


class Point(Enum):
    """Named points of the shuttle route."""

    START = "START"
    LOADING = "LOADING"
    UNLOADING = "UNLOADING"
    CHARGING = "CHARGING"


class LocationLabel(Enum):
    """Coarse location of a single GPS fix."""

    LOADING = "LOADING"
    UNLOADING = "UNLOADING"
    CHARGING = "CHARGING"
    IN_TRANSIT = "IN_TRANSIT"
    UNKNOWN = "UNKNOWN"


class RouteSegment(Enum):
    """Route segment a truck can be driving on."""

    START_TO_LOADING = "StartToLoading"
    LOADING_TO_UNLOADING = "LoadingToUnloading"
    LOADING_TO_UNLOADING_TO_CHARGING = "LoadingToUnloadingToCharging"
    UNLOADING_TO_CHARGING = "UnloadingToCharging"
    CHARGING_TO_LOADING = "ChargingToLoading"
    UNLOADING_TO_LOADING = "UnloadingToLoading"
    UNKNOWN = "Unknown"

    @property
    def loaded(self) -> bool:
        """Whether the truck carries cargo on this segment."""
        return self in LOADED_SEGMENTS


LOADED_SEGMENTS = frozenset(
    {RouteSegment.LOADING_TO_UNLOADING, RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING}
)


@dataclass(frozen=True)
class TelemetryRecord:
    """One telemetry sample reported by a truck."""

    truck_id: str
    timestamp: Optional[datetime] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    soc: Optional[float] = None
    speed_kmh: Optional[float] = None
    odometer_km: Optional[float] = None
    cumulative_energy_kwh: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        """Position and timestamp are all present."""
        return (
            self.timestamp is not None and self.lat is not None and self.lon is not None
        )


@dataclass
class Truck:
    """Electric truck taking part in the simulation."""

    truck_id: str
    soc: float = FULL_SOC
    capacity_kwh: float = 282.0
    trip_count: int = 0
    await_start: Optional[datetime] = None

    def __post_init__(self):
        self.soc = round(max(0.0, float(self.soc)), 2)

    def consume(self, soc_cost: float) -> None:
        self.soc = round(max(0.0, self.soc - soc_cost), 2)

    def recharge(self) -> None:
        self.soc = FULL_SOC

    def increment_trip_count(self) -> None:
        self.trip_count += 1


@dataclass
class Battery:
    """Battery slot of the swap station.

    A battery that is not charging is full. While charging, ``charge_complete_time``
    is the instant it reaches 100% and availability is derived from it on demand.
    """

    slot_id: str
    soc: float = FULL_SOC
    charging: bool = False
    charge_complete_time: Optional[datetime] = None

    def is_available(self, at: datetime) -> bool:
        if not self.charging:
            return self.soc >= FULL_SOC
        return self.charge_complete_time is not None and self.charge_complete_time <= at

    def start_charging(self, soc: float, start: datetime, minutes: int) -> None:
        self.soc = round(soc, 2)
        self.charging = True
        self.charge_complete_time = start + timedelta(minutes=minutes)

    def refresh(self, at: datetime) -> None:
        """Mark a battery whose charge finished by ``at`` as full."""
        if self.charging and self.charge_complete_time <= at:
            self.charging = False
            self.soc = FULL_SOC


@dataclass(frozen=True)
class RouteInfo:
    """Result of classifying where a truck currently is on its route."""

    truck_id: str
    segment: RouteSegment
    start_point: Point
    target_point: Point
    total_distance_km: float
    remaining_distance_km: float
    remaining_fraction: float
    confidence: float
    current_soc: Optional[float] = None
    truck: Optional[Truck] = field(default=None, compare=False, repr=False)
    current: Optional[TelemetryRecord] = field(default=None, repr=False)
    history_size: int = 0

    @property
    def progress(self) -> float:
        return 1.0 - self.remaining_fraction

    @property
    def capacity_kwh(self) -> Optional[float]:
        return self.truck.capacity_kwh if self.truck is not None else None

    def with_segment(self, segment: RouteSegment) -> "RouteInfo":
        return replace(self, segment=segment)


@dataclass(frozen=True)
class ExchangeRecord:
    """A completed battery swap."""

    truck_id: str
    soc_at_swap: float
    capacity_kwh: float
    await_start: datetime
    swap_start: datetime
    swap_end: datetime
    battery_available_since: datetime
    charge_duration_minutes: int
    battery_full_time: datetime
    position_no: str
    trip_count: int

    @property
    def wait_minutes(self) -> float:
        return (self.swap_start - self.await_start).total_seconds() / 60.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScheduleRecord:
    """One leg (or loading/unloading cycle) of a truck's schedule."""

    truck_id: str
    origin: Point
    destination: Point
    start_time: datetime
    trip_count: int
    sequence: int
    end_time: Optional[datetime] = None
    needs_exchange: bool = False
    exchange: Optional[ExchangeRecord] = None
    fallback: bool = False

    @property
    def status(self) -> str:
        return "exchange" if self.needs_exchange else "normal"

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def close(
        self,
        end_time: datetime,
        trip_count: int,
        exchange: Optional[ExchangeRecord] = None,
    ) -> None:
        self.end_time = end_time
        self.trip_count = trip_count
        self.exchange = exchange

    def to_dict(self) -> dict[str, Any]:
        return {
            "truck_id": self.truck_id,
            "origin": self.origin.value,
            "destination": self.destination.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "needs_exchange": self.needs_exchange,
            "status": self.status,
            "trip_count": self.trip_count,
            "fallback": self.fallback,
            "exchange_position_no": self.exchange.position_no if self.exchange else None,
        }


@dataclass
class SimulationResult:
    """Output of a dispatch simulation run."""

    exchange_records: list[ExchangeRecord]
    schedule_records: list[ScheduleRecord]
    trucks: list[Truck]
    batteries: list[Battery]
    start_time: datetime
    time_measurements: list[TimeMeasurement] | None = None

    @property
    def end_time(self) -> datetime:
        ends = [r.end_time for r in self.schedule_records if r.end_time is not None]
        return max(ends) if ends else self.start_time

    @property
    def total_trips(self) -> int:
        return sum(truck.trip_count for truck in self.trucks)

    def summary(self) -> dict[str, Any]:
        """Aggregate metrics of the run."""
        waits = [r.wait_minutes for r in self.exchange_records]
        return {
            "trucks": len(self.trucks),
            "total_trips": self.total_trips,
            "total_exchanges": len(self.exchange_records),
            "average_wait_minutes": round(sum(waits) / len(waits), 2) if waits else 0.0,
            "max_wait_minutes": round(max(waits), 2) if waits else 0.0,
            "fallback_records": sum(1 for r in self.schedule_records if r.fallback),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "makespan_minutes": (self.end_time - self.start_time).total_seconds() / 60.0,
        }

    def to_dataframes(self) -> dict[str, pd.DataFrame]:
        """Return the record lists as DataFrames keyed by sheet name."""
        exchange_columns = list(ExchangeRecord.__dataclass_fields__)
        schedule_df = pd.DataFrame([r.to_dict() for r in self.schedule_records])
        exchange_df = pd.DataFrame(
            [r.to_dict() for r in self.exchange_records], columns=exchange_columns
        )
        trucks_df = pd.DataFrame(
            [
                {
                    "truck_id": t.truck_id,
                    "soc": t.soc,
                    "capacity_kwh": t.capacity_kwh,
                    "trip_count": t.trip_count,
                }
                for t in self.trucks
            ]
        )
        batteries_df = pd.DataFrame([asdict(b) for b in self.batteries])
        return {
            "schedule": schedule_df,
            "exchanges": exchange_df,
            "trucks": trucks_df,
            "batteries": batteries_df,
        }
