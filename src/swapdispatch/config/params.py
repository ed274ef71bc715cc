from __future__ import annotations

"""Parameter container dataclasses for swapdispatch.

Every configuration section is an immutable dataclass validated on
construction, so invalid values surface when the YAML file is loaded rather
than halfway through a simulation. A small mutable ``RuntimeParams`` bucket
captures flags that are never serialised to YAML.
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import Dict, Optional, Tuple

from swapdispatch.core_types import Point

__all__ = [
    "DEFAULT_POINTS",
    "DEFAULT_DISTANCES",
    "GeographyParams",
    "EnergyParams",
    "ClassifierParams",
    "StationParams",
    "TruckSpec",
    "DispatchParams",
    "IOParams",
    "RuntimeParams",
    "SwapDispatchParams",
]


DEFAULT_POINTS: Dict[Point, Tuple[float, float]] = {
    Point.START: (21.425126, 110.163891),
    Point.LOADING: (21.360861, 110.050424),
    Point.UNLOADING: (21.425126, 110.163891),
    Point.CHARGING: (21.349973, 110.108390),
}

DEFAULT_DISTANCES: Dict[Tuple[Point, Point], float] = {
    (Point.LOADING, Point.UNLOADING): 21.3,
    (Point.UNLOADING, Point.CHARGING): 13.7,
    (Point.CHARGING, Point.LOADING): 7.6,
    (Point.START, Point.LOADING): 21.3,
    (Point.START, Point.CHARGING): 13.7,
    (Point.UNLOADING, Point.LOADING): 21.3,
}

_REQUIRED_DISTANCES = (
    (Point.LOADING, Point.UNLOADING),
    (Point.UNLOADING, Point.CHARGING),
    (Point.CHARGING, Point.LOADING),
    (Point.START, Point.LOADING),
)


def _default_start_time() -> datetime:
    return datetime.combine(datetime.now().date(), time(8, 0))


# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeographyParams:
    """Coordinates of the route points and nominal road distances."""

    points: Dict[Point, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_POINTS)
    )
    distances: Dict[Tuple[Point, Point], float] = field(
        default_factory=lambda: dict(DEFAULT_DISTANCES)
    )
    location_threshold_m: float = 100.0

    def __post_init__(self):  # type: ignore[override]
        missing = [p.value for p in Point if p not in self.points]
        if missing:
            raise ValueError(f"GeographyParams.points missing coordinates for {missing}")

        for point, (lat, lon) in self.points.items():
            if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
                raise ValueError(
                    f"GeographyParams.points[{point.value}] is not a valid lat/lon pair."
                )

        for pair, km in self.distances.items():
            if km <= 0:
                raise ValueError(
                    f"GeographyParams.distances {pair[0].value}->{pair[1].value} must be positive."
                )

        for origin, destination in _REQUIRED_DISTANCES:
            if (origin, destination) not in self.distances and (
                destination,
                origin,
            ) not in self.distances:
                raise ValueError(
                    f"GeographyParams.distances requires {origin.value}->{destination.value}."
                )

        if self.location_threshold_m <= 0:
            raise ValueError("GeographyParams.location_threshold_m must be positive.")


# ---------------------------------------------------------------------------
# Energy model
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EnergyParams:
    """Parametric consumption model and consumption-rate learning settings."""

    base_consumption_kwh_per_km: float = 1.4
    load_factor_loaded: float = 1.3
    load_factor_empty: float = 0.72
    speed_factor: float = 1.0
    terrain_factor: float = 1.0
    weather_factor: float = 1.0
    safety_margin_percent: float = 10.0
    default_capacity_kwh: float = 282.0
    learning_min_samples: int = 50
    learning_progress_threshold: float = 0.35
    min_learned_rate: float = 0.5
    max_learned_rate: float = 5.0
    max_learning_distance_km: float = 500.0
    max_learning_energy_kwh: float = 700.0

    def __post_init__(self):  # type: ignore[override]
        for field_name in (
            "base_consumption_kwh_per_km",
            "load_factor_loaded",
            "load_factor_empty",
            "speed_factor",
            "terrain_factor",
            "weather_factor",
            "default_capacity_kwh",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"EnergyParams.{field_name} must be positive.")

        if self.safety_margin_percent < 0:
            raise ValueError("EnergyParams.safety_margin_percent must be non-negative.")

        if self.learning_min_samples < 2:
            raise ValueError("EnergyParams.learning_min_samples must be at least 2.")

        if not 0.0 <= self.learning_progress_threshold <= 1.0:
            raise ValueError(
                "EnergyParams.learning_progress_threshold must be within [0, 1]."
            )

        if not 0 < self.min_learned_rate < self.max_learned_rate:
            raise ValueError(
                "EnergyParams learned rate bounds must satisfy 0 < min < max."
            )


# ---------------------------------------------------------------------------
# Route classifier
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClassifierParams:
    """Settings for inferring a truck's route segment from GPS history."""

    history_window_minutes: int = 30
    min_history_minutes: int = 20
    heading_tolerance_deg: float = 45.0
    target_interval_seconds: float = 30.0
    density_points: int = 40
    max_gap_seconds: float = 300.0
    lookback_labels: int = 3

    def __post_init__(self):  # type: ignore[override]
        if self.history_window_minutes <= 0:
            raise ValueError("ClassifierParams.history_window_minutes must be positive.")
        if self.min_history_minutes < 0:
            raise ValueError("ClassifierParams.min_history_minutes must be non-negative.")
        if not 0 < self.heading_tolerance_deg <= 180:
            raise ValueError("ClassifierParams.heading_tolerance_deg must be in (0, 180].")
        for field_name in ("target_interval_seconds", "density_points", "max_gap_seconds"):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"ClassifierParams.{field_name} must be positive.")
        if self.lookback_labels < 1:
            raise ValueError("ClassifierParams.lookback_labels must be at least 1.")


# ---------------------------------------------------------------------------
# Swap station
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StationParams:
    """Battery inventory and swap timing of the single swap station."""

    battery_count: int = 5
    exchange_duration_minutes: int = 5
    charge_rate_kwh_per_min: float = 4.7

    def __post_init__(self):  # type: ignore[override]
        if self.battery_count < 1:
            raise ValueError("StationParams.battery_count must be at least 1.")
        if self.exchange_duration_minutes <= 0:
            raise ValueError("StationParams.exchange_duration_minutes must be positive.")
        if self.charge_rate_kwh_per_min <= 0:
            raise ValueError("StationParams.charge_rate_kwh_per_min must be positive.")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TruckSpec:
    """Initial state of one truck."""

    truck_id: str
    soc: float = 100.0
    capacity_kwh: float = 282.0
    origin: Point = Point.START

    def __post_init__(self):  # type: ignore[override]
        if not 0.0 <= self.soc <= 100.0:
            raise ValueError(f"Truck '{self.truck_id}': soc must be within [0, 100].")
        if self.capacity_kwh <= 0:
            raise ValueError(f"Truck '{self.truck_id}': capacity_kwh must be positive.")
        if self.origin not in (Point.START, Point.LOADING):
            raise ValueError(
                f"Truck '{self.truck_id}': origin must be START or LOADING."
            )


@dataclass(frozen=True, slots=True)
class DispatchParams:
    """Fleet, cargo quota and leg timing of the simulation."""

    trucks: Tuple[TruckSpec, ...] = (TruckSpec("truck-1"),)
    start_time: datetime = field(default_factory=_default_start_time)
    average_speed_kmh: float = 40.0
    loading_minutes: int = 10
    unloading_minutes: int = 10
    total_cargo: int = 2000
    cargo_per_trip: int = 50
    swap_soc_limit: float = 35.0
    opportunistic_swaps: bool = False
    max_rounds: int = 10_000

    def __post_init__(self):  # type: ignore[override]
        if not self.trucks:
            raise ValueError("DispatchParams.trucks cannot be empty.")

        ids = [t.truck_id for t in self.trucks]
        if len(set(ids)) != len(ids):
            raise ValueError("DispatchParams.trucks contains duplicate truck ids.")

        if self.average_speed_kmh <= 0:
            raise ValueError("DispatchParams.average_speed_kmh must be positive.")

        for field_name in ("loading_minutes", "unloading_minutes", "total_cargo"):
            if getattr(self, field_name) < 0:
                raise ValueError(f"DispatchParams.{field_name} must be non-negative.")

        if self.cargo_per_trip <= 0:
            raise ValueError("DispatchParams.cargo_per_trip must be positive.")

        if not 0.0 <= self.swap_soc_limit <= 100.0:
            raise ValueError("DispatchParams.swap_soc_limit must be within [0, 100].")

        if self.max_rounds <= 0:
            raise ValueError("DispatchParams.max_rounds must be positive.")


# ---------------------------------------------------------------------------
# IO parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IOParams:
    """Settings for data input and output pathways."""

    results_dir: Path = Path("results")
    format: str = "json"  # One of: xlsx, json, csv
    telemetry_file: Optional[str] = None

    def __post_init__(self):  # type: ignore[override]
        if self.format not in {"xlsx", "json", "csv"}:
            raise ValueError("IOParams.format must be 'xlsx', 'json' or 'csv'.")

        if not self.results_dir.is_absolute():
            object.__setattr__(
                self, "results_dir", (Path.cwd() / self.results_dir).resolve()
            )


# ---------------------------------------------------------------------------
# Runtime parameters – toggles that are never serialized to yaml
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RuntimeParams:
    verbose: bool = False
    debug: bool = False


# ---------------------------------------------------------------------------
# Aggregate container
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SwapDispatchParams:
    """Aggregate parameter object passed throughout the codebase."""

    geography: GeographyParams = field(default_factory=GeographyParams)
    energy: EnergyParams = field(default_factory=EnergyParams)
    classifier: ClassifierParams = field(default_factory=ClassifierParams)
    station: StationParams = field(default_factory=StationParams)
    dispatch: DispatchParams = field(default_factory=DispatchParams)
    io: IOParams = field(default_factory=IOParams)
    runtime: RuntimeParams = field(default_factory=RuntimeParams)
