"""
Leg planning with explicit outcomes.

Costing a leg through the energy model can fail on malformed inputs (a bad
route snapshot, a zero capacity, a broken rate store). Instead of letting
those errors travel up the scheduler, every costing call returns an
:class:`Outcome` and the caller switches to the fixed-distance, fixed-speed
fallback plan as an ordinary branch.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Optional

from swapdispatch.core_types import Point, Truck
from swapdispatch.energy.model import EnergyModel
from swapdispatch.geography import StaticGeography
from swapdispatch.utils.logging import DispatchLogger, log_warning

logger = DispatchLogger.get_logger(__name__)

# Errors a costing computation may raise on malformed input.
COSTING_ERRORS = (ArithmeticError, LookupError, ValueError, TypeError, AttributeError)


@dataclass(frozen=True)
class Outcome:
    """Value of a computation, or the reason it failed."""

    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(fn: Callable[..., Any], *args, **kwargs) -> Outcome:
    """Run a costing computation and capture a failure as an `Outcome`."""
    try:
        return Outcome(value=fn(*args, **kwargs))
    except COSTING_ERRORS as exc:
        logger.debug(f"{getattr(fn, '__name__', fn)} failed: {exc!r}")
        return Outcome(error=f"{type(exc).__name__}: {exc}")


def drive_minutes(distance_km: float, speed_kmh: float) -> int:
    """Whole minutes needed to drive a distance, truncated."""
    return int(distance_km / speed_kmh * 60)


@dataclass(frozen=True)
class LegPlan:
    """Distance, time and SOC cost of one directed movement."""

    origin: Point
    destination: Point
    distance_km: float
    drive_minutes: int
    soc_cost: float
    dwell_minutes: int = 0
    loaded: bool = False
    fallback: bool = False

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.dwell_minutes + self.drive_minutes)


class LegPlanner:
    """Plan legs with the energy model, or with the flat fallback model."""

    def __init__(
        self,
        geography: StaticGeography,
        energy: EnergyModel,
        average_speed_kmh: float = 40.0,
    ):
        self.geography = geography
        self.energy = energy
        self.average_speed_kmh = average_speed_kmh

    def plan(
        self,
        truck: Truck,
        origin: Point,
        destination: Point,
        loaded: bool,
        distance_km: Optional[float] = None,
        dwell: int = 0,
    ) -> Outcome:
        return attempt(
            self._energy_plan, truck, origin, destination, loaded, distance_km, dwell
        )

    def _energy_plan(
        self,
        truck: Truck,
        origin: Point,
        destination: Point,
        loaded: bool,
        distance_km: Optional[float],
        dwell: int,
    ) -> LegPlan:
        if distance_km is None:
            distance_km = self.geography.distance_km(origin, destination)
        if not distance_km >= 0:
            raise ValueError(f"Invalid leg distance {distance_km!r}")
        soc_cost = self.energy.cost(
            distance_km, loaded, truck.capacity_kwh, truck.truck_id
        )
        return LegPlan(
            origin=origin,
            destination=destination,
            distance_km=distance_km,
            drive_minutes=drive_minutes(distance_km, self.average_speed_kmh),
            soc_cost=soc_cost,
            dwell_minutes=dwell,
            loaded=loaded,
        )

    def fallback(
        self,
        truck: Truck,
        origin: Point,
        destination: Point,
        loaded: bool,
        dwell: int = 0,
    ) -> LegPlan:
        """Table distance, constant speed and flat consumption."""
        distance_km = self.geography.distance_km(origin, destination)
        capacity = truck.capacity_kwh
        if not capacity or capacity <= 0:
            capacity = self.energy.params.default_capacity_kwh
        soc_cost = round(
            distance_km * self.energy.params.base_consumption_kwh_per_km / capacity * 100,
            2,
        )
        return LegPlan(
            origin=origin,
            destination=destination,
            distance_km=distance_km,
            drive_minutes=drive_minutes(distance_km, self.average_speed_kmh),
            soc_cost=soc_cost,
            dwell_minutes=dwell,
            loaded=loaded,
            fallback=True,
        )

    def resolve(
        self,
        truck: Truck,
        origin: Point,
        destination: Point,
        loaded: bool,
        distance_km: Optional[float] = None,
        dwell: int = 0,
    ) -> LegPlan:
        """Energy-model plan when it can be computed, fallback plan otherwise."""
        outcome = self.plan(truck, origin, destination, loaded, distance_km, dwell)
        if outcome.ok:
            return outcome.value
        log_warning(
            f"Truck {truck.truck_id}: costing {origin.value}->{destination.value} "
            f"failed ({outcome.error}), using fixed-distance fallback"
        )
        return self.fallback(truck, origin, destination, loaded, dwell)
