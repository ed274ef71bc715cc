"""
Learned consumption rates.

Trucks report cumulative energy and odometer readings. Over a long enough
history window the ratio of the two deltas is the truck's observed kWh/km for
the load state it is in, which the energy model prefers over its parametric
defaults.
"""

from datetime import datetime, timedelta
from typing import Optional

from swapdispatch.config.params import EnergyParams
from swapdispatch.core_types import RouteInfo, RouteSegment, TelemetryRecord
from swapdispatch.interfaces import ConsumptionRateStore
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)


class InMemoryRateStore:
    """Dictionary-backed rate store with optional expiry of old entries."""

    def __init__(self, max_age: Optional[timedelta] = timedelta(hours=24)):
        self.max_age = max_age
        self._rates: dict[tuple[str, bool], tuple[float, Optional[datetime]]] = {}
        self._clock: Optional[datetime] = None

    def advance_clock(self, now: datetime) -> None:
        """Set the instant expiry is measured against."""
        self._clock = now

    def get(self, truck_id: str, loaded: bool) -> Optional[float]:
        entry = self._rates.get((truck_id, loaded))
        if entry is None:
            return None
        rate, stored_at = entry
        if (
            self.max_age is not None
            and self._clock is not None
            and stored_at is not None
            and self._clock - stored_at > self.max_age
        ):
            del self._rates[(truck_id, loaded)]
            return None
        return rate

    def put(self, truck_id: str, loaded: bool, rate: float) -> None:
        self._rates[(truck_id, loaded)] = (rate, self._clock)

    def __len__(self) -> int:
        return len(self._rates)


class ConsumptionLearner:
    """Derive kWh/km rates from telemetry history and write them to a store."""

    def __init__(self, store: ConsumptionRateStore, params: Optional[EnergyParams] = None):
        self.store = store
        self.params = params or EnergyParams()

    def compute_rate(self, history: list[TelemetryRecord]) -> Optional[float]:
        """Observed kWh/km between the first and last record, if plausible."""
        p = self.params
        if len(history) < p.learning_min_samples:
            return None

        first, last = history[0], history[-1]
        readings = (
            first.odometer_km,
            last.odometer_km,
            first.cumulative_energy_kwh,
            last.cumulative_energy_kwh,
        )
        if any(value is None for value in readings):
            return None

        distance = last.odometer_km - first.odometer_km
        energy = last.cumulative_energy_kwh - first.cumulative_energy_kwh
        if distance <= 0 or energy <= 0:
            return None
        if distance > p.max_learning_distance_km or energy > p.max_learning_energy_kwh:
            logger.debug(
                "Discarding implausible deltas: %.1f km / %.1f kWh", distance, energy
            )
            return None

        rate = round(energy / distance, 4)
        if not p.min_learned_rate <= rate <= p.max_learned_rate:
            logger.debug("Discarding out-of-range consumption rate %.4f kWh/km", rate)
            return None
        return rate

    def observe(
        self, route_info: RouteInfo, history: list[TelemetryRecord]
    ) -> Optional[float]:
        """Update the stored rate for the truck's current load state.

        An existing value is only replaced once the truck is past the
        configured progress threshold of its segment.
        """
        rate = self.compute_rate(history)
        if rate is None:
            return None

        loaded = route_info.segment == RouteSegment.LOADING_TO_UNLOADING
        existing = self.store.get(route_info.truck_id, loaded)
        if (
            existing is not None
            and route_info.progress <= self.params.learning_progress_threshold
        ):
            return None

        self.store.put(route_info.truck_id, loaded, rate)
        logger.debug(
            "Stored %s consumption rate %.4f kWh/km for %s",
            "loaded" if loaded else "empty",
            rate,
            route_info.truck_id,
        )
        return rate
