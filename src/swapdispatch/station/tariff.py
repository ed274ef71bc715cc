"""
Time-of-use electricity tariff and the swap policy built on it.

Charging a depleted battery in a cheap period and avoiding it in an expensive
one is the only price lever the station has, so a truck may swap a little
early when the next trip would end in a peak period, or defer a non-urgent
swap until prices drop.
"""

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

from swapdispatch.core_types import Point, Truck
from swapdispatch.geography import StaticGeography
from swapdispatch.station.battery_pool import BatteryPool
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)


class PricePeriod(Enum):
    """Tariff band with its relative price."""

    VALLEY = ("valley", 0.3)
    NORMAL = ("normal", 0.6)
    PEAK = ("peak", 0.8)
    SHARP = ("sharp", 1.0)

    def __init__(self, label: str, price: float):
        self.label = label
        self.price = price

    @classmethod
    def at(cls, moment: datetime) -> "PricePeriod":
        hour = moment.hour
        if hour < 8:
            return cls.VALLEY
        if 10 <= hour < 12:
            return cls.PEAK
        if 14 <= hour < 19:
            return cls.SHARP
        return cls.NORMAL

    @property
    def is_cheap(self) -> bool:
        return self in (PricePeriod.VALLEY, PricePeriod.NORMAL)

    @property
    def is_expensive(self) -> bool:
        return self in (PricePeriod.PEAK, PricePeriod.SHARP)


# Hours at which the tariff changes, in order.
_PERIOD_BOUNDARIES = (0, 8, 10, 12, 14, 19)


def should_swap_early(now: datetime, next_trip_end: datetime) -> bool:
    """Swap now, while cheap, when the next trip would end in an expensive band."""
    return PricePeriod.at(now).is_cheap and PricePeriod.at(next_trip_end).is_expensive


def should_defer_swap(now: datetime, next_trip_end: datetime) -> bool:
    """Postpone a swap that would happen in an expensive band if prices drop later."""
    return PricePeriod.at(now).is_expensive and PricePeriod.at(next_trip_end).is_cheap


def next_lower_price_start(now: datetime) -> Optional[datetime]:
    """Start of the next period cheaper than the current one, within a day."""
    current = PricePeriod.at(now)
    day = datetime.combine(now.date(), time(0, 0))
    for offset_days in (0, 1):
        for hour in _PERIOD_BOUNDARIES:
            candidate = day + timedelta(days=offset_days, hours=hour)
            if candidate <= now:
                continue
            if PricePeriod.at(candidate).price < current.price:
                return candidate
    return None


class SwapPolicy:
    """Threshold-based swap decision used when the cost model is unavailable.

    Only table distances and the flat base consumption are used, so the
    decision never depends on learned rates or on a route snapshot.
    """

    def __init__(
        self,
        pool: BatteryPool,
        geography: StaticGeography,
        soc_limit: float = 35.0,
    ):
        self.pool = pool
        self.geography = geography
        self.soc_limit = soc_limit

    def flat_cost(self, distance_km: float, capacity_kwh: float) -> float:
        rate = self.pool.energy_params.base_consumption_kwh_per_km
        return round(distance_km * rate / capacity_kwh * 100.0, 2)

    def one_cycle_cost(self, capacity_kwh: float) -> float:
        """Loaded trip plus the detour to the station."""
        g = self.geography
        return self.flat_cost(
            g.distance_km(Point.LOADING, Point.UNLOADING), capacity_kwh
        ) + self.flat_cost(g.distance_km(Point.UNLOADING, Point.CHARGING), capacity_kwh)

    def needs_swap(self, truck: Truck, now: datetime, next_trip_end: datetime) -> bool:
        capacity = truck.capacity_kwh
        if not capacity or capacity <= 0:
            capacity = self.pool.energy_params.default_capacity_kwh

        to_station = self.geography.distance_km(Point.UNLOADING, Point.CHARGING)
        min_soc = self.pool.min_swap_soc(to_station, capacity)
        if truck.soc < min_soc:
            logger.debug(
                f"Truck {truck.truck_id}: soc {truck.soc:.2f} below minimum {min_soc:.2f}"
            )
            return True

        if truck.soc < self.soc_limit:
            margin = self.pool.energy_params.safety_margin_percent
            can_wait = truck.soc > self.one_cycle_cost(capacity) + margin
            if should_defer_swap(now, next_trip_end) and can_wait:
                logger.debug(f"Truck {truck.truck_id}: deferring swap to a cheaper period")
                return False
            return True

        return self.prefers_early_swap(now, next_trip_end)

    def prefers_early_swap(self, now: datetime, next_trip_end: datetime) -> bool:
        return should_swap_early(now, next_trip_end) and self.pool.can_swap_early(now)
