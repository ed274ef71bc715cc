"""
SOC cost model for the shuttle route.

``EnergyModel.cost`` turns a distance and a load state into a percentage of a
battery. A learned consumption rate for the truck is used when one is
available, otherwise a parametric kWh/km model with load and environment
factors applies. The composite helpers cost the known multi-segment routes
from ``RouteInfo`` fields only, and ``should_swap`` is the single inequality
every swap decision goes through.
"""

from typing import Callable, Optional

from swapdispatch.config.params import EnergyParams
from swapdispatch.core_types import Point, RouteInfo, RouteSegment
from swapdispatch.geography import StaticGeography
from swapdispatch.interfaces import ConsumptionRateStore
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)


class EnergyModel:
    """Distance and load state to SOC cost, in percent of capacity."""

    def __init__(
        self,
        geography: StaticGeography,
        params: Optional[EnergyParams] = None,
        rate_store: Optional[ConsumptionRateStore] = None,
    ):
        self.geography = geography
        self.params = params or EnergyParams()
        self.rate_store = rate_store
        self._remaining_costs: dict[RouteSegment, Callable[[RouteInfo, float], float]] = {
            RouteSegment.START_TO_LOADING: self._remaining_start_to_loading,
            RouteSegment.LOADING_TO_UNLOADING: self._remaining_loading_to_unloading,
            RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING: self._remaining_to_charging_via_unloading,
            RouteSegment.UNLOADING_TO_LOADING: self._remaining_unloading_to_loading,
            RouteSegment.UNLOADING_TO_CHARGING: self._remaining_other,
            RouteSegment.CHARGING_TO_LOADING: self._remaining_other,
            RouteSegment.UNKNOWN: self._remaining_other,
        }

    @property
    def safety_margin(self) -> float:
        return self.params.safety_margin_percent

    # ------------------------------------------------------------------
    # Primitive cost
    # ------------------------------------------------------------------

    def learned_rate(self, truck_id: Optional[str], loaded: bool) -> Optional[float]:
        if self.rate_store is None or truck_id is None:
            return None
        rate = self.rate_store.get(truck_id, loaded)
        if rate is not None and rate > 0:
            return rate
        return None

    def energy_kwh(
        self, distance_km: float, loaded: bool, truck_id: Optional[str] = None
    ) -> float:
        rate = self.learned_rate(truck_id, loaded)
        if rate is not None:
            return distance_km * rate

        p = self.params
        load_factor = p.load_factor_loaded if loaded else p.load_factor_empty
        return (
            distance_km
            * p.base_consumption_kwh_per_km
            * load_factor
            * p.speed_factor
            * p.terrain_factor
            * p.weather_factor
        )

    def cost(
        self,
        distance_km: float,
        loaded: bool,
        capacity_kwh: float,
        truck_id: Optional[str] = None,
    ) -> float:
        """SOC percentage consumed by driving ``distance_km``."""
        if capacity_kwh is None or capacity_kwh <= 0:
            raise ValueError(f"Battery capacity must be positive, got {capacity_kwh}")
        kwh = self.energy_kwh(distance_km, loaded, truck_id)
        return round(max(0.0, kwh / capacity_kwh * 100.0), 4)

    # ------------------------------------------------------------------
    # Composites
    # ------------------------------------------------------------------

    def _capacity(self, route_info: RouteInfo) -> float:
        capacity = route_info.capacity_kwh
        return capacity if capacity is not None else self.params.default_capacity_kwh

    def segment_cost(
        self,
        segment: RouteSegment,
        capacity_kwh: float,
        truck_id: Optional[str] = None,
        fraction: float = 1.0,
    ) -> float:
        distance = self.geography.nominal_distance_km(segment) * fraction
        return self.cost(distance, segment.loaded, capacity_kwh, truck_id)

    def full_trip_cost(self, capacity_kwh: float, truck_id: Optional[str] = None) -> float:
        """Loaded loading→unloading plus empty unloading→charging."""
        g = self.geography
        return self.cost(
            g.distance_km(Point.LOADING, Point.UNLOADING), True, capacity_kwh, truck_id
        ) + self.cost(
            g.distance_km(Point.UNLOADING, Point.CHARGING), False, capacity_kwh, truck_id
        )

    def remaining_trip_cost(self, route_info: RouteInfo) -> float:
        """Cost of finishing the segment ``route_info`` describes."""
        fraction = route_info.remaining_fraction
        if fraction is None or not 0.0 <= fraction <= 1.0:
            raise ValueError(f"Invalid remaining fraction {fraction!r}")
        handler = self._remaining_costs.get(route_info.segment, self._remaining_other)
        return handler(route_info, fraction)

    def _remaining_start_to_loading(self, route_info: RouteInfo, fraction: float) -> float:
        distance = fraction * self.geography.distance_km(Point.START, Point.LOADING)
        return self.cost(distance, False, self._capacity(route_info), route_info.truck_id)

    def _remaining_loading_to_unloading(
        self, route_info: RouteInfo, fraction: float
    ) -> float:
        g = self.geography
        capacity = self._capacity(route_info)
        loaded_part = fraction * g.distance_km(Point.LOADING, Point.UNLOADING)
        return_part = g.distance_km(Point.UNLOADING, Point.CHARGING) + g.distance_km(
            Point.CHARGING, Point.LOADING
        )
        return self.cost(loaded_part, True, capacity, route_info.truck_id) + self.cost(
            return_part, False, capacity, route_info.truck_id
        )

    def _remaining_to_charging_via_unloading(
        self, route_info: RouteInfo, fraction: float
    ) -> float:
        g = self.geography
        capacity = self._capacity(route_info)
        to_station = g.distance_km(Point.UNLOADING, Point.CHARGING)
        remaining = fraction * (g.distance_km(Point.LOADING, Point.UNLOADING) + to_station)
        if remaining > to_station:
            return self.cost(
                remaining - to_station, True, capacity, route_info.truck_id
            ) + self.cost(to_station, False, capacity, route_info.truck_id)
        return self.cost(remaining, False, capacity, route_info.truck_id)

    def _remaining_unloading_to_loading(
        self, route_info: RouteInfo, fraction: float
    ) -> float:
        distance = fraction * self.geography.distance_km(Point.UNLOADING, Point.LOADING)
        return self.cost(distance, False, self._capacity(route_info), route_info.truck_id)

    def _remaining_other(self, route_info: RouteInfo, fraction: float) -> float:
        distance = fraction * route_info.total_distance_km
        return self.cost(
            distance,
            route_info.segment.loaded,
            self._capacity(route_info),
            route_info.truck_id,
        )

    # ------------------------------------------------------------------
    # Decision primitive
    # ------------------------------------------------------------------

    def should_swap(
        self,
        current_soc: Optional[float],
        full_trip_cost: float,
        remaining_leg_cost: float,
    ) -> bool:
        """Swap once SOC cannot cover the leg, one more cycle and the margin."""
        if current_soc is None:
            return True
        required = full_trip_cost + remaining_leg_cost + self.safety_margin
        decision = current_soc <= required
        logger.debug(
            "should_swap soc=%.2f required=%.2f -> %s", current_soc, required, decision
        )
        return decision
