"""
Discrete-event trip scheduler.

Every truck shuttles loading → unloading → loading until its share of the
cargo is delivered. Each round the trucks that still have cargo are processed
in order of their next departure time, which makes the swap station see
requests in chronological order even though a whole round is simulated at
once. A truck whose telemetry places it mid-route first finishes the segment
it is on, and every swap decision goes through ``EnergyModel.should_swap``.
"""

import itertools
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from swapdispatch.config.params import SwapDispatchParams
from swapdispatch.core_types import (
    Point,
    RouteInfo,
    RouteSegment,
    ScheduleRecord,
    SimulationResult,
    TelemetryRecord,
    Truck,
)
from swapdispatch.dispatch.legs import LegPlan, LegPlanner, attempt
from swapdispatch.energy.consumption import ConsumptionLearner, InMemoryRateStore
from swapdispatch.energy.model import EnergyModel
from swapdispatch.geography import StaticGeography
from swapdispatch.interfaces import ConsumptionRateStore, TelemetryFeed
from swapdispatch.station.battery_pool import BatteryPool
from swapdispatch.station.tariff import SwapPolicy
from swapdispatch.tracking.classifier import RouteClassifier
from swapdispatch.utils.logging import (
    DispatchLogger,
    log_detail,
    log_error,
    log_progress,
    log_warning,
)

logger = DispatchLogger.get_logger(__name__)


class ResumePlan(Enum):
    """How a truck found mid-route completes its current segment."""

    FINISH_AND_RETURN = "finish_and_return"
    FINISH_THEN_SWAP = "finish_then_swap"
    SWAP_THEN_CONTINUE = "swap_then_continue"


@dataclass
class TruckState:
    """Everything the scheduler tracks for one truck."""

    truck: Truck
    remaining_cargo: int
    next_departure: datetime
    order: int
    origin: Point = Point.START
    route_info: Optional[RouteInfo] = None
    mid_route: bool = False
    open_record: Optional[ScheduleRecord] = None

    @property
    def active(self) -> bool:
        return self.remaining_cargo > 0


class TripScheduler:
    """Simulate the fleet until every truck has delivered its cargo quota."""

    def __init__(
        self,
        params: SwapDispatchParams,
        telemetry: Optional[TelemetryFeed] = None,
        rate_store: Optional[ConsumptionRateStore] = None,
        pool: Optional[BatteryPool] = None,
    ):
        self.params = params
        self.dispatch = params.dispatch
        self.start_time = self.dispatch.start_time
        self.telemetry = telemetry

        self.geography = StaticGeography(params.geography)
        self.rate_store = rate_store if rate_store is not None else InMemoryRateStore()
        self.energy = EnergyModel(self.geography, params.energy, self.rate_store)
        self.learner = ConsumptionLearner(self.rate_store, params.energy)
        self.classifier = RouteClassifier(self.geography, params.classifier)
        self.pool = pool or BatteryPool(self.start_time, params.station, params.energy)
        self.policy = SwapPolicy(
            self.pool, self.geography, self.dispatch.swap_soc_limit
        )
        self.planner = LegPlanner(
            self.geography, self.energy, self.dispatch.average_speed_kmh
        )

        self.states = self._create_states()
        self._completed: list[ScheduleRecord] = []
        self._sequence = itertools.count()
        self._has_run = False

    def _create_states(self) -> list[TruckState]:
        specs = self.dispatch.trucks
        cargo_per_truck = math.ceil(self.dispatch.total_cargo / len(specs))
        return [
            TruckState(
                truck=Truck(spec.truck_id, soc=spec.soc, capacity_kwh=spec.capacity_kwh),
                remaining_cargo=cargo_per_truck,
                next_departure=self.start_time,
                order=order,
                origin=spec.origin,
            )
            for order, spec in enumerate(specs)
        ]

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> SimulationResult:
        if self._has_run:
            raise RuntimeError("TripScheduler.run() can only be called once per instance")
        self._has_run = True

        log_progress(
            f"Dispatching {len(self.states)} trucks for {self.dispatch.total_cargo} "
            f"cargo units from {self.start_time:%Y-%m-%d %H:%M}"
        )
        for state in self.states:
            self._initial_departure(state)

        rounds = 0
        active = [s for s in self.states if s.active]
        while active:
            if rounds >= self.dispatch.max_rounds:
                log_error(
                    f"Stopped after {rounds} rounds with {len(active)} trucks still loaded"
                )
                break
            rounds += 1
            for state in sorted(active, key=lambda s: (s.next_departure, s.order)):
                self._step(state)
            active = [s for s in self.states if s.active]

        result = SimulationResult(
            exchange_records=self.pool.exchange_records,
            schedule_records=sorted(self._completed, key=lambda r: r.sequence),
            trucks=[s.truck for s in self.states],
            batteries=list(self.pool.batteries),
            start_time=self.start_time,
        )
        end_time = result.end_time
        self.pool.refresh(end_time)
        if not self.pool.all_batteries_full(end_time):
            log_detail(f"Batteries still charging at {end_time:%H:%M}")
        logger.info(
            f"Simulated {rounds} rounds: {result.total_trips} trips, "
            f"{len(result.exchange_records)} battery swaps"
        )
        return result

    def _step(self, state: TruckState) -> None:
        truck = state.truck
        depart = state.next_departure
        trips_before = truck.trip_count

        if state.route_info is None:
            record = self._open_record(
                state, Point.LOADING, Point.UNLOADING, depart, trips_before + 1
            )
            arrival = self._loading_cycle(state, record, depart)
        else:
            route = state.route_info
            record = self._open_record(
                state,
                route.start_point,
                route.target_point,
                depart,
                trips_before + 1 if route.segment.loaded else trips_before,
            )
            arrival = self._resume_route(state, record, route, depart)
            state.route_info = None
            state.mid_route = False

        self._close_record(state, record, arrival)
        state.next_departure = arrival
        if truck.trip_count > trips_before:
            state.remaining_cargo -= self.dispatch.cargo_per_trip

        log_detail(
            f"{truck.truck_id}: {depart:%H:%M} -> {arrival:%H:%M}, soc {truck.soc:.2f}%, "
            f"trips {truck.trip_count}, cargo left {max(state.remaining_cargo, 0)}"
        )

    # ------------------------------------------------------------------
    # First departure
    # ------------------------------------------------------------------

    def _classify(self, state: TruckState) -> RouteInfo:
        truck = state.truck
        if self.telemetry is None:
            return self.classifier.default_route(truck.truck_id, truck=truck)

        current = self.telemetry.get_current_status(truck.truck_id)
        history: list[TelemetryRecord] = []
        if current is not None:
            history = self.telemetry.get_history(
                truck.truck_id, self.params.classifier.history_window_minutes
            )
        route = self.classifier.classify(truck.truck_id, current, history, truck)
        if history:
            if isinstance(self.rate_store, InMemoryRateStore) and current.timestamp:
                self.rate_store.advance_clock(current.timestamp)
            self.learner.observe(route, history)
        return route

    def _initial_departure(self, state: TruckState) -> None:
        truck = state.truck
        route = self._classify(state)
        if route.current_soc is not None:
            truck.soc = round(min(max(route.current_soc, 0.0), 100.0), 2)

        if route.segment != RouteSegment.START_TO_LOADING:
            state.route_info = route
            state.mid_route = True
            state.next_departure = route.current.timestamp
            log_detail(
                f"{truck.truck_id}: resuming {route.segment.value} with "
                f"{route.remaining_distance_km:.1f} km left (confidence {route.confidence:.2f})"
            )
            return

        departure = self.start_time
        if route.current is not None and route.current.timestamp is not None:
            departure = route.current.timestamp

        if state.origin == Point.LOADING:
            state.next_departure = departure
            return

        record = self._open_record(
            state, Point.START, Point.LOADING, departure, truck.trip_count
        )
        decision = attempt(self._start_needs_swap, truck, route)
        if decision.ok:
            needs_swap = decision.value
        else:
            log_warning(f"{truck.truck_id}: start leg decision failed ({decision.error})")
            record.fallback = True
            needs_swap = self.policy.needs_swap(
                truck, departure, self._cycle_end_estimate(departure)
            )

        if needs_swap:
            to_station = route.remaining_fraction * self.geography.distance_km(
                Point.START, Point.CHARGING
            )
            swap_end = self._detour_to_station(
                state, record, Point.START, departure, distance_km=to_station
            )
            arrival = self._drive(
                record, truck, swap_end, Point.CHARGING, Point.LOADING, loaded=False
            )
        else:
            arrival = self._drive(
                record,
                truck,
                departure,
                Point.START,
                Point.LOADING,
                loaded=False,
                distance_km=route.remaining_distance_km,
            )

        self._close_record(state, record, arrival)
        state.next_departure = arrival

    def _start_needs_swap(self, truck: Truck, route: RouteInfo) -> bool:
        full = self.energy.full_trip_cost(truck.capacity_kwh, truck.truck_id)
        remaining = self.energy.remaining_trip_cost(route)
        return self.energy.should_swap(truck.soc, full, remaining)

    # ------------------------------------------------------------------
    # Loading → unloading → loading cycle
    # ------------------------------------------------------------------

    def _loading_cycle(
        self, state: TruckState, record: ScheduleRecord, depart: datetime
    ) -> datetime:
        truck = state.truck
        at_unloading = self._drive(
            record,
            truck,
            depart,
            Point.LOADING,
            Point.UNLOADING,
            loaded=True,
            dwell=self.dispatch.loading_minutes,
        )
        truck.increment_trip_count()
        ready = at_unloading + timedelta(minutes=self.dispatch.unloading_minutes)

        decision = attempt(self._return_needs_swap, truck)
        if decision.ok:
            needs_swap = decision.value
            if not needs_swap and self.dispatch.opportunistic_swaps:
                needs_swap = self.policy.prefers_early_swap(
                    ready, self._cycle_end_estimate(ready)
                )
        else:
            log_warning(f"{truck.truck_id}: return leg decision failed ({decision.error})")
            record.fallback = True
            needs_swap = self.policy.needs_swap(truck, ready, self._cycle_end_estimate(ready))

        if needs_swap:
            swap_end = self._detour_to_station(state, record, Point.UNLOADING, ready)
            return self._drive(
                record, truck, swap_end, Point.CHARGING, Point.LOADING, loaded=False
            )
        return self._drive(record, truck, ready, Point.UNLOADING, Point.LOADING, loaded=False)

    def _return_needs_swap(self, truck: Truck) -> bool:
        full = self.energy.full_trip_cost(truck.capacity_kwh, truck.truck_id)
        back = self.energy.segment_cost(
            RouteSegment.UNLOADING_TO_LOADING, truck.capacity_kwh, truck.truck_id
        )
        return self.energy.should_swap(truck.soc, full, back)

    # ------------------------------------------------------------------
    # Resuming a truck found mid-route
    # ------------------------------------------------------------------

    def _resume_route(
        self,
        state: TruckState,
        record: ScheduleRecord,
        route: RouteInfo,
        depart: datetime,
    ) -> datetime:
        truck = state.truck
        decision = attempt(self._resume_plan, truck, route)
        if not decision.ok:
            log_warning(f"{truck.truck_id}: resume decision failed ({decision.error})")
            record.fallback = True
            return self._fallback_resume(state, record, route, depart)

        plan = decision.value
        logger.debug(f"{truck.truck_id}: {route.segment.value} -> {plan.value}")

        if plan == ResumePlan.SWAP_THEN_CONTINUE:
            t = self._detour_to_station(
                state,
                record,
                route.start_point,
                depart,
                distance_km=self._distance_to_station(route),
                loaded=route.segment.loaded,
            )
            if route.segment.loaded:
                t = self._drive(record, truck, t, Point.CHARGING, Point.UNLOADING, loaded=True)
                truck.increment_trip_count()
                t += timedelta(minutes=self.dispatch.unloading_minutes)
                return self._drive(record, truck, t, Point.UNLOADING, Point.LOADING, loaded=False)
            return self._drive(record, truck, t, Point.CHARGING, Point.LOADING, loaded=False)

        t, position = self._finish_segment(record, truck, route, depart)

        if plan == ResumePlan.FINISH_THEN_SWAP:
            if position == Point.CHARGING:
                t = self._swap(record, truck, t)
            else:
                t = self._detour_to_station(state, record, position, t)
            return self._drive(record, truck, t, Point.CHARGING, Point.LOADING, loaded=False)

        if position != Point.LOADING:
            t = self._drive(record, truck, t, position, Point.LOADING, loaded=False)
        return t

    def _resume_plan(self, truck: Truck, route: RouteInfo) -> ResumePlan:
        full = self.energy.full_trip_cost(truck.capacity_kwh, truck.truck_id)
        remaining = self.energy.remaining_trip_cost(route)
        if not self.energy.should_swap(truck.soc, full, remaining):
            return ResumePlan.FINISH_AND_RETURN

        via_station = route.with_segment(RouteSegment.LOADING_TO_UNLOADING_TO_CHARGING)
        if self.energy.should_swap(
            truck.soc, 0.0, self.energy.remaining_trip_cost(via_station)
        ):
            return ResumePlan.SWAP_THEN_CONTINUE
        return ResumePlan.FINISH_THEN_SWAP

    def _distance_to_station(self, route: RouteInfo) -> float:
        """Road distance from the truck's current position to the swap station."""
        if route.target_point == Point.CHARGING:
            return route.remaining_distance_km
        # turning back: the part already driven, then the start point's station leg
        traveled = route.progress * route.total_distance_km
        if route.start_point == Point.CHARGING:
            return traveled
        return traveled + self.geography.distance_km(route.start_point, Point.CHARGING)

    def _segment_remainder(self, route: RouteInfo) -> tuple[Point, float, bool]:
        """Where the current segment ends, how far away that is and whether loaded."""
        if route.segment.loaded:
            km = route.remaining_fraction * self.geography.distance_km(
                Point.LOADING, Point.UNLOADING
            )
            return Point.UNLOADING, km, True
        return route.target_point, route.remaining_distance_km, False

    def _finish_segment(
        self, record: ScheduleRecord, truck: Truck, route: RouteInfo, t: datetime
    ) -> tuple[datetime, Point]:
        target, km, loaded = self._segment_remainder(route)
        t = self._drive(
            record, truck, t, route.start_point, target, loaded=loaded, distance_km=km
        )
        if target == Point.UNLOADING:
            truck.increment_trip_count()
            t += timedelta(minutes=self.dispatch.unloading_minutes)
        return t, target

    def _fallback_resume(
        self,
        state: TruckState,
        record: ScheduleRecord,
        route: RouteInfo,
        t: datetime,
    ) -> datetime:
        truck = state.truck
        target, _, loaded = self._segment_remainder(route)
        t = self._apply(truck, self.planner.fallback(truck, route.start_point, target, loaded), t)
        if target == Point.UNLOADING:
            truck.increment_trip_count()
            t += timedelta(minutes=self.dispatch.unloading_minutes)

        if self.policy.needs_swap(truck, t, self._cycle_end_estimate(t)):
            if target == Point.CHARGING:
                t = self._swap(record, truck, t)
            else:
                t = self._detour_to_station(state, record, target, t)
            target = Point.CHARGING

        if target != Point.LOADING:
            t = self._apply(truck, self.planner.fallback(truck, target, Point.LOADING, False), t)
        return t

    # ------------------------------------------------------------------
    # Legs, swaps and records
    # ------------------------------------------------------------------

    def _drive(
        self,
        record: ScheduleRecord,
        truck: Truck,
        t: datetime,
        origin: Point,
        destination: Point,
        loaded: bool,
        distance_km: Optional[float] = None,
        dwell: int = 0,
    ) -> datetime:
        plan = self.planner.resolve(truck, origin, destination, loaded, distance_km, dwell)
        if plan.fallback:
            record.fallback = True
        return self._apply(truck, plan, t)

    @staticmethod
    def _apply(truck: Truck, plan: LegPlan, t: datetime) -> datetime:
        truck.consume(plan.soc_cost)
        return t + plan.duration

    def _detour_to_station(
        self,
        state: TruckState,
        record: ScheduleRecord,
        origin: Point,
        t: datetime,
        distance_km: Optional[float] = None,
        loaded: bool = False,
    ) -> datetime:
        arrival = self._drive(
            record,
            state.truck,
            t,
            origin,
            Point.CHARGING,
            loaded=loaded,
            distance_km=distance_km,
        )
        return self._swap(record, state.truck, arrival)

    def _swap(self, record: ScheduleRecord, truck: Truck, arrival: datetime) -> datetime:
        """Queue at the station and return when the truck leaves it."""
        trip_count = truck.trip_count
        self.pool.enter(truck, arrival)
        record.needs_exchange = True

        exchange = self.pool.find_exchange(truck.truck_id, trip_count)
        if exchange is None:
            log_warning(f"{truck.truck_id}: no exchange recorded for trip {trip_count}")
            return arrival + 2 * self.pool.exchange_duration

        record.exchange = exchange
        return exchange.swap_end

    def _open_record(
        self,
        state: TruckState,
        origin: Point,
        destination: Point,
        start: datetime,
        trip_count: int,
    ) -> ScheduleRecord:
        record = ScheduleRecord(
            truck_id=state.truck.truck_id,
            origin=origin,
            destination=destination,
            start_time=start,
            trip_count=trip_count,
            sequence=next(self._sequence),
        )
        state.open_record = record
        return record

    def _close_record(
        self, state: TruckState, record: ScheduleRecord, end_time: datetime
    ) -> None:
        record.close(end_time, state.truck.trip_count, record.exchange)
        self._completed.append(record)
        state.open_record = None

    def _cycle_end_estimate(self, t: datetime) -> datetime:
        speed = self.dispatch.average_speed_kmh
        loaded_km = self.geography.distance_km(Point.LOADING, Point.UNLOADING)
        back_km = self.geography.distance_km(Point.UNLOADING, Point.LOADING)
        minutes = (
            self.dispatch.loading_minutes
            + int(loaded_km / speed * 60)
            + self.dispatch.unloading_minutes
            + int(back_km / speed * 60)
        )
        return t + timedelta(minutes=minutes)
