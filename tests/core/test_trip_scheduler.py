"""Scenario tests for the trip scheduler."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from swapdispatch.config import load_default_params
from swapdispatch.core_types import Point, RouteSegment
from swapdispatch.dispatch import ResumePlan, TripScheduler
from swapdispatch.tracking import InMemoryTelemetryFeed


def at(hour, minute=0):
    return datetime(2024, 1, 1, hour, minute)


class TestSingleTruckFromLoading:
    def test_healthy_truck_completes_cycle_without_swap(self, params_factory):
        result = TripScheduler(params_factory()).run()

        assert result.exchange_records == []
        (record,) = result.schedule_records
        assert (record.origin, record.destination) == (Point.LOADING, Point.UNLOADING)
        assert record.start_time == at(8, 0)
        assert record.end_time == at(9, 22)
        assert record.trip_count == 1
        assert record.status == "normal"
        assert not record.fallback

        truck = result.trucks[0]
        assert truck.trip_count == 1
        assert truck.soc == pytest.approx(60.64)

    def test_low_truck_swaps_after_unloading(self, params_factory):
        params = params_factory(trucks=(("t1", 20.0, Point.LOADING),))
        result = TripScheduler(params).run()

        (exchange,) = result.exchange_records
        assert exchange.truck_id == "t1"
        assert exchange.position_no == "no1"
        assert exchange.soc_at_swap == pytest.approx(1.35)
        assert exchange.await_start == at(9, 11)
        assert exchange.swap_start == at(9, 11)
        assert exchange.swap_end == at(9, 16)
        assert exchange.battery_full_time == at(10, 16)
        assert exchange.trip_count == 1

        (record,) = result.schedule_records
        assert record.needs_exchange
        assert record.status == "exchange"
        assert record.exchange == exchange
        assert record.end_time == at(9, 27)
        assert result.trucks[0].soc == pytest.approx(97.28)


class TestStartLeg:
    def test_start_leg_is_its_own_record(self, params_factory):
        params = params_factory(trucks=(("t1", 82.0, Point.START),))
        result = TripScheduler(params).run()

        start, cycle = result.schedule_records
        assert (start.origin, start.destination) == (Point.START, Point.LOADING)
        assert start.trip_count == 0
        assert start.end_time == at(8, 31)
        assert cycle.start_time == at(8, 31)
        assert cycle.end_time == at(9, 53)
        assert result.trucks[0].soc == pytest.approx(53.03)

    def test_low_start_soc_swaps_before_loading(self, params_factory):
        params = params_factory(trucks=(("t1", 30.0, Point.START),))
        result = TripScheduler(params).run()

        exchange = result.exchange_records[0]
        assert exchange.await_start == at(8, 20)
        assert exchange.swap_end == at(8, 25)
        assert exchange.trip_count == 0
        assert exchange.charge_duration_minutes == 45

        start = result.schedule_records[0]
        assert start.needs_exchange
        assert start.end_time == at(8, 36)


class TestFleet:
    def test_default_fleet_delivers_all_cargo(self):
        params = load_default_params()
        result = TripScheduler(params).run()

        assert [t.trip_count for t in result.trucks] == [8] * 5
        assert result.total_trips * params.dispatch.cargo_per_trip >= params.dispatch.total_cargo
        assert all(not r.is_open for r in result.schedule_records)
        assert result.exchange_records

        swaps = sorted(result.exchange_records, key=lambda r: r.swap_start)
        for previous, current in zip(swaps, swaps[1:]):
            assert current.swap_start >= previous.swap_end
        for record in swaps:
            assert record.await_start <= record.swap_start
            assert record.battery_full_time - record.battery_available_since == timedelta(
                minutes=record.charge_duration_minutes
            )

    def test_records_per_truck_are_contiguous(self):
        result = TripScheduler(load_default_params()).run()
        by_truck = {}
        for record in result.schedule_records:
            by_truck.setdefault(record.truck_id, []).append(record)
        for records in by_truck.values():
            for previous, current in zip(records, records[1:]):
                assert current.start_time == previous.end_time
                assert current.trip_count >= previous.trip_count

    def test_socs_stay_in_range(self):
        result = TripScheduler(load_default_params()).run()
        assert all(0.0 <= t.soc <= 100.0 for t in result.trucks)
        assert all(0.0 <= r.soc_at_swap <= 100.0 for r in result.exchange_records)


class TestGuards:
    def test_run_is_single_use(self, params_factory):
        scheduler = TripScheduler(params_factory())
        scheduler.run()
        with pytest.raises(RuntimeError):
            scheduler.run()

    def test_max_rounds_stops_the_loop(self, params_factory):
        result = TripScheduler(params_factory(total_cargo=500, max_rounds=2)).run()
        assert result.trucks[0].trip_count == 2

    def test_broken_rate_store_uses_fallback(self, params_factory):
        store = MagicMock()
        store.get.side_effect = KeyError("unavailable")
        result = TripScheduler(params_factory(), rate_store=store).run()

        record = result.schedule_records[0]
        assert record.fallback
        assert record.end_time is not None
        assert result.trucks[0].trip_count == 1


class TestTelemetry:
    def test_truck_mid_route_finishes_segment(self, params_factory, track):
        feed = InMemoryTelemetryFeed(track)
        result = TripScheduler(params_factory(), telemetry=feed).run()

        (record,) = result.schedule_records
        assert (record.origin, record.destination) == (Point.LOADING, Point.UNLOADING)
        assert record.start_time == track[-1].timestamp
        assert record.trip_count == 1
        assert not record.needs_exchange
        # half a loaded leg, unloading and the full way back
        minutes = (record.end_time - record.start_time).total_seconds() / 60
        assert 45 <= minutes <= 60

    def test_low_truck_mid_route_swaps_first(self, params_factory, track_factory):
        feed = InMemoryTelemetryFeed(track_factory(soc=15.0))
        result = TripScheduler(params_factory(), telemetry=feed).run()

        (record,) = result.schedule_records
        assert record.needs_exchange
        assert len(result.exchange_records) == 1
        assert result.trucks[0].trip_count == 1

    def test_truck_past_station_drives_back_to_swap(
        self, params_factory, route_track_factory
    ):
        records = route_track_factory(
            Point.CHARGING, Point.LOADING, soc=3.0, final_fraction=0.5
        )
        current = records[-1]
        scheduler = TripScheduler(params_factory(), telemetry=InMemoryTelemetryFeed(records))
        route = scheduler.classifier.classify("t1", current, records[:-1])
        assert route.segment == RouteSegment.CHARGING_TO_LOADING
        traveled = route.progress * route.total_distance_km
        assert traveled > 1.0

        result = scheduler.run()

        exchange = result.exchange_records[0]
        assert exchange.truck_id == "t1"
        assert exchange.trip_count == 0
        # the way back to the station costs time and charge
        assert exchange.await_start == current.timestamp + timedelta(
            minutes=int(traveled / 40 * 60)
        )
        assert exchange.await_start > current.timestamp
        assert exchange.soc_at_swap < 3.0
        # the station is idle, so the swap starts on arrival
        assert exchange.swap_start == exchange.await_start
        assert exchange.wait_minutes == 0.0

    def test_resume_plan(self, params_factory, track_factory):
        scheduler = TripScheduler(params_factory())
        classifier = scheduler.classifier

        for soc, expected in (
            (80.0, ResumePlan.FINISH_AND_RETURN),
            (15.0, ResumePlan.SWAP_THEN_CONTINUE),
            (30.0, ResumePlan.FINISH_THEN_SWAP),
        ):
            records = track_factory(soc=soc)
            route = classifier.classify("t1", records[-1], records[:-1])
            scheduler.states[0].truck.soc = soc
            assert scheduler._resume_plan(scheduler.states[0].truck, route) == expected

    def test_truck_without_telemetry_uses_configured_origin(self, params_factory, track):
        feed = InMemoryTelemetryFeed(track)
        params = params_factory(trucks=(("other", 82.0, Point.START),))
        result = TripScheduler(params, telemetry=feed).run()
        assert result.schedule_records[0].origin == Point.START
