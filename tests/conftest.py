"""Shared fixtures: small parameter sets and synthetic GPS tracks."""

from datetime import datetime, timedelta

import pytest

from swapdispatch.config.params import (
    DEFAULT_POINTS,
    DispatchParams,
    SwapDispatchParams,
    TruckSpec,
)
from swapdispatch.core_types import Point, TelemetryRecord

START = datetime(2024, 1, 1, 8, 0)


def make_params(
    trucks=(("t1", 82.0, Point.LOADING),),
    total_cargo=50,
    start_time=START,
    **dispatch_overrides,
) -> SwapDispatchParams:
    specs = tuple(TruckSpec(tid, soc=soc, origin=origin) for tid, soc, origin in trucks)
    dispatch = DispatchParams(
        trucks=specs,
        start_time=start_time,
        total_cargo=total_cargo,
        cargo_per_trip=50,
        **dispatch_overrides,
    )
    return SwapDispatchParams(dispatch=dispatch)


def _along(origin: Point, target: Point, fraction: float) -> tuple[float, float]:
    lat1, lon1 = DEFAULT_POINTS[origin]
    lat2, lon2 = DEFAULT_POINTS[target]
    return lat1 + (lat2 - lat1) * fraction, lon1 + (lon2 - lon1) * fraction


def loaded_track(
    truck_id="t1",
    t0=datetime(2024, 1, 1, 7, 30),
    soc=80.0,
    final_fraction=0.55,
) -> list[TelemetryRecord]:
    """A truck idling at the loading site, then driving halfway to unloading.

    Forty-five history fixes 30 s apart plus one current fix at
    ``final_fraction`` of the straight line towards the unloading site.
    """
    return route_track(
        Point.LOADING, Point.UNLOADING, truck_id, t0, soc, final_fraction
    )


def route_track(
    origin: Point,
    target: Point,
    truck_id="t1",
    t0=datetime(2024, 1, 1, 7, 30),
    soc=80.0,
    final_fraction=0.55,
) -> list[TelemetryRecord]:
    """Like ``loaded_track`` for any pair of route points."""
    records = []
    for i in range(45):
        fraction = 0.0 if i < 10 else 0.05 + (i - 10) * (0.45 / 34)
        lat, lon = _along(origin, target, fraction)
        records.append(
            TelemetryRecord(
                truck_id=truck_id,
                timestamp=t0 + timedelta(seconds=30 * i),
                lat=lat,
                lon=lon,
                soc=soc + 1.0,
            )
        )
    lat, lon = _along(origin, target, final_fraction)
    records.append(
        TelemetryRecord(
            truck_id=truck_id,
            timestamp=t0 + timedelta(seconds=30 * 45),
            lat=lat,
            lon=lon,
            soc=soc,
        )
    )
    return records


@pytest.fixture
def track():
    return loaded_track()


@pytest.fixture
def params_factory():
    return make_params


@pytest.fixture
def track_factory():
    return loaded_track


@pytest.fixture
def route_track_factory():
    return route_track
