"""Tests for the swapdispatch API facade."""

import dataclasses
from datetime import datetime

import pandas as pd
import pytest

from swapdispatch.api import classify, simulate
from swapdispatch.config.params import SwapDispatchParams
from swapdispatch.core_types import RouteSegment, SimulationResult
from swapdispatch.tracking.telemetry import InMemoryTelemetryFeed


def _track_frame(records):
    return pd.DataFrame([dataclasses.asdict(r) for r in records])


class TestSimulate:
    def test_simulate_with_params_object(self, params_factory):
        result = simulate(config=params_factory(), output_dir=None)

        assert isinstance(result, SimulationResult)
        assert result.total_trips == 1
        assert result.exchange_records == []
        assert result.end_time == datetime(2024, 1, 1, 9, 22)
        spans = {m.span_name for m in result.time_measurements}
        assert {"global", "load_config", "load_telemetry", "simulation"} <= spans

    def test_simulate_writes_results(self, params_factory, tmp_path):
        simulate(config=params_factory(), output_dir=tmp_path, format="json")
        written = list(tmp_path.glob("simulation_results_*.json"))
        assert len(written) == 1

    def test_invalid_format(self, params_factory):
        with pytest.raises(ValueError, match="Invalid format"):
            simulate(config=params_factory(), output_dir=None, format="pdf")

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            simulate(config=tmp_path / "nope.yaml", output_dir=None)

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("unknown_section: 1\n")
        with pytest.raises(ValueError, match="Error loading configuration"):
            simulate(config=path, output_dir=None)

    def test_telemetry_frame_missing_columns(self, params_factory):
        frame = pd.DataFrame({"lat": [21.0], "lon": [110.0]})
        with pytest.raises(ValueError, match="Invalid telemetry data"):
            simulate(config=params_factory(), telemetry=frame, output_dir=None)

    def test_missing_telemetry_file(self, params_factory, tmp_path):
        with pytest.raises(FileNotFoundError):
            simulate(
                config=params_factory(),
                telemetry=tmp_path / "missing.csv",
                output_dir=None,
            )

    def test_telemetry_feed_is_used(self, params_factory, track):
        feed = InMemoryTelemetryFeed(track)
        result = simulate(config=params_factory(), telemetry=feed, output_dir=None)

        first = result.schedule_records[0]
        assert first.truck_id == "t1"
        assert result.total_trips == 1


class TestClassify:
    def test_classify_from_dataframe(self, track):
        route = classify("t1", _track_frame(track), config=SwapDispatchParams())

        assert route.segment == RouteSegment.LOADING_TO_UNLOADING
        assert route.current_soc == 80.0

    def test_classify_from_csv(self, track, tmp_path):
        path = tmp_path / "telemetry.csv"
        _track_frame(track).to_csv(path, index=False)

        route = classify("t1", path, config=SwapDispatchParams())
        assert route.segment == RouteSegment.LOADING_TO_UNLOADING

    def test_unknown_truck(self, track):
        with pytest.raises(ValueError, match="No telemetry found"):
            classify("ghost", _track_frame(track), config=SwapDispatchParams())
