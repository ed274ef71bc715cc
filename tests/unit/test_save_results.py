"""Tests for writing simulation results to disk."""

import json

import pandas as pd
import pytest

from swapdispatch.core_types import Point
from swapdispatch.dispatch import TripScheduler
from swapdispatch.utils.save_results import NumpyEncoder, save_simulation_results
from swapdispatch.utils.time_measurement import TimeRecorder


@pytest.fixture
def run(params_factory):
    params = params_factory(trucks=(("t1", 20.0, Point.LOADING), ("t2", 90.0, Point.START)))
    result = TripScheduler(params).run()
    recorder = TimeRecorder()
    with recorder.measure("global"):
        pass
    result.time_measurements = recorder.measurements
    return result, params


class TestSaveSimulationResults:
    def test_json(self, run, tmp_path):
        result, params = run
        path = save_simulation_results(result, params, tmp_path / "out.json", format="json")

        data = json.loads(path.read_text())
        assert set(data) == {
            "Summary",
            "Schedule",
            "Exchanges",
            "Trucks",
            "Batteries",
            "Time Measurements",
        }
        assert data["Summary"]["total_exchanges"] == 1
        assert data["Exchanges"][0]["position_no"] == "no1"
        assert data["Summary"]["start_time"] == "2024-01-01T08:00:00"

    def test_excel(self, run, tmp_path):
        result, params = run
        path = save_simulation_results(result, params, tmp_path / "out.xlsx", format="xlsx")

        sheets = pd.read_excel(path, sheet_name=None)
        assert {"Summary", "Schedule", "Exchanges", "Trucks", "Batteries", "Time Measurements"} <= set(sheets)
        assert len(sheets["Schedule"]) == len(result.schedule_records)

    def test_csv(self, run, tmp_path):
        result, params = run
        path = save_simulation_results(result, params, tmp_path / "out.csv", format="csv")

        assert path == tmp_path / "out_schedule.csv"
        for table in ("schedule", "exchanges", "trucks", "batteries", "summary"):
            assert (tmp_path / f"out_{table}.csv").exists()
        assert len(pd.read_csv(path)) == len(result.schedule_records)

    def test_default_filename_uses_results_dir(self, run, tmp_path):
        import dataclasses

        result, params = run
        params = dataclasses.replace(
            params, io=dataclasses.replace(params.io, results_dir=tmp_path / "nested")
        )
        path = save_simulation_results(result, params)
        assert path.parent == tmp_path / "nested"
        assert path.name.startswith("simulation_results_")
        assert path.suffix == ".json"

    def test_unknown_format(self, run, tmp_path):
        result, params = run
        with pytest.raises(ValueError, match="Unsupported output format"):
            save_simulation_results(result, params, tmp_path / "out.pdf", format="pdf")


def test_numpy_encoder():
    import numpy as np

    payload = {"i": np.int64(3), "f": np.float64(1.5), "a": np.arange(3)}
    assert json.loads(json.dumps(payload, cls=NumpyEncoder)) == {"i": 3, "f": 1.5, "a": [0, 1, 2]}
