"""Tests for the in-memory telemetry feed and CSV loading."""

from datetime import datetime, timedelta

import pandas as pd
import pytest

from swapdispatch.core_types import TelemetryRecord
from swapdispatch.tracking import InMemoryTelemetryFeed, load_telemetry_csv, records_from_dataframe

T0 = datetime(2024, 1, 1, 8, 0)


def _record(minutes, truck_id="t1", **kwargs):
    return TelemetryRecord(truck_id, timestamp=T0 + timedelta(minutes=minutes), **kwargs)


class TestInMemoryTelemetryFeed:
    def test_current_status_is_latest(self):
        feed = InMemoryTelemetryFeed([_record(5), _record(1), _record(3)])
        assert feed.get_current_status("t1").timestamp == T0 + timedelta(minutes=5)
        assert feed.get_current_status("other") is None

    def test_history_is_strictly_inside_window(self):
        feed = InMemoryTelemetryFeed([_record(m) for m in (0, 10, 20, 30, 40)])
        history = feed.get_history("t1", 30)
        assert [r.timestamp for r in history] == [
            T0 + timedelta(minutes=m) for m in (20, 30)
        ]

    def test_history_of_unknown_truck(self):
        assert InMemoryTelemetryFeed().get_history("t1", 30) == []

    def test_truck_ids_and_len(self):
        feed = InMemoryTelemetryFeed([_record(0, "b"), _record(0, "a"), _record(1, "a")])
        assert feed.truck_ids == ["a", "b"]
        assert len(feed) == 3


class TestDataFrameLoading:
    def test_records_from_dataframe(self):
        df = pd.DataFrame(
            {
                "truck_id": ["t1", "t1"],
                "timestamp": ["2024-01-01 08:00:00", "2024-01-01 08:00:30"],
                "lat": [21.0, None],
                "lon": [110.0, 110.1],
                "soc": [80, 79.5],
            }
        )
        records = records_from_dataframe(df)
        assert len(records) == 2
        assert records[0].timestamp == T0
        assert records[0].soc == 80.0
        assert records[1].lat is None
        assert records[1].odometer_km is None
        assert not records[1].is_complete

    def test_missing_required_columns(self):
        with pytest.raises(ValueError, match="timestamp"):
            records_from_dataframe(pd.DataFrame({"truck_id": ["t1"]}))

    def test_load_csv(self, tmp_path, track):
        path = tmp_path / "telemetry.csv"
        pd.DataFrame([vars(r) for r in track]).to_csv(path, index=False)
        feed = load_telemetry_csv(path)
        assert len(feed) == len(track)
        assert feed.get_current_status("t1").soc == 80.0

    def test_load_missing_csv(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_telemetry_csv(tmp_path / "missing.csv")
