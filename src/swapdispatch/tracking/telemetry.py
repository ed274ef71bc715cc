"""In-memory telemetry feed and CSV loading."""

from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from swapdispatch.core_types import TelemetryRecord
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)

TELEMETRY_COLUMNS = [
    "truck_id",
    "timestamp",
    "lat",
    "lon",
    "soc",
    "speed_kmh",
    "odometer_km",
    "cumulative_energy_kwh",
]


def _sort_key(record: TelemetryRecord) -> tuple[bool, datetime]:
    return (record.timestamp is not None, record.timestamp or datetime.min)


class InMemoryTelemetryFeed:
    """Telemetry feed over a fixed set of records."""

    def __init__(self, records: Iterable[TelemetryRecord] = ()):
        self._records: dict[str, list[TelemetryRecord]] = defaultdict(list)
        for record in records:
            self.add(record)

    def add(self, record: TelemetryRecord) -> None:
        records = self._records[record.truck_id]
        records.append(record)
        records.sort(key=_sort_key)

    @property
    def truck_ids(self) -> list[str]:
        return sorted(self._records)

    def get_current_status(self, truck_id: str) -> Optional[TelemetryRecord]:
        records = self._records.get(truck_id)
        if not records:
            return None
        return records[-1]

    def get_history(self, truck_id: str, window_minutes: int) -> list[TelemetryRecord]:
        current = self.get_current_status(truck_id)
        if current is None or current.timestamp is None:
            return []
        cutoff = current.timestamp - timedelta(minutes=window_minutes)
        return [
            r
            for r in self._records[truck_id]
            if r.timestamp is not None and cutoff < r.timestamp < current.timestamp
        ]

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def records_from_dataframe(df: pd.DataFrame) -> list[TelemetryRecord]:
    """Convert a telemetry DataFrame to records; absent columns become None."""
    missing = {"truck_id", "timestamp"} - set(df.columns)
    if missing:
        raise ValueError(f"Telemetry data missing required columns: {sorted(missing)}")

    df = df.copy()
    df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
    for column in TELEMETRY_COLUMNS:
        if column not in df.columns:
            df[column] = None

    records = []
    for row in df.itertuples(index=False):
        timestamp = None if pd.isna(row.timestamp) else row.timestamp.to_pydatetime()
        records.append(
            TelemetryRecord(
                truck_id=str(row.truck_id),
                timestamp=timestamp,
                lat=_optional_float(row.lat),
                lon=_optional_float(row.lon),
                soc=_optional_float(row.soc),
                speed_kmh=_optional_float(row.speed_kmh),
                odometer_km=_optional_float(row.odometer_km),
                cumulative_energy_kwh=_optional_float(row.cumulative_energy_kwh),
            )
        )
    return records


def load_telemetry_csv(path: str | Path) -> InMemoryTelemetryFeed:
    """Build a feed from a CSV file with one telemetry sample per row."""
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(
            f"Telemetry file not found: {csv_path}\n"
            f"Please check the file path and ensure it exists."
        )
    df = pd.read_csv(csv_path)
    records = records_from_dataframe(df)
    logger.info(f"Loaded {len(records)} telemetry records from {csv_path}")
    return InMemoryTelemetryFeed(records)
