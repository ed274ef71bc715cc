"""Wall-clock and CPU time measurement for named simulation spans."""

import os
import time
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass
class TimeMeasurement:
    """Timing of a single named span."""

    span_name: str
    wall_time: float
    process_user_time: float
    process_system_time: float
    children_user_time: float
    children_system_time: float


class TimeRecorder:
    """Collect :class:`TimeMeasurement` objects for ``with`` blocks."""

    def __init__(self):
        self.measurements: list[TimeMeasurement] = []

    @contextmanager
    def measure(self, span_name: str):
        start_wall = time.perf_counter()
        start_times = os.times()
        try:
            yield
        finally:
            end_wall = time.perf_counter()
            end_times = os.times()
            self.measurements.append(
                TimeMeasurement(
                    span_name=span_name,
                    wall_time=end_wall - start_wall,
                    process_user_time=end_times.user - start_times.user,
                    process_system_time=end_times.system - start_times.system,
                    children_user_time=end_times.children_user
                    - start_times.children_user,
                    children_system_time=end_times.children_system
                    - start_times.children_system,
                )
            )

    def to_dict(self) -> dict[str, float]:
        """Map span name to wall time in seconds."""
        return {m.span_name: m.wall_time for m in self.measurements}
