"""
Battery-swap station resource manager.

The station owns a fixed set of batteries, a FIFO queue of waiting trucks and
a single swap bay. Charging batteries become available again purely by time:
availability is computed from ``charge_complete_time`` whenever it is needed,
so no charge-complete event has to be delivered. When nothing is available the
queue is served at the earliest charge-complete time, which in a simulation is
a clock jump rather than a wait.
"""

import math
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from swapdispatch.config.params import EnergyParams, StationParams
from swapdispatch.core_types import FULL_SOC, Battery, ExchangeRecord, Truck
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)

# (upper bound in km, extra margin in percent) on top of the base safety margin.
_DISTANCE_MARGIN_BANDS = ((30.0, 0.0), (60.0, 5.0), (100.0, 10.0))
_LONG_DISTANCE_MARGIN = 15.0


class BatteryPool:
    """Swap-station batteries, waiting queue and exchange log."""

    def __init__(
        self,
        initial_time: datetime,
        params: Optional[StationParams] = None,
        energy_params: Optional[EnergyParams] = None,
    ):
        self.params = params or StationParams()
        self.energy_params = energy_params or EnergyParams()
        self.batteries = [
            Battery(slot_id=f"no{i}", charge_complete_time=initial_time)
            for i in range(1, self.params.battery_count + 1)
        ]
        self.queue: deque[Truck] = deque()
        # trucks resumed from telemetry may queue before initial_time
        self.last_swap_end: datetime = datetime.min
        self._records: list[ExchangeRecord] = []
        self._swapping = False
        self._lock = threading.RLock()

    @property
    def exchange_duration(self) -> timedelta:
        return timedelta(minutes=self.params.exchange_duration_minutes)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def available_batteries(self, at: datetime) -> list[Battery]:
        """Batteries usable at ``at``, earliest charge-complete time first."""
        available = [b for b in self.batteries if b.is_available(at)]
        # sorted() is stable, so equal times keep slot order
        return sorted(available, key=lambda b: b.charge_complete_time)

    def next_available_time(self) -> datetime:
        return min(b.charge_complete_time for b in self.batteries)

    def all_batteries_full(self, at: datetime) -> bool:
        return all(
            (not b.charging) or b.charge_complete_time <= at for b in self.batteries
        )

    def can_swap_early(self, at: datetime) -> bool:
        """A battery is free now and at most one truck is already waiting."""
        return bool(self.available_batteries(at)) and len(self.queue) <= 1

    def charge_minutes(self, soc: float, capacity_kwh: float) -> int:
        """Minutes to charge a battery from ``soc`` back to full."""
        missing_kwh = (FULL_SOC - soc) * round(capacity_kwh / 100.0, 2)
        return math.ceil(round(missing_kwh / self.params.charge_rate_kwh_per_min, 2))

    def refresh(self, at: datetime) -> None:
        """Report batteries whose charge finished by ``at`` as full."""
        with self._lock:
            for battery in self.batteries:
                battery.refresh(at)

    def min_swap_soc(
        self, distance_km: float, capacity_kwh: Optional[float] = None
    ) -> float:
        """Lowest SOC at which a truck may still skip a swap before ``distance_km``."""
        if capacity_kwh is None:
            capacity_kwh = self.energy_params.default_capacity_kwh
        required = round(
            distance_km
            * self.energy_params.base_consumption_kwh_per_km
            / capacity_kwh
            * 100.0,
            2,
        )
        margin = self.energy_params.safety_margin_percent + _LONG_DISTANCE_MARGIN
        for upper_km, extra in _DISTANCE_MARGIN_BANDS:
            if distance_km <= upper_km:
                margin = self.energy_params.safety_margin_percent + extra
                break
        return min(FULL_SOC, required + margin)

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    def enter(self, truck: Truck, time: datetime) -> None:
        """Queue a truck for a swap and serve the queue if the bay is idle."""
        with self._lock:
            truck.await_start = time
            self.queue.append(truck)
            logger.debug(
                f"Truck {truck.truck_id} queued at {time:%H:%M} (soc {truck.soc:.2f}%), "
                f"queue length {len(self.queue)}"
            )
            if not self._swapping:
                self.process_queue(time)

    def process_queue(self, time: datetime) -> None:
        """Serve waiting trucks in FIFO order, one swap at a time."""
        with self._lock:
            if self._swapping:
                return
            self._swapping = True
            try:
                while self.queue:
                    available = self.available_batteries(time)
                    if not available:
                        time = max(time, self.next_available_time())
                        available = self.available_batteries(time)
                    if not available:
                        logger.debug(f"No battery available at {time:%H:%M}")
                        break
                    time = self._swap(self.queue.popleft(), available[0], time)
            finally:
                self._swapping = False

    def _swap(self, truck: Truck, battery: Battery, time: datetime) -> datetime:
        battery_ready = battery.charge_complete_time if battery.charging else time
        swap_start = max(time, self.last_swap_end, battery_ready)
        swap_end = swap_start + self.exchange_duration
        minutes = self.charge_minutes(truck.soc, truck.capacity_kwh)
        full_time = swap_end + timedelta(minutes=minutes)
        await_start = truck.await_start or time

        record = ExchangeRecord(
            truck_id=truck.truck_id,
            soc_at_swap=truck.soc,
            capacity_kwh=truck.capacity_kwh,
            await_start=await_start,
            swap_start=swap_start,
            swap_end=swap_end,
            battery_available_since=swap_end,
            charge_duration_minutes=minutes,
            battery_full_time=full_time,
            position_no=battery.slot_id,
            trip_count=truck.trip_count,
        )
        self._records.append(record)

        battery.start_charging(truck.soc, swap_end, minutes)
        truck.recharge()
        truck.await_start = None
        self.last_swap_end = swap_end

        logger.debug(
            f"Swapped truck {truck.truck_id} at {battery.slot_id} "
            f"{swap_start:%H:%M}-{swap_end:%H:%M}, battery full at {full_time:%H:%M}"
        )
        return swap_end

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    @property
    def exchange_records(self) -> list[ExchangeRecord]:
        """Exchange log sorted by await start, timestamps clamped into order."""
        return sorted(
            (self._ordered(r) for r in self._records), key=lambda r: r.await_start
        )

    @staticmethod
    def _ordered(record: ExchangeRecord) -> ExchangeRecord:
        swap_start = max(record.swap_start, record.await_start)
        available_since = max(record.battery_available_since, swap_start)
        full_time = max(
            record.battery_full_time,
            available_since + timedelta(minutes=record.charge_duration_minutes),
        )
        if (swap_start, available_since, full_time) == (
            record.swap_start,
            record.battery_available_since,
            record.battery_full_time,
        ):
            return record
        logger.debug(f"Clamped exchange record timestamps for {record.truck_id}")
        return replace(
            record,
            swap_start=swap_start,
            swap_end=max(record.swap_end, swap_start),
            battery_available_since=available_since,
            battery_full_time=full_time,
        )

    def find_exchange(self, truck_id: str, trip_count: int) -> Optional[ExchangeRecord]:
        """Latest exchange of ``truck_id`` made at ``trip_count``."""
        for record in reversed(self._records):
            if record.truck_id == truck_id and record.trip_count == trip_count:
                return self._ordered(record)
        return None

    def __len__(self) -> int:
        return len(self.batteries)
