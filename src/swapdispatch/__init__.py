"""swapdispatch: trip scheduling for a battery-swap electric truck fleet."""

__version__ = "0.1.0"

# Main API
from .api import classify, simulate

# Core types
from .config.params import SwapDispatchParams
from .core_types import (
    Battery,
    ExchangeRecord,
    Point,
    RouteInfo,
    RouteSegment,
    ScheduleRecord,
    SimulationResult,
    TelemetryRecord,
    Truck,
)

# Stage components (for advanced users)
from .dispatch.scheduler import TripScheduler
from .energy.model import EnergyModel
from .geography import StaticGeography
from .interfaces import ConsumptionRateStore, GeographyTable, TelemetryFeed
from .station.battery_pool import BatteryPool
from .tracking.classifier import RouteClassifier
from .tracking.telemetry import InMemoryTelemetryFeed, load_telemetry_csv

__all__ = [
    # Version
    "__version__",
    # Main API
    "simulate",
    "classify",
    # Components
    "TripScheduler",
    "EnergyModel",
    "StaticGeography",
    "BatteryPool",
    "RouteClassifier",
    "InMemoryTelemetryFeed",
    "load_telemetry_csv",
    # Types
    "SwapDispatchParams",
    "Battery",
    "ExchangeRecord",
    "Point",
    "RouteInfo",
    "RouteSegment",
    "ScheduleRecord",
    "SimulationResult",
    "TelemetryRecord",
    "Truck",
    # Protocols
    "TelemetryFeed",
    "ConsumptionRateStore",
    "GeographyTable",
]
