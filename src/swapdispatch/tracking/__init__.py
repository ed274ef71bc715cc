"""Telemetry feeds and route segment classification."""

from .classifier import DEFAULT_CONFIDENCE, RouteClassifier
from .telemetry import InMemoryTelemetryFeed, load_telemetry_csv, records_from_dataframe

__all__ = [
    "RouteClassifier",
    "DEFAULT_CONFIDENCE",
    "InMemoryTelemetryFeed",
    "load_telemetry_csv",
    "records_from_dataframe",
]
