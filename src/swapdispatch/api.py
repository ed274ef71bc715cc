"""
API facade for swapdispatch - provides a single entry point for programmatic usage.
"""

import dataclasses
from pathlib import Path

import pandas as pd

from swapdispatch.config import load_dispatch_params
from swapdispatch.config.loader import DEFAULT_CONFIG_PATH
from swapdispatch.config.params import SwapDispatchParams
from swapdispatch.core_types import RouteInfo, SimulationResult
from swapdispatch.dispatch.scheduler import TripScheduler
from swapdispatch.geography import StaticGeography
from swapdispatch.interfaces import TelemetryFeed
from swapdispatch.tracking.classifier import RouteClassifier
from swapdispatch.tracking.telemetry import (
    InMemoryTelemetryFeed,
    load_telemetry_csv,
    records_from_dataframe,
)
from swapdispatch.utils.logging import DispatchLogger, ProgressTracker, log_warning
from swapdispatch.utils.save_results import save_simulation_results
from swapdispatch.utils.time_measurement import TimeRecorder

logger = DispatchLogger.get_logger("swapdispatch.api")

TelemetrySource = str | Path | pd.DataFrame | TelemetryFeed


def _load_params(config: str | Path | SwapDispatchParams | None) -> SwapDispatchParams:
    if isinstance(config, SwapDispatchParams):
        return config

    if config is None:
        for candidate in (Path.cwd() / "swapdispatch.yaml", DEFAULT_CONFIG_PATH):
            if candidate.exists():
                return load_dispatch_params(candidate)
        raise FileNotFoundError(
            "No configuration file provided and no default config found."
        )

    config_path = Path(config)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please check the file path and ensure it exists."
        )
    try:
        return load_dispatch_params(config_path)
    except ValueError as e:
        raise ValueError(
            f"Error loading configuration from {config_path}:\n{e!s}\n"
            f"Please check the YAML syntax and required fields."
        ) from e


def _load_telemetry(telemetry: TelemetrySource | None) -> TelemetryFeed | None:
    if telemetry is None:
        return None
    if isinstance(telemetry, pd.DataFrame):
        try:
            return InMemoryTelemetryFeed(records_from_dataframe(telemetry))
        except ValueError as e:
            raise ValueError(
                f"Invalid telemetry data:\n{e!s}\n"
                f"Required columns are: truck_id, timestamp"
            ) from e
    if isinstance(telemetry, (str, Path)):
        path = Path(telemetry)
        try:
            return load_telemetry_csv(path)
        except FileNotFoundError:
            raise
        except (ValueError, pd.errors.ParserError) as e:
            raise ValueError(
                f"Error loading telemetry from {path}:\n{e!s}\n"
                f"Please check the file format and ensure it contains telemetry samples."
            ) from e
    return telemetry


def simulate(
    config: str | Path | SwapDispatchParams | None = None,
    telemetry: TelemetrySource | None = None,
    output_dir: str | Path | None = "results",
    format: str = "json",
    verbose: bool = False,
) -> SimulationResult:
    """
    Simulate the fleet until all cargo is delivered.

    Args:
        config: Configuration parameters - can be:
            - Path to YAML configuration file
            - SwapDispatchParams object
            - None (uses default configuration)
        telemetry: Live truck positions - a CSV path, a DataFrame or any
            object with ``get_current_status`` and ``get_history``. When
            omitted, ``io.telemetry_file`` of the configuration is used; with
            neither, every truck departs from its configured origin.
        output_dir: Directory to save results, ``None`` to skip saving
        format: Output format - "json", "xlsx" or "csv" (default: "json")
        verbose: Enable verbose logging (default: False)

    Returns:
        SimulationResult: exchange records, schedule records and final state

    Raises:
        FileNotFoundError: If the config or telemetry file doesn't exist
        ValueError: If the configuration or telemetry data is invalid

    Example:
        >>> result = simulate("config.yaml", telemetry="telemetry.csv")
        >>> print(result.summary()["total_exchanges"])
    """
    if format not in ("json", "xlsx", "csv"):
        raise ValueError(f"Invalid format '{format}'. Choose 'json', 'xlsx' or 'csv'.")

    time_recorder = TimeRecorder()
    tracker = ProgressTracker(["Load configuration", "Load telemetry", "Simulate"])

    try:
        with time_recorder.measure("global"):
            with time_recorder.measure("load_config"):
                params = _load_params(config)
            tracker.advance("Configuration loaded")

            if telemetry is None and params.io.telemetry_file:
                telemetry = params.io.telemetry_file
            with time_recorder.measure("load_telemetry"):
                feed = _load_telemetry(telemetry)
            tracker.advance(
                "Telemetry loaded" if feed is not None else "No telemetry, using defaults"
            )

            if output_dir:
                params = dataclasses.replace(
                    params,
                    io=dataclasses.replace(
                        params.io, results_dir=Path(output_dir), format=format
                    ),
                )
            if verbose:
                params = dataclasses.replace(
                    params, runtime=dataclasses.replace(params.runtime, verbose=True)
                )

            with time_recorder.measure("simulation"):
                result = TripScheduler(params, telemetry=feed).run()
            tracker.advance(
                f"{result.total_trips} trips, {len(result.exchange_records)} swaps"
            )
    finally:
        tracker.close()

    result.time_measurements = time_recorder.measurements

    if output_dir:
        try:
            save_simulation_results(result, params, format=format)
        except OSError as e:
            log_warning(f"Failed to save results: {e!s}")

    return result


def classify(
    truck_id: str,
    telemetry: TelemetrySource,
    config: str | Path | SwapDispatchParams | None = None,
) -> RouteInfo:
    """
    Infer the route segment a truck is currently on.

    Raises:
        FileNotFoundError: If the config or telemetry file doesn't exist
        ValueError: If ``truck_id`` has no telemetry
    """
    params = _load_params(config)
    feed = _load_telemetry(telemetry)
    if feed is None or feed.get_current_status(truck_id) is None:
        raise ValueError(
            f"No telemetry found for truck '{truck_id}'.\n"
            f"Please check the truck id and the telemetry source."
        )

    classifier = RouteClassifier(StaticGeography(params.geography), params.classifier)
    return classifier.classify_truck(feed, truck_id)
