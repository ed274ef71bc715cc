"""
Command-line interface for swapdispatch using Typer.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from swapdispatch import __version__
from swapdispatch.api import classify as api_classify
from swapdispatch.api import simulate as api_simulate
from swapdispatch.config import load_dispatch_params
from swapdispatch.utils.logging import (
    LogLevel,
    log_error,
    log_success,
    setup_logging,
)

app = typer.Typer(
    help="swapdispatch: trip scheduling for a battery-swap electric truck fleet",
    add_completion=False,
)
console = Console()


@app.command()
def simulate(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration YAML file"
    ),
    telemetry: Path | None = typer.Option(
        None, "--telemetry", "-t", help="Path to telemetry CSV file"
    ),
    output: Path = typer.Option("results", "--output", "-o", help="Output directory"),
    format: str = typer.Option(
        "json", "--format", "-f", help="Output format (json, xlsx, csv)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Minimal output (errors only)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Simulate the fleet until all cargo is delivered.

    Trucks shuttle between the loading and unloading sites and detour to the
    swap station when their battery would not last another cycle. The
    exchange and schedule records are written to the output directory.
    """
    _setup_logging_from_flags(verbose, quiet, debug)

    if config and not config.exists():
        log_error(f"Config file not found: {config}")
        raise typer.Exit(1)

    if telemetry and not telemetry.exists():
        log_error(f"Telemetry file not found: {telemetry}")
        raise typer.Exit(1)

    if format not in ["json", "xlsx", "csv"]:
        log_error("Invalid format. Choose 'json', 'xlsx', or 'csv'")
        raise typer.Exit(1)

    if config is not None:
        try:
            load_dispatch_params(config)
        except ValueError as e:
            log_error(str(e))
            raise typer.Exit(1)

    try:
        result = api_simulate(
            config=str(config) if config else None,
            telemetry=str(telemetry) if telemetry else None,
            output_dir=str(output),
            format=format,
            verbose=verbose,
        )
    except (FileNotFoundError, ValueError) as e:
        log_error(str(e))
        raise typer.Exit(1)

    summary = result.summary()
    table = Table(title="Simulation Results", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Trucks", str(summary["trucks"]))
    table.add_row("Trips", str(summary["total_trips"]))
    table.add_row("Battery Swaps", str(summary["total_exchanges"]))
    table.add_row("Average Wait", f"{summary['average_wait_minutes']:.1f} min")
    table.add_row("Max Wait", f"{summary['max_wait_minutes']:.1f} min")
    table.add_row("Fallback Legs", str(summary["fallback_records"]))
    table.add_row("Start", f"{summary['start_time']:%Y-%m-%d %H:%M}")
    table.add_row("End", f"{summary['end_time']:%Y-%m-%d %H:%M}")

    if not quiet:
        console.print(table)
    log_success(f"Results saved to {output}/")


@app.command()
def classify(
    truck_id: str = typer.Argument(..., help="Truck to classify"),
    telemetry: Path = typer.Option(
        ..., "--telemetry", "-t", help="Path to telemetry CSV file"
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration YAML file"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Show which route segment a truck is on according to its telemetry.
    """
    _setup_logging_from_flags(verbose, False, debug)

    if not telemetry.exists():
        log_error(f"Telemetry file not found: {telemetry}")
        raise typer.Exit(1)

    try:
        route = api_classify(truck_id, telemetry, str(config) if config else None)
    except (FileNotFoundError, ValueError) as e:
        log_error(str(e))
        raise typer.Exit(1)

    table = Table(title=f"Route of {truck_id}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Segment", route.segment.value)
    table.add_row("From", route.start_point.value)
    table.add_row("To", route.target_point.value)
    table.add_row("Remaining", f"{route.remaining_distance_km:.2f} km")
    table.add_row("Progress", f"{route.progress:.0%}")
    table.add_row("Confidence", f"{route.confidence:.2f}")
    if route.current_soc is not None:
        table.add_row("SOC", f"{route.current_soc:.1f}%")
    console.print(table)


@app.command()
def version() -> None:
    """
    Show the swapdispatch version.
    """
    console.print(f"swapdispatch version {__version__}")


def _setup_logging_from_flags(
    verbose: bool = False, quiet: bool = False, debug: bool = False
):
    """Setup logging based on CLI flags or environment variable."""
    level_from_flags: LogLevel | None = None
    if debug:
        level_from_flags = LogLevel.DEBUG
    elif verbose:
        level_from_flags = LogLevel.VERBOSE
    elif quiet:
        level_from_flags = LogLevel.QUIET

    if level_from_flags is not None:
        setup_logging(level_from_flags)
    else:
        setup_logging()


if __name__ == "__main__":
    app()
