"""
save_results.py – persistence of simulation runs.

All file output of a run goes through :func:`save_simulation_results`, so the
scheduler and the station stay free of I/O. Three formats are supported:

• ``json``  – one document with the summary and every record table.
• ``xlsx``  – one sheet per table, written with openpyxl.
• ``csv``   – one file per table next to each other in the results directory.
"""

import json
from datetime import date, datetime, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

from swapdispatch.config.params import SwapDispatchParams
from swapdispatch.core_types import SimulationResult
from swapdispatch.utils.logging import DispatchLogger

logger = DispatchLogger.get_logger(__name__)

_EXTENSIONS = {"json": ".json", "xlsx": ".xlsx", "csv": ".csv"}

_SHEETS = {
    "schedule": "Schedule",
    "exchanges": "Exchanges",
    "trucks": "Trucks",
    "batteries": "Batteries",
}


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (datetime, date, pd.Timestamp)):
            return obj.isoformat()
        if isinstance(obj, timedelta):
            return obj.total_seconds()
        return super().default(obj)


def save_simulation_results(
    result: SimulationResult,
    params: SwapDispatchParams,
    filename: str | Path | None = None,
    format: str | None = None,
) -> Path:
    """Write ``result`` to disk and return the path written.

    For ``csv`` the returned path is the schedule file; the other tables are
    written beside it with their table name as suffix.
    """
    format = format or params.io.format
    if format not in _EXTENSIONS:
        raise ValueError(
            f"Unsupported output format '{format}'. Choose from: {', '.join(_EXTENSIONS)}"
        )

    if filename is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_filename = (
            params.io.results_dir / f"simulation_results_{timestamp}{_EXTENSIONS[format]}"
        )
    else:
        output_filename = Path(filename)

    output_filename.parent.mkdir(parents=True, exist_ok=True)

    data = _prepare(result)
    if format == "xlsx":
        _write_to_excel(output_filename, data)
    elif format == "csv":
        output_filename = _write_to_csv(output_filename, data)
    else:
        _write_to_json(output_filename, data)

    logger.info(f"Results saved to {output_filename}")
    return output_filename


def _prepare(result: SimulationResult) -> dict:
    tables = result.to_dataframes()
    timings = [
        {
            "span": m.span_name,
            "wall_time": m.wall_time,
            "process_user_time": m.process_user_time,
            "process_system_time": m.process_system_time,
        }
        for m in (result.time_measurements or [])
    ]
    return {
        "summary": result.summary(),
        "tables": tables,
        "time_measurements": pd.DataFrame(
            timings,
            columns=["span", "wall_time", "process_user_time", "process_system_time"],
        ),
    }


def _write_to_excel(filename: Path, data: dict) -> None:
    """Write simulation results to an Excel workbook."""
    with pd.ExcelWriter(filename, engine="openpyxl") as writer:
        pd.DataFrame(
            [(k, _excel_value(v)) for k, v in data["summary"].items()],
            columns=["Metric", "Value"],
        ).to_excel(writer, sheet_name="Summary", index=False)

        for key, sheet in _SHEETS.items():
            data["tables"][key].to_excel(writer, sheet_name=sheet, index=False)

        if not data["time_measurements"].empty:
            data["time_measurements"].to_excel(
                writer, sheet_name="Time Measurements", index=False
            )


def _excel_value(value):
    # openpyxl writes datetimes natively but not mixed-type object columns
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return value


def _write_to_json(filename: Path, data: dict) -> None:
    json_data = {
        "Summary": data["summary"],
        **{
            sheet: data["tables"][key].to_dict(orient="records")
            for key, sheet in _SHEETS.items()
        },
    }
    if not data["time_measurements"].empty:
        json_data["Time Measurements"] = data["time_measurements"].to_dict(
            orient="records"
        )

    with open(filename, "w") as f:
        json.dump(json_data, f, cls=NumpyEncoder, indent=2)


def _write_to_csv(filename: Path, data: dict) -> Path:
    stem = filename.with_suffix("")
    paths = {}
    for key in _SHEETS:
        path = stem.parent / f"{stem.name}_{key}.csv"
        data["tables"][key].to_csv(path, index=False)
        paths[key] = path

    pd.DataFrame(
        list(data["summary"].items()), columns=["Metric", "Value"]
    ).to_csv(stem.parent / f"{stem.name}_summary.csv", index=False)
    return paths["schedule"]
