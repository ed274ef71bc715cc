from __future__ import annotations

"""Load swapdispatch YAML configuration files into the parameter dataclasses.

Every section is optional and falls back to the dataclass defaults. Unknown
keys, at the top level or inside a section, raise ``ValueError`` so typos do
not silently change a simulation.
"""

from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from swapdispatch.core_types import Point
from swapdispatch.utils.logging import DispatchLogger

from .params import (
    ClassifierParams,
    DispatchParams,
    EnergyParams,
    GeographyParams,
    IOParams,
    RuntimeParams,
    StationParams,
    SwapDispatchParams,
    TruckSpec,
)

logger = DispatchLogger.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

# ---------------------------------------------------------------------------
# Helper parsing routines
# ---------------------------------------------------------------------------


def _parse_point(raw: Any) -> Point:
    try:
        return Point(str(raw).upper())
    except ValueError as exc:
        valid = ", ".join(p.value for p in Point)
        raise ValueError(f"Unknown route point '{raw}'. Expected one of: {valid}") from exc


def _check_unknown(section: str, raw: Dict[str, Any]) -> None:
    if raw:
        unknown_keys = ", ".join(sorted(raw.keys()))
        raise ValueError(f"Unknown keys in '{section}' section: {unknown_keys}")


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    raw = data.pop(name, None) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping.")
    return dict(raw)


def _parse_geography(raw: Dict[str, Any]) -> GeographyParams:
    kwargs: Dict[str, Any] = {}

    if "points" in raw:
        points: Dict[Point, Tuple[float, float]] = {}
        for name, coords in raw.pop("points").items():
            if len(coords) != 2:
                raise ValueError(f"Point '{name}' needs [lat, lon] coordinates.")
            points[_parse_point(name)] = (float(coords[0]), float(coords[1]))
        kwargs["points"] = points

    if "distances" in raw:
        distances: Dict[Tuple[Point, Point], float] = {}
        for entry in raw.pop("distances"):
            entry = dict(entry)
            try:
                origin = _parse_point(entry.pop("from"))
                destination = _parse_point(entry.pop("to"))
                km = float(entry.pop("km"))
            except KeyError as exc:
                raise ValueError(
                    f"Distance entries need 'from', 'to' and 'km' keys (missing {exc})."
                ) from exc
            _check_unknown("geography.distances", entry)
            distances[(origin, destination)] = km
        kwargs["distances"] = distances

    if "location_threshold_m" in raw:
        kwargs["location_threshold_m"] = float(raw.pop("location_threshold_m"))

    _check_unknown("geography", raw)
    return GeographyParams(**kwargs)


def _parse_start_time(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, time(8, 0))
    if isinstance(raw, int) and not isinstance(raw, bool):
        # YAML 1.1 reads an unquoted 8:00 as the sexagesimal integer 480.
        hours, minutes = divmod(raw, 60)
        return datetime.combine(datetime.now().date(), time(hours % 24, minutes))
    text = str(raw)
    try:
        # Bare "HH:MM" means that time of the current day.
        parsed_time = time.fromisoformat(text)
        return datetime.combine(datetime.now().date(), parsed_time)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid dispatch.start_time '{raw}'.") from exc


def _parse_trucks(raw_trucks: list[Dict[str, Any]]) -> Tuple[TruckSpec, ...]:
    trucks = []
    for details in raw_trucks:
        details = dict(details)
        try:
            truck_id = str(details.pop("id"))
        except KeyError as exc:
            raise ValueError("Every truck entry needs an 'id'.") from exc
        spec_kwargs: Dict[str, Any] = {"truck_id": truck_id}
        if "soc" in details:
            spec_kwargs["soc"] = float(details.pop("soc"))
        if "capacity_kwh" in details:
            spec_kwargs["capacity_kwh"] = float(details.pop("capacity_kwh"))
        if "origin" in details:
            spec_kwargs["origin"] = _parse_point(details.pop("origin"))
        _check_unknown(f"dispatch.trucks[{truck_id}]", details)
        trucks.append(TruckSpec(**spec_kwargs))
    return tuple(trucks)


def _parse_dispatch(raw: Dict[str, Any]) -> DispatchParams:
    kwargs: Dict[str, Any] = {}
    if "trucks" in raw:
        kwargs["trucks"] = _parse_trucks(raw.pop("trucks") or [])
    if "truck_count" in raw:
        if "trucks" in kwargs:
            raise ValueError("Use either dispatch.trucks or dispatch.truck_count, not both.")
        count = int(raw.pop("truck_count"))
        soc = float(raw.pop("initial_soc", 100.0))
        kwargs["trucks"] = tuple(
            TruckSpec(f"truck-{i}", soc=soc) for i in range(1, count + 1)
        )
    if "start_time" in raw:
        kwargs["start_time"] = _parse_start_time(raw.pop("start_time"))

    for key in (
        "average_speed_kmh",
        "loading_minutes",
        "unloading_minutes",
        "total_cargo",
        "cargo_per_trip",
        "swap_soc_limit",
        "opportunistic_swaps",
        "max_rounds",
    ):
        if key in raw:
            kwargs[key] = raw.pop(key)

    _check_unknown("dispatch", raw)
    return DispatchParams(**kwargs)


def _parse_flat(section: str, raw: Dict[str, Any], cls: type) -> Any:
    """Build a flat section dataclass, rejecting keys it does not declare."""
    allowed = set(cls.__dataclass_fields__)
    unknown = {k: v for k, v in raw.items() if k not in allowed}
    _check_unknown(section, unknown)
    return cls(**raw)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_yaml(path: str | Path) -> SwapDispatchParams:
    """Load a YAML configuration file into `SwapDispatchParams`."""

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(cfg_path)

    try:
        with cfg_path.open() as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Error parsing YAML configuration {cfg_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Configuration {cfg_path} must be a YAML mapping.")

    geography = _parse_geography(_section(data, "geography"))
    energy = _parse_flat("energy", _section(data, "energy"), EnergyParams)
    classifier = _parse_flat("classifier", _section(data, "classifier"), ClassifierParams)
    station = _parse_flat("station", _section(data, "station"), StationParams)
    dispatch = _parse_dispatch(_section(data, "dispatch"))

    io_raw = _section(data, "io")
    io_params = IOParams(
        results_dir=Path(io_raw.pop("results_dir", "results")),
        format=io_raw.pop("format", "json"),
        telemetry_file=io_raw.pop("telemetry_file", None),
    )
    _check_unknown("io", io_raw)

    # Any remaining unknown keys will raise an error to avoid silent mistakes.
    if data:
        unknown_keys = ", ".join(sorted(data.keys()))
        raise ValueError(f"Unknown top-level configuration keys in YAML: {unknown_keys}")

    logger.debug(
        "Loaded configuration – station: %s dispatch: %d trucks, io: %s",
        station,
        len(dispatch.trucks),
        io_params,
    )

    return SwapDispatchParams(
        geography=geography,
        energy=energy,
        classifier=classifier,
        station=station,
        dispatch=dispatch,
        io=io_params,
        runtime=RuntimeParams(),
    )


def load_default_params() -> SwapDispatchParams:
    """Load the configuration shipped with the package."""
    return load_yaml(DEFAULT_CONFIG_PATH)
