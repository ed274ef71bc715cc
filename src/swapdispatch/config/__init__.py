"""Configuration module for swapdispatch parameters."""

# Structured parameter system
from .loader import DEFAULT_CONFIG_PATH, load_default_params
from .loader import load_yaml as load_dispatch_params
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

__all__ = [
    "GeographyParams",
    "EnergyParams",
    "ClassifierParams",
    "StationParams",
    "TruckSpec",
    "DispatchParams",
    "IOParams",
    "RuntimeParams",
    "SwapDispatchParams",
    "DEFAULT_CONFIG_PATH",
    "load_dispatch_params",
    "load_default_params",
]
