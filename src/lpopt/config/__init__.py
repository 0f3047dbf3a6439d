"""Configuration module for lpopt parameters."""

# Structured parameter system
from .loader import DEFAULT_CONFIG_PATH
from .loader import load_yaml as load_lpopt_params
from .params import (
    IOParams,
    LpoParams,
    PresolveControl,
    RuntimeParams,
    SolverParams,
)

__all__ = [
    "PresolveControl",
    "SolverParams",
    "IOParams",
    "RuntimeParams",
    "LpoParams",
    "DEFAULT_CONFIG_PATH",
    "load_lpopt_params",
]
