"""Load lpopt configuration YAML files into the parameter dataclasses.

The file has three optional sections, ``presolve``, ``solver`` and ``io``.
Anything else, at the top level or inside a section, is rejected so that a
misspelt option never silently falls back to its default.
"""

from pathlib import Path
from typing import Any

import yaml

from lpopt.utils.logging import LpoLogger

from .params import IOParams, LpoParams, PresolveControl, SolverParams

logger = LpoLogger.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default_config.yaml"

# ---------------------------------------------------------------------------
# Helper parsing routines
# ---------------------------------------------------------------------------


def _pop_section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.pop(name, None) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping.")
    return dict(section)


def _reject_unknown(section: dict[str, Any], where: str) -> None:
    if section:
        unknown_keys = ", ".join(sorted(section.keys()))
        raise ValueError(f"Unknown configuration keys in {where}: {unknown_keys}")


def _parse_presolve(raw: dict[str, Any], solver_raw: dict[str, Any]) -> PresolveControl:
    defaults = PresolveControl()
    control = PresolveControl(
        tighten_bounds=raw.pop("tighten_bounds", defaults.tighten_bounds),
        remove_row_singletons=raw.pop("remove_row_singletons", defaults.remove_row_singletons),
        remove_col_singletons=raw.pop("remove_col_singletons", defaults.remove_col_singletons),
        remove_fixed_vars=raw.pop("remove_fixed_vars", defaults.remove_fixed_vars),
        max_iterations=raw.pop("max_iterations", defaults.max_iterations),
        fixed_tol=float(raw.pop("fixed_tol", defaults.fixed_tol)),
        feas_tol=float(raw.pop("feas_tol", defaults.feas_tol)),
        pivot_tol=float(raw.pop("pivot_tol", defaults.pivot_tol)),
        order=raw.pop("order", defaults.order),
        keep_rows=tuple(raw.pop("keep_rows", None) or ()),
        keep_cols=tuple(raw.pop("keep_cols", None) or ()),
        # These two live under ``solver:`` in the file.
        run_solver=solver_raw.pop("run_solver", defaults.run_solver),
        scale_rows=solver_raw.pop("scale_rows", defaults.scale_rows),
    )
    _reject_unknown(raw, "presolve")
    return control


def _parse_solver(raw: dict[str, Any]) -> SolverParams:
    time_limit = raw.pop("time_limit", None)
    gap_rel = raw.pop("gap_rel", None)
    solver = SolverParams(
        name=str(raw.pop("name", "auto")).lower(),
        time_limit=None if time_limit is None else float(time_limit),
        gap_rel=None if gap_rel is None else float(gap_rel),
        verbose=raw.pop("verbose", False),
    )
    _reject_unknown(raw, "solver")
    return solver


def _parse_io(raw: dict[str, Any]) -> IOParams:
    io_params = IOParams(
        input_source=raw.pop("input_source", "") or "",
        solution_output=raw.pop("solution_output", "") or "",
        reduced_model_output=raw.pop("reduced_model_output", "") or "",
        psop_output=raw.pop("psop_output", "") or "",
        psop_coefs_per_line=int(raw.pop("psop_coefs_per_line", -1)),
        format=raw.pop("format", "json"),
    )
    _reject_unknown(raw, "io")
    return io_params


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_yaml(path: str | Path | None = None) -> LpoParams:
    """Load a YAML configuration file into `LpoParams`.

    With *path* None the packaged ``default_config.yaml`` is used.
    """

    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(cfg_path)

    try:
        with cfg_path.open() as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Error parsing YAML configuration {cfg_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Configuration {cfg_path} must be a mapping at the top level.")

    presolve_raw = _pop_section(data, "presolve")
    solver_raw = _pop_section(data, "solver")
    io_raw = _pop_section(data, "io")

    # Any remaining unknown keys will raise an error to avoid silent mistakes.
    _reject_unknown(data, "YAML top level")

    presolve = _parse_presolve(presolve_raw, solver_raw)
    solver = _parse_solver(solver_raw)
    io_params = _parse_io(io_raw)

    logger.debug(
        "Loaded configuration – presolve: %s solver: %s io: %s",
        presolve,
        solver,
        io_params,
    )

    return LpoParams(presolve=presolve, solver=solver, io=io_params)
