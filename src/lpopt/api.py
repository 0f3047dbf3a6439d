"""
API facade for lpopt - a single entry point for programmatic usage.
"""

import dataclasses
from pathlib import Path

from lpopt.config import DEFAULT_CONFIG_PATH, load_lpopt_params
from lpopt.config.params import LpoParams
from lpopt.core_types import Solution
from lpopt.interfaces import CancelToken, SolverAdapter
from lpopt.model.io import load_model
from lpopt.model.store import ModelStore
from lpopt.pipeline.controller import PipelineResult, run_pipeline
from lpopt.utils.logging import LpoLogger, ProgressTracker
from lpopt.utils.time_measurement import TimeRecorder

logger = LpoLogger.get_logger("lpopt.api")


def _resolve_params(config: str | Path | LpoParams | None) -> LpoParams:
    if isinstance(config, LpoParams):
        return config
    if config is None:
        # Search default locations
        for p in (Path.cwd() / "lpopt.yaml", DEFAULT_CONFIG_PATH):
            if p.exists():
                return load_lpopt_params(p)
        raise FileNotFoundError("No configuration file provided and no default config found.")
    config_path = Path(config)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please check the file path and ensure it exists."
        )
    return load_lpopt_params(config_path)


def _resolve_model(model: ModelStore | str | Path | None, params: LpoParams) -> ModelStore:
    if isinstance(model, ModelStore):
        return model
    source = model if model is not None else params.io.input_source
    if not source:
        raise ValueError(
            "No model given: pass a ModelStore or a model file, "
            "or set io.input_source in the configuration."
        )
    model_path = Path(source)
    if not model_path.exists():
        raise FileNotFoundError(
            f"Model file not found: {model_path}\n"
            f"Please check the file path and ensure it exists."
        )
    return load_model(model_path)


def run(
    model: ModelStore | str | Path | None = None,
    config: str | Path | LpoParams | None = None,
    *,
    adapter: SolverAdapter | None = None,
    cancel_token: CancelToken | None = None,
    show_progress: bool = False,
) -> PipelineResult:
    """
    Run the full pipeline as configured.

    Args:
        model: A `ModelStore`, a model file path, or None to use
            ``io.input_source`` from the configuration.
        config: Configuration file path, an `LpoParams` object, or None for
            ``./lpopt.yaml`` / the packaged defaults.
        adapter: Solver backend; picked from the configuration when None.
        cancel_token: Checked right before the backend is invoked.
        show_progress: Show a progress bar over the pipeline stages.

    Returns:
        PipelineResult with the solution (None if ``run_solver`` is off),
        presolve counts, the sealed elimination log and the reduced model.

    Raises:
        FileNotFoundError: If the model or config file doesn't exist
        ValueError: If the configuration or model file is invalid
        LpoError: If presolve, the solver or postsolve fails

    Example:
        >>> result = run("model.yaml", "lpopt.yaml")
        >>> print(result.solution.objective_value)
    """
    params = _resolve_params(config)
    store = _resolve_model(model, params)

    solver_params = params.solver
    if params.runtime.verbose and not solver_params.verbose:
        solver_params = dataclasses.replace(solver_params, verbose=True)

    steps = ["presolve"]
    if params.presolve.scale_rows:
        steps.append("scale")
    if params.presolve.run_solver:
        steps.extend(["solve", "postsolve"])
    steps.append("io")
    tracker = ProgressTracker(steps) if show_progress else None

    try:
        return run_pipeline(
            store,
            params.presolve,
            adapter=adapter,
            solver_params=solver_params,
            io=params.io,
            cancel_token=cancel_token,
            time_recorder=TimeRecorder(),
            tracker=tracker,
        )
    finally:
        if tracker is not None:
            tracker.close()


def solve(
    model: ModelStore | str | Path | None = None,
    config: str | Path | LpoParams | None = None,
    *,
    adapter: SolverAdapter | None = None,
    cancel_token: CancelToken | None = None,
    show_progress: bool = False,
) -> Solution:
    """Presolve, solve and postsolve; returns the solution of the original model.

    ``run_solver`` is forced on regardless of the configuration.
    """
    params = _resolve_params(config)
    params = dataclasses.replace(
        params, presolve=dataclasses.replace(params.presolve, run_solver=True)
    )
    result = run(
        model, params, adapter=adapter, cancel_token=cancel_token, show_progress=show_progress
    )
    return result.solution


def reduce(
    model: ModelStore | str | Path | None = None,
    config: str | Path | LpoParams | None = None,
    *,
    show_progress: bool = False,
) -> PipelineResult:
    """Presolve only; the backend is never invoked."""
    params = _resolve_params(config)
    params = dataclasses.replace(
        params, presolve=dataclasses.replace(params.presolve, run_solver=False)
    )
    return run(model, params, show_progress=show_progress)
