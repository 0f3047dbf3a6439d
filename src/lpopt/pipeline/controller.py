"""
controller.py

Runs one presolve → solve → postsolve pass over a `ModelStore` and persists
whichever artifacts the I/O parameters ask for.

Every `LpoError` escaping a stage carries that stage's name (``presolve``,
``scale``, ``solve``, ``postsolve``, ``io``) so callers can tell where the
pipeline stopped.  Nothing is retried.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from lpopt.config.params import IOParams, PresolveControl, SolverParams
from lpopt.core_types import ModelOutline, PresolveCounts, Solution
from lpopt.exceptions import EmptyModel, LpoError
from lpopt.interfaces import CancelToken, SolverAdapter
from lpopt.model.io import save_model
from lpopt.model.store import ModelStore
from lpopt.postsolve.mapper import reconstruct
from lpopt.presolve.engine import reduce_matrix
from lpopt.presolve.psop import EliminationLog, write_psop_file
from lpopt.utils.logging import (
    LpoLogger,
    ProgressTracker,
    log_detail,
    log_progress,
    log_success,
)
from lpopt.utils.save_results import save_solution
from lpopt.utils.solver import pick_solver
from lpopt.utils.time_measurement import TimeMeasurement, TimeRecorder

logger = LpoLogger.get_logger(__name__)


@dataclass
class PipelineResult:
    """Everything one pipeline run produced.

    ``solution`` is None when the solver was not run.  ``model`` is the
    caller's store, left in its reduced state.
    """

    solution: Solution | None
    counts: PresolveCounts
    log: EliminationLog
    model: ModelStore
    outline: ModelOutline
    time_measurements: list[TimeMeasurement] = field(default_factory=list)
    artifacts: dict[str, list[Path]] = field(default_factory=dict)


@contextmanager
def _stage(name: str, recorder: TimeRecorder, tracker: ProgressTracker | None = None):
    try:
        with recorder.measure(name):
            yield
    except LpoError as exc:
        exc.with_context(name)
        if tracker is not None:
            tracker.advance(f"{name} failed", status="error")
        raise
    if tracker is not None:
        tracker.advance(f"{name} done")


def _persist(
    io: IOParams,
    log: EliminationLog,
    model: ModelStore,
    solution: Solution | None,
    counts: PresolveCounts,
    recorder: TimeRecorder,
) -> dict[str, list[Path]]:
    artifacts: dict[str, list[Path]] = {}
    if io.psop_output:
        artifacts["psop"] = [write_psop_file(log, io.psop_output, io.psop_coefs_per_line)]
    if io.reduced_model_output:
        artifacts["reduced_model"] = [save_model(model, io.reduced_model_output)]
    if io.solution_output and solution is not None:
        artifacts["solution"] = save_solution(
            solution,
            io.solution_output,
            format=io.format,
            counts=counts,
            time_measurements=recorder.measurements,
        )
    for kind, paths in artifacts.items():
        log_detail(f"{kind}: {', '.join(str(p) for p in paths)}")
    return artifacts


def run_pipeline(
    model: ModelStore,
    control: PresolveControl | None = None,
    *,
    adapter: SolverAdapter | None = None,
    solver_params: SolverParams | None = None,
    io: IOParams | None = None,
    cancel_token: CancelToken | None = None,
    time_recorder: TimeRecorder | None = None,
    tracker: ProgressTracker | None = None,
) -> PipelineResult:
    """Presolve *model* in place, optionally solve it, and map the result back.

    Args:
        model: The store to operate on; it is left reduced.
        control: Presolve control; defaults to every reduction enabled.
        adapter: Backend to use; picked from *solver_params* when None.
        solver_params: Backend selection, time limit and gap.
        io: Artifact sinks; nothing is written by default.
        cancel_token: Checked right before the backend is invoked.
        time_recorder: Receives one span per stage.
        tracker: Optional progress bar, advanced once per stage.

    Raises:
        EmptyModel: *model* has no rows, columns or elements.
        LpoError: any presolve, solver or postsolve failure, with ``stage`` set.
    """
    control = control or PresolveControl()
    solver_params = solver_params or SolverParams()
    io = io or IOParams()
    recorder = time_recorder if time_recorder is not None else TimeRecorder()

    if model.is_empty:
        raise EmptyModel("Model has no rows, columns or elements", stage="presolve")

    outline = model.outline()
    log = EliminationLog()
    solution = None

    with recorder.measure("global"):
        log_progress(
            f"Presolving {model.name or 'model'}: {model.num_rows} rows, "
            f"{model.num_cols} columns, {model.num_elems} elements"
        )
        with _stage("presolve", recorder, tracker):
            counts = reduce_matrix(model, control, log)
        log.seal()
        log_detail(f"Eliminations by reason: {log.by_reason() or 'none'}")

        if control.scale_rows:
            with _stage("scale", recorder, tracker):
                scaled = model.scale_rows()
            log_detail(f"Scaled {scaled} rows")

        if control.run_solver:
            with _stage("solve", recorder, tracker):
                backend = adapter if adapter is not None else pick_solver(solver_params)
                log_progress(f"Solving reduced model with {backend.name}")
                raw = backend.solve(model, solver_params, cancel_token)
            with _stage("postsolve", recorder, tracker):
                solution = reconstruct(model, raw, log, counts=counts, outline=outline)
            log_success(f"{raw.status}: objective {solution.objective_value:g}")
        else:
            log_success(
                f"Reduced to {model.num_rows} rows, {model.num_cols} columns "
                f"({counts.rows_deleted} rows, {counts.cols_deleted} columns removed)"
            )

        with _stage("io", recorder, tracker):
            artifacts = _persist(io, log, model, solution, counts, recorder)

    return PipelineResult(
        solution=solution,
        counts=counts,
        log=log,
        model=model,
        outline=outline,
        time_measurements=recorder.measurements,
        artifacts=artifacts,
    )
