"""
engine.py

Fixpoint driver for the presolve passes in :mod:`lpopt.presolve.reductions`.

Each iteration runs the enabled passes in a fixed order

    1. bound tightening / nonbinding-row removal
    2. row singletons
    3. column singletons
    4. fixed variables

and the loop stops as soon as an iteration changes nothing, or when
``control.max_iterations`` iterations have run.
"""

from lpopt.config.params import PresolveControl
from lpopt.core_types import PresolveCounts
from lpopt.exceptions import EmptyModel
from lpopt.model.store import ModelStore
from lpopt.presolve.psop import EliminationLog
from lpopt.presolve.reductions import (
    ReductionContext,
    remove_col_singletons,
    remove_fixed_vars,
    remove_nonbinding_rows,
    remove_row_singletons,
)
from lpopt.utils.logging import LpoLogger, log_detail

logger = LpoLogger.get_logger(__name__)


def _make_context(
    model: ModelStore, control: PresolveControl, log: EliminationLog
) -> ReductionContext:
    # resolve_* raise IndexOutOfRange for names the model does not have
    keep_rows = frozenset(model.resolve_row(name) for name in control.keep_rows)
    keep_cols = frozenset(model.resolve_col(name) for name in control.keep_cols)
    return ReductionContext(
        model=model, control=control, log=log, keep_rows=keep_rows, keep_cols=keep_cols
    )


def _enabled_passes(control: PresolveControl):
    passes = []
    if control.tighten_bounds:
        passes.append(remove_nonbinding_rows)
    if control.remove_row_singletons:
        passes.append(remove_row_singletons)
    if control.remove_col_singletons:
        passes.append(remove_col_singletons)
    if control.remove_fixed_vars:
        passes.append(remove_fixed_vars)
    return passes


def _run_loop(ctx: ReductionContext, passes, max_iterations: int) -> int:
    iterations = 0
    while iterations < max_iterations:
        iterations += 1
        ctx.iteration = iterations
        changed = False
        for reduction in passes:
            # every pass runs even after an earlier one changed the model
            changed = reduction(ctx) or changed
        logger.debug(
            f"presolve iteration {iterations}: rows={ctx.model.num_rows} "
            f"cols={ctx.model.num_cols} elems={ctx.model.num_elems} changed={changed}"
        )
        if not changed:
            break
    return iterations


def reduce_matrix(
    model: ModelStore,
    control: PresolveControl,
    log: EliminationLog | None = None,
) -> PresolveCounts:
    """Run presolve on *model* in place.

    Returns the rows, columns and elements removed.  Objective elements
    created by column-singleton substitution are reported separately as
    ``elems_created``, so ``elems_deleted`` never goes negative and
    ``remaining + deleted - created == original`` always holds.

    Raises:
        EmptyModel: the model has no rows, columns or elements.
        IndexOutOfRange: ``keep_rows``/``keep_cols`` name an unknown entity.
        InfeasibleBound: bound propagation proved the model infeasible.
    """
    if model.is_empty:
        raise EmptyModel("Model has no rows, columns or elements")
    log = log if log is not None else EliminationLog()
    ctx = _make_context(model, control, log)

    rows_before, cols_before, elems_before = model.num_rows, model.num_cols, model.num_elems
    iterations = _run_loop(ctx, _enabled_passes(control), control.max_iterations)

    counts = PresolveCounts(
        rows_deleted=rows_before - model.num_rows,
        cols_deleted=cols_before - model.num_cols,
        elems_deleted=elems_before + ctx.elems_created - model.num_elems,
        iterations=iterations,
        bounds_tightened=ctx.bounds_tightened,
        elems_created=ctx.elems_created,
    )
    log_detail(
        f"Presolve removed {counts.rows_deleted} rows, {counts.cols_deleted} columns, "
        f"{counts.elems_deleted} elements in {iterations} iterations"
    )
    if counts.elems_created:
        log_detail(f"Substitution added {counts.elems_created} objective elements")
    return counts


def tighten_bounds(
    model: ModelStore,
    control: PresolveControl,
    log: EliminationLog | None = None,
    max_iterations: int | None = None,
) -> int:
    """Run only the bound-tightening / nonbinding pass to its own fixpoint.

    Returns the number of iterations completed.
    """
    if model.is_empty:
        raise EmptyModel("Model has no rows, columns or elements")
    log = log if log is not None else EliminationLog()
    ctx = _make_context(model, control, log)
    cap = control.max_iterations if max_iterations is None else max_iterations
    return _run_loop(ctx, [remove_nonbinding_rows], cap)
