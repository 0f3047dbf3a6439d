"""
core.py

Translates a (reduced) `ModelStore` into a PuLP problem, hands it to a PuLP
solver and reads the raw per-row/per-column results back.

Problem layout
--------------
* one variable ``x{pos}`` per column, ``pos`` being the column's dense position
  from :meth:`ModelStore.index_maps`; integer and binary columns become
  ``Integer`` variables with their bounds.
* one constraint ``r{pos}`` per constraint row; a row bounded on both sides
  with distinct ends is posted as ``r{pos}_lo`` / ``r{pos}_hi`` and the two
  duals are summed when reading back.
* free rows are not posted; empty rows are checked for feasibility instead.
* the objective constant accumulated by presolve is part of the PuLP
  objective, so the reported objective is the full objective value.

Everything returned is in the model's (possibly scaled) space, keyed by
entity name; unscaling is the postsolve mapper's job.
"""

import math
import time

import pulp

from lpopt.core_types import RawColResult, RawResult, RawRowResult, ObjSense, Sense
from lpopt.exceptions import SolveCancelled, SolverFailed, SolverUnavailable
from lpopt.interfaces import CancelToken
from lpopt.model.store import ModelStore, row_bounds
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)


def _pulp_bound(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _check_empty_row(model: ModelStore, rid: int, feas_tol: float = 1e-9) -> None:
    row = model.rows[rid]
    lo, hi = row_bounds(row)
    if lo > feas_tol or hi < -feas_tol:
        raise SolverFailed(
            f"Empty row requires activity in [{lo:g}, {hi:g}]",
            status="Infeasible",
            entity=row.name,
        )


def build_problem(
    model: ModelStore,
) -> tuple[pulp.LpProblem, dict[int, pulp.LpVariable], dict[int, list[str]]]:
    """Create the PuLP problem for *model*.

    Returns the problem, column id -> variable, and row id -> names of the
    PuLP constraints posted for that row.
    """
    sense = pulp.LpMaximize if model.sense is ObjSense.MAX else pulp.LpMinimize
    prob = pulp.LpProblem("lpopt_model", sense)
    row_pos, col_pos = model.index_maps()

    x_vars: dict[int, pulp.LpVariable] = {}
    for cid, pos in col_pos.items():
        col = model.cols[cid]
        x_vars[cid] = pulp.LpVariable(
            f"x{pos}",
            lowBound=_pulp_bound(col.lower),
            upBound=_pulp_bound(col.upper),
            cat=pulp.LpInteger if col.kind.is_integral else pulp.LpContinuous,
        )

    objective = pulp.LpAffineExpression(
        [(x_vars[cid], model.objective_coef(cid)) for cid in col_pos if model.objective_coef(cid)],
        constant=model.obj_const,
    )
    prob.setObjective(objective)

    con_names: dict[int, list[str]] = {}
    for rid, pos in row_pos.items():
        row = model.rows[rid]
        entries = model.row_entries(rid)
        if row.sense is Sense.FREE:
            continue
        if not entries:
            _check_empty_row(model, rid)
            continue
        expr = pulp.LpAffineExpression([(x_vars[cid], a) for cid, a in entries])
        lo, hi = row_bounds(row)
        if lo == hi:
            names = [f"r{pos}"]
            prob.addConstraint(expr == lo, name=names[0])
        elif math.isfinite(lo) and math.isfinite(hi):
            names = [f"r{pos}_lo", f"r{pos}_hi"]
            prob.addConstraint(expr >= lo, name=names[0])
            prob.addConstraint(expr <= hi, name=names[1])
        elif math.isfinite(hi):
            names = [f"r{pos}"]
            prob.addConstraint(expr <= hi, name=names[0])
        else:
            names = [f"r{pos}"]
            prob.addConstraint(expr >= lo, name=names[0])
        con_names[rid] = names

    return prob, x_vars, con_names


def _column_value(var: pulp.LpVariable, lower: float, upper: float) -> float:
    if var.varValue is not None:
        return float(var.varValue)
    return min(max(0.0, lower), upper)


def extract_result(
    model: ModelStore,
    prob: pulp.LpProblem,
    x_vars: dict[int, pulp.LpVariable],
    con_names: dict[int, list[str]],
    solver_name: str = "",
    runtime_sec: float = 0.0,
) -> RawResult:
    """Read values, duals and reduced costs back from a solved problem."""
    values: dict[int, float] = {}
    cols: dict[str, RawColResult] = {}
    for cid, var in x_vars.items():
        col = model.cols[cid]
        values[cid] = _column_value(var, col.lower, col.upper)
        cols[col.name] = RawColResult(value=values[cid], reduced_cost=float(var.dj or 0.0))

    rows: dict[str, RawRowResult] = {}
    for rid in model.constraint_ids():
        row = model.rows[rid]
        activity = sum(a * values[cid] for cid, a in model.row_entries(rid))
        pi = sum(float(prob.constraints[n].pi or 0.0) for n in con_names.get(rid, []))
        rows[row.name] = RawRowResult(activity=activity, slack=row.rhs - activity, pi=pi)

    objective = pulp.value(prob.objective)
    if objective is None:
        objective = model.obj_const + sum(
            model.objective_coef(cid) * value for cid, value in values.items()
        )

    return RawResult(
        objective=float(objective),
        status=pulp.LpStatus[prob.status],
        rows=rows,
        cols=cols,
        solver_name=solver_name,
        runtime_sec=runtime_sec,
    )


def result_without_columns(model: ModelStore) -> RawResult:
    """Result for a model presolve emptied of columns: just the objective constant."""
    rows = {}
    for rid in model.constraint_ids():
        row = model.rows[rid]
        if row.sense is not Sense.FREE:
            _check_empty_row(model, rid)
        rows[row.name] = RawRowResult(activity=0.0, slack=row.rhs, pi=0.0)
    return RawResult(
        objective=model.obj_const,
        status="Optimal",
        rows=rows,
        cols={},
        solver_name="none",
    )


def solve_model(
    model: ModelStore,
    solver: pulp.LpSolver,
    cancel_token: CancelToken | None = None,
    solver_name: str = "",
) -> RawResult:
    """Build, solve and read back *model* with a configured PuLP solver.

    Raises:
        SolveCancelled: *cancel_token* was cancelled; the solver is not called.
        SolverUnavailable: PuLP could not run the backend.
        SolverFailed: the solver did not report an optimal solution.
    """
    prob, x_vars, con_names = build_problem(model)
    logger.debug(
        f"Built PuLP problem with {len(x_vars)} variables and "
        f"{len(prob.constraints)} constraints"
    )

    if cancel_token is not None and cancel_token.cancelled:
        raise SolveCancelled()

    start_time = time.time()
    try:
        prob.solve(solver)
    except pulp.PulpSolverError as exc:
        # missing binary, licence failure
        raise SolverUnavailable(
            f"{solver_name or 'Solver'} could not be run: {exc}", entity=solver_name or None
        ) from exc
    runtime = time.time() - start_time

    status_name = pulp.LpStatus[prob.status]
    if prob.status != pulp.LpStatusOptimal:
        raise SolverFailed(f"Optimization failed with status: {status_name}", status=status_name)

    logger.debug(f"{solver_name or 'solver'} finished in {runtime:.2f}s with status {status_name}")
    return extract_result(model, prob, x_vars, con_names, solver_name, runtime)
