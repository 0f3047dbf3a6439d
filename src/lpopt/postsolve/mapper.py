"""
mapper.py

Maps a raw solver result for the reduced model back onto every row and
column of the original model.

Surviving entities are unscaled directly (``x = x'/s``, ``d = d'*s``,
``y = y'*r``, ``slack = slack'/r``).  Eliminated entities are rebuilt by
walking the elimination log backwards, so that by the time a record is
undone every entity it refers to already has a value:

* fixed-variable     value = fixed value, reported reduced cost 0 unless a
                     bound-change transfer charges it; the implied reduced
                     cost ``c - sum(a*y)`` is kept for a dual transfer by an
                     earlier row singleton or bound change.  Referencing
                     rows get their rhs back.
* column-singleton   ``x_j = (b - sum_k a_ik x_k) / a_ij``; the row's dual
                     becomes ``c_j/a_ij + y`` and the column's reduced cost
                     ``-a_ij * y``; the row is restored to ``= b``.
* row-singleton      slack from the column value; if the column sits on a
                     bound this row created, its reduced cost moves to the
                     row (``y = d/a``), otherwise the dual is 0.
* nonbinding         slack recomputed, dual 0.

Bound changes are undone in the same backward walk.  A column sitting on a
bound that a row derived hands its reduced cost to that row (``y += d/a``)
and every other column of the row is charged ``a * (d/a)``, which keeps
``c - A'y = d`` for the original model.

The whole walk happens in true (unscaled) space; the elimination records are
stored that way.
"""

from dataclasses import dataclass

from lpopt.core_types import (
    ConstraintSolution,
    ModelOutline,
    PresolveCounts,
    RawResult,
    Solution,
    VariableSolution,
)
from lpopt.exceptions import InconsistentLog
from lpopt.model.store import ModelStore
from lpopt.presolve.psop import (
    BoundChange,
    EliminationLog,
    EliminationRecord,
    EntityKind,
    ReasonCode,
)
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)

# relative tolerance for "column sits on this bound"
BOUND_TOL = 1e-6


@dataclass
class _RowState:
    type: str
    rhs: float
    range: float | None
    scale: float
    slack: float = 0.0
    dual: float = 0.0


class _Walk:
    """Mutable true-space state while records are undone."""

    def __init__(self):
        self.values: dict[str, float] = {}
        self.reduced_costs: dict[str, float] = {}
        self.implied_costs: dict[str, float] = {}
        self.col_scales: dict[str, float] = {}
        self.rows: dict[str, _RowState] = {}

    def value(self, col: str, record: EliminationRecord) -> float:
        if col not in self.values:
            raise InconsistentLog(
                f"{record.reason.value} record needs column '{col}' which has no value",
                entity=record.name,
            )
        return self.values[col]

    def row(self, name: str, record: EliminationRecord) -> _RowState:
        if name not in self.rows:
            raise InconsistentLog(
                f"{record.reason.value} record refers to unknown row '{name}'",
                entity=record.name,
            )
        return self.rows[name]

    def activity(self, record: EliminationRecord) -> float:
        return sum(c.value * self.value(c.col, record) for c in record.coefs)


def _at_created_bound(x: float, old: tuple[float, float], new: tuple[float, float]) -> bool:
    def near(a: float, b: float) -> bool:
        return abs(a - b) <= BOUND_TOL * max(1.0, abs(b))

    at_lower = new[0] > old[0] and near(x, new[0])
    at_upper = new[1] < old[1] and near(x, new[1])
    return at_lower or at_upper


def _undo_fixed(walk: _Walk, record: EliminationRecord) -> None:
    used_duals = sum(c.value * walk.row(c.row, record).dual for c in record.coefs)
    walk.values[record.name] = record.value
    walk.reduced_costs[record.name] = 0.0
    walk.implied_costs[record.name] = record.obj_coef - used_duals
    walk.col_scales[record.name] = record.scale
    for c in record.coefs:
        # slack is unchanged: rhs and activity both move by a*v
        walk.row(c.row, record).rhs += c.value * record.value


def _undo_col_singleton(walk: _Walk, record: EliminationRecord) -> None:
    state = walk.row(record.partner, record)
    pivot = next((c.value for c in record.coefs if c.col == record.name), None)
    if pivot is None:
        raise InconsistentLog("column-singleton record lacks its pivot", entity=record.name)
    rest = sum(
        c.value * walk.value(c.col, record) for c in record.coefs if c.col != record.name
    )
    x = (record.rhs - rest) / pivot
    y_reduced = state.dual

    walk.values[record.name] = x
    walk.reduced_costs[record.name] = -pivot * y_reduced
    walk.implied_costs[record.name] = -pivot * y_reduced
    walk.col_scales[record.name] = record.scale

    state.dual = record.obj_coef / pivot + y_reduced
    state.type = record.sense.value
    state.rhs = record.rhs
    state.range = record.range
    state.slack = record.rhs - walk.activity(record)


def _undo_row_singleton(walk: _Walk, record: EliminationRecord) -> None:
    (coef,) = record.coefs
    x = walk.value(coef.col, record)
    dual = 0.0
    if record.old_bounds is not None and record.new_bounds is not None:
        if _at_created_bound(x, record.old_bounds, record.new_bounds):
            dual = walk.implied_costs.get(coef.col, 0.0) / coef.value
            walk.implied_costs[coef.col] = 0.0
            walk.reduced_costs[coef.col] = 0.0
    walk.rows[record.name] = _RowState(
        type=record.sense.value,
        rhs=record.rhs,
        range=record.range,
        scale=record.scale,
        slack=record.rhs - coef.value * x,
        dual=dual,
    )


def _undo_nonbinding(walk: _Walk, record: EliminationRecord) -> None:
    walk.rows[record.name] = _RowState(
        type=record.sense.value,
        rhs=record.rhs,
        range=record.range,
        scale=record.scale,
        slack=record.rhs - walk.activity(record),
        dual=0.0,
    )


def _undo_bound_change(walk: _Walk, change: BoundChange) -> None:
    if change.col not in walk.values:
        raise InconsistentLog(
            f"Bound change from row '{change.row}' names a column without a value",
            entity=change.col,
        )
    if not _at_created_bound(walk.values[change.col], change.old_bounds, change.new_bounds):
        return
    pivot = next((c.value for c in change.coefs if c.col == change.col), None)
    if pivot is None:
        raise InconsistentLog(
            f"Bound change from row '{change.row}' lacks the column's coefficient",
            entity=change.col,
        )
    if change.row not in walk.rows:
        raise InconsistentLog(
            f"Bound change refers to unknown row '{change.row}'", entity=change.col
        )

    delta = walk.implied_costs.get(change.col, 0.0) / pivot
    if delta == 0.0:
        return
    walk.rows[change.row].dual += delta
    for c in change.coefs:
        if c.col == change.col:
            continue
        walk.implied_costs[c.col] = walk.implied_costs.get(c.col, 0.0) - c.value * delta
        walk.reduced_costs[c.col] = walk.reduced_costs.get(c.col, 0.0) - c.value * delta
    walk.implied_costs[change.col] = 0.0
    walk.reduced_costs[change.col] = 0.0


_UNDO = {
    ReasonCode.FIXED_VARIABLE: _undo_fixed,
    ReasonCode.COLUMN_SINGLETON: _undo_col_singleton,
    ReasonCode.ROW_SINGLETON: _undo_row_singleton,
    ReasonCode.NONBINDING: _undo_nonbinding,
}


def _load_survivors(walk: _Walk, model: ModelStore, raw: RawResult) -> None:
    for col in model.cols.values():
        if col.name not in raw.cols:
            raise InconsistentLog("Solver result has no entry for column", entity=col.name)
        result = raw.cols[col.name]
        walk.values[col.name] = result.value / col.scale
        walk.reduced_costs[col.name] = result.reduced_cost * col.scale
        walk.implied_costs[col.name] = result.reduced_cost * col.scale
        walk.col_scales[col.name] = col.scale

    for rid in model.constraint_ids():
        row = model.rows[rid]
        if row.name not in raw.rows:
            raise InconsistentLog("Solver result has no entry for row", entity=row.name)
        result = raw.rows[row.name]
        walk.rows[row.name] = _RowState(
            type=row.sense.value,
            rhs=row.rhs / row.scale,
            range=None if row.range is None else row.range / row.scale,
            scale=row.scale,
            slack=result.slack / row.scale,
            dual=result.pi * row.scale,
        )


def _check_outline(record: EliminationRecord, outline: ModelOutline | None) -> None:
    if outline is None:
        return
    names = outline.rows if record.kind is EntityKind.ROW else outline.cols
    if record.name not in names:
        raise InconsistentLog(
            f"Log eliminates {record.kind.value} '{record.name}' which was never in the model",
            entity=record.name,
        )


def reconstruct(
    model: ModelStore,
    raw: RawResult,
    log: EliminationLog,
    *,
    counts: PresolveCounts | None = None,
    outline: ModelOutline | None = None,
) -> Solution:
    """Build the `Solution` of the original model.

    *model* is the reduced model *raw* was computed for.  With an *outline*
    of the original model every record is checked against it and every
    original row and column must come out with an entry.

    Raises:
        InconsistentLog: the log cannot be reconciled with the model or result.
    """
    walk = _Walk()
    _load_survivors(walk, model, raw)

    for entry in reversed(log.timeline()):
        if isinstance(entry, BoundChange):
            _undo_bound_change(walk, entry)
            continue
        _check_outline(entry, outline)
        _UNDO[entry.reason](walk, entry)

    if outline is not None:
        missing = sorted((outline.rows - walk.rows.keys()) | (outline.cols - walk.values.keys()))
        if missing:
            raise InconsistentLog(f"No solution entry for {', '.join(missing)}")

    con_map = {
        name: ConstraintSolution(
            type=state.type,
            rhs=state.rhs,
            slack=state.slack,
            pi=state.dual / state.scale,
            dual=state.dual,
            scale_factor=state.scale,
        )
        for name, state in walk.rows.items()
    }
    var_map = {
        name: VariableSolution(
            value=value,
            reduced_cost=walk.reduced_costs[name],
            scale_factor=walk.col_scales[name],
        )
        for name, value in walk.values.items()
    }

    if counts is None:
        counts = PresolveCounts(
            rows_deleted=len(log.eliminated(EntityKind.ROW)),
            cols_deleted=len(log.eliminated(EntityKind.COLUMN)),
        )
    logger.debug(
        f"Postsolve rebuilt {len(con_map)} rows and {len(var_map)} columns "
        f"from {len(log.records)} eliminations"
    )
    return Solution(
        objective_value=raw.objective,
        status=raw.status,
        rows_deleted=counts.rows_deleted,
        cols_deleted=counts.cols_deleted,
        elems_deleted=counts.elems_deleted,
        con_map=con_map,
        var_map=var_map,
        solver_name=raw.solver_name,
        solver_runtime_sec=raw.runtime_sec,
    )
