"""
reductions.py

The four presolve passes.  Each pass walks its candidates once, in stable-id
order, mutates the model in place, appends to the elimination log and
returns whether it changed anything.

All arithmetic on the model happens in its own (possibly scaled) space;
anything written to the log is converted back to true space first:

    a = a' * s_col / r_row      b = b' / r_row      x = x' / s_col      c = c' * s_col
"""

import math
from dataclasses import dataclass, field

from lpopt.config.params import PresolveControl
from lpopt.core_types import INF, Column, Row, Sense, VarKind
from lpopt.exceptions import InfeasibleBound
from lpopt.model.store import ModelStore, row_bounds, set_row_bounds
from lpopt.presolve.psop import (
    BoundChange,
    Coefficient,
    EliminationLog,
    EliminationRecord,
    EntityKind,
    ReasonCode,
)
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)


@dataclass
class ReductionContext:
    """State shared by the passes of one presolve run."""

    model: ModelStore
    control: PresolveControl
    log: EliminationLog
    keep_rows: frozenset[int] = field(default_factory=frozenset)
    keep_cols: frozenset[int] = field(default_factory=frozenset)
    iteration: int = 0
    bounds_tightened: int = 0
    elems_created: int = 0

    def tol(self, value: float) -> float:
        """Absolute tolerance around *value*."""
        if not math.isfinite(value):
            return 0.0
        return self.control.feas_tol * max(1.0, abs(value))


# ---------------------------------------------------------------------------
# True-space helpers
# ---------------------------------------------------------------------------


def _true_bounds(col: Column) -> tuple[float, float]:
    return (col.lower / col.scale, col.upper / col.scale)


def _row_coefs(model: ModelStore, rid: int) -> tuple[Coefficient, ...]:
    row = model.rows[rid]
    return tuple(
        Coefficient(row.name, model.cols[cid].name, a * model.cols[cid].scale / row.scale)
        for cid, a in model.row_entries(rid)
    )


def _col_coefs(model: ModelStore, cid: int) -> tuple[Coefficient, ...]:
    col = model.cols[cid]
    return tuple(
        Coefficient(model.rows[rid].name, col.name, a * col.scale / model.rows[rid].scale)
        for rid, a in model.col_entries(cid, include_objective=False)
    )


def _row_state(row: Row) -> dict:
    return {
        "sense": row.sense,
        "rhs": row.rhs / row.scale,
        "range": None if row.range is None else row.range / row.scale,
    }


def _round_integral(col: Column, lower: float, upper: float, tol: float) -> tuple[float, float]:
    """Round scaled bounds of an integer column to whole true values."""
    if not col.kind.is_integral:
        return lower, upper
    if math.isfinite(lower):
        lower = math.ceil(lower / col.scale - tol) * col.scale
    if math.isfinite(upper):
        upper = math.floor(upper / col.scale + tol) * col.scale
    return lower, upper


# ---------------------------------------------------------------------------
# Bound tightening / nonbinding rows
# ---------------------------------------------------------------------------


def _activity_parts(model: ModelStore, rid: int):
    """Finite parts and infinite-term counts of a row's activity bounds."""
    min_fin = max_fin = 0.0
    min_inf = max_inf = 0
    terms = []
    for cid, a in model.row_entries(rid):
        if a == 0.0:
            continue
        col = model.cols[cid]
        lo_term = a * (col.lower if a > 0 else col.upper)
        hi_term = a * (col.upper if a > 0 else col.lower)
        if math.isfinite(lo_term):
            min_fin += lo_term
        else:
            min_inf += 1
        if math.isfinite(hi_term):
            max_fin += hi_term
        else:
            max_inf += 1
        terms.append((cid, a, lo_term, hi_term))
    return min_fin, min_inf, max_fin, max_inf, terms


def _residual(total_fin: float, total_inf: int, term: float, infinite: float) -> float:
    """Activity bound of the other terms once *term* is taken out."""
    if not math.isfinite(term):
        return total_fin if total_inf == 1 else infinite
    return total_fin - term if total_inf == 0 else infinite


def _delete_nonbinding(ctx: ReductionContext, rid: int) -> None:
    model = ctx.model
    row = model.rows[rid]
    ctx.log.append(
        EliminationRecord(
            kind=EntityKind.ROW,
            name=row.name,
            reason=ReasonCode.NONBINDING,
            coefs=_row_coefs(model, rid),
            scale=row.scale,
            iteration=ctx.iteration,
            **_row_state(row),
        )
    )
    model.del_row(rid)
    logger.debug(f"nonbinding: removed row {row.name}")


def _drop_empty_row(ctx: ReductionContext, rid: int, lo: float, hi: float) -> bool:
    """Handle a row without nonzero coefficients; True if it was deleted."""
    row = ctx.model.rows[rid]
    if not lo - ctx.tol(lo) <= 0.0 <= hi + ctx.tol(hi):
        raise InfeasibleBound(
            f"Empty row requires activity in [{lo:g}, {hi:g}]", entity=row.name
        )
    if rid in ctx.keep_rows:
        return False
    _delete_nonbinding(ctx, rid)
    return True


def _tighten_from_row(ctx: ReductionContext, rid: int, lo: float, hi: float, parts) -> bool:
    model = ctx.model
    row = model.rows[rid]
    min_fin, min_inf, max_fin, max_inf, terms = parts
    changed = False
    for cid, a, lo_term, hi_term in terms:
        col = model.cols[cid]
        min_rest = _residual(min_fin, min_inf, lo_term, -INF)
        max_rest = _residual(max_fin, max_inf, hi_term, INF)

        # a*x <= hi - min_rest and a*x >= lo - max_rest
        upper_act = hi - min_rest
        lower_act = lo - max_rest
        if a > 0:
            implied_lo, implied_hi = lower_act / a, upper_act / a
        else:
            implied_lo, implied_hi = upper_act / a, lower_act / a
        implied_lo, implied_hi = _round_integral(
            col, implied_lo, implied_hi, ctx.control.feas_tol
        )

        new_lo, new_hi = col.lower, col.upper
        if math.isfinite(implied_lo) and implied_lo > col.lower + ctx.tol(col.lower):
            new_lo = implied_lo
        if math.isfinite(implied_hi) and implied_hi < col.upper - ctx.tol(col.upper):
            new_hi = implied_hi
        if (new_lo, new_hi) == (col.lower, col.upper):
            continue

        if new_lo > new_hi + ctx.tol(new_hi):
            raise InfeasibleBound(
                f"Row '{row.name}' forces bounds [{new_lo:g}, {new_hi:g}] which cross",
                entity=col.name,
            )
        if new_lo > new_hi:
            new_lo = new_hi

        old = _true_bounds(col)
        col.lower, col.upper = new_lo, new_hi
        ctx.log.add_bound_change(
            BoundChange(
                col=col.name,
                row=row.name,
                old_bounds=old,
                new_bounds=_true_bounds(col),
                iteration=ctx.iteration,
                coefs=_row_coefs(model, rid),
            )
        )
        ctx.bounds_tightened += 1
        changed = True
        logger.debug(f"tighten: {col.name} {old} -> {_true_bounds(col)} from {row.name}")
    return changed


def remove_nonbinding_rows(ctx: ReductionContext) -> bool:
    """Delete redundant rows and tighten column bounds implied by the rest."""
    model = ctx.model
    changed = False
    for rid in model.constraint_ids(ctx.control.order):
        if rid not in model.rows:
            continue
        row = model.rows[rid]
        lo, hi = row_bounds(row)

        parts = _activity_parts(model, rid)
        min_fin, min_inf, max_fin, max_inf, terms = parts
        if not terms:
            if _drop_empty_row(ctx, rid, lo, hi):
                changed = True
            continue
        min_act = -INF if min_inf else min_fin
        max_act = INF if max_inf else max_fin

        if min_act > hi + ctx.tol(hi) or max_act < lo - ctx.tol(lo):
            raise InfeasibleBound(
                f"Activity range [{min_act:g}, {max_act:g}] cannot meet [{lo:g}, {hi:g}]",
                entity=row.name,
            )

        if min_act >= lo - ctx.tol(lo) and max_act <= hi + ctx.tol(hi):
            if rid not in ctx.keep_rows:
                _delete_nonbinding(ctx, rid)
                changed = True
            continue

        if _tighten_from_row(ctx, rid, lo, hi, parts):
            changed = True
    return changed


# ---------------------------------------------------------------------------
# Row singletons
# ---------------------------------------------------------------------------


def remove_row_singletons(ctx: ReductionContext) -> bool:
    """Turn rows with a single column into bounds on that column."""
    model = ctx.model
    changed = False
    for rid in model.constraint_ids(ctx.control.order):
        if rid not in model.rows or rid in ctx.keep_rows:
            continue
        row = model.rows[rid]
        if len(row.has_elems) != 1:
            continue
        (cid, a), = model.row_entries(rid)
        col = model.cols[cid]
        lo, hi = row_bounds(row)
        if a == 0.0:
            if _drop_empty_row(ctx, rid, lo, hi):
                changed = True
            continue
        implied_lo, implied_hi = (lo / a, hi / a) if a > 0 else (hi / a, lo / a)
        implied_lo, implied_hi = _round_integral(col, implied_lo, implied_hi, ctx.control.feas_tol)
        new_lo = max(col.lower, implied_lo)
        new_hi = min(col.upper, implied_hi)
        if new_lo > new_hi + ctx.tol(new_hi):
            raise InfeasibleBound(
                f"Row '{row.name}' bounds [{new_lo:g}, {new_hi:g}] cross", entity=col.name
            )
        if new_lo > new_hi:
            new_lo = new_hi

        old = _true_bounds(col)
        record = dict(
            kind=EntityKind.ROW,
            name=row.name,
            reason=ReasonCode.ROW_SINGLETON,
            coefs=_row_coefs(model, rid),
            partner=col.name,
            old_bounds=old,
            scale=row.scale,
            iteration=ctx.iteration,
            **_row_state(row),
        )
        col.lower, col.upper = new_lo, new_hi
        ctx.log.append(EliminationRecord(new_bounds=_true_bounds(col), **record))
        model.del_row(rid)
        changed = True
        logger.debug(f"row-singleton: {row.name} -> {col.name} in {_true_bounds(col)}")
    return changed


# ---------------------------------------------------------------------------
# Column singletons
# ---------------------------------------------------------------------------


def remove_col_singletons(ctx: ReductionContext) -> bool:
    """Substitute out continuous columns that appear in one equality row."""
    model = ctx.model
    changed = False
    for cid in model.col_ids(ctx.control.order):
        if cid not in model.cols or cid in ctx.keep_cols:
            continue
        col = model.cols[cid]
        if col.kind is not VarKind.CONTINUOUS:
            continue
        entries = model.col_entries(cid, include_objective=False)
        if len(entries) != 1:
            continue
        rid, a_ij = entries[0]
        row = model.rows[rid]
        if row.sense is not Sense.EQ or row.range:
            continue
        if len(row.has_elems) < 2 or abs(a_ij) <= ctx.control.pivot_tol:
            continue

        c_j = model.objective_coef(cid)
        b = row.rhs
        ctx.log.append(
            EliminationRecord(
                kind=EntityKind.COLUMN,
                name=col.name,
                reason=ReasonCode.COLUMN_SINGLETON,
                coefs=_row_coefs(model, rid),
                partner=row.name,
                old_bounds=_true_bounds(col),
                obj_coef=c_j * col.scale,
                scale=col.scale,
                iteration=ctx.iteration,
                **_row_state(row),
            )
        )

        if c_j != 0.0:
            for k, a_ik in model.row_entries(rid):
                if k == cid:
                    continue
                had_cost = model.elem_id(model.obj_row, k) is not None
                model.add_objective_coef(k, -c_j * a_ik / a_ij, ctx.control.feas_tol)
                if not had_cost and model.elem_id(model.obj_row, k) is not None:
                    ctx.elems_created += 1
            model.obj_const += c_j * b / a_ij

        # sum_{k != j} a_ik x_k = b - a_ij x_j, x_j in [l, u]
        ends = (b - a_ij * col.lower, b - a_ij * col.upper)
        set_row_bounds(row, min(ends), max(ends), ctx.control.fixed_tol)
        model.del_col(cid)
        changed = True
        logger.debug(f"column-singleton: {col.name} substituted out of {row.name}")
    return changed


# ---------------------------------------------------------------------------
# Fixed variables
# ---------------------------------------------------------------------------


def remove_fixed_vars(ctx: ReductionContext) -> bool:
    """Remove columns whose bounds coincide, moving them into rhs and objective."""
    model = ctx.model
    changed = False
    for cid in model.col_ids(ctx.control.order):
        if cid not in model.cols or cid in ctx.keep_cols:
            continue
        col = model.cols[cid]
        if not abs(col.upper - col.lower) <= ctx.control.fixed_tol:
            continue
        value = col.lower
        if col.kind.is_integral:
            value = round(value / col.scale) * col.scale

        c = model.objective_coef(cid)
        ctx.log.append(
            EliminationRecord(
                kind=EntityKind.COLUMN,
                name=col.name,
                reason=ReasonCode.FIXED_VARIABLE,
                coefs=_col_coefs(model, cid),
                value=value / col.scale,
                old_bounds=_true_bounds(col),
                obj_coef=c * col.scale,
                scale=col.scale,
                iteration=ctx.iteration,
            )
        )
        for rid, a in model.col_entries(cid, include_objective=False):
            model.rows[rid].rhs -= a * value
        model.obj_const += c * value
        model.del_col(cid)
        changed = True
        logger.debug(f"fixed-variable: {col.name} = {value / col.scale:g}")
    return changed
