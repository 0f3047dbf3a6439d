"""
store.py

In-memory row/column/element model operated on by presolve, the solver
adapters and postsolve.

Every row, column and element gets an integer id when it is added.  Ids are
never reused and containers are keyed by id, so deleting an entity never moves
anybody else; ``index_maps`` gives the dense old-id -> position translation
when a positional view is needed (building a solver problem, printing).

Typical usage
-------------
>>> model = ModelStore("demo")
>>> model.add_row("COST", "N")
>>> model.add_row("R1", "L", rhs=10)
>>> model.add_col("x1")
>>> model.add_elem("R1", "x1", 1.0)
>>> model.add_elem("COST", "x1", -1.0)
"""

import copy
import math
from collections import Counter
from collections.abc import Mapping, Sequence

import numpy as np

from lpopt.core_types import (
    INF,
    Column,
    Element,
    ModelOutline,
    ModelStatistics,
    ObjSense,
    Row,
    Sense,
    VarKind,
)
from lpopt.exceptions import IndexOutOfRange
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)


def row_bounds(row: Row) -> tuple[float, float]:
    """Return the (lo, hi) interval a row's activity must lie in.

    Ranges follow the MPS convention: ``L`` -> [rhs-|R|, rhs], ``G`` ->
    [rhs, rhs+|R|], ``E`` -> [rhs, rhs+R] for R>0 and [rhs+R, rhs] for R<0.
    """
    rng = row.range
    if row.sense is Sense.LE:
        return (row.rhs - abs(rng) if rng is not None else -INF, row.rhs)
    if row.sense is Sense.GE:
        return (row.rhs, row.rhs + abs(rng) if rng is not None else INF)
    if row.sense is Sense.EQ:
        if not rng:
            return (row.rhs, row.rhs)
        if rng > 0:
            return (row.rhs, row.rhs + rng)
        return (row.rhs + rng, row.rhs)
    return (-INF, INF)


def set_row_bounds(row: Row, lo: float, hi: float, tol: float = 0.0) -> None:
    """Rewrite a row's sense/rhs/range so that ``row_bounds(row) == (lo, hi)``."""
    lo_finite = math.isfinite(lo)
    hi_finite = math.isfinite(hi)
    if lo_finite and hi_finite:
        if abs(hi - lo) <= tol:
            row.sense, row.rhs, row.range = Sense.EQ, lo, None
        else:
            row.sense, row.rhs, row.range = Sense.GE, lo, hi - lo
    elif lo_finite:
        row.sense, row.rhs, row.range = Sense.GE, lo, None
    elif hi_finite:
        row.sense, row.rhs, row.range = Sense.LE, hi, None
    else:
        row.sense, row.rhs, row.range = Sense.FREE, 0.0, None


def _fmt(value: float) -> str:
    return f"{value:g}"


class ModelStore:
    """Rows, columns and nonzero elements of one LP/MIP instance."""

    def __init__(self, name: str = "", sense: ObjSense | str = ObjSense.MIN):
        self.name = name
        self.sense = ObjSense(sense)
        self.obj_row: int | None = None
        self.obj_const = 0.0
        self.rows: dict[int, Row] = {}
        self.cols: dict[int, Column] = {}
        self.elems: dict[int, Element] = {}
        self._row_ids: dict[str, int] = {}
        self._col_ids: dict[str, int] = {}
        self._elem_at: dict[tuple[int, int], int] = {}
        self._next_row = 0
        self._next_col = 0
        self._next_elem = 0

    # ------------------------------------------------------------------
    # Sizes
    # ------------------------------------------------------------------

    @property
    def num_rows(self) -> int:
        """Number of constraint rows (the objective row is not counted)."""
        return len(self.rows) - (1 if self.obj_row is not None else 0)

    @property
    def num_cols(self) -> int:
        return len(self.cols)

    @property
    def num_elems(self) -> int:
        return len(self.elems)

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.cols or not self.elems

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_row(
        self,
        name: str,
        sense: Sense | str = Sense.LE,
        rhs: float = 0.0,
        range_: float | None = None,
        scale: float = 1.0,
    ) -> int:
        """Add a row and return its id.

        The first ``N`` row becomes the objective unless one was already set.
        """
        if name in self._row_ids:
            raise ValueError(f"Row '{name}' already exists")
        if scale <= 0:
            raise ValueError(f"Row '{name}': scale factor must be positive")
        row = Row(
            name=name,
            sense=Sense.parse(sense),
            rhs=float(rhs),
            range=None if range_ is None else float(range_),
            scale=float(scale),
        )
        rid = self._next_row
        self._next_row += 1
        self.rows[rid] = row
        self._row_ids[name] = rid
        if row.sense is Sense.FREE and self.obj_row is None:
            self.obj_row = rid
        return rid

    def add_col(
        self,
        name: str,
        kind: VarKind | str = VarKind.CONTINUOUS,
        lower: float = 0.0,
        upper: float = INF,
        scale: float = 1.0,
    ) -> int:
        if name in self._col_ids:
            raise ValueError(f"Column '{name}' already exists")
        if scale <= 0:
            raise ValueError(f"Column '{name}': scale factor must be positive")
        kind = VarKind(kind)
        lower, upper = float(lower), float(upper)
        if kind is VarKind.BINARY:
            lower, upper = max(lower, 0.0), min(upper, 1.0)
        if lower > upper:
            raise ValueError(f"Column '{name}': lower bound {lower} exceeds upper bound {upper}")
        cid = self._next_col
        self._next_col += 1
        self.cols[cid] = Column(name=name, kind=kind, lower=lower, upper=upper, scale=float(scale))
        self._col_ids[name] = cid
        return cid

    def add_elem(self, row: int | str, col: int | str, value: float) -> int | None:
        """Add a coefficient; a second value for the same (row, col) is summed in.

        Exact zeros are never stored: a zero value adds nothing, and a sum that
        cancels to zero deletes the element.  Returns the element id, or None
        when no element is left for (row, col).
        """
        rid = self.resolve_row(row)
        cid = self.resolve_col(col)
        value = float(value)
        existing = self._elem_at.get((rid, cid))
        if existing is not None:
            self.elems[existing].value += value
            if self.elems[existing].value == 0.0:
                self.del_elem(existing)
                return None
            return existing
        if value == 0.0:
            return None
        eid = self._next_elem
        self._next_elem += 1
        self.elems[eid] = Element(row=rid, col=cid, value=value)
        self._elem_at[(rid, cid)] = eid
        self.rows[rid].has_elems.append(eid)
        self.cols[cid].has_elems.append(eid)
        return eid

    def set_objective(self, row: int | str) -> None:
        rid = self.resolve_row(row)
        if self.rows[rid].sense is not Sense.FREE:
            raise ValueError(f"Objective row '{self.rows[rid].name}' must have sense N")
        self.obj_row = rid

    def adjust_model(self) -> int:
        """Rebuild reference lists from the element collection.

        Drops zero coefficients and elements pointing at dead rows/columns are
        reported as ``IndexOutOfRange``.  Returns the number of elements dropped.
        """
        for row in self.rows.values():
            row.has_elems = []
        for col in self.cols.values():
            col.has_elems = []
        self._elem_at = {}

        dropped = 0
        for eid in sorted(self.elems):
            elem = self.elems[eid]
            if elem.row not in self.rows:
                raise IndexOutOfRange(f"Element {eid} references missing row {elem.row}")
            if elem.col not in self.cols:
                raise IndexOutOfRange(f"Element {eid} references missing column {elem.col}")
            key = (elem.row, elem.col)
            if key in self._elem_at:
                self.elems[self._elem_at[key]].value += elem.value
                del self.elems[eid]
                dropped += 1
                continue
            self._elem_at[key] = eid
            self.rows[elem.row].has_elems.append(eid)
            self.cols[elem.col].has_elems.append(eid)

        for eid in [e for e, elem in self.elems.items() if elem.value == 0.0]:
            self.del_elem(eid)
            dropped += 1

        if self.obj_row is None:
            self.obj_row = next(
                (rid for rid, row in self.rows.items() if row.sense is Sense.FREE), None
            )
        logger.debug(f"adjust_model: dropped {dropped} elements")
        return dropped

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve_row(self, ref: int | str) -> int:
        if isinstance(ref, str):
            if ref not in self._row_ids:
                raise IndexOutOfRange(f"Row '{ref}' does not exist", entity=ref)
            return self._row_ids[ref]
        if ref not in self.rows:
            raise IndexOutOfRange(f"Row id {ref} out of range", entity=str(ref))
        return ref

    def resolve_col(self, ref: int | str) -> int:
        if isinstance(ref, str):
            if ref not in self._col_ids:
                raise IndexOutOfRange(f"Column '{ref}' does not exist", entity=ref)
            return self._col_ids[ref]
        if ref not in self.cols:
            raise IndexOutOfRange(f"Column id {ref} out of range", entity=str(ref))
        return ref

    def has_row(self, name: str) -> bool:
        return name in self._row_ids

    def has_col(self, name: str) -> bool:
        return name in self._col_ids

    def elem_id(self, rid: int, cid: int) -> int | None:
        return self._elem_at.get((rid, cid))

    def constraint_ids(self, order: str = "ascending") -> list[int]:
        ids = [rid for rid in self.rows if rid != self.obj_row]
        return sorted(ids, reverse=order == "descending")

    def col_ids(self, order: str = "ascending") -> list[int]:
        return sorted(self.cols, reverse=order == "descending")

    def row_entries(self, rid: int) -> list[tuple[int, float]]:
        """(column id, coefficient) pairs of a row, in element order."""
        return [(self.elems[e].col, self.elems[e].value) for e in self.rows[rid].has_elems]

    def col_entries(self, cid: int, include_objective: bool = True) -> list[tuple[int, float]]:
        """(row id, coefficient) pairs of a column, in element order."""
        entries = [(self.elems[e].row, self.elems[e].value) for e in self.cols[cid].has_elems]
        if include_objective:
            return entries
        return [(rid, value) for rid, value in entries if rid != self.obj_row]

    def objective_coef(self, cid: int) -> float:
        if self.obj_row is None:
            return 0.0
        eid = self._elem_at.get((self.obj_row, cid))
        return 0.0 if eid is None else self.elems[eid].value

    def add_objective_coef(self, cid: int, delta: float, zero_tol: float = 0.0) -> None:
        """Add *delta* to a column's objective coefficient, creating or dropping the element."""
        if delta == 0.0:
            return
        if self.obj_row is None:
            raise IndexOutOfRange("Model has no objective row")
        eid = self._elem_at.get((self.obj_row, cid))
        if eid is None:
            self.add_elem(self.obj_row, cid, delta)
            return
        self.elems[eid].value += delta
        if abs(self.elems[eid].value) <= zero_tol:
            self.del_elem(eid)

    def index_maps(self) -> tuple[dict[int, int], dict[int, int]]:
        """Old id -> dense position for constraint rows and for columns."""
        row_pos = {rid: pos for pos, rid in enumerate(self.constraint_ids())}
        col_pos = {cid: pos for pos, cid in enumerate(self.col_ids())}
        return row_pos, col_pos

    def outline(self) -> ModelOutline:
        return ModelOutline(
            rows=frozenset(self.rows[rid].name for rid in self.constraint_ids()),
            cols=frozenset(col.name for col in self.cols.values()),
            num_elems=self.num_elems,
        )

    def copy(self) -> "ModelStore":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def del_elem(self, eid: int) -> None:
        if eid not in self.elems:
            raise IndexOutOfRange(f"Element id {eid} out of range", entity=str(eid))
        elem = self.elems.pop(eid)
        del self._elem_at[(elem.row, elem.col)]
        self.rows[elem.row].has_elems.remove(eid)
        self.cols[elem.col].has_elems.remove(eid)

    def del_row(self, row: int | str) -> int:
        """Delete a row and its elements; returns the number of elements removed."""
        rid = self.resolve_row(row)
        removed = 0
        for eid in list(self.rows[rid].has_elems):
            self.del_elem(eid)
            removed += 1
        del self._row_ids[self.rows[rid].name]
        del self.rows[rid]
        if self.obj_row == rid:
            self.obj_row = None
        return removed

    def del_col(self, col: int | str) -> int:
        """Delete a column and its elements; returns the number of elements removed."""
        cid = self.resolve_col(col)
        removed = 0
        for eid in list(self.cols[cid].has_elems):
            self.del_elem(eid)
            removed += 1
        del self._col_ids[self.cols[cid].name]
        del self.cols[cid]
        return removed

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def activity_bounds(self, row: int | str) -> tuple[float, float]:
        """Smallest and largest activity a row can reach within the column bounds."""
        rid = self.resolve_row(row)
        min_act = 0.0
        max_act = 0.0
        for cid, a in self.row_entries(rid):
            if a == 0.0:
                continue
            col = self.cols[cid]
            if a > 0:
                min_act += a * col.lower
                max_act += a * col.upper
            else:
                min_act += a * col.upper
                max_act += a * col.lower
        return min_act, max_act

    def calc_lhs(self, row: int | str, point: Mapping[str, float] | Sequence[float]) -> float:
        """Left-hand side of a row at *point*.

        *point* maps column names to values, or lists one value per element of
        the row in element order.
        """
        rid = self.resolve_row(row)
        entries = self.row_entries(rid)
        coefs = np.array([value for _, value in entries], dtype=float)
        if isinstance(point, Mapping):
            values = []
            for cid, _ in entries:
                name = self.cols[cid].name
                if name not in point:
                    raise IndexOutOfRange(f"No value given for column '{name}'", entity=name)
                values.append(point[name])
        else:
            values = list(point)
            if len(values) != len(entries):
                raise ValueError(
                    f"Row '{self.rows[rid].name}' has {len(entries)} elements, "
                    f"got {len(values)} values"
                )
        return float(np.dot(coefs, np.array(values, dtype=float))) if entries else 0.0

    def calc_con_violation(
        self, row: int | str, point: Mapping[str, float] | Sequence[float]
    ) -> float:
        """Amount by which *point* violates a row, 0.0 when satisfied."""
        rid = self.resolve_row(row)
        lhs = self.calc_lhs(rid, point)
        lo, hi = row_bounds(self.rows[rid])
        if lhs < lo:
            return lo - lhs
        if lhs > hi:
            return lhs - hi
        return 0.0

    # ------------------------------------------------------------------
    # Scaling
    # ------------------------------------------------------------------

    def scale_rows(self) -> int:
        """Scale every constraint row by a power of two.

        The factor brings the row's largest absolute coefficient into
        [0.5, 1).  Powers of two keep unscaling exact.  Returns the number of
        rows whose scale changed.
        """
        scaled = 0
        for rid in self.constraint_ids():
            row = self.rows[rid]
            if not row.has_elems:
                continue
            coefs = np.abs(np.array([self.elems[e].value for e in row.has_elems]))
            _, exponent = np.frexp(coefs.max())
            factor = math.ldexp(1.0, -int(exponent))
            if factor == 1.0:
                continue
            for eid in row.has_elems:
                self.elems[eid].value *= factor
            row.rhs *= factor
            if row.range is not None:
                row.range *= factor
            row.scale *= factor
            scaled += 1
        logger.debug(f"scale_rows: {scaled} rows rescaled")
        return scaled

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def statistics(self) -> ModelStatistics:
        cons = self.constraint_ids()
        con_values = np.array(
            [
                elem.value
                for elem in self.elems.values()
                if elem.row != self.obj_row
            ],
            dtype=float,
        )
        abs_values = np.abs(con_values)
        cells = len(cons) * len(self.cols)
        return ModelStatistics(
            name=self.name,
            num_rows=len(cons),
            num_cols=len(self.cols),
            num_elems=int(con_values.size),
            rows_by_sense=dict(Counter(self.rows[rid].sense.value for rid in cons)),
            cols_by_kind=dict(Counter(col.kind.value for col in self.cols.values())),
            density=(con_values.size / cells) if cells else 0.0,
            min_abs_coef=float(abs_values.min()) if abs_values.size else 0.0,
            max_abs_coef=float(abs_values.max()) if abs_values.size else 0.0,
            obj_elems=self.num_elems - int(con_values.size),
        )

    def _format_terms(self, rid: int) -> str:
        terms = []
        for cid, value in self.row_entries(rid):
            sign = "-" if value < 0 else "+"
            terms.append(f"{sign} {_fmt(abs(value))} {self.cols[cid].name}")
        text = " ".join(terms)
        if text.startswith("+ "):
            text = text[2:]
        return text or "0"

    def format_row(self, row: int | str) -> str:
        """Row in equation form, e.g. ``R1: x1 + 2 x2 <= 10``."""
        rid = self.resolve_row(row)
        r = self.rows[rid]
        terms = self._format_terms(rid)
        if rid == self.obj_row:
            return f"{r.name}: {self.sense.value} {terms}"
        lo, hi = row_bounds(r)
        if r.sense is Sense.FREE:
            return f"{r.name}: {terms} (free)"
        if r.sense is Sense.EQ and lo == hi:
            return f"{r.name}: {terms} = {_fmt(lo)}"
        if math.isfinite(lo) and math.isfinite(hi):
            return f"{r.name}: {_fmt(lo)} <= {terms} <= {_fmt(hi)}"
        if math.isfinite(hi):
            return f"{r.name}: {terms} <= {_fmt(hi)}"
        return f"{r.name}: {terms} >= {_fmt(lo)}"

    def format_col(self, col: int | str) -> str:
        """Column bounds, kind and the rows it occurs in."""
        cid = self.resolve_col(col)
        c = self.cols[cid]
        occurs = ", ".join(
            f"{self.rows[rid].name} ({_fmt(value)})" for rid, value in self.col_entries(cid)
        )
        return (
            f"{c.name} [{_fmt(c.lower)}, {_fmt(c.upper)}] {c.kind.value}: "
            f"{occurs or 'no rows'}"
        )

    def format_rhs(self) -> str:
        lines = []
        for rid in self.constraint_ids():
            r = self.rows[rid]
            rng = "" if r.range is None else f"  range {_fmt(r.range)}"
            lines.append(f"{r.name:<12} {r.sense.value}  {_fmt(r.rhs)}{rng}")
        return "\n".join(lines)

    def format_model(self) -> str:
        """Whole model in equation format."""
        lines = [f"Problem: {self.name or '(unnamed)'}"]
        if self.obj_row is not None:
            objective = self.format_row(self.obj_row)
            if self.obj_const:
                objective += f" + {_fmt(self.obj_const)}"
            lines.append(objective)
        lines.append("Subject to:")
        lines.extend(f"  {self.format_row(rid)}" for rid in self.constraint_ids())
        lines.append("Bounds:")
        for cid in self.col_ids():
            c = self.cols[cid]
            kind = "" if c.kind is VarKind.CONTINUOUS else f" ({c.kind.value})"
            lines.append(f"  {_fmt(c.lower)} <= {c.name} <= {_fmt(c.upper)}{kind}")
        return "\n".join(lines)
