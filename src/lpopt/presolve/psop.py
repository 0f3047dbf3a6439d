"""
psop.py

Append-only record of everything presolve removed from a model (the "PSOP"
log), plus the bound changes made on the way.  Coefficients and values in the
records are in true (unscaled) space so that the log can be audited, or a
reduction reversed by hand, without knowing the scale factors in force.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from pathlib import Path

from lpopt.core_types import Sense
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)


class ReasonCode(str, Enum):
    NONBINDING = "nonbinding"
    ROW_SINGLETON = "row-singleton"
    COLUMN_SINGLETON = "column-singleton"
    FIXED_VARIABLE = "fixed-variable"


class EntityKind(str, Enum):
    ROW = "row"
    COLUMN = "column"


@dataclass(frozen=True)
class Coefficient:
    row: str
    col: str
    value: float


@dataclass(frozen=True)
class EliminationRecord:
    """One eliminated row or column.

    ``sense``/``rhs``/``range`` describe the row involved (the eliminated row,
    or the substitution row of a column singleton) as it was right before the
    elimination.  ``old_bounds``/``new_bounds`` are column bounds before and
    after a row singleton was applied.  ``obj_coef`` is the eliminated
    column's objective coefficient at elimination time.  ``seq`` is the
    position in the log, shared with bound changes.
    """

    kind: EntityKind
    name: str
    reason: ReasonCode
    coefs: tuple[Coefficient, ...] = ()
    partner: str | None = None
    value: float | None = None
    sense: Sense | None = None
    rhs: float | None = None
    range: float | None = None
    old_bounds: tuple[float, float] | None = None
    new_bounds: tuple[float, float] | None = None
    obj_coef: float = 0.0
    scale: float = 1.0
    iteration: int = 0
    seq: int = 0


@dataclass(frozen=True)
class BoundChange:
    """A column bound tightened by an implied row bound; not an elimination.

    ``coefs`` holds the row's coefficients when the bound was derived, so
    postsolve can hand a reduced cost earned on the new bound to that row.
    """

    col: str
    row: str
    old_bounds: tuple[float, float]
    new_bounds: tuple[float, float]
    iteration: int = 0
    coefs: tuple[Coefficient, ...] = ()
    seq: int = 0


@dataclass
class EliminationLog:
    records: list[EliminationRecord] = field(default_factory=list)
    bound_changes: list[BoundChange] = field(default_factory=list)
    sealed: bool = False
    next_seq: int = 1

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def append(self, record: EliminationRecord) -> None:
        if self.sealed:
            raise RuntimeError("Elimination log is sealed")
        self.records.append(replace(record, seq=self._take_seq()))

    def add_bound_change(self, change: BoundChange) -> None:
        if self.sealed:
            raise RuntimeError("Elimination log is sealed")
        self.bound_changes.append(replace(change, seq=self._take_seq()))

    def _take_seq(self) -> int:
        seq = self.next_seq
        self.next_seq += 1
        return seq

    def seal(self) -> "EliminationLog":
        self.sealed = True
        return self

    def timeline(self) -> list["EliminationRecord | BoundChange"]:
        """Eliminations and bound changes together, in the order they happened."""
        return sorted([*self.records, *self.bound_changes], key=lambda entry: entry.seq)

    def eliminated(self, kind: EntityKind) -> list[str]:
        return [r.name for r in self.records if r.kind is kind]

    def by_reason(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.records:
            counts[record.reason.value] = counts.get(record.reason.value, 0) + 1
        return counts

    def to_records(self) -> list[dict]:
        """Plain-dict form of the eliminations, for JSON dumps."""
        rows = []
        for record in self.records:
            data = asdict(record)
            data["kind"] = record.kind.value
            data["reason"] = record.reason.value
            data["sense"] = record.sense.value if record.sense is not None else None
            rows.append(data)
        return rows


def _fmt(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


def _format_coefs(coefs: tuple[Coefficient, ...], per_line: int) -> list[str]:
    if per_line == 0 or not coefs:
        return []
    tokens = [f"{c.row} {c.col} {_fmt(c.value)}" for c in coefs]
    if per_line < 0:
        per_line = len(tokens)
    return [
        "    " + "; ".join(tokens[i : i + per_line])
        for i in range(0, len(tokens), per_line)
    ]


def format_psop(log: EliminationLog, coefs_per_line: int = -1) -> str:
    """Render the log in PSOP text form.

    *coefs_per_line* < 0 puts all coefficients of a record on one line, 0
    omits them, n > 0 wraps after n coefficients.
    """
    lines = [
        "# PSOP elimination log",
        f"# eliminations: {len(log.records)}  bound changes: {len(log.bound_changes)}",
    ]
    for record in log.records:
        header = (
            f"[{record.seq}] {record.kind.value} {record.name} {record.reason.value}"
            f" partner={record.partner or '-'} value={_fmt(record.value)}"
            f" iteration={record.iteration}"
        )
        if record.sense is not None:
            header += f" row={record.sense.value}:{_fmt(record.rhs)}"
            if record.range is not None:
                header += f"/{_fmt(record.range)}"
        if record.old_bounds is not None and record.new_bounds is not None:
            header += (
                f" bounds=[{_fmt(record.old_bounds[0])},{_fmt(record.old_bounds[1])}]"
                f"->[{_fmt(record.new_bounds[0])},{_fmt(record.new_bounds[1])}]"
            )
        lines.append(header)
        lines.extend(_format_coefs(record.coefs, coefs_per_line))

    lines.append("# bound changes")
    for change in log.bound_changes:
        lines.append(
            f"[{change.seq}] {change.col} {change.row}"
            f" [{_fmt(change.old_bounds[0])},{_fmt(change.old_bounds[1])}]"
            f"->[{_fmt(change.new_bounds[0])},{_fmt(change.new_bounds[1])}]"
            f" iteration={change.iteration}"
        )
        lines.extend(_format_coefs(change.coefs, coefs_per_line))
    return "\n".join(lines) + "\n"


def write_psop_file(log: EliminationLog, path: str | Path, coefs_per_line: int = -1) -> Path:
    """Write the PSOP artifact and return its path."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(format_psop(log, coefs_per_line))
    logger.debug(f"Wrote {len(log.records)} elimination records to {out}")
    return out
