from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import pandas as pd

INF = float("inf")


class Sense(str, Enum):
    """Row type, using the MPS letters."""

    LE = "L"
    GE = "G"
    EQ = "E"
    FREE = "N"

    @classmethod
    def parse(cls, value: "str | Sense") -> "Sense":
        if isinstance(value, Sense):
            return value
        aliases = {"<=": cls.LE, ">=": cls.GE, "=": cls.EQ, "==": cls.EQ}
        text = str(value).strip()
        if text in aliases:
            return aliases[text]
        return cls(text.upper())


class VarKind(str, Enum):
    CONTINUOUS = "continuous"
    INTEGER = "integer"
    BINARY = "binary"

    @property
    def is_integral(self) -> bool:
        return self is not VarKind.CONTINUOUS


class ObjSense(str, Enum):
    MIN = "min"
    MAX = "max"


@dataclass
class Row:
    """A constraint (or the objective) of the model."""

    name: str
    sense: Sense
    rhs: float = 0.0
    range: float | None = None
    scale: float = 1.0
    has_elems: list[int] = field(default_factory=list)


@dataclass
class Column:
    name: str
    kind: VarKind = VarKind.CONTINUOUS
    lower: float = 0.0
    upper: float = INF
    scale: float = 1.0
    has_elems: list[int] = field(default_factory=list)


@dataclass
class Element:
    row: int  # stable row id
    col: int  # stable column id
    value: float


@dataclass(frozen=True)
class ModelOutline:
    """Names of the constraint rows and columns a model had before presolve."""

    rows: frozenset[str]
    cols: frozenset[str]
    num_elems: int


@dataclass(frozen=True)
class PresolveCounts:
    """What presolve removed.

    ``elems_created`` counts objective elements added by column-singleton
    substitution; they are not netted out of ``elems_deleted``, so
    ``remaining + elems_deleted - elems_created == original``.
    """

    rows_deleted: int = 0
    cols_deleted: int = 0
    elems_deleted: int = 0
    iterations: int = 0
    bounds_tightened: int = 0
    elems_created: int = 0


@dataclass(frozen=True)
class ModelStatistics:
    """Summary of a model's size and coefficient range."""

    name: str
    num_rows: int
    num_cols: int
    num_elems: int
    rows_by_sense: Mapping[str, int]
    cols_by_kind: Mapping[str, int]
    density: float
    min_abs_coef: float
    max_abs_coef: float
    obj_elems: int


# ---------------------------------------------------------------------------
# Solver-side results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawRowResult:
    activity: float
    slack: float
    pi: float


@dataclass(frozen=True)
class RawColResult:
    value: float
    reduced_cost: float


@dataclass(frozen=True)
class RawResult:
    """What a backend returns, in the model's scaled space, keyed by name."""

    objective: float
    status: str
    rows: Mapping[str, RawRowResult]
    cols: Mapping[str, RawColResult]
    solver_name: str = ""
    runtime_sec: float = 0.0


# ---------------------------------------------------------------------------
# Final solution snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConstraintSolution:
    type: str
    rhs: float
    slack: float
    pi: float
    dual: float
    scale_factor: float


@dataclass(frozen=True)
class VariableSolution:
    value: float
    reduced_cost: float
    scale_factor: float


@dataclass(frozen=True)
class Solution:
    """Solution of the original (unreduced) model.

    ``con_map`` and ``var_map`` are read-only views; the object is built once
    by the postsolve mapper and never changes afterwards.
    """

    objective_value: float
    status: str
    rows_deleted: int
    cols_deleted: int
    elems_deleted: int
    con_map: Mapping[str, ConstraintSolution]
    var_map: Mapping[str, VariableSolution]
    solver_name: str = ""
    solver_runtime_sec: float = 0.0

    def __post_init__(self):
        if not isinstance(self.con_map, MappingProxyType):
            object.__setattr__(self, "con_map", MappingProxyType(dict(self.con_map)))
        if not isinstance(self.var_map, MappingProxyType):
            object.__setattr__(self, "var_map", MappingProxyType(dict(self.var_map)))

    def constraints_frame(self) -> pd.DataFrame:
        """Constraint entries as a DataFrame indexed by row name."""
        data = [
            {
                "Row": name,
                "Type": con.type,
                "RHS": con.rhs,
                "Slack": con.slack,
                "Pi": con.pi,
                "Dual": con.dual,
                "Scale_Factor": con.scale_factor,
            }
            for name, con in sorted(self.con_map.items())
        ]
        return pd.DataFrame(
            data, columns=["Row", "Type", "RHS", "Slack", "Pi", "Dual", "Scale_Factor"]
        )

    def variables_frame(self) -> pd.DataFrame:
        """Variable entries as a DataFrame indexed by column name."""
        data = [
            {
                "Column": name,
                "Value": var.value,
                "Reduced_Cost": var.reduced_cost,
                "Scale_Factor": var.scale_factor,
            }
            for name, var in sorted(self.var_map.items())
        ]
        return pd.DataFrame(
            data, columns=["Column", "Value", "Reduced_Cost", "Scale_Factor"]
        )

    def to_dict(self) -> dict:
        return {
            "objective_value": self.objective_value,
            "status": self.status,
            "rows_deleted": self.rows_deleted,
            "cols_deleted": self.cols_deleted,
            "elems_deleted": self.elems_deleted,
            "solver_name": self.solver_name,
            "solver_runtime_sec": self.solver_runtime_sec,
            "constraints": {
                name: {
                    "type": c.type,
                    "rhs": c.rhs,
                    "slack": c.slack,
                    "pi": c.pi,
                    "dual": c.dual,
                    "scale_factor": c.scale_factor,
                }
                for name, c in self.con_map.items()
            },
            "variables": {
                name: {
                    "value": v.value,
                    "reduced_cost": v.reduced_cost,
                    "scale_factor": v.scale_factor,
                }
                for name, v in self.var_map.items()
            },
        }
