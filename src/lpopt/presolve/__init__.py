"""
Presolve: bound tightening, singleton and fixed-variable elimination.
"""

from .engine import reduce_matrix, tighten_bounds
from .psop import (
    BoundChange,
    Coefficient,
    EliminationLog,
    EliminationRecord,
    EntityKind,
    ReasonCode,
    format_psop,
    write_psop_file,
)

__all__ = [
    "reduce_matrix",
    "tighten_bounds",
    "BoundChange",
    "Coefficient",
    "EliminationLog",
    "EliminationRecord",
    "EntityKind",
    "ReasonCode",
    "format_psop",
    "write_psop_file",
]
