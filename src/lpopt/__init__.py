"""lpopt: LP/MIP presolve, solve orchestration and postsolve."""

__version__ = "0.1.0b1"

# Main API
from .api import reduce, run, solve

# Core types
from .config.params import IOParams, LpoParams, PresolveControl, SolverParams
from .core_types import (
    ConstraintSolution,
    ObjSense,
    PresolveCounts,
    RawResult,
    Sense,
    Solution,
    VariableSolution,
    VarKind,
)
from .exceptions import (
    EmptyModel,
    InconsistentLog,
    IndexOutOfRange,
    InfeasibleBound,
    LpoError,
    SolveCancelled,
    SolverFailed,
    SolverUnavailable,
)
from .interfaces import CancelToken, SolverAdapter
from .model import ModelStore, load_model, save_model

# Stage functions (for advanced users)
from .pipeline.controller import PipelineResult, run_pipeline
from .postsolve.mapper import reconstruct
from .presolve import EliminationLog, reduce_matrix, tighten_bounds

# Extension system
from .registry import register_solver_adapter
from .utils.solver import pick_solver

__all__ = [
    # Version
    "__version__",
    # Main API
    "run",
    "solve",
    "reduce",
    # Stage functions
    "reduce_matrix",
    "tighten_bounds",
    "reconstruct",
    "run_pipeline",
    "pick_solver",
    # Types
    "ModelStore",
    "load_model",
    "save_model",
    "EliminationLog",
    "PipelineResult",
    "PresolveControl",
    "SolverParams",
    "IOParams",
    "LpoParams",
    "PresolveCounts",
    "RawResult",
    "Solution",
    "ConstraintSolution",
    "VariableSolution",
    "Sense",
    "VarKind",
    "ObjSense",
    "CancelToken",
    "SolverAdapter",
    # Errors
    "LpoError",
    "EmptyModel",
    "IndexOutOfRange",
    "InfeasibleBound",
    "SolverUnavailable",
    "SolverFailed",
    "SolveCancelled",
    "InconsistentLog",
    # Extensions
    "register_solver_adapter",
]
