"""
PuLP problem build, solve and raw result extraction.
"""

# Re-export public functions from core
from .core import build_problem, extract_result, result_without_columns, solve_model

__all__ = [
    "build_problem",
    "extract_result",
    "result_without_columns",
    "solve_model",
]
