"""
Row/column/element model store and model files.
"""

from .io import load_model, model_from_dict, model_to_dict, save_model
from .store import ModelStore, row_bounds, set_row_bounds

__all__ = [
    "ModelStore",
    "row_bounds",
    "set_row_bounds",
    "load_model",
    "save_model",
    "model_from_dict",
    "model_to_dict",
]
