"""
io.py – model files

A model document is a mapping with the keys ``name``, ``sense``,
``objective``, ``objective_constant``, ``rows``, ``cols`` and ``elems``;
elements are ``[row, col, value]`` triples.  The same structure is read from
YAML (``.yaml``/``.yml``) or JSON (``.json``).

```yaml
name: demo
sense: min
objective: COST
rows:
  - {name: COST, sense: N}
  - {name: R1, sense: L, rhs: 10}
cols:
  - {name: x1, lower: 0, upper: .inf}
elems:
  - [COST, x1, -1]
  - [R1, x1, 1]
```
"""

import json
import math
from pathlib import Path
from typing import Any

import yaml

from lpopt.core_types import INF
from lpopt.model.store import ModelStore
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


def _bound(value: Any, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, str):
        # JSON has no infinity literal; accept the usual spellings.
        text = value.strip().lower()
        if text in {"inf", "+inf", "infinity", ".inf"}:
            return INF
        if text in {"-inf", "-infinity", "-.inf"}:
            return -INF
    return float(value)


def model_from_dict(data: dict[str, Any]) -> ModelStore:
    """Build a `ModelStore` from a model document."""
    data = dict(data)
    model = ModelStore(name=data.pop("name", ""), sense=data.pop("sense", "min"))
    objective = data.pop("objective", None)
    model.obj_const = float(data.pop("objective_constant", 0.0))

    try:
        rows = data.pop("rows")
        cols = data.pop("cols")
    except KeyError as exc:
        raise ValueError(f"Model document missing required key {exc}") from exc
    elems = data.pop("elems", []) or []

    if data:
        unknown_keys = ", ".join(sorted(data.keys()))
        raise ValueError(f"Unknown keys in model document: {unknown_keys}")

    for row in rows:
        model.add_row(
            row["name"],
            row.get("sense", "L"),
            rhs=row.get("rhs", 0.0),
            range_=row.get("range"),
            scale=row.get("scale", 1.0),
        )
    if objective is not None:
        model.set_objective(objective)

    for col in cols:
        model.add_col(
            col["name"],
            col.get("kind", "continuous"),
            lower=_bound(col.get("lower"), 0.0),
            upper=_bound(col.get("upper"), INF),
            scale=col.get("scale", 1.0),
        )

    for entry in elems:
        if isinstance(entry, dict):
            row_name, col_name, value = entry["row"], entry["col"], entry["value"]
        else:
            row_name, col_name, value = entry
        model.add_elem(row_name, col_name, value)

    model.adjust_model()
    return model


def _json_bound(value: float) -> float | str:
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


def model_to_dict(model: ModelStore) -> dict[str, Any]:
    """Model document for *model*, rows/columns/elements in stable-id order."""
    rows = []
    for rid in sorted(model.rows):
        row = model.rows[rid]
        entry: dict[str, Any] = {"name": row.name, "sense": row.sense.value, "rhs": row.rhs}
        if row.range is not None:
            entry["range"] = row.range
        if row.scale != 1.0:
            entry["scale"] = row.scale
        rows.append(entry)

    cols = []
    for cid in model.col_ids():
        col = model.cols[cid]
        entry = {
            "name": col.name,
            "kind": col.kind.value,
            "lower": _json_bound(col.lower),
            "upper": _json_bound(col.upper),
        }
        if col.scale != 1.0:
            entry["scale"] = col.scale
        cols.append(entry)

    elems = [
        [model.rows[e.row].name, model.cols[e.col].name, e.value]
        for _, e in sorted(model.elems.items())
    ]
    return {
        "name": model.name,
        "sense": model.sense.value,
        "objective": model.rows[model.obj_row].name if model.obj_row is not None else None,
        "objective_constant": model.obj_const,
        "rows": rows,
        "cols": cols,
        "elems": elems,
    }


def load_model(path: str | Path) -> ModelStore:
    """Read a YAML or JSON model file."""
    model_path = Path(path)
    if not model_path.exists():
        raise FileNotFoundError(model_path)

    try:
        with model_path.open() as f:
            if model_path.suffix.lower() in _YAML_SUFFIXES:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Error parsing model file {model_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Model file {model_path} must contain a mapping")
    model = model_from_dict(data)
    if not model.name:
        model.name = model_path.stem
    logger.debug(
        f"Loaded model {model.name}: {model.num_rows} rows, "
        f"{model.num_cols} cols, {model.num_elems} elems"
    )
    return model


def save_model(model: ModelStore, path: str | Path) -> Path:
    """Write *model* as YAML or JSON depending on the file suffix."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    data = model_to_dict(model)
    with out.open("w") as f:
        if out.suffix.lower() in _YAML_SUFFIXES:
            yaml.safe_dump(data, f, sort_keys=False)
        else:
            json.dump(data, f, indent=2)
    return out
