"""
save_results.py – persistence of solutions

Single exit point for writing a `Solution` to disk.  JSON keeps everything in
one document; CSV writes one file per table next to each other; XLSX puts the
tables on separate sheets of one workbook.
"""

import json
from dataclasses import asdict
from pathlib import Path

import numpy as np
import pandas as pd

from lpopt.core_types import PresolveCounts, Solution
from lpopt.utils.logging import LpoLogger
from lpopt.utils.time_measurement import TimeMeasurement

logger = LpoLogger.get_logger(__name__)


def _summary_rows(solution: Solution, counts: PresolveCounts | None) -> list[tuple[str, object]]:
    rows: list[tuple[str, object]] = [
        ("Objective Value", solution.objective_value),
        ("Solver Status", solution.status),
        ("Solver", solution.solver_name),
        ("Solver Runtime (s)", solution.solver_runtime_sec),
        ("Rows Deleted", solution.rows_deleted),
        ("Columns Deleted", solution.cols_deleted),
        ("Elements Deleted", solution.elems_deleted),
    ]
    if counts is not None:
        rows.append(("Presolve Iterations", counts.iterations))
        rows.append(("Bounds Tightened", counts.bounds_tightened))
        rows.append(("Elements Created", counts.elems_created))
    return rows


def _time_rows(time_measurements: list[TimeMeasurement] | None) -> list[tuple[str, float]]:
    rows = []
    for measurement in time_measurements or []:
        rows.append((f"{measurement.span_name}_wall_time", measurement.wall_time))
        rows.append(
            (
                f"{measurement.span_name}_total_cpu_time",
                measurement.process_user_time
                + measurement.process_system_time
                + measurement.children_user_time
                + measurement.children_system_time,
            )
        )
    return rows


def save_solution(
    solution: Solution,
    filename: str | Path,
    format: str = "json",
    counts: PresolveCounts | None = None,
    time_measurements: list[TimeMeasurement] | None = None,
) -> list[Path]:
    """Write *solution* and return the files written."""
    output_filename = Path(filename)
    output_filename.parent.mkdir(parents=True, exist_ok=True)

    if format == "json":
        written = [_write_to_json(output_filename, solution, counts, time_measurements)]
    elif format == "csv":
        written = _write_to_csv(output_filename, solution, counts)
    elif format == "xlsx":
        written = [_write_to_excel(output_filename, solution, counts, time_measurements)]
    else:
        raise ValueError(f"Unsupported solution format '{format}' (json, csv or xlsx)")

    logger.debug(f"Solution written to {', '.join(str(p) for p in written)}")
    return written


def _write_to_excel(
    filename: Path,
    solution: Solution,
    counts: PresolveCounts | None,
    time_measurements: list[TimeMeasurement] | None,
) -> Path:
    with pd.ExcelWriter(filename, engine="openpyxl") as writer:
        pd.DataFrame(_summary_rows(solution, counts), columns=["Metric", "Value"]).to_excel(
            writer, sheet_name="Solution Summary", index=False
        )
        solution.constraints_frame().to_excel(writer, sheet_name="Constraints", index=False)
        solution.variables_frame().to_excel(writer, sheet_name="Variables", index=False)

        time_rows = _time_rows(time_measurements)
        if time_rows:
            pd.DataFrame(time_rows, columns=["Metric", "Value"]).to_excel(
                writer, sheet_name="Time Measurements", index=False
            )
    return filename


def _write_to_csv(
    filename: Path, solution: Solution, counts: PresolveCounts | None
) -> list[Path]:
    stem = filename.with_suffix("")
    summary_path = stem.with_name(f"{stem.name}_summary.csv")
    constraints_path = stem.with_name(f"{stem.name}_constraints.csv")
    variables_path = stem.with_name(f"{stem.name}_variables.csv")

    pd.DataFrame(_summary_rows(solution, counts), columns=["Metric", "Value"]).to_csv(
        summary_path, index=False
    )
    solution.constraints_frame().to_csv(constraints_path, index=False)
    solution.variables_frame().to_csv(variables_path, index=False)
    return [summary_path, constraints_path, variables_path]


def _write_to_json(
    filename: Path,
    solution: Solution,
    counts: PresolveCounts | None,
    time_measurements: list[TimeMeasurement] | None,
) -> Path:

    class NumpyEncoder(json.JSONEncoder):
        def default(self, obj):
            if isinstance(obj, np.integer):
                return int(obj)
            if isinstance(obj, np.floating):
                return float(obj)
            if isinstance(obj, np.ndarray):
                return obj.tolist()
            return super().default(obj)

    json_data = {
        "Solution Summary": dict(_summary_rows(solution, counts)),
        "Constraints": solution.to_dict()["constraints"],
        "Variables": solution.to_dict()["variables"],
    }
    if time_measurements:
        time_data = {}
        for measurement in time_measurements:
            values = asdict(measurement)
            time_data[values.pop("span_name")] = values
        json_data["Time Measurements"] = time_data

    with open(filename, "w") as f:
        json.dump(json_data, f, cls=NumpyEncoder, indent=2)
    return filename
