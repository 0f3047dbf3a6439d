"""Parameter container dataclasses for the lpopt configuration system.

Presolve control, solver selection and I/O sinks live in separate immutable
dataclasses.  A small mutable `RuntimeParams` bucket captures flags that are
never serialised to YAML but can be toggled from the CLI.
"""

from dataclasses import dataclass, field, replace

__all__ = [
    "PresolveControl",
    "SolverParams",
    "IOParams",
    "RuntimeParams",
    "LpoParams",
]


# ---------------------------------------------------------------------------
# Presolve control
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PresolveControl:
    """Which reductions run, how often, and with what tolerances."""

    tighten_bounds: bool = True
    remove_row_singletons: bool = True
    remove_col_singletons: bool = True
    remove_fixed_vars: bool = True
    run_solver: bool = True
    scale_rows: bool = False
    max_iterations: int = 10
    fixed_tol: float = 1e-9
    feas_tol: float = 1e-9
    pivot_tol: float = 1e-7
    order: str = "ascending"  # ascending | descending stable-id order
    keep_rows: tuple[str, ...] = ()
    keep_cols: tuple[str, ...] = ()

    def __post_init__(self):  # type: ignore[override]
        if self.max_iterations < 0:
            raise ValueError("PresolveControl.max_iterations must be non-negative.")
        for field_name in ("fixed_tol", "feas_tol", "pivot_tol"):
            if getattr(self, field_name) < 0:
                raise ValueError(f"PresolveControl.{field_name} must be non-negative.")
        if self.order not in {"ascending", "descending"}:
            raise ValueError("PresolveControl.order must be 'ascending' or 'descending'.")
        # YAML hands us lists.
        object.__setattr__(self, "keep_rows", tuple(self.keep_rows))
        object.__setattr__(self, "keep_cols", tuple(self.keep_cols))

    @property
    def any_reduction(self) -> bool:
        return (
            self.tighten_bounds
            or self.remove_row_singletons
            or self.remove_col_singletons
            or self.remove_fixed_vars
        )

    def without_reductions(self) -> "PresolveControl":
        """Same control with every reduction switched off."""
        return replace(
            self,
            tighten_bounds=False,
            remove_row_singletons=False,
            remove_col_singletons=False,
            remove_fixed_vars=False,
        )


# ---------------------------------------------------------------------------
# Solver parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SolverParams:
    name: str = "auto"  # cbc | gurobi | auto, or any registered adapter
    time_limit: float | None = None
    gap_rel: float | None = None
    verbose: bool = False

    def __post_init__(self):  # type: ignore[override]
        if not self.name:
            raise ValueError("SolverParams.name cannot be empty.")
        if self.time_limit is not None and self.time_limit < 0:
            raise ValueError("SolverParams.time_limit must be non-negative.")
        if self.gap_rel is not None and self.gap_rel < 0:
            raise ValueError("SolverParams.gap_rel must be non-negative.")


# ---------------------------------------------------------------------------
# IO parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IOParams:
    """Where the model comes from and which artifacts are persisted.

    An empty path means "use the held model" for ``input_source`` and "do not
    persist" for the outputs.
    """

    input_source: str = ""
    solution_output: str = ""
    reduced_model_output: str = ""
    psop_output: str = ""
    psop_coefs_per_line: int = -1
    format: str = "json"  # One of: xlsx, json, csv

    def __post_init__(self):  # type: ignore[override]
        if self.format not in {"xlsx", "json", "csv"}:
            raise ValueError("IOParams.format must be 'xlsx', 'json' or 'csv'.")


# ---------------------------------------------------------------------------
# Runtime parameters – toggles that are never serialized to yaml
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RuntimeParams:
    verbose: bool = False
    debug: bool = False


# ---------------------------------------------------------------------------
# Aggregate container
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class LpoParams:
    """Aggregate parameter object passed through the pipeline."""

    presolve: PresolveControl = field(default_factory=PresolveControl)
    solver: SolverParams = field(default_factory=SolverParams)
    io: IOParams = field(default_factory=IOParams)
    runtime: RuntimeParams = field(default_factory=RuntimeParams)
