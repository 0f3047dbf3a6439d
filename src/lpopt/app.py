"""
Command-line interface for lpopt using Typer.
"""

import dataclasses
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from lpopt import __version__
from lpopt.api import run as api_run
from lpopt.config import LpoParams, load_lpopt_params
from lpopt.exceptions import LpoError
from lpopt.model.io import load_model
from lpopt.utils.logging import (
    LogLevel,
    log_error,
    log_success,
    setup_logging,
)

app = typer.Typer(
    help="lpopt: LP/MIP presolve, solve and postsolve toolkit",
    add_completion=False,
)
console = Console()


def _load_params(config: Path | None) -> LpoParams:
    if config is not None and not config.exists():
        log_error(f"Config file not found: {config}")
        raise typer.Exit(1)
    try:
        return load_lpopt_params(config)
    except (FileNotFoundError, ValueError) as e:
        log_error(str(e))
        raise typer.Exit(1)


def _apply_overrides(
    params: LpoParams,
    *,
    run_solver: bool,
    output: Path | None = None,
    format: str | None = None,
    psop: Path | None = None,
    reduced_model: Path | None = None,
    solver: str | None = None,
    scale_rows: bool | None = None,
    max_iterations: int | None = None,
    verbose: bool = False,
) -> LpoParams:
    presolve_changes: dict = {"run_solver": run_solver}
    if scale_rows is not None:
        presolve_changes["scale_rows"] = scale_rows
    if max_iterations is not None:
        presolve_changes["max_iterations"] = max_iterations

    io_changes: dict = {}
    if output is not None:
        io_changes["solution_output"] = str(output)
    if format is not None:
        io_changes["format"] = format
    if psop is not None:
        io_changes["psop_output"] = str(psop)
    if reduced_model is not None:
        io_changes["reduced_model_output"] = str(reduced_model)

    solver_changes: dict = {}
    if solver is not None:
        solver_changes["name"] = solver.lower()
    if verbose:
        solver_changes["verbose"] = True

    return dataclasses.replace(
        params,
        presolve=dataclasses.replace(params.presolve, **presolve_changes),
        io=dataclasses.replace(params.io, **io_changes),
        solver=dataclasses.replace(params.solver, **solver_changes),
    )


def _counts_table(title: str, result) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Rows Deleted", str(result.counts.rows_deleted))
    table.add_row("Columns Deleted", str(result.counts.cols_deleted))
    table.add_row("Elements Deleted", str(result.counts.elems_deleted))
    table.add_row("Elements Created", str(result.counts.elems_created))
    table.add_row("Presolve Iterations", str(result.counts.iterations))
    table.add_row("Bounds Tightened", str(result.counts.bounds_tightened))
    table.add_row("Remaining Rows", str(result.model.num_rows))
    table.add_row("Remaining Columns", str(result.model.num_cols))
    return table


def _run(model: Path, params: LpoParams, quiet: bool, debug: bool):
    if not model.exists():
        log_error(f"Model file not found: {model}")
        raise typer.Exit(1)
    try:
        return api_run(model, params, show_progress=not quiet)
    except (FileNotFoundError, ValueError) as e:
        log_error(str(e))
        raise typer.Exit(1)
    except LpoError as e:
        log_error(str(e))
        if debug:
            console.print_exception()
        raise typer.Exit(1)


@app.command()
def solve(
    model: Path = typer.Argument(..., help="Model file (.yaml, .yml or .json)"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration YAML file"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the solution to this file"
    ),
    format: str | None = typer.Option(
        None, "--format", "-f", help="Solution format (json, csv, xlsx)"
    ),
    psop: Path | None = typer.Option(None, "--psop", help="Write the elimination log here"),
    reduced_model: Path | None = typer.Option(
        None, "--reduced-model", help="Write the reduced model here"
    ),
    solver: str | None = typer.Option(None, "--solver", "-s", help="cbc, gurobi or auto"),
    scale_rows: bool | None = typer.Option(
        None, "--scale-rows/--no-scale-rows", help="Scale rows after presolve"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output (errors only)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Presolve, solve and postsolve a model.

    The solution covers every row and column of the original model, including
    the ones presolve removed.
    """
    _setup_logging_from_flags(verbose, quiet, debug)

    if format is not None and format not in ["xlsx", "json", "csv"]:
        log_error("Invalid format. Choose 'xlsx', 'json', or 'csv'")
        raise typer.Exit(1)

    params = _apply_overrides(
        _load_params(config),
        run_solver=True,
        output=output,
        format=format,
        psop=psop,
        reduced_model=reduced_model,
        solver=solver,
        scale_rows=scale_rows,
        verbose=verbose,
    )
    result = _run(model, params, quiet, debug)
    solution = result.solution

    if not quiet:
        table = _counts_table("Solve Results", result)
        table.add_row("Solver", solution.solver_name)
        table.add_row("Solver Status", solution.status)
        table.add_row("Objective", f"{solution.objective_value:g}")
        table.add_row("Solver Time", f"{solution.solver_runtime_sec:.2f}s")
        console.print(table)

        if verbose:
            variables = Table(title="Variables", show_header=True)
            for column in ("Column", "Value", "Reduced Cost"):
                variables.add_column(column)
            for name, var in sorted(solution.var_map.items()):
                variables.add_row(name, f"{var.value:g}", f"{var.reduced_cost:g}")
            console.print(variables)

    for paths in result.artifacts.values():
        for path in paths:
            log_success(f"Saved {path}")


@app.command()
def reduce(
    model: Path = typer.Argument(..., help="Model file (.yaml, .yml or .json)"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to configuration YAML file"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the reduced model to this file"
    ),
    psop: Path | None = typer.Option(None, "--psop", help="Write the elimination log here"),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", help="Cap on presolve passes"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output (errors only)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug output"),
) -> None:
    """
    Presolve a model without solving it.
    """
    _setup_logging_from_flags(verbose, quiet, debug)

    params = _apply_overrides(
        _load_params(config),
        run_solver=False,
        psop=psop,
        reduced_model=output,
        max_iterations=max_iterations,
    )
    result = _run(model, params, quiet, debug)

    if not quiet:
        console.print(_counts_table("Presolve Results", result))
        if verbose:
            console.print(result.model.format_model())

    for paths in result.artifacts.values():
        for path in paths:
            log_success(f"Saved {path}")


@app.command()
def stats(
    model: Path = typer.Argument(..., help="Model file (.yaml, .yml or .json)"),
) -> None:
    """
    Show size and coefficient statistics of a model.
    """
    if not model.exists():
        log_error(f"Model file not found: {model}")
        raise typer.Exit(1)
    try:
        store = load_model(model)
    except (ValueError, LpoError) as e:
        log_error(str(e))
        raise typer.Exit(1)

    s = store.statistics()
    table = Table(title=f"Model {s.name}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Rows", str(s.num_rows))
    table.add_row("Columns", str(s.num_cols))
    table.add_row("Elements", str(s.num_elems))
    table.add_row("Objective Elements", str(s.obj_elems))
    table.add_row("Density", f"{s.density:.4f}")
    table.add_row("Min |coef|", f"{s.min_abs_coef:g}")
    table.add_row("Max |coef|", f"{s.max_abs_coef:g}")
    for sense, count in sorted(s.rows_by_sense.items()):
        table.add_row(f"Rows ({sense})", str(count))
    for kind, count in sorted(s.cols_by_kind.items()):
        table.add_row(f"Columns ({kind})", str(count))
    console.print(table)


@app.command()
def show(
    model: Path = typer.Argument(..., help="Model file (.yaml, .yml or .json)"),
    row: list[str] = typer.Option([], "--row", "-r", help="Print this row"),
    col: list[str] = typer.Option([], "--col", help="Print this column"),
    rhs: bool = typer.Option(False, "--rhs", help="Print the right-hand sides"),
) -> None:
    """
    Print a model, or selected rows, columns and right-hand sides.
    """
    if not model.exists():
        log_error(f"Model file not found: {model}")
        raise typer.Exit(1)
    try:
        store = load_model(model)
        if not (row or col or rhs):
            console.print(store.format_model(), markup=False)
            return
        for name in row:
            console.print(store.format_row(name), markup=False)
        for name in col:
            console.print(store.format_col(name), markup=False)
        if rhs:
            console.print(store.format_rhs(), markup=False)
    except (ValueError, LpoError) as e:
        log_error(str(e))
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """
    Show the lpopt version.
    """
    console.print(f"lpopt version {__version__}")


def _setup_logging_from_flags(
    verbose: bool = False, quiet: bool = False, debug: bool = False
):
    """Setup logging based on CLI flags or environment variable."""
    level_from_flags: LogLevel | None = None
    if debug:
        level_from_flags = LogLevel.DEBUG
    elif verbose:
        level_from_flags = LogLevel.VERBOSE
    elif quiet:
        level_from_flags = LogLevel.QUIET

    if level_from_flags is not None:
        setup_logging(level_from_flags)
    else:
        # No flags set, let setup_logging handle it (will check env var)
        setup_logging()


if __name__ == "__main__":
    app()
