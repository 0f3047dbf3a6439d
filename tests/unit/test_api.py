"""Tests for the programmatic entry points."""

import dataclasses
from unittest.mock import patch

import pulp
import pytest

from helpers import ScriptedAdapter, build_r1r2_model
from lpopt import EmptyModel, InfeasibleBound, LpoParams, ModelStore, reduce, run, save_model, solve
from lpopt.config.params import IOParams, PresolveControl
from lpopt.exceptions import SolveCancelled, SolverUnavailable
from lpopt.interfaces import CancelToken
from lpopt.utils.solver import CbcAdapter


def _params(**io):
    return LpoParams(io=IOParams(**io))


def test_solve_returns_original_model_solution():
    adapter = ScriptedAdapter(values={"x1": 5.0})

    solution = solve(build_r1r2_model(), _params(), adapter=adapter)

    assert adapter.calls == 1
    assert solution.objective_value == -5.0
    assert solution.var_map["x2"].value == 5.0
    assert set(solution.con_map) == {"R1", "R2"}


def test_solve_forces_solver_on():
    params = dataclasses.replace(_params(), presolve=PresolveControl(run_solver=False))
    adapter = ScriptedAdapter()

    solution = solve(build_r1r2_model(), params, adapter=adapter)

    assert solution is not None
    assert adapter.calls == 1


def test_reduce_never_solves(tmp_path):
    path = save_model(build_r1r2_model(), tmp_path / "model.yaml")

    result = reduce(path, _params(psop_output=str(tmp_path / "model.psop")))

    assert result.solution is None
    assert result.counts.cols_deleted == 1
    assert result.log.sealed
    assert result.artifacts["psop"][0].exists()


def test_run_writes_requested_artifacts(tmp_path):
    params = _params(
        solution_output=str(tmp_path / "sol.json"),
        reduced_model_output=str(tmp_path / "reduced.json"),
    )

    result = run(build_r1r2_model(), params, adapter=ScriptedAdapter(values={"x1": 5.0}))

    assert set(result.artifacts) == {"solution", "reduced_model"}
    assert (tmp_path / "sol.json").exists()
    assert (tmp_path / "reduced.json").exists()
    assert {m.span_name for m in result.time_measurements} >= {"presolve", "solve", "postsolve", "global"}


def test_model_from_input_source(tmp_path):
    path = save_model(build_r1r2_model(), tmp_path / "model.json")

    result = run(None, _params(input_source=str(path)), adapter=ScriptedAdapter())

    assert result.model.name == "r1r2"


def test_missing_model_source():
    with pytest.raises(ValueError):
        run(None, _params())


def test_missing_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        run(tmp_path / "nope.yaml", _params())
    with pytest.raises(FileNotFoundError):
        run(build_r1r2_model(), tmp_path / "nope.yaml")


def test_errors_carry_stage():
    with pytest.raises(EmptyModel) as exc_info:
        run(ModelStore(), _params())
    assert exc_info.value.stage == "presolve"

    model = ModelStore("infeasible")
    model.add_row("C", "G", rhs=30)
    model.add_col("x1", upper=10)
    model.add_elem("C", "x1", 1.0)
    with pytest.raises(InfeasibleBound) as exc_info:
        run(model, _params())
    assert exc_info.value.stage == "presolve"
    assert str(exc_info.value).startswith("[presolve] ")


def test_cancelled_solve_reports_solve_stage():
    token = CancelToken()
    token.cancel()

    class CancellingAdapter(ScriptedAdapter):
        def solve(self, model, params, cancel_token=None):
            if cancel_token is not None and cancel_token.cancelled:
                raise SolveCancelled()
            return super().solve(model, params, cancel_token)

    with pytest.raises(SolveCancelled) as exc_info:
        solve(build_r1r2_model(), _params(), adapter=CancellingAdapter(), cancel_token=token)
    assert exc_info.value.stage == "solve"
    assert exc_info.value.status == "Cancelled"


def test_backend_failure_reports_solve_stage():
    with patch.object(pulp.LpProblem, "solve", side_effect=pulp.PulpSolverError("cannot execute cbc")):
        with pytest.raises(SolverUnavailable) as exc_info:
            solve(build_r1r2_model(), _params(), adapter=CbcAdapter())
    assert exc_info.value.stage == "solve"
    assert isinstance(exc_info.value.__cause__, pulp.PulpSolverError)
