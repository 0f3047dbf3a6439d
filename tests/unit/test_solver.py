"""Unit tests for the solver adapters, backend selection and the PuLP translation."""

import os
import unittest
from unittest.mock import MagicMock, PropertyMock, patch

import pulp
import pytest

from helpers import build_r1r2_model
from lpopt.config.params import SolverParams
from lpopt.exceptions import SolveCancelled, SolverFailed, SolverUnavailable
from lpopt.interfaces import CancelToken
from lpopt.model.store import ModelStore
from lpopt.optimization import build_problem, result_without_columns
from lpopt.registry import SOLVER_ADAPTER_REGISTRY, register_solver_adapter
from lpopt.utils.solver import CbcAdapter, GurobiAdapter, pick_solver


class TestPickSolver(unittest.TestCase):
    """Test cases for pick_solver function."""

    def setUp(self):
        """Backup and clear LPOPT_SOLVER before each test to avoid side-effects."""
        self._orig_solver_env = os.environ.get("LPOPT_SOLVER")
        os.environ.pop("LPOPT_SOLVER", None)

    def tearDown(self):
        """Restore original LPOPT_SOLVER after each test."""
        if self._orig_solver_env is not None:
            os.environ["LPOPT_SOLVER"] = self._orig_solver_env
        else:
            os.environ.pop("LPOPT_SOLVER", None)

    def test_pick_solver_explicit_cbc(self):
        adapter = pick_solver(SolverParams(name="cbc"))
        self.assertIsInstance(adapter, CbcAdapter)
        self.assertEqual(adapter.name, "CBC")

    def test_env_overrides_params(self):
        os.environ["LPOPT_SOLVER"] = "CBC"
        with patch.object(GurobiAdapter, "available", new_callable=PropertyMock, return_value=True):
            adapter = pick_solver(SolverParams(name="gurobi"))
        self.assertIsInstance(adapter, CbcAdapter)

    def test_auto_prefers_gurobi_when_available(self):
        with patch.object(GurobiAdapter, "available", new_callable=PropertyMock, return_value=True):
            adapter = pick_solver(SolverParams(name="auto"))
        self.assertIsInstance(adapter, GurobiAdapter)

    def test_auto_falls_back_to_cbc(self):
        with patch.object(GurobiAdapter, "available", new_callable=PropertyMock, return_value=False):
            adapter = pick_solver(SolverParams())
        self.assertIsInstance(adapter, CbcAdapter)

    def test_unavailable_backend_rejected(self):
        with patch.object(GurobiAdapter, "available", new_callable=PropertyMock, return_value=False):
            with self.assertRaises(SolverUnavailable):
                pick_solver(SolverParams(name="gurobi"))

    def test_unknown_backend_rejected(self):
        with self.assertRaises(SolverUnavailable):
            pick_solver(SolverParams(name="glpk-nope"))


class TestPulpSolverConfiguration(unittest.TestCase):
    """Adapters pass time limit and gap through to PuLP."""

    @patch("pulp.PULP_CBC_CMD")
    def test_cbc_solver_kwargs(self, mock_cbc):
        mock_solver = MagicMock()
        mock_cbc.return_value = mock_solver

        params = SolverParams(verbose=False, gap_rel=0.01, time_limit=60)
        result = CbcAdapter().get_pulp_solver(params)

        mock_cbc.assert_called_once_with(msg=False, gapRel=0.01, timeLimit=60)
        self.assertEqual(result, mock_solver)

    @patch("pulp.PULP_CBC_CMD")
    def test_cbc_defaults_leave_solver_settings_alone(self, mock_cbc):
        CbcAdapter().get_pulp_solver(SolverParams(verbose=True))

        mock_cbc.assert_called_once_with(msg=True)

    @patch("pulp.GUROBI")
    def test_gurobi_solver_kwargs(self, mock_gurobi):
        params = SolverParams(gap_rel=0.0, time_limit=180)
        GurobiAdapter().get_pulp_solver(params)

        mock_gurobi.assert_called_once_with(msg=False, gapRel=0.0, timeLimit=180)


class TestAdapterSolve(unittest.TestCase):
    """Behaviour around the backend call itself."""

    def test_cancelled_token_skips_backend(self):
        token = CancelToken()
        token.cancel()
        with patch.object(pulp.LpProblem, "solve") as mock_solve:
            with self.assertRaises(SolveCancelled) as ctx:
                CbcAdapter().solve(build_r1r2_model(), SolverParams(), token)
        mock_solve.assert_not_called()
        self.assertEqual(ctx.exception.status, "Cancelled")

    def test_non_optimal_status_raises(self):
        def fake_solve(prob, solver=None, **kwargs):
            prob.status = pulp.LpStatusInfeasible
            return prob.status

        with patch.object(pulp.LpProblem, "solve", autospec=True, side_effect=fake_solve):
            with self.assertRaises(SolverFailed) as ctx:
                CbcAdapter().solve(build_r1r2_model(), SolverParams())
        self.assertEqual(ctx.exception.status, "Infeasible")

    def test_model_without_columns_skips_backend(self):
        model = ModelStore("empty")
        model.add_row("COST", "N")
        model.add_row("R", "L", rhs=3)
        model.obj_const = 7.0

        with patch.object(pulp.LpProblem, "solve") as mock_solve:
            raw = CbcAdapter().solve(model, SolverParams())

        mock_solve.assert_not_called()
        self.assertEqual(raw.objective, 7.0)
        self.assertEqual(raw.rows["R"].slack, 3.0)
        self.assertEqual(raw.cols, {})

    def test_backend_that_cannot_run_is_unavailable(self):
        error = pulp.PulpSolverError("cannot execute cbc")
        with patch.object(pulp.LpProblem, "solve", side_effect=error):
            with self.assertRaises(SolverUnavailable) as ctx:
                CbcAdapter().solve(build_r1r2_model(), SolverParams())
        self.assertIs(ctx.exception.__cause__, error)
        self.assertIn("cannot execute cbc", str(ctx.exception))


def test_build_problem_layout():
    model = ModelStore("layout")
    model.add_row("COST", "N")
    model.add_row("RANGE", "G", rhs=2, range_=3)
    model.add_row("FREE", "N")
    model.add_row("EQ", "E", rhs=1)
    model.add_col("x1", "integer", lower=0, upper=4)
    model.add_col("x2")
    model.add_elem("COST", "x1", 1.0)
    model.add_elem("RANGE", "x1", 1.0)
    model.add_elem("RANGE", "x2", 1.0)
    model.add_elem("FREE", "x2", 5.0)
    model.add_elem("EQ", "x2", 1.0)
    model.obj_const = 2.5

    prob, x_vars, con_names = build_problem(model)

    assert con_names[model.resolve_row("RANGE")] == ["r0_lo", "r0_hi"]
    assert model.resolve_row("FREE") not in con_names
    assert con_names[model.resolve_row("EQ")] == ["r2"]
    assert set(prob.constraints) == {"r0_lo", "r0_hi", "r2"}
    assert x_vars[model.resolve_col("x1")].cat == pulp.LpInteger
    assert x_vars[model.resolve_col("x1")].upBound == 4
    assert x_vars[model.resolve_col("x2")].upBound is None
    assert prob.objective.constant == 2.5


def test_infeasible_empty_row_rejected():
    model = ModelStore("bad")
    model.add_row("COST", "N")
    model.add_row("R", "E", rhs=5)
    model.add_col("x1")
    model.add_elem("COST", "x1", 1.0)

    with pytest.raises(SolverFailed) as exc_info:
        build_problem(model)
    assert exc_info.value.status == "Infeasible"
    assert exc_info.value.entity == "R"


def test_result_without_columns_checks_rows():
    model = ModelStore("bad")
    model.add_row("R", "G", rhs=1)

    with pytest.raises(SolverFailed):
        result_without_columns(model)


def test_duplicate_registration_rejected():
    assert "cbc" in SOLVER_ADAPTER_REGISTRY
    with pytest.raises(ValueError):

        @register_solver_adapter("cbc")
        class Another:
            pass
