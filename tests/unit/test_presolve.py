"""Unit tests for the presolve passes and their fixpoint driver."""

import unittest

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from helpers import build_r1r2_model, build_substitution_model, only
from lpopt.config.params import PresolveControl
from lpopt.core_types import INF, Sense, VarKind
from lpopt.exceptions import EmptyModel, IndexOutOfRange, InfeasibleBound
from lpopt.model.io import model_to_dict
from lpopt.model.store import ModelStore
from lpopt.presolve import (
    EliminationLog,
    EntityKind,
    ReasonCode,
    reduce_matrix,
    tighten_bounds,
)


def _two_var_model(sense: str, rhs: float, lower2: float = 0.0, kind: str = "continuous"):
    model = ModelStore("two")
    model.add_row("COST", "N")
    model.add_row("C", sense, rhs=rhs)
    model.add_col("x1", kind, lower=0, upper=10)
    model.add_col("x2", kind, lower=lower2, upper=10)
    model.add_elem("COST", "x1", 1.0)
    model.add_elem("C", "x1", 1.0)
    model.add_elem("C", "x2", 1.0)
    return model


class TestFixedVariables(unittest.TestCase):
    """Fixed columns move into the rhs and the objective constant."""

    def test_fixed_column_removed_and_rhs_shifted(self):
        model = build_r1r2_model()
        log = EliminationLog()

        counts = reduce_matrix(model, only(remove_fixed_vars=True), log)

        self.assertEqual(counts.cols_deleted, 1)
        self.assertEqual(counts.rows_deleted, 0)
        self.assertEqual(counts.elems_deleted, 2)
        self.assertEqual(counts.iterations, 2)
        self.assertEqual(model.rows[model.resolve_row("R1")].rhs, 5.0)
        self.assertEqual(model.rows[model.resolve_row("R2")].rhs, 0.0)
        self.assertFalse(model.has_col("x2"))

        (record,) = log.records
        self.assertEqual(record.reason, ReasonCode.FIXED_VARIABLE)
        self.assertEqual(record.value, 5.0)
        self.assertEqual({c.row for c in record.coefs}, {"R1", "R2"})

    def test_objective_constant_collects_fixed_cost(self):
        model = build_r1r2_model()
        model.add_objective_coef(model.resolve_col("x2"), 3.0)

        reduce_matrix(model, only(remove_fixed_vars=True))

        self.assertEqual(model.obj_const, 15.0)

    def test_keep_cols_protects_column(self):
        model = build_r1r2_model()
        control = only(remove_fixed_vars=True, keep_cols=("x2",))

        counts = reduce_matrix(model, control)

        self.assertEqual(counts.cols_deleted, 0)
        self.assertTrue(model.has_col("x2"))

    def test_order_controls_elimination_sequence(self):
        model = ModelStore("fixed")
        model.add_row("COST", "N")
        model.add_row("R", "L", rhs=10)
        for name in ("xa", "xb", "xc"):
            model.add_col(name, lower=1, upper=1)
            model.add_elem("R", name, 1.0)
        model.add_col("free")
        model.add_elem("R", "free", 1.0)

        ascending = EliminationLog()
        reduce_matrix(model.copy(), only(remove_fixed_vars=True), ascending)
        descending = EliminationLog()
        reduce_matrix(model.copy(), only(remove_fixed_vars=True, order="descending"), descending)

        self.assertEqual(ascending.eliminated(EntityKind.COLUMN), ["xa", "xb", "xc"])
        self.assertEqual(descending.eliminated(EntityKind.COLUMN), ["xc", "xb", "xa"])


class TestNonbindingAndTightening(unittest.TestCase):
    """Activity-bound reasoning over whole rows."""

    def test_redundant_row_removed(self):
        model = _two_var_model("L", 30)
        log = EliminationLog()

        counts = reduce_matrix(model, only(tighten_bounds=True), log)

        self.assertEqual(counts.rows_deleted, 1)
        self.assertEqual(log.eliminated(EntityKind.ROW), ["C"])
        self.assertEqual(log.records[0].reason, ReasonCode.NONBINDING)
        self.assertEqual(log.records[0].rhs, 30.0)

    def test_unreachable_row_is_infeasible(self):
        model = _two_var_model("G", 30)

        with self.assertRaises(InfeasibleBound) as ctx:
            reduce_matrix(model, only(tighten_bounds=True))
        self.assertEqual(ctx.exception.entity, "C")

    def test_bounds_tightened_from_row(self):
        model = _two_var_model("L", 4, lower2=1)
        log = EliminationLog()

        counts = reduce_matrix(model, only(tighten_bounds=True), log)

        self.assertEqual(counts.bounds_tightened, 2)
        self.assertEqual(counts.rows_deleted, 0)
        self.assertEqual(model.cols[model.resolve_col("x1")].upper, 3.0)
        self.assertEqual(model.cols[model.resolve_col("x2")].upper, 4.0)
        self.assertEqual(len(log.records), 0)
        self.assertEqual(
            [(c.col, c.old_bounds, c.new_bounds) for c in log.bound_changes],
            [("x1", (0.0, 10.0), (0.0, 3.0)), ("x2", (1.0, 10.0), (1.0, 4.0))],
        )

    def test_tighten_bounds_reports_iterations(self):
        model = _two_var_model("L", 4, lower2=1)

        iterations = tighten_bounds(model, PresolveControl())

        self.assertEqual(iterations, 2)

    def test_integer_bounds_rounded(self):
        model = ModelStore("int")
        model.add_row("C", "L", rhs=7)
        for name in ("x1", "x2"):
            model.add_col(name, VarKind.INTEGER, lower=0, upper=10)
            model.add_elem("C", name, 2.0)

        reduce_matrix(model, only(tighten_bounds=True))

        self.assertEqual(model.cols[model.resolve_col("x1")].upper, 3.0)
        self.assertEqual(model.cols[model.resolve_col("x2")].upper, 3.0)

    def test_keep_rows_protects_redundant_row(self):
        model = _two_var_model("L", 30)

        counts = reduce_matrix(model, only(tighten_bounds=True, keep_rows=("C",)))

        self.assertEqual(counts.rows_deleted, 0)


class TestRowSingletons(unittest.TestCase):
    """Single-column rows become column bounds."""

    def _model(self, rhs):
        model = ModelStore("single")
        model.add_row("COST", "N")
        model.add_row("S", "G", rhs=rhs)
        model.add_col("x1", lower=0, upper=10)
        model.add_elem("COST", "x1", 1.0)
        model.add_elem("S", "x1", 2.0)
        return model

    def test_row_becomes_bound(self):
        model = self._model(4)
        log = EliminationLog()

        counts = reduce_matrix(model, only(remove_row_singletons=True), log)

        self.assertEqual(counts.rows_deleted, 1)
        self.assertEqual(model.cols[model.resolve_col("x1")].lower, 2.0)
        (record,) = log.records
        self.assertEqual(record.partner, "x1")
        self.assertEqual(record.old_bounds, (0.0, 10.0))
        self.assertEqual(record.new_bounds, (2.0, 10.0))
        self.assertIs(record.sense, Sense.GE)
        self.assertEqual(record.rhs, 4.0)

    def test_crossing_bounds_are_infeasible(self):
        model = self._model(40)

        with self.assertRaises(InfeasibleBound):
            reduce_matrix(model, only(remove_row_singletons=True))


class TestColumnSingletons(unittest.TestCase):
    """Continuous columns in one equality row are substituted out."""

    def test_substitution_updates_objective_and_row(self):
        model = build_substitution_model()
        log = EliminationLog()

        counts = reduce_matrix(model, only(remove_col_singletons=True), log)

        self.assertEqual(counts.cols_deleted, 1)
        self.assertFalse(model.has_col("x3"))
        self.assertEqual(model.objective_coef(model.resolve_col("x1")), -2.0)
        self.assertEqual(model.objective_coef(model.resolve_col("x2")), -1.0)
        self.assertEqual(model.obj_const, 30.0)
        row = model.rows[model.resolve_row("E")]
        self.assertIs(row.sense, Sense.LE)
        self.assertEqual(row.rhs, 10.0)

        (record,) = log.records
        self.assertEqual(record.reason, ReasonCode.COLUMN_SINGLETON)
        self.assertEqual(record.partner, "E")
        self.assertEqual(record.obj_coef, 3.0)
        self.assertIs(record.sense, Sense.EQ)
        self.assertEqual(len(record.coefs), 3)

    def test_inequality_rows_not_used(self):
        model = build_substitution_model()
        model.rows[model.resolve_row("E")].sense = Sense.LE

        counts = reduce_matrix(model, only(remove_col_singletons=True))

        self.assertEqual(counts.cols_deleted, 0)

    def test_integer_columns_not_substituted(self):
        model = build_substitution_model()
        model.cols[model.resolve_col("x3")].kind = VarKind.INTEGER

        counts = reduce_matrix(model, only(remove_col_singletons=True))

        self.assertEqual(counts.cols_deleted, 0)

    def test_objective_elements_created_reported_separately(self):
        model = ModelStore("spread")
        model.add_row("COST", "N")
        model.add_row("E", "E", rhs=10)
        model.add_row("R", "L", rhs=8)
        for name in ("x1", "x2", "x3", "x4"):
            model.add_col(name)
            model.add_elem("E", name, 1.0)
        for name in ("x1", "x2", "x3"):
            model.add_elem("R", name, 1.0)
        model.add_elem("COST", "x4", 1.0)
        elems = model.num_elems

        counts = reduce_matrix(model, only(remove_col_singletons=True))

        self.assertEqual(counts.cols_deleted, 1)
        self.assertEqual(counts.elems_deleted, 2)
        self.assertEqual(counts.elems_created, 3)
        self.assertEqual(model.num_elems + counts.elems_deleted - counts.elems_created, elems)
        self.assertEqual(model.objective_coef(model.resolve_col("x1")), -1.0)


class TestZeroCoefficients(unittest.TestCase):
    """Zero coefficients never reach a division."""

    def _model(self):
        model = ModelStore("zeros")
        model.add_row("COST", "N")
        model.add_row("R", "L", rhs=4)
        model.add_col("x1")
        model.add_col("x2")
        model.add_elem("COST", "x1", -1.0)
        model.add_elem("COST", "x2", -1.0)
        model.add_elem("R", "x1", 1.0)
        model.add_elem("R", "x2", 1.0)
        return model

    def _elem(self, model, row, col):
        return model.elem_id(model.resolve_row(row), model.resolve_col(col))

    def _zero_singleton(self, model):
        model.del_elem(self._elem(model, "R", "x2"))
        model.elems[self._elem(model, "R", "x1")].value = 0.0

    def test_explicit_zero_through_add_elem(self):
        model = ModelStore("zeros")
        model.add_row("COST", "N")
        model.add_row("R", "L", rhs=4)
        model.add_col("x1")
        model.add_col("x2")
        model.add_elem("COST", "x1", -1.0)
        model.add_elem("R", "x1", 1.0)
        model.add_elem("R", "x2", 0.0)
        self.assertIsNone(self._elem(model, "R", "x2"))

        counts = reduce_matrix(model, PresolveControl())

        self.assertEqual(counts.rows_deleted, 1)
        self.assertEqual(model.cols[model.resolve_col("x1")].upper, 4.0)

    def test_cancelled_term_leaves_row_singleton(self):
        model = self._model()
        self.assertIsNone(model.add_elem("R", "x2", -1.0))
        log = EliminationLog()

        counts = reduce_matrix(model, only(remove_row_singletons=True), log)

        self.assertEqual(counts.rows_deleted, 1)
        self.assertEqual(log.by_reason(), {"row-singleton": 1})
        self.assertEqual(model.cols[model.resolve_col("x1")].upper, 4.0)

    def test_zero_term_ignored_when_tightening(self):
        model = self._model()
        model.elems[self._elem(model, "R", "x2")].value = 0.0
        log = EliminationLog()

        tighten_bounds(model, only(tighten_bounds=True), log)

        self.assertEqual(model.cols[model.resolve_col("x1")].upper, 4.0)
        self.assertEqual(model.cols[model.resolve_col("x2")].upper, INF)
        self.assertEqual([change.col for change in log.bound_changes], ["x1"])

    def test_zero_singleton_with_room_is_nonbinding(self):
        model = self._model()
        self._zero_singleton(model)
        log = EliminationLog()

        counts = reduce_matrix(model, only(remove_row_singletons=True), log)

        self.assertEqual(counts.rows_deleted, 1)
        self.assertEqual(log.by_reason(), {"nonbinding": 1})
        self.assertEqual(model.cols[model.resolve_col("x1")].upper, INF)

    def test_zero_singleton_out_of_reach_is_infeasible(self):
        model = self._model()
        model.rows[model.resolve_row("R")].sense = Sense.GE
        self._zero_singleton(model)

        with self.assertRaises(InfeasibleBound):
            reduce_matrix(model, only(remove_row_singletons=True))


def test_empty_model_rejected():
    with pytest.raises(EmptyModel):
        reduce_matrix(ModelStore(), PresolveControl())


def test_unknown_keep_name_rejected(r1r2_model):
    with pytest.raises(IndexOutOfRange):
        reduce_matrix(r1r2_model, PresolveControl(keep_rows=("NOPE",)))


def test_disabled_reductions_leave_model_untouched(substitution_model):
    before = model_to_dict(substitution_model)
    log = EliminationLog()

    counts = reduce_matrix(substitution_model, PresolveControl().without_reductions(), log)

    assert model_to_dict(substitution_model) == before
    assert (counts.rows_deleted, counts.cols_deleted, counts.elems_deleted) == (0, 0, 0)
    assert counts.iterations == 1
    assert len(log) == 0


def test_full_presolve_of_r1r2(r1r2_model):
    log = EliminationLog()

    counts = reduce_matrix(r1r2_model, PresolveControl(), log)

    assert counts.rows_deleted == 2
    assert counts.cols_deleted == 1
    assert counts.elems_deleted == 3
    assert counts.bounds_tightened == 1
    assert r1r2_model.cols[r1r2_model.resolve_col("x1")].upper == 5.0
    assert log.by_reason() == {"nonbinding": 2, "fixed-variable": 1}


def test_max_iterations_caps_the_loop(r1r2_model):
    counts = reduce_matrix(r1r2_model, PresolveControl(max_iterations=1))

    assert counts.iterations == 1
    assert r1r2_model.num_rows == 1


# ---------------------------------------------------------------------------
# Property-based checks
# ---------------------------------------------------------------------------


@st.composite
def feasible_models(draw):
    """Small continuous models with a known feasible integer point."""
    n_cols = draw(st.integers(min_value=1, max_value=4))
    n_rows = draw(st.integers(min_value=1, max_value=4))
    model = ModelStore("random")
    model.add_row("COST", "N")

    point = []
    for j in range(n_cols):
        lower = draw(st.integers(min_value=-5, max_value=0))
        width = draw(st.integers(min_value=0, max_value=5))
        upper = lower + width if draw(st.booleans()) else INF
        x = draw(st.integers(min_value=lower, max_value=lower + width))
        point.append(x)
        model.add_col(f"x{j}", lower=lower, upper=upper)
        cost = draw(st.integers(min_value=-3, max_value=3))
        if cost:
            model.add_elem("COST", f"x{j}", cost)

    coef = st.integers(min_value=-3, max_value=3).filter(lambda v: v != 0)
    for i in range(n_rows):
        cols = draw(st.lists(st.integers(0, n_cols - 1), min_size=1, max_size=n_cols, unique=True))
        coefs = {j: draw(coef) for j in cols}
        activity = sum(a * point[j] for j, a in coefs.items())
        sense = draw(st.sampled_from(["L", "G", "E"]))
        slack = draw(st.integers(min_value=0, max_value=4))
        rhs = {"L": activity + slack, "G": activity - slack, "E": activity}[sense]
        model.add_row(f"r{i}", sense, rhs=rhs)
        for j, a in coefs.items():
            model.add_elem(f"r{i}", f"x{j}", a)
    model.adjust_model()
    return model


@settings(max_examples=50, deadline=None)
@given(model=feasible_models())
def test_counts_are_conserved(model):
    rows, cols, elems = model.num_rows, model.num_cols, model.num_elems

    counts = reduce_matrix(model, PresolveControl())

    assert model.num_rows + counts.rows_deleted == rows
    assert model.num_cols + counts.cols_deleted == cols
    assert model.num_elems + counts.elems_deleted - counts.elems_created == elems
    assert counts.elems_deleted >= 0


@settings(max_examples=50, deadline=None)
@given(model=feasible_models())
def test_presolve_reaches_a_fixpoint(model):
    control = PresolveControl()
    first = reduce_matrix(model, control)
    assume(first.iterations < control.max_iterations)
    assume(not model.is_empty)

    second = reduce_matrix(model, control)

    assert (second.rows_deleted, second.cols_deleted, second.elems_deleted) == (0, 0, 0)
    assert second.bounds_tightened == 0
    assert second.iterations == 1
