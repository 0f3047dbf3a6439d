"""Model builders and a deterministic solver double shared by the tests."""

from lpopt.config.params import PresolveControl, SolverParams
from lpopt.core_types import RawColResult, RawResult, RawRowResult
from lpopt.interfaces import CancelToken
from lpopt.model.store import ModelStore


class ScriptedAdapter:
    """Backend double returning scripted values in the model's scaled space.

    Columns not listed in *values* sit at their lower bound (0 when free).
    Rows get activity and slack computed from those values; *duals* and
    *reduced_costs* default to 0.
    """

    def __init__(self, values=None, duals=None, reduced_costs=None, status="Optimal"):
        self.values = values or {}
        self.duals = duals or {}
        self.reduced_costs = reduced_costs or {}
        self.status = status
        self.calls = 0
        self.seen_model = None

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def available(self) -> bool:
        return True

    def solve(self, model: ModelStore, params: SolverParams, cancel_token: CancelToken | None = None):
        self.calls += 1
        self.seen_model = model.copy()
        values = {}
        cols = {}
        for col in model.cols.values():
            default = col.lower if col.lower > float("-inf") else 0.0
            values[col.name] = self.values.get(col.name, default)
            cols[col.name] = RawColResult(
                value=values[col.name], reduced_cost=self.reduced_costs.get(col.name, 0.0)
            )
        rows = {}
        for rid in model.constraint_ids():
            row = model.rows[rid]
            activity = sum(a * values[model.cols[cid].name] for cid, a in model.row_entries(rid))
            rows[row.name] = RawRowResult(
                activity=activity, slack=row.rhs - activity, pi=self.duals.get(row.name, 0.0)
            )
        objective = model.obj_const + sum(
            model.objective_coef(cid) * values[col.name] for cid, col in model.cols.items()
        )
        return RawResult(
            objective=objective, status=self.status, rows=rows, cols=cols, solver_name=self.name
        )


def build_r1r2_model() -> ModelStore:
    """min -x1  s.t.  R1: x1 + x2 <= 10,  R2: x2 == 5,  x1 >= 0,  x2 in [5, 5]."""
    model = ModelStore("r1r2")
    model.add_row("COST", "N")
    model.add_row("R1", "L", rhs=10)
    model.add_row("R2", "E", rhs=5)
    model.add_col("x1", lower=0)
    model.add_col("x2", lower=5, upper=5)
    model.add_elem("COST", "x1", -1.0)
    model.add_elem("R1", "x1", 1.0)
    model.add_elem("R1", "x2", 1.0)
    model.add_elem("R2", "x2", 1.0)
    return model


def build_substitution_model() -> ModelStore:
    """min x1 + 2 x2 + 3 x3  s.t.  E: x1 + x2 + x3 = 10,  R2: x1 + x2 <= 8."""
    model = ModelStore("subst")
    model.add_row("COST", "N")
    model.add_row("E", "E", rhs=10)
    model.add_row("R2", "L", rhs=8)
    for name, cost in (("x1", 1.0), ("x2", 2.0), ("x3", 3.0)):
        model.add_col(name)
        model.add_elem("COST", name, cost)
        model.add_elem("E", name, 1.0)
    model.add_elem("R2", "x1", 1.0)
    model.add_elem("R2", "x2", 1.0)
    return model


def only(**flags) -> PresolveControl:
    """Control with every reduction off except the ones named."""
    return PresolveControl(
        tighten_bounds=flags.pop("tighten_bounds", False),
        remove_row_singletons=flags.pop("remove_row_singletons", False),
        remove_col_singletons=flags.pop("remove_col_singletons", False),
        remove_fixed_vars=flags.pop("remove_fixed_vars", False),
        **flags,
    )
