"""Solver adapters for lpopt."""

import importlib.util
import os
from typing import Any

import pulp

from lpopt.config.params import SolverParams
from lpopt.core_types import RawResult
from lpopt.exceptions import SolveCancelled, SolverUnavailable
from lpopt.interfaces import CancelToken
from lpopt.model.store import ModelStore
from lpopt.optimization.core import result_without_columns, solve_model
from lpopt.registry import SOLVER_ADAPTER_REGISTRY, register_solver_adapter
from lpopt.utils.logging import LpoLogger

logger = LpoLogger.get_logger(__name__)


class PulpAdapter:
    """Common `solve` for adapters backed by a PuLP solver."""

    def get_pulp_solver(self, params: SolverParams) -> pulp.LpSolver:
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    def solve(
        self,
        model: ModelStore,
        params: SolverParams,
        cancel_token: CancelToken | None = None,
    ) -> RawResult:
        if model.num_cols == 0:
            if cancel_token is not None and cancel_token.cancelled:
                raise SolveCancelled()
            logger.debug("Reduced model has no columns, skipping the backend")
            return result_without_columns(model)
        return solve_model(
            model, self.get_pulp_solver(params), cancel_token, solver_name=self.name
        )


@register_solver_adapter("gurobi")
class GurobiAdapter(PulpAdapter):
    """Adapter for the Gurobi callable library (through ``gurobipy``)."""

    def get_pulp_solver(self, params: SolverParams) -> pulp.LpSolver:
        """Return a configured Gurobi solver instance.

        Args:
            params: Solver parameters containing verbose, gap_rel, and time_limit settings.
        """
        kwargs: dict[str, Any] = {"msg": params.verbose}
        # Only pass gapRel when an explicit tolerance is requested; omitting
        # it leaves the solver's own default in place.
        if params.gap_rel is not None:
            kwargs["gapRel"] = params.gap_rel
        if params.time_limit is not None and params.time_limit > 0:
            kwargs["timeLimit"] = params.time_limit
        return pulp.GUROBI(**kwargs)

    @property
    def name(self) -> str:
        """Solver name for logging."""
        return "Gurobi"

    @property
    def available(self) -> bool:
        """Check if Gurobi is available."""
        return importlib.util.find_spec("gurobipy") is not None


@register_solver_adapter("cbc")
class CbcAdapter(PulpAdapter):
    """Adapter for the CBC solver bundled with PuLP."""

    def get_pulp_solver(self, params: SolverParams) -> pulp.LpSolver:
        """Return a configured CBC solver instance.

        Args:
            params: Solver parameters containing verbose, gap_rel, and time_limit settings.
        """
        kwargs: dict[str, Any] = {"msg": params.verbose}
        if params.gap_rel is not None:
            kwargs["gapRel"] = params.gap_rel
        if params.time_limit is not None and params.time_limit > 0:
            kwargs["timeLimit"] = params.time_limit
        return pulp.PULP_CBC_CMD(**kwargs)

    @property
    def name(self) -> str:
        """Solver name for logging."""
        return "CBC"

    @property
    def available(self) -> bool:
        """Check if CBC is available."""
        # CBC ships with PuLP
        return True


def pick_solver(params: SolverParams):
    """
    Return the solver adapter to use for *params*.

    Priority:
    1. LPOPT_SOLVER env-var: 'gurobi' | 'cbc' | 'auto' (overrides params.name)
    2. params.name: any registered adapter name, or 'auto'
    3. If 'auto': Gurobi when gurobipy is importable, CBC otherwise.

    Raises:
        SolverUnavailable: the requested adapter is unknown or not installed.
    """
    env_choice = os.getenv("LPOPT_SOLVER")
    choice = (env_choice or params.name).lower()

    if choice == "auto":
        gurobi_adapter = SOLVER_ADAPTER_REGISTRY["gurobi"]()
        if gurobi_adapter.available:
            return gurobi_adapter
        return SOLVER_ADAPTER_REGISTRY["cbc"]()

    if choice not in SOLVER_ADAPTER_REGISTRY:
        known = ", ".join(sorted(SOLVER_ADAPTER_REGISTRY))
        raise SolverUnavailable(f"Unknown solver '{choice}' (known: {known}, auto)")

    adapter = SOLVER_ADAPTER_REGISTRY[choice]()
    if not adapter.available:
        raise SolverUnavailable(f"Solver '{adapter.name}' is not available in this environment")
    return adapter
