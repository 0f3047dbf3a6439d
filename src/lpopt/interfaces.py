"""Protocol definitions for pluggable components in lpopt."""

import threading
from typing import TYPE_CHECKING, Protocol

from lpopt.config.params import SolverParams
from lpopt.core_types import RawResult

if TYPE_CHECKING:
    from lpopt.model.store import ModelStore


class CancelToken:
    """Caller-side switch checked right before a backend is invoked."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class SolverAdapter(Protocol):
    """Backend that solves a (reduced) model and reports raw results."""

    def solve(
        self,
        model: "ModelStore",
        params: SolverParams,
        cancel_token: CancelToken | None = None,
    ) -> RawResult:
        """Solve *model*; results are keyed by name and in the model's scaled space."""
        ...

    @property
    def name(self) -> str:
        """Solver name for logging."""
        ...

    @property
    def available(self) -> bool:
        """Check if this solver is available in the environment."""
        ...
