"""Error kinds raised by the presolve / solve / postsolve pipeline."""


class LpoError(Exception):
    """Base class; carries the pipeline stage and entity the error concerns."""

    def __init__(self, message: str, *, stage: str | None = None, entity: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.entity = entity

    def with_context(self, stage: str, entity: str | None = None) -> "LpoError":
        """Attach stage (and entity) unless already present; returns self."""
        if self.stage is None:
            self.stage = stage
        if self.entity is None and entity is not None:
            self.entity = entity
        return self

    def __str__(self) -> str:
        prefix = ""
        if self.stage:
            prefix += f"[{self.stage}] "
        if self.entity:
            prefix += f"{self.entity}: "
        return f"{prefix}{self.message}"


class EmptyModel(LpoError, ValueError):
    """Model has no rows, columns or elements to operate on."""


class IndexOutOfRange(LpoError, KeyError):
    """A caller or control setting references a nonexistent row or column."""

    # KeyError quotes its argument in str(); keep the readable form.
    __str__ = LpoError.__str__


class InfeasibleBound(LpoError, ValueError):
    """Bound propagation proved the model infeasible."""


class SolverUnavailable(LpoError, RuntimeError):
    """The requested backend is unknown or not installed."""


class SolverFailed(LpoError, RuntimeError):
    """The backend returned a non-success status."""

    def __init__(self, message: str, *, status: str, stage: str | None = None, entity: str | None = None):
        super().__init__(message, stage=stage, entity=entity)
        self.status = status


class SolveCancelled(SolverFailed):
    """The cancellation token fired before the backend was called."""

    def __init__(self, message: str = "Solve cancelled before backend call", **kwargs):
        super().__init__(message, status="Cancelled", **kwargs)


class InconsistentLog(LpoError, AssertionError):
    """Postsolve found an elimination record it cannot reconcile with the model."""
