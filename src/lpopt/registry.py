"""Registry for pluggable solver adapters in lpopt."""

from lpopt.utils.logging import LpoLogger

from .interfaces import SolverAdapter

logger = LpoLogger.get_logger(__name__)

SOLVER_ADAPTER_REGISTRY: dict[str, type[SolverAdapter]] = {}

__all__ = [
    "register_solver_adapter",
    # Exposed for advanced users who need direct access
    "SOLVER_ADAPTER_REGISTRY",
]


def register_solver_adapter(name: str):
    """Decorator to register a solver adapter implementation."""

    def decorator(cls: type[SolverAdapter]):
        if name in SOLVER_ADAPTER_REGISTRY:
            raise ValueError(f"Solver adapter '{name}' is already registered")
        SOLVER_ADAPTER_REGISTRY[name] = cls
        logger.debug(f"Registered solver adapter '{name}'")
        return cls

    return decorator
