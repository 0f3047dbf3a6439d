"""Shared fixtures."""

import pytest

from helpers import ScriptedAdapter, build_r1r2_model, build_substitution_model
from lpopt.utils.logging import LogLevel, LpoLogger


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep solver choice and log level env vars from leaking between tests."""
    for var in ("LPOPT_SOLVER", "LPOPT_LOG_LEVEL", "LPOPT_EFFECTIVE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    yield
    LpoLogger._current_level = LogLevel.NORMAL


@pytest.fixture
def r1r2_model():
    return build_r1r2_model()


@pytest.fixture
def substitution_model():
    return build_substitution_model()


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter()
