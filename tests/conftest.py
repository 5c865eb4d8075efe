"""Root test configuration: session-level cleanup and environment isolation"""

import os
import shutil
from pathlib import Path

import pytest


_PROJECT_ROOT = Path(__file__).parent.parent

_CLEANUP_DIRS = ["dist"]


@pytest.fixture(scope="session", autouse=True)
def cleanup_artifacts():
    """Remove output directories created during the test session."""
    yield
    for name in _CLEANUP_DIRS:
        p = _PROJECT_ROOT / name
        if p.exists():
            shutil.rmtree(p)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Keep FLOWBRIDGE_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("FLOWBRIDGE_"):
            monkeypatch.delenv(key, raising=False)
