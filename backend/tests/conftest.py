"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend (the cache layer is written for a
single asyncio event loop) and make `backend/` importable without installing.
"""
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_modules_repo_between_tests():
    """Give every test a fresh in-memory module API repository."""
    from web.routes import modules as modules_routes

    modules_routes.set_repo(None)
    yield
    modules_routes.set_repo(None)


@pytest.fixture(autouse=True)
def _clear_cache_env(monkeypatch: pytest.MonkeyPatch):
    """Keep developer shells from leaking COURSEDECK_* settings into tests."""
    for name in (
        "COURSEDECK_API_BASE_URL",
        "COURSEDECK_API_TIMEOUT_SECONDS",
        "COURSEDECK_DRAG_ACTIVATION_PX",
        "COURSEDECK_TRUST_OPTIMISTIC_ORDER",
    ):
        monkeypatch.delenv(name, raising=False)
