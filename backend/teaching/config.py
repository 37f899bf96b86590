"""
Configuration for the module cache client.

Intent:
    Single source of truth for the settings the cache layer reads from the
    environment: where the module API lives, how long the HTTP client waits,
    how far a pointer must travel before a press becomes a drag, and whether
    delete/reorder trust the optimistic order.

Env:
    COURSEDECK_API_BASE_URL            – module API base (default http://local)
    COURSEDECK_API_TIMEOUT_SECONDS     – HTTP timeout, clamped to 1..60 (default 10)
    COURSEDECK_DRAG_ACTIVATION_PX      – drag activation distance, 0 disables (default 5)
    COURSEDECK_TRUST_OPTIMISTIC_ORDER  – "true" skips refetch after delete/reorder

A local `.env` file is honoured outside of pytest runs.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

API_BASE_URL_DEFAULT = "http://local"
API_TIMEOUT_DEFAULT = 10.0
API_TIMEOUT_MAX = 60.0
DRAG_ACTIVATION_PX_DEFAULT = 5.0


def _should_load_dotenv() -> bool:
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("COURSEDECK_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def _parse_float_env(name: str, default: float, *, minimum: float, maximum: float | None = None) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    if maximum is not None:
        value = min(value, maximum)
    return value


def _parse_bool_env(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CacheSettings:
    api_base_url: str = API_BASE_URL_DEFAULT
    api_timeout_seconds: float = API_TIMEOUT_DEFAULT
    drag_activation_px: float = DRAG_ACTIVATION_PX_DEFAULT
    trust_optimistic_order: bool = False


def load_settings() -> CacheSettings:
    """Read settings from the environment (and `.env` outside of tests)."""
    if _should_load_dotenv():
        load_dotenv()
    base = (os.getenv("COURSEDECK_API_BASE_URL") or API_BASE_URL_DEFAULT).strip().rstrip("/")
    return CacheSettings(
        api_base_url=base or API_BASE_URL_DEFAULT,
        api_timeout_seconds=_parse_float_env(
            "COURSEDECK_API_TIMEOUT_SECONDS", API_TIMEOUT_DEFAULT, minimum=1.0, maximum=API_TIMEOUT_MAX
        ),
        drag_activation_px=_parse_float_env(
            "COURSEDECK_DRAG_ACTIVATION_PX", DRAG_ACTIVATION_PX_DEFAULT, minimum=0.0
        ),
        trust_optimistic_order=_parse_bool_env("COURSEDECK_TRUST_OPTIMISTIC_ORDER"),
    )


__all__ = ["CacheSettings", "load_settings"]
