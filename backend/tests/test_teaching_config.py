"""
Environment-driven cache settings.
"""
from __future__ import annotations

import pytest

from teaching.config import CacheSettings, load_settings


def test_defaults_without_env():
    assert load_settings() == CacheSettings()
    s = load_settings()
    assert s.api_base_url == "http://local"
    assert s.api_timeout_seconds == 10.0
    assert s.drag_activation_px == 5.0
    assert s.trust_optimistic_order is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COURSEDECK_API_BASE_URL", " https://api.example.test/ ")
    monkeypatch.setenv("COURSEDECK_API_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("COURSEDECK_DRAG_ACTIVATION_PX", "0")
    monkeypatch.setenv("COURSEDECK_TRUST_OPTIMISTIC_ORDER", "yes")
    s = load_settings()
    assert s.api_base_url == "https://api.example.test"
    assert s.api_timeout_seconds == 2.5
    assert s.drag_activation_px == 0.0
    assert s.trust_optimistic_order is True


@pytest.mark.parametrize("raw,expected", [("0.2", 10.0), ("abc", 10.0), ("600", 60.0), ("", 10.0)])
def test_timeout_is_validated_and_clamped(monkeypatch: pytest.MonkeyPatch, raw, expected):
    monkeypatch.setenv("COURSEDECK_API_TIMEOUT_SECONDS", raw)
    assert load_settings().api_timeout_seconds == expected


def test_negative_activation_distance_falls_back_to_default(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COURSEDECK_DRAG_ACTIVATION_PX", "-3")
    assert load_settings().drag_activation_px == 5.0


def test_unrecognised_bool_is_false(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("COURSEDECK_TRUST_OPTIMISTIC_ORDER", "maybe")
    assert load_settings().trust_optimistic_order is False
