"""
Collection cache lifetime: open on mount, evict on unmount.
"""
from __future__ import annotations

import pytest

from teaching.cache import CollectionCache


def test_open_is_idempotent_per_parent():
    cache = CollectionCache()
    first = cache.open("course-1")
    assert cache.open("course-1") is first
    assert cache.open("course-2") is not first
    assert len(cache) == 2
    assert sorted(cache) == ["course-1", "course-2"]


def test_get_and_require():
    cache = CollectionCache()
    assert cache.get("course-1") is None
    with pytest.raises(LookupError) as exc:
        cache.require("course-1")
    assert str(exc.value) == "collection_not_open"
    opened = cache.open("course-1")
    assert cache.require("course-1") is opened


def test_evict_and_reopen_yields_fresh_collection():
    cache = CollectionCache()
    old = cache.open("course-1")
    assert cache.evict("course-1") is True
    assert "course-1" not in cache
    assert cache.evict("course-1") is False
    assert cache.open("course-1") is not old


def test_clear_drops_everything():
    cache = CollectionCache()
    cache.open("a")
    cache.open("b")
    cache.clear()
    assert len(cache) == 0
