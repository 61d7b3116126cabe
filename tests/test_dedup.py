"""Tests for DedupCache."""

import pytest

from callboard.core.dedup import DedupCache


def test_add_and_has():
    cache = DedupCache()
    assert not cache.has("a")
    cache.add("a")
    assert cache.has("a")
    assert "a" in cache
    assert len(cache) == 1


def test_eviction_never_exceeds_capacity():
    cache = DedupCache(capacity=10)
    for i in range(57):
        key = f"k{i}"
        cache.add(key)
        assert len(cache) <= 10
        assert cache.has(key)


def test_eviction_drops_oldest_half():
    cache = DedupCache(capacity=4)
    for key in ["a", "b", "c", "d", "e"]:
        cache.add(key)
    # 5 > 4 → the oldest 2 go
    assert not cache.has("a")
    assert not cache.has("b")
    assert all(cache.has(k) for k in ["c", "d", "e"])


def test_seed_is_lazy_and_runs_once():
    calls = []

    def seed(lines):
        calls.append(lines)
        return ["x", "y"]

    cache = DedupCache(seed_tail_lines=7, seed=seed)
    assert not cache.seeded
    assert calls == []
    assert cache.has("x")
    assert cache.has("y")
    cache.add("z")
    assert calls == [7]
    assert cache.seeded


def test_invalid_capacity():
    with pytest.raises(ValueError):
        DedupCache(capacity=0)
