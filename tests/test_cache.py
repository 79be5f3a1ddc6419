"""Tests for the content-keyed artifact cache."""
import pytest

from driftpatch import ArtifactCache, CacheKey


def test_failed_factory_is_retried_then_cached():
    """Fails on the first call, succeeds on the second, never runs a third time."""
    cache = ArtifactCache()
    key = CacheKey.from_args("kanim", "PropSurfaceSatellite1")
    calls = []

    def factory():
        calls.append(1)
        if len(calls) == 1:
            raise LookupError("prefab not loaded yet")
        return "satellite_kanim"

    with pytest.raises(LookupError):
        cache.get_or_compute(key, factory)
    assert key not in cache

    assert cache.get_or_compute(key, factory) == "satellite_kanim"
    assert cache.get_or_compute(key, factory) == "satellite_kanim"
    assert len(calls) == 2


def test_none_result_is_cached():
    cache = ArtifactCache()
    key = CacheKey.from_args("member", int, ("missing",))
    calls = []

    def factory():
        calls.append(1)
        return None

    assert cache.get_or_compute(key, factory) is None
    assert cache.get_or_compute(key, factory) is None
    assert len(calls) == 1
    assert key in cache


def test_keys_compare_by_content():
    assert CacheKey.from_args("a", 1, ("x", "y")) == CacheKey.from_args("a", 1, ("x", "y"))
    assert hash(CacheKey.from_args("a", 1)) == hash(CacheKey.from_args("a", 1))
    assert CacheKey.from_args("a", 1) != CacheKey.from_args("a", 2)


def test_get_does_not_compute():
    cache = ArtifactCache()
    key = CacheKey.from_args("k")

    assert cache.get(key) is None
    assert cache.get(key, "fallback") == "fallback"
    assert len(cache) == 0


def test_stats_count_hits_misses_and_failures():
    cache = ArtifactCache()
    key = CacheKey.from_args("k")

    with pytest.raises(RuntimeError):
        cache.get_or_compute(key, lambda: (_ for _ in ()).throw(RuntimeError("boom")))
    cache.get_or_compute(key, lambda: 1)
    cache.get_or_compute(key, lambda: 2)

    assert cache.stats.misses == 2
    assert cache.stats.failures == 1
    assert cache.stats.hits == 1
    assert cache.get(key) == 1
