"""Tests for ideation/cache.py."""

from ideation.cache import TTLResponseCache, cache_key
from ideation.models import PersonaId, PhaseId


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_cache_key_distinguishes_persona_and_phase():
    base = cache_key("topic", PersonaId.CREATIVE, PhaseId.FOUNDATION)
    assert base == cache_key("topic", PersonaId.CREATIVE, PhaseId.FOUNDATION)
    assert base != cache_key("topic", PersonaId.LOGICAL, PhaseId.FOUNDATION)
    assert base != cache_key("topic", PersonaId.CREATIVE, PhaseId.REFINEMENT)
    assert base != cache_key("other topic", PersonaId.CREATIVE, PhaseId.FOUNDATION)


def test_get_returns_value_before_expiry():
    clock = FakeClock()
    cache = TTLResponseCache(ttl_sec=10, clock=clock)
    cache.set("k", "v")
    clock.now += 9.9
    assert cache.get("k") == "v"


def test_get_drops_expired_entry():
    clock = FakeClock()
    cache = TTLResponseCache(ttl_sec=10, clock=clock)
    cache.set("k", "v")
    clock.now += 10
    assert cache.get("k") is None
    assert len(cache) == 0


def test_miss_returns_none():
    assert TTLResponseCache().get("absent") is None


def test_evict_expired_only_removes_stale_entries():
    clock = FakeClock()
    cache = TTLResponseCache(ttl_sec=10, clock=clock)
    cache.set("old", "1")
    clock.now += 6
    cache.set("new", "2")
    clock.now += 5
    assert cache.evict_expired() == 1
    assert cache.get("new") == "2"
    assert cache.get("old") is None


def test_clear():
    cache = TTLResponseCache()
    cache.set("a", "1")
    cache.clear()
    assert len(cache) == 0
