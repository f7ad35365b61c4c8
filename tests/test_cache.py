import pytest

from cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, max_size=10, clock=clock)
    cache.set("u9edc", "village")

    clock.now = 59.9
    assert cache.get("u9edc") == "village"

    clock.now = 60
    assert cache.get("u9edc") is None
    assert len(cache) == 0


def test_oldest_insertion_is_evicted_first():
    cache = TTLCache(ttl_seconds=60, max_size=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert "a" not in cache
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_reset_moves_key_to_newest():
    cache = TTLCache(ttl_seconds=60, max_size=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.get("a") == 10
    assert "b" not in cache


def test_rejects_non_positive_limits():
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0, max_size=1)
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=1, max_size=0)
