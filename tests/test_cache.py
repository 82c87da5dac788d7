from __future__ import annotations

from agentcore_chat.cache import TtlCache


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entry_expires_after_ttl() -> None:
    clock = _Clock()
    cache: TtlCache[str] = TtlCache(clock=clock)
    cache.set("k", "v", ttl=10)
    clock.now += 9.9
    assert cache.get("k") == "v"
    clock.now += 0.1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_default_ttl_and_no_expiry() -> None:
    clock = _Clock()
    cache: TtlCache[int] = TtlCache(default_ttl=60, clock=clock)
    cache.set("short", 1)
    forever: TtlCache[int] = TtlCache(clock=clock)
    forever.set("long", 2)
    clock.now += 3600
    assert "short" not in cache
    assert forever.get("long") == 2


def test_invalidate_and_clear() -> None:
    cache: TtlCache[int] = TtlCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    cache.invalidate("missing")
    assert cache.get("a") is None
    assert "b" in cache
    cache.clear()
    assert len(cache) == 0


def test_len_excludes_expired_entries() -> None:
    clock = _Clock()
    cache: TtlCache[str] = TtlCache(default_ttl=5, clock=clock)
    cache.set("a", "1")
    cache.set("b", "2", ttl=60)
    assert len(cache) == 2
    clock.now += 5
    assert len(cache) == 1
    assert cache.get("b") == "2"
