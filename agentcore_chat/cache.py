from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float | None


class TtlCache(Generic[V]):
    """Keyed cache whose entries expire after a per-entry time-to-live.

    The clock is injected so callers (and tests) control time. A ``ttl`` of
    ``None`` keeps the entry until :meth:`clear` or :meth:`invalidate`.
    """

    def __init__(self, *, default_ttl: float | None = None, clock: Clock = time.monotonic) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry[V]] = {}

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V, *, ttl: float | None = None) -> None:
        effective = self._default_ttl if ttl is None else ttl
        expires_at = None if effective is None else self._clock() + max(0.0, float(effective))
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at is not None and now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(self._entries)
