from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")

DEFAULT_WAIT_SECONDS = 0.01


class EventQueue(Generic[T]):
    """Single-producer/single-consumer bridge from pushed items to ``async for``.

    The producer calls :meth:`push`, then exactly one of :meth:`end` or
    :meth:`fail`. The consumer iterates; iteration stops once the queue is
    ended and drained, and a recorded failure is raised on the next pull
    even when items are still queued.
    """

    def __init__(self, *, max_wait_seconds: float = DEFAULT_WAIT_SECONDS) -> None:
        self._items: deque[T] = deque()
        self._ended = False
        self._error: BaseException | None = None
        self._wakeup = asyncio.Event()
        self._max_wait_seconds = max_wait_seconds

    @property
    def ended(self) -> bool:
        return self._ended

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: T) -> None:
        if self._ended:
            return
        self._items.append(item)
        self._wakeup.set()

    def end(self) -> None:
        self._ended = True
        self._wakeup.set()

    def fail(self, error: BaseException) -> None:
        if self._ended:
            return
        self._error = error
        self._ended = True
        self._wakeup.set()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        while True:
            if self._error is not None:
                raise self._error
            if self._items:
                return self._items.popleft()
            if self._ended:
                raise StopAsyncIteration
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._max_wait_seconds)
            except asyncio.TimeoutError:
                pass
