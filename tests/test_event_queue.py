from __future__ import annotations

import asyncio

import pytest

from agentcore_chat.streaming import EventQueue


async def _drain(queue: EventQueue) -> list:
    return [item async for item in queue]


@pytest.mark.asyncio
async def test_items_are_delivered_in_push_order() -> None:
    queue: EventQueue[int] = EventQueue()
    for i in range(5):
        queue.push(i)
    queue.end()
    assert await _drain(queue) == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_consumer_waits_for_late_producer() -> None:
    queue: EventQueue[str] = EventQueue()

    async def produce() -> None:
        for item in ("a", "b", "c"):
            await asyncio.sleep(0.005)
            queue.push(item)
        queue.end()

    producer = asyncio.create_task(produce())
    assert await asyncio.wait_for(_drain(queue), timeout=2) == ["a", "b", "c"]
    await producer


@pytest.mark.asyncio
async def test_push_after_end_is_ignored() -> None:
    queue: EventQueue[int] = EventQueue()
    queue.push(1)
    queue.end()
    queue.push(2)
    assert len(queue) == 1
    assert await _drain(queue) == [1]


@pytest.mark.asyncio
async def test_failure_is_raised_before_queued_items() -> None:
    queue: EventQueue[int] = EventQueue()
    queue.push(1)
    queue.push(2)
    queue.fail(RuntimeError("boom"))
    with pytest.raises(RuntimeError, match="boom"):
        await queue.__anext__()


@pytest.mark.asyncio
async def test_fail_after_end_is_ignored() -> None:
    queue: EventQueue[int] = EventQueue()
    queue.push(7)
    queue.end()
    queue.fail(RuntimeError("late"))
    assert await _drain(queue) == [7]


@pytest.mark.asyncio
async def test_failure_wakes_waiting_consumer() -> None:
    queue: EventQueue[int] = EventQueue(max_wait_seconds=5)

    async def fail_soon() -> None:
        await asyncio.sleep(0.01)
        queue.fail(ValueError("stream broke"))

    task = asyncio.create_task(fail_soon())
    with pytest.raises(ValueError, match="stream broke"):
        await asyncio.wait_for(_drain(queue), timeout=2)
    await task
    assert queue.ended


@pytest.mark.asyncio
async def test_empty_ended_queue_stops_immediately() -> None:
    queue: EventQueue[int] = EventQueue()
    queue.end()
    assert await _drain(queue) == []
