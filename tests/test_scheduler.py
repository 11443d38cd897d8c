import asyncio

import pytest

from commitstatus.scheduler import KeyedScheduler


@pytest.mark.asyncio
async def test_scheduler_coalesces_items_for_busy_key():
    seen = []
    release = asyncio.Event()

    async def handler(item):
        seen.append(item)
        if item == "first":
            await release.wait()

    scheduler = KeyedScheduler(handler=handler)

    await scheduler.enqueue("key", "first")
    await asyncio.sleep(0)
    await scheduler.enqueue("key", "second")
    await scheduler.enqueue("key", "third")
    release.set()
    await scheduler.join()

    assert seen == ["first", "third"]
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_scheduler_debounce_keeps_latest_item():
    seen = []

    async def handler(item):
        seen.append(item)

    scheduler = KeyedScheduler(handler=handler, debounce_seconds=0.02)

    await scheduler.enqueue("key", "d1")
    await scheduler.enqueue("key", "d2")
    await scheduler.enqueue("key", "d3")

    await asyncio.sleep(0.08)
    await scheduler.shutdown()

    assert seen == ["d3"]


@pytest.mark.asyncio
async def test_scheduler_runs_different_keys_concurrently():
    running = set()
    overlap = []

    async def handler(item):
        running.add(item)
        await asyncio.sleep(0.01)
        overlap.append(len(running))
        running.discard(item)

    scheduler = KeyedScheduler(handler=handler)
    await scheduler.enqueue("a", "a")
    await scheduler.enqueue("b", "b")
    await scheduler.join()

    assert max(overlap) == 2


@pytest.mark.asyncio
async def test_scheduler_shutdown_cancels_pending_work():
    seen = []

    async def handler(item):
        await asyncio.sleep(1)
        seen.append(item)  # pragma: no cover

    scheduler = KeyedScheduler(handler=handler)
    await scheduler.enqueue("key", "slow")
    await asyncio.sleep(0)
    await scheduler.shutdown()

    assert seen == []
    assert scheduler.pending == 0
