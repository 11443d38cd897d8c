from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, TypeVar

from commitstatus.metric import scheduler_counter

T = TypeVar("T")


@dataclass
class _KeyState(Generic[T]):
    item: T
    dirty: bool = False
    debounce_until: float = 0.0


class KeyedScheduler(Generic[T]):
    """Runs ``handler`` at most once at a time per key.

    Items enqueued for a key that is already running replace the pending
    item and are handled once the current run finishes. Different keys run
    concurrently.
    """

    def __init__(
        self,
        *,
        handler: Callable[[T], Awaitable[None]],
        debounce_seconds: float = 0.0,
    ):
        self.handler = handler
        self.debounce_seconds = max(0.0, float(debounce_seconds))
        self._tasks: Dict[str, asyncio.Task] = {}
        self._states: Dict[str, _KeyState[T]] = {}
        self._lock = asyncio.Lock()

    async def enqueue(self, key: str, item: T) -> None:
        now = asyncio.get_running_loop().time()
        debounce_until = now + self.debounce_seconds
        async with self._lock:
            if key in self._tasks:
                state = self._states[key]
                state.item = item
                state.dirty = True
                state.debounce_until = max(state.debounce_until, debounce_until)
                scheduler_counter.labels(result="coalesced").inc()
                return

            self._states[key] = _KeyState(item=item, debounce_until=debounce_until)
            scheduler_counter.labels(result="scheduled").inc()
            self._tasks[key] = asyncio.create_task(self._run_key(key))

    async def join(self) -> None:
        while True:
            async with self._lock:
                tasks = list(self._tasks.values())
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        async with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
            self._states.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _run_key(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                async with self._lock:
                    state = self._states.get(key)
                    if state is None:
                        return
                    execute_after = state.debounce_until
                sleep_for = execute_after - loop.time()
                if sleep_for > 0:
                    await asyncio.sleep(sleep_for)
                    continue

                async with self._lock:
                    state = self._states.get(key)
                    if state is None:
                        return
                    item = state.item
                    state.dirty = False

                scheduler_counter.labels(result="executed").inc()
                await self.handler(item)

                async with self._lock:
                    latest = self._states.get(key)
                    if latest is None:
                        return
                    if latest.dirty:
                        continue
                    self._states.pop(key, None)
                    self._tasks.pop(key, None)
                    return
        finally:
            async with self._lock:
                if self._tasks.get(key) is asyncio.current_task():
                    self._states.pop(key, None)
                    self._tasks.pop(key, None)
