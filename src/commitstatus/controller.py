from __future__ import annotations

import asyncio
from dataclasses import dataclass
import time
from typing import Optional, Union

from sanic.log import logger

from commitstatus.metric import event_counter, handler_error_counter
from commitstatus.model import StatusRecord, WorkloadInstance
from commitstatus.reconcile import StatusEvaluator, StatusReconciler
from commitstatus.scheduler import KeyedScheduler
from commitstatus.storage import RecordStore


@dataclass(frozen=True)
class WorkloadInstanceEvent:
    instance: WorkloadInstance

    @property
    def kind(self) -> str:
        return "workload"

    @property
    def key(self) -> str:
        return f"workload:{self.instance.name}"


@dataclass(frozen=True)
class StatusRecordEvent:
    record: StatusRecord
    sha: Optional[str] = None

    @property
    def kind(self) -> str:
        return "status_record"

    @property
    def key(self) -> str:
        if self.sha is None:
            return f"status_record:{self.record.name}"
        return f"status_record:{self.record.name}:{self.sha}"


ControllerEvent = Union[WorkloadInstanceEvent, StatusRecordEvent]


class Controller:
    def __init__(
        self,
        *,
        reconciler: StatusReconciler,
        evaluator: StatusEvaluator,
        store: Optional[RecordStore] = None,
        event_timeout: Optional[float] = 30.0,
        debounce_seconds: float = 0.0,
    ):
        self.reconciler = reconciler
        self.evaluator = evaluator
        self.store = store
        self.event_timeout = event_timeout
        self.scheduler: KeyedScheduler[ControllerEvent] = KeyedScheduler(
            handler=self.process, debounce_seconds=debounce_seconds
        )

    async def submit(self, event: ControllerEvent) -> None:
        await self.scheduler.enqueue(event.key, event)

    async def join(self) -> None:
        await self.scheduler.join()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    async def process(self, event: ControllerEvent) -> bool:
        """Handle one event, never raising.

        Returns ``False`` when the handler failed or ran past the deadline.
        """
        started = time.monotonic()
        try:
            await asyncio.wait_for(self.handle(event), timeout=self.event_timeout)
        except asyncio.TimeoutError:
            event_counter.labels(kind=event.kind, result="timeout").inc()
            handler_error_counter.labels(kind=event.kind).inc()
            logger.error(
                "Handling %s timed out after %.1fs", event.key, self.event_timeout
            )
            return False
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            event_counter.labels(kind=event.kind, result="error").inc()
            handler_error_counter.labels(kind=event.kind).inc()
            logger.error("Handling %s failed", event.key, exc_info=True)
            return False
        event_counter.labels(kind=event.kind, result="ok").inc()
        logger.debug(
            "Handled %s duration_ms=%.1f",
            event.key,
            (time.monotonic() - started) * 1000.0,
        )
        return True

    async def handle(self, event: ControllerEvent) -> None:
        if isinstance(event, WorkloadInstanceEvent):
            results = await self.reconciler.on_workload_instance(event.instance)
            for result in results:
                if result.changed:
                    await self.submit(
                        StatusRecordEvent(result.record, result.sha or None)
                    )
        elif isinstance(event, StatusRecordEvent):
            record = event.record
            if self.store is not None:
                record = self.store.get(record.name) or record
            await self.evaluator.on_status_record(record, sha=event.sha)
        else:
            raise TypeError(f"Unexpected event type {type(event)!r}")
