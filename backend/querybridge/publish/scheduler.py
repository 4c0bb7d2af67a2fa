"""
Publish scheduler: one asyncio task per scheduled definition.

Each task loops forever:

    AWAITING_TRANSPORT --connected--> EXECUTING --ok--> PUBLISHED
            ^   |                          +--error--> FAILED
            |   +--not connected: sleep interval, re-check
            +-- sleep interval after PUBLISHED / FAILED

Nothing is executed while the transport is down. A failed cycle is logged
and the next one starts after the interval; no error leaves the task.
Cycles of one definition are strictly sequential, so the interval is the
minimum spacing between them. Query execution and publish run in a worker
thread so a slow query only delays its own definition.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any

from querybridge.definitions import Registry, ScheduledQuery
from querybridge.engines.executor import QueryExecutor
from querybridge.publish.transport import PublishTransport

logger = logging.getLogger(__name__)


class ScheduleState(str, Enum):
    IDLE = "idle"
    AWAITING_TRANSPORT = "awaiting_transport"
    EXECUTING = "executing"
    PUBLISHED = "published"
    FAILED = "failed"


def encode_payload(rows: list[dict[str, Any]]) -> bytes:
    """``{"rows": [...]}`` as UTF-8 JSON."""
    return json.dumps({"rows": rows}, ensure_ascii=False).encode("utf-8")


class PublishTask:
    """Execute-and-publish loop for one scheduled definition.

    ``stop()`` is the cancellation token: the loop exits at its next wait.
    """

    def __init__(
        self,
        definition: ScheduledQuery,
        executor: QueryExecutor,
        transport: PublishTransport,
        *,
        topic_prefix: str = "",
    ) -> None:
        self.definition = definition
        self.executor = executor
        self.transport = transport
        self.topic = f"{topic_prefix}{definition.topic}"
        self.state = ScheduleState.IDLE
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self.definition.interval_ms / 1000

    def start(self) -> "asyncio.Task[None]":
        self._task = asyncio.create_task(self.run(), name=f"publish:{self.topic}")
        return self._task

    def stop(self) -> None:
        self._stop.set()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def run(self) -> None:
        logger.info(
            "MQTT push query generated: %s every %d ms", self.topic, self.definition.interval_ms
        )
        while not self._stop.is_set():
            self.state = ScheduleState.AWAITING_TRANSPORT
            await self.run_cycle()
            if await self._wait():
                break

    async def run_cycle(self) -> ScheduleState:
        """One transition out of AWAITING_TRANSPORT; returns the new state."""
        if not self.transport.connected:
            self.state = ScheduleState.AWAITING_TRANSPORT
            return self.state

        self.state = ScheduleState.EXECUTING
        try:
            size = await asyncio.to_thread(self._execute_and_publish)
        except Exception:
            logger.exception(
                "Scheduled query %s failed; next run in %d ms",
                self.definition.name or self.topic,
                self.definition.interval_ms,
            )
            self.state = ScheduleState.FAILED
        else:
            logger.info("topic: %s, %d bytes published", self.topic, size)
            self.state = ScheduleState.PUBLISHED
        return self.state

    def _execute_and_publish(self) -> int:
        rows = self.executor.execute(self.definition)
        payload = encode_payload(rows)
        self.transport.publish(self.topic, payload)
        return len(payload)

    async def _wait(self) -> bool:
        """Sleep one interval; True when stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return False
        return True


class PublishScheduler:
    """Owns the PublishTasks for every scheduled definition of a registry."""

    def __init__(
        self,
        registry: Registry,
        executor: QueryExecutor,
        transport: PublishTransport,
        *,
        topic_prefix: str = "",
    ) -> None:
        self.transport = transport
        self.tasks = [
            PublishTask(d, executor, transport, topic_prefix=topic_prefix)
            for d in registry.scheduled()
        ]

    def start(self) -> None:
        for task in self.tasks:
            task.start()

    async def stop(self) -> None:
        for task in self.tasks:
            task.stop()
        await asyncio.gather(
            *(task.wait_closed() for task in self.tasks), return_exceptions=True
        )

    def states(self) -> dict[str, ScheduleState]:
        return {task.definition.name or task.topic: task.state for task in self.tasks}
