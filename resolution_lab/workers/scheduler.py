from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from resolution_lab.core.schema import ResolutionRecord, WorkItem

if TYPE_CHECKING:
    from resolution_lab.application.orchestrator import ResolutionOrchestrator
    from resolution_lab.application.store import ResolutionStateStore

logger = logging.getLogger("resolution_lab.scheduler")


@dataclass
class DrainStatus:
    draining: bool
    queued: int
    processed: int


class QueueScheduler:
    """Single-flight FIFO drain of the work queue.

    ``start`` spawns one drain task that pops the head item, records it in the
    history, waits for the orchestrator to settle and then pauses for
    ``inter_item_delay`` before the next item. The draining flag is the only
    guard; there is no cancellation, and clearing the queue only prevents
    further pops.
    """

    def __init__(
        self,
        store: ResolutionStateStore,
        orchestrator: ResolutionOrchestrator,
        *,
        inter_item_delay: float = 1.5,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._delay = inter_item_delay
        self._draining = False
        self._task: asyncio.Task | None = None
        self._processed = 0

    @property
    def is_draining(self) -> bool:
        return self._draining

    def status(self) -> DrainStatus:
        return DrainStatus(draining=self._draining, queued=len(self._store.queue), processed=self._processed)

    def enqueue(self, items: Iterable[WorkItem]) -> int:
        return self._store.enqueue(items)

    def start(self) -> bool:
        """Begin draining; returns ``False`` when already draining or idle with nothing queued."""

        if self._draining or not self._store.queue:
            return False
        self._draining = True
        self._task = asyncio.get_running_loop().create_task(self._drain())
        return True

    async def wait_idle(self) -> None:
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _drain(self) -> None:
        logger.info("drain started with %d queued item(s)", len(self._store.queue))
        try:
            while True:
                item = self._store.dequeue()
                if item is None:
                    break
                mode = self._store.mode
                self._store.append_record(ResolutionRecord.begin(item, mode))
                await self._orchestrator.resolve(item, mode)
                self._processed += 1
                if not self._store.queue:
                    break
                await asyncio.sleep(self._delay)
        finally:
            self._draining = False
            logger.info("drain finished, %d item(s) processed so far", self._processed)
