"""Drives one work item through the fast path, the deep path and synthesis."""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing

from resolution_lab.core.schema import ConsolidatedResolution, ResultProfile, WorkItem
from resolution_lab.domain import PathName, PathState, ProcessingMode
from resolution_lab.infrastructure.gateway import InferenceGateway, PartialText, PathFailed, ProfileReady

from .store import ResolutionStateStore

logger = logging.getLogger("resolution_lab.orchestrator")

COMPLETION_LOGS = {
    PathName.FAST: "Fast path: rapid merge complete.",
    PathName.DEEP: "Deep path: reasoning complete.",
}
FAULT_LABELS = {
    PathName.FAST: "API Error",
    PathName.DEEP: "Engine Fault",
}


class ResolutionInFlightError(RuntimeError):
    """Raised when a record is claimed while a resolution for it is running."""


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


class ResolutionOrchestrator:
    """Runs the per-item state machine against the shared state store.

    Path outcomes are written to the store as they arrive; nothing about a
    record is cached here between awaits. Faults never escape :meth:`resolve`:
    each path and the consolidation step convert them into ``failed`` states.
    """

    def __init__(
        self,
        store: ResolutionStateStore,
        gateway: InferenceGateway,
        *,
        path_timeout: float | None = 180.0,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._path_timeout = path_timeout
        self._in_flight: set[str] = set()
        self._side_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # in-flight bookkeeping
    # ------------------------------------------------------------------
    def is_in_flight(self, record_id: str) -> bool:
        return record_id in self._in_flight

    def claim(self, record_id: str) -> None:
        if record_id in self._in_flight:
            raise ResolutionInFlightError(f"record {record_id} is already being resolved")
        self._in_flight.add(record_id)

    async def wait_side_tasks(self) -> None:
        """Wait for outstanding summary requests."""

        while self._side_tasks:
            await asyncio.gather(*list(self._side_tasks))

    # ------------------------------------------------------------------
    # resolution
    # ------------------------------------------------------------------
    async def resolve(self, item: WorkItem, mode: ProcessingMode) -> None:
        """Resolve ``item`` and return once every selected step is terminal.

        Claims the record unless the caller already did; the claim is released
        when the resolution settles.
        """

        if item.id not in self._in_flight:
            self.claim(item.id)
        try:
            paths = mode.paths()
            for path in paths:
                self._store.update_path(item.id, path, state=PathState.RUNNING)

            self._start_summary(item)

            profiles = await asyncio.gather(*(self._run_path(item, path) for path in paths))
            outcome = dict(zip(paths, profiles))

            fast = outcome.get(PathName.FAST)
            deep = outcome.get(PathName.DEEP)
            if mode is ProcessingMode.BOTH and fast is not None and deep is not None:
                await self._consolidate(item, fast, deep)
        finally:
            self._in_flight.discard(item.id)

    def _start_summary(self, item: WorkItem) -> None:
        task = asyncio.create_task(self._summarize(item))
        self._side_tasks.add(task)
        task.add_done_callback(self._side_tasks.discard)

    async def _summarize(self, item: WorkItem) -> None:
        try:
            summary = await self._gateway.summarize(item.transcript)
        except Exception as exc:
            logger.warning("summary for %s failed: %s", item.id, exc)
            return
        self._store.set_summary(item.id, summary)

    async def _run_path(self, item: WorkItem, path: PathName) -> ResultProfile | None:
        started = time.perf_counter()
        try:
            if self._path_timeout is None:
                return await self._consume(item, path, started)
            return await asyncio.wait_for(self._consume(item, path, started), timeout=self._path_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s path for %s timed out after %.0fs", path.value, item.id, self._path_timeout)
            self._fail(item.id, path, f"Timed Out: no response within {self._path_timeout:.0f}s.", started)
        except Exception as exc:
            logger.exception("%s path for %s raised", path.value, item.id)
            self._fail(item.id, path, f"{FAULT_LABELS[path]}: {exc}", started)
        return None

    async def _consume(self, item: WorkItem, path: PathName, started: float) -> ResultProfile | None:
        stream = self._gateway.fast_resolve(item) if path is PathName.FAST else self._gateway.deep_resolve(item)
        profile: ResultProfile | None = None
        async with aclosing(stream) as events:
            async for event in events:
                if isinstance(event, PartialText):
                    self._store.update_path(item.id, path, stream_text=event.text)
                elif isinstance(event, ProfileReady):
                    profile = event.profile
                    self._store.update_path(
                        item.id,
                        path,
                        state=PathState.COMPLETED,
                        result=profile,
                        elapsed_ms=_elapsed_ms(started),
                        logs=[COMPLETION_LOGS[path]],
                    )
                elif isinstance(event, PathFailed):
                    logger.info("%s path for %s failed: %s", path.value, item.id, event.message)
                    self._fail(item.id, path, event.message, started)
        return profile

    def _fail(self, record_id: str, path: PathName, message: str, started: float) -> None:
        self._store.update_path(
            record_id,
            path,
            state=PathState.FAILED,
            result=None,
            elapsed_ms=_elapsed_ms(started),
            logs=[message],
        )

    async def _consolidate(self, item: WorkItem, fast: ResultProfile, deep: ResultProfile) -> None:
        self._store.set_consolidated(
            item.id,
            ConsolidatedResolution(state=PathState.RUNNING, logs=["Initiating synthesis..."]),
        )
        started = time.perf_counter()
        try:
            synthesis = self._gateway.synthesize(item, fast, deep)
            if self._path_timeout is None:
                golden = await synthesis
            else:
                golden = await asyncio.wait_for(synthesis, timeout=self._path_timeout)
        except asyncio.TimeoutError:
            message = f"Consolidation Error: Timed Out after {self._path_timeout:.0f}s."
        except Exception as exc:
            message = f"Consolidation Error: {str(exc) or 'Arbiter failed.'}"
        else:
            self._store.set_consolidated(
                item.id,
                ConsolidatedResolution(
                    state=PathState.COMPLETED,
                    result=golden,
                    elapsed_ms=_elapsed_ms(started),
                    logs=["Consolidation complete: golden record established."],
                ),
            )
            return

        logger.warning("consolidation for %s failed: %s", item.id, message)
        self._store.set_consolidated(
            item.id,
            ConsolidatedResolution(state=PathState.FAILED, logs=[message]),
        )
