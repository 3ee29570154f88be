from __future__ import annotations

import logging

from resolution_lab.core.schema import WorkItem
from resolution_lab.domain import ProcessingMode

from .orchestrator import ResolutionOrchestrator
from .store import ResolutionStateStore

logger = logging.getLogger("resolution_lab.retry")


class RetryCoordinator:
    """Re-runs the orchestrator for a single history record."""

    def __init__(self, store: ResolutionStateStore, orchestrator: ResolutionOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    def prepare(self, record_id: str, mode: ProcessingMode | None = None) -> tuple[WorkItem, ProcessingMode]:
        """Claim and reset the record synchronously.

        Raises ``KeyError`` for unknown records and
        :class:`~resolution_lab.application.orchestrator.ResolutionInFlightError`
        when the record is still being resolved.
        """

        record = self._store.get_record(record_id)
        if record is None:
            raise KeyError(record_id)
        mode = ProcessingMode(mode) if mode is not None else self._store.mode

        self._orchestrator.claim(record_id)
        self._store.reset_paths(record_id, mode.paths())
        logger.info("retrying %s in %s mode", record_id, mode.value)
        return record.source_item, mode

    async def retry(self, record_id: str, mode: ProcessingMode | None = None) -> None:
        item, mode = self.prepare(record_id, mode)
        await self.run(item, mode)

    async def run(self, item: WorkItem, mode: ProcessingMode) -> None:
        """Resolve an item previously returned by :meth:`prepare`."""

        await self._orchestrator.resolve(item, mode)
