"""Application service tying the store, the workers and the exporters together."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from resolution_lab.core.samples import TIERS, generate_work_items, manual_work_item
from resolution_lab.core.schema import ResolutionRecord, WorkItem
from resolution_lab.core.settings import Settings, load_settings
from resolution_lab.domain import ProcessingMode
from resolution_lab.exporters.history_csv import export_history_csv
from resolution_lab.exporters.history_json import export_history_json
from resolution_lab.infrastructure import FileKeyValueStore, GeminiGateway, InferenceGateway, KeyValueStore
from resolution_lab.workers.scheduler import QueueScheduler

from .orchestrator import ResolutionOrchestrator
from .persistence import bind_persistence, load_state
from .retry import RetryCoordinator
from .store import ResolutionStateStore

logger = logging.getLogger("resolution_lab.service")


class LabService:
    """Coordinates the workbench use cases."""

    EXPORTERS = {
        "json": export_history_json,
        "csv": export_history_csv,
    }
    QUEUE_SORT_FIELDS = {
        "name": lambda item: item.source_record.name.lower(),
        "id": lambda item: item.id,
        "timestamp": lambda item: item.created_at,
    }

    def __init__(
        self,
        settings: Settings,
        gateway: InferenceGateway,
        storage: KeyValueStore,
        *,
        store: ResolutionStateStore | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self.store = store or ResolutionStateStore()
        self.orchestrator = ResolutionOrchestrator(self.store, gateway, path_timeout=settings.path_timeout)
        self.scheduler = QueueScheduler(self.store, self.orchestrator, inter_item_delay=settings.inter_item_delay)
        self.retries = RetryCoordinator(self.store, self.orchestrator)
        self._retry_tasks: set[asyncio.Task] = set()
        self._unbind = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def bootstrap(self) -> None:
        """Load saved state once, seed samples on first run and start persisting."""

        if self._unbind is not None:
            return
        existed = load_state(self.store, self._storage)
        self._unbind = bind_persistence(self.store, self._storage)
        if not existed and self._settings.seed_count > 0:
            self.scheduler.enqueue(generate_work_items(self._settings.seed_count))
            logger.info("seeded queue with %d sample item(s)", self._settings.seed_count)

    async def wait_idle(self) -> None:
        await self.scheduler.wait_idle()
        while self._retry_tasks:
            await asyncio.gather(*list(self._retry_tasks))
        await self.orchestrator.wait_side_tasks()

    # ------------------------------------------------------------------
    # queue
    # ------------------------------------------------------------------
    def list_queue(self, tier: str = "All", sort: str = "timestamp", order: str = "asc") -> list[WorkItem]:
        if sort not in self.QUEUE_SORT_FIELDS:
            raise ValueError(f"sort must be one of {', '.join(self.QUEUE_SORT_FIELDS)}")
        if order not in {"asc", "desc"}:
            raise ValueError("order must be asc or desc")
        items = self.store.queue
        if tier and tier != "All":
            items = [item for item in items if item.source_record.current_tier == tier]
        return sorted(items, key=self.QUEUE_SORT_FIELDS[sort], reverse=order == "desc")

    def inject_samples(self, count: int = 5) -> list[WorkItem]:
        items = generate_work_items(count)
        self.scheduler.enqueue(items)
        return items

    def inject_manual(self, name: str, email: str, transcript: str) -> WorkItem:
        item = manual_work_item(name, email, transcript)
        self.scheduler.enqueue([item])
        return item

    def clear_queue(self) -> None:
        self.store.clear_queue()

    def start(self) -> bool:
        return self.scheduler.start()

    def status(self) -> dict[str, Any]:
        drain = self.scheduler.status()
        return {
            "draining": drain.draining,
            "queued": drain.queued,
            "processed": drain.processed,
            "history": len(self.store.history),
            "mode": self.store.mode.value,
            "tiers": ["All", *TIERS],
        }

    # ------------------------------------------------------------------
    # mode
    # ------------------------------------------------------------------
    def get_mode(self) -> ProcessingMode:
        return self.store.mode

    def set_mode(self, mode: str | ProcessingMode) -> ProcessingMode:
        self.store.set_mode(ProcessingMode(mode))
        return self.store.mode

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------
    def list_history(self) -> list[ResolutionRecord]:
        return self.store.history

    def get_record(self, record_id: str) -> ResolutionRecord | None:
        return self.store.get_record(record_id)

    def clear_history(self) -> None:
        self.store.clear_history()

    def request_retry(self, record_id: str, mode: str | ProcessingMode | None = None) -> asyncio.Task:
        """Reset the record now and resolve it in the background."""

        item, selected = self.retries.prepare(record_id, ProcessingMode(mode) if mode else None)
        task = asyncio.get_running_loop().create_task(self.retries.run(item, selected))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)
        return task

    # ------------------------------------------------------------------
    # exports
    # ------------------------------------------------------------------
    def export(self, fmt: str, record_id: str | None = None) -> Path | None:
        exporter = self.EXPORTERS.get(fmt)
        if exporter is None:
            raise ValueError(f"format must be one of {', '.join(self.EXPORTERS)}")
        records = self.store.history
        if record_id:
            records = [record for record in records if record.id == record_id]
        path = self._settings.state_dir / "exports" / f"resolution_lab_export_{record_id or 'all'}.{fmt}"
        return exporter(path, records)


def build_lab_service(
    settings: Settings,
    *,
    gateway: InferenceGateway | None = None,
    storage: KeyValueStore | None = None,
) -> LabService:
    if gateway is None:
        gateway = GeminiGateway(
            settings.api_key,
            settings.presets,
            api_base=settings.api_base,
            timeout=settings.request_timeout,
        )
    if storage is None:
        storage = FileKeyValueStore(settings.state_dir / "store")
    return LabService(settings, gateway, storage)


_service: LabService | None = None


def configure_lab_service(service: LabService) -> None:
    """Install the service used by the HTTP routes."""

    global _service
    _service = service


def get_lab_service() -> LabService:
    """Return the process-wide lab service, building a default one on first use."""

    global _service
    if _service is None:
        _service = build_lab_service(load_settings())
        _service.bootstrap()
    return _service


def reset_lab_state() -> None:
    """Drop the process-wide service (used in tests)."""

    global _service
    _service = None
