"""Authoritative in-memory state for the queue, the history and the mode."""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from resolution_lab.core.schema import ConsolidatedResolution, LabSnapshot, ResolutionRecord, WorkItem
from resolution_lab.domain import PathName, PathState, ProcessingMode, StoreEvent, StoreEventKind

logger = logging.getLogger("resolution_lab.store")

StoreObserver = Callable[[StoreEvent], None]


class ResolutionStateStore:
    """Owns the work queue and the resolution history.

    Every mutation is synchronous, so it runs atomically with respect to the
    event loop, and is followed by a :class:`StoreEvent` to all observers.
    Record updates replace the matching record with an updated copy; callers
    never keep records across suspension points and re-read instead.
    """

    def __init__(self, mode: ProcessingMode = ProcessingMode.BOTH) -> None:
        self._queue: list[WorkItem] = []
        self._history: list[ResolutionRecord] = []
        self._mode = mode
        self._observers: list[StoreObserver] = []

    # ------------------------------------------------------------------
    # observers
    # ------------------------------------------------------------------
    def subscribe(self, observer: StoreObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, kind: StoreEventKind, action: str, record_id: str | None = None) -> None:
        event = StoreEvent(kind=kind, action=action, record_id=record_id)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("store observer failed on %s/%s", kind.value, action)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    @property
    def mode(self) -> ProcessingMode:
        return self._mode

    @property
    def queue(self) -> list[WorkItem]:
        return list(self._queue)

    @property
    def history(self) -> list[ResolutionRecord]:
        return list(self._history)

    def get_record(self, record_id: str) -> ResolutionRecord | None:
        for record in self._history:
            if record.id == record_id:
                return record
        return None

    def snapshot(self) -> LabSnapshot:
        return LabSnapshot(queue=list(self._queue), history=list(self._history))

    # ------------------------------------------------------------------
    # queue mutations
    # ------------------------------------------------------------------
    def enqueue(self, items: Iterable[WorkItem]) -> int:
        added = list(items)
        if not added:
            return 0
        self._queue.extend(added)
        self._notify(StoreEventKind.QUEUE, "enqueued")
        return len(added)

    def dequeue(self) -> WorkItem | None:
        if not self._queue:
            return None
        item = self._queue.pop(0)
        self._notify(StoreEventKind.QUEUE, "dequeued", item.id)
        return item

    def clear_queue(self) -> None:
        self._queue.clear()
        self._notify(StoreEventKind.QUEUE, "cleared")

    # ------------------------------------------------------------------
    # history mutations
    # ------------------------------------------------------------------
    def append_record(self, record: ResolutionRecord) -> None:
        if self.get_record(record.id) is not None:
            raise ValueError(f"record {record.id} already exists in history")
        self._history.append(record)
        self._notify(StoreEventKind.HISTORY, "appended", record.id)

    def clear_history(self) -> None:
        self._history.clear()
        self._notify(StoreEventKind.HISTORY, "cleared")

    def _replace_record(
        self,
        record_id: str,
        change: Callable[[ResolutionRecord], ResolutionRecord],
        action: str,
    ) -> ResolutionRecord | None:
        for index, record in enumerate(self._history):
            if record.id == record_id:
                updated = change(record)
                self._history[index] = updated
                self._notify(StoreEventKind.RECORD, action, record_id)
                return updated
        return None

    def update_path(self, record_id: str, path: PathName, **changes) -> ResolutionRecord | None:
        """Apply ``changes`` to one model path; unknown ids are ignored."""

        def change(record: ResolutionRecord) -> ResolutionRecord:
            current = record.path(path)
            return record.model_copy(update={path.value: current.model_copy(update=changes)})

        return self._replace_record(record_id, change, f"{path.value}_updated")

    def reset_paths(self, record_id: str, paths: Iterable[PathName]) -> ResolutionRecord | None:
        """Put ``paths`` back to running for a retry and drop the consolidated result."""

        selected = tuple(paths)

        def change(record: ResolutionRecord) -> ResolutionRecord:
            update: dict[str, object] = {"consolidated": None}
            for path in selected:
                update[path.value] = record.path(path).model_copy(
                    update={"state": PathState.RUNNING, "logs": [], "stream_text": None}
                )
            return record.model_copy(update=update)

        return self._replace_record(record_id, change, "reset")

    def set_consolidated(self, record_id: str, consolidated: ConsolidatedResolution | None) -> ResolutionRecord | None:
        return self._replace_record(
            record_id,
            lambda record: record.model_copy(update={"consolidated": consolidated}),
            "consolidated_updated",
        )

    def set_summary(self, record_id: str, summary: str) -> ResolutionRecord | None:
        return self._replace_record(
            record_id,
            lambda record: record.model_copy(update={"summary": summary}),
            "summary_updated",
        )

    # ------------------------------------------------------------------
    # mode & bulk state
    # ------------------------------------------------------------------
    def set_mode(self, mode: ProcessingMode) -> None:
        self._mode = ProcessingMode(mode)
        self._notify(StoreEventKind.MODE, "changed")

    def replace(self, snapshot: LabSnapshot) -> None:
        self._queue = list(snapshot.queue)
        self._history = list(snapshot.history)
        self._notify(StoreEventKind.HISTORY, "loaded")
