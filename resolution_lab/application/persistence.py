"""Round trip between the state store and a key-value byte store."""
from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from resolution_lab.core.schema import LabSnapshot
from resolution_lab.domain import ProcessingMode, StoreEvent, StoreEventKind
from resolution_lab.infrastructure.storage import KeyValueStore

from .store import ResolutionStateStore

logger = logging.getLogger("resolution_lab.persistence")

STATE_KEY = "resolution_lab_state_v1"
MODE_KEY = "resolution_lab_model_config"


def serialise_snapshot(snapshot: LabSnapshot) -> bytes:
    return snapshot.model_dump_json().encode("utf-8")


def deserialise_snapshot(raw: bytes) -> LabSnapshot:
    return LabSnapshot.model_validate_json(raw)


def load_state(store: ResolutionStateStore, storage: KeyValueStore) -> bool:
    """Populate ``store`` from ``storage``; returns ``True`` when saved state existed."""

    raw_mode = storage.get(MODE_KEY)
    if raw_mode:
        try:
            store.set_mode(ProcessingMode(raw_mode.decode("utf-8").strip()))
        except (UnicodeDecodeError, ValueError):
            logger.warning("Ignoring unknown saved processing mode %r", raw_mode)

    raw_state = storage.get(STATE_KEY)
    if raw_state is None:
        return False
    try:
        snapshot = deserialise_snapshot(raw_state)
    except ValidationError as exc:
        logger.error("Failed to load saved state, starting empty: %s", exc)
        return True
    store.replace(snapshot)
    return True


def bind_persistence(store: ResolutionStateStore, storage: KeyValueStore) -> Callable[[], None]:
    """Write the state after every queue/history change and the mode after every mode change."""

    def persist(event: StoreEvent) -> None:
        if event.kind is StoreEventKind.MODE:
            storage.set(MODE_KEY, store.mode.value.encode("utf-8"))
        else:
            storage.set(STATE_KEY, serialise_snapshot(store.snapshot()))

    return store.subscribe(persist)
