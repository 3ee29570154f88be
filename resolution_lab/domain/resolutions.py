"""Domain vocabulary for resolution tracking."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PathState(str, Enum):
    """Lifecycle of a single model path or of the consolidation step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PathState.COMPLETED, PathState.FAILED)


class PathName(str, Enum):
    FAST = "fast"
    DEEP = "deep"


class ProcessingMode(str, Enum):
    """Which model paths are run for each dequeued item."""

    FAST = "fast"
    DEEP = "deep"
    BOTH = "both"

    def paths(self) -> tuple[PathName, ...]:
        if self is ProcessingMode.FAST:
            return (PathName.FAST,)
        if self is ProcessingMode.DEEP:
            return (PathName.DEEP,)
        return (PathName.FAST, PathName.DEEP)

    def selects(self, path: PathName) -> bool:
        return path in self.paths()


class StoreEventKind(str, Enum):
    QUEUE = "queue"
    HISTORY = "history"
    RECORD = "record"
    MODE = "mode"


@dataclass(slots=True, frozen=True)
class StoreEvent:
    """Notification emitted by the state store after every mutation."""

    kind: StoreEventKind
    action: str
    record_id: str | None = None
