"""Domain layer definitions."""

from .resolutions import PathName, PathState, ProcessingMode, StoreEvent, StoreEventKind

__all__ = [
    "PathName",
    "PathState",
    "ProcessingMode",
    "StoreEvent",
    "StoreEventKind",
]
