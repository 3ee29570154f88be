"""Key-value byte storage backing the persisted lab state."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Protocol


class KeyValueStore(Protocol):
    """Persistence contract: opaque byte strings addressed by key."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...


class InMemoryKeyValueStore:
    """Simple in-memory store for fast iteration and tests."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)


class FileKeyValueStore:
    """One file per key under ``root``; writes replace the file atomically."""

    _SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._root / self._SAFE_KEY.sub("_", key)

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        target = self._path(key)
        scratch = target.with_name(f"{target.name}.tmp")
        scratch.write_bytes(value)
        os.replace(scratch, target)
