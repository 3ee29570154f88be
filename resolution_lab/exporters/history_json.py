from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from resolution_lab.core.schema import ResolutionRecord


def export_history_json(path: Path, records: Iterable[ResolutionRecord]) -> Path | None:
    payload = [record.model_dump(mode="json") for record in records]
    if not payload:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
