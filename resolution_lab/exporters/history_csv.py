from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from resolution_lab.core.schema import ResolutionRecord

COLUMNS = ["ID", "Customer", "Sentiment", "Intent", "Confidence", "Tier"]


def flatten_record(record: ResolutionRecord) -> dict[str, object]:
    profile = record.best_profile()
    if profile is None:
        return {
            "ID": record.id,
            "Customer": record.source_item.source_record.name,
            "Sentiment": "N/A",
            "Intent": "N/A",
            "Confidence": 0,
            "Tier": "N/A",
        }
    return {
        "ID": record.id,
        "Customer": profile.name or record.source_item.source_record.name,
        "Sentiment": profile.latest_sentiment or "N/A",
        "Intent": profile.identified_intent or "N/A",
        "Confidence": profile.confidence_score or 0,
        "Tier": profile.current_tier or "N/A",
    }


def export_history_csv(path: Path, records: Iterable[ResolutionRecord]) -> Path | None:
    rows = [flatten_record(record) for record in records]
    if not rows:
        return None
    df = pd.DataFrame(rows, columns=COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
