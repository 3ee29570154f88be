from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from resolution_lab.core.profiles import ProfileParseError, parse_profile
from resolution_lab.core.schema import CustomerRecord, ResultProfile, WorkItem
from resolution_lab.infrastructure.gateway import GatewayError, PartialText, PathFailed, ProfileReady, single_terminal

FAST_CHUNKS = ['```json\n{"name": "Ada Lovelace", ', '"latest_sentiment": "positive", "identified_intent": "update_email", ', '"confidence_score": 0.82, "current_tier": "Gold"}\n```']
DEEP_CHUNKS = ['{"name": "Ada Lovelace", "latest_sentiment": "neutral", ', '"identified_intent": "update_email", "confidence_score": 0.91, ', '"current_tier": "Gold", "reasoning_insight": "Email change is explicit."}']


class FakeGateway:
    """Scriptable in-process gateway; each path streams its chunks then parses them."""

    def __init__(self) -> None:
        self.chunks = {"fast": list(FAST_CHUNKS), "deep": list(DEEP_CHUNKS)}
        self.failures: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.summary = "Customer wants their email updated."
        self.summary_exc: Exception | None = None
        self.synth_exc: Exception | None = None
        self.golden = ResultProfile(name="Ada Lovelace", latest_sentiment="positive", confidence_score=0.95, current_tier="Gold")
        self.calls: list[tuple[str, str]] = []

    async def summarize(self, transcript: str) -> str:
        self.calls.append(("summarize", transcript))
        if self.summary_exc is not None:
            raise self.summary_exc
        return self.summary

    def fast_resolve(self, item: WorkItem):
        return self._stream("fast", item, "Parse Error")

    def deep_resolve(self, item: WorkItem):
        return self._stream("deep", item, "Structure Error")

    @single_terminal
    async def _stream(self, name: str, item: WorkItem, parse_label: str):
        self.calls.append((name, item.id))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            yield PathFailed(self.failures[name])
            return
        text = ""
        for chunk in self.chunks[name]:
            text += chunk
            yield PartialText(text)
            await asyncio.sleep(0)
        try:
            profile = parse_profile(text)
        except ProfileParseError as exc:
            yield PathFailed(f"{parse_label}: {exc}")
            return
        yield ProfileReady(profile)

    async def synthesize(self, item: WorkItem, fast: ResultProfile, deep: ResultProfile) -> ResultProfile:
        self.calls.append(("synthesize", item.id))
        await asyncio.sleep(0)
        if self.synth_exc is not None:
            raise self.synth_exc
        return self.golden

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


def make_item(item_id: str = "ITEM001", name: str = "Ada Lovelace", tier: str = "Gold", created_at: float = 1_700_000_000_000.0) -> WorkItem:
    return WorkItem(
        id=item_id,
        source_record=CustomerRecord(
            customer_id=f"CUST-{item_id}",
            name=name,
            email="ada@example.com",
            phone=None,
            current_tier=tier,
            last_updated="2024-05-01",
        ),
        transcript="Please change my email to ada@newfirm.com",
        created_at=created_at,
    )


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


__all__ = ["FakeGateway", "GatewayError", "make_item"]
