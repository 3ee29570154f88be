from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from resolution_lab.domain import PathName, PathState, ProcessingMode


class CustomerRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    customer_id: str
    name: str
    email: str | None = None
    phone: str | None = None
    current_tier: str = "Silver"
    last_updated: str | None = None


class WorkItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source_record: CustomerRecord
    transcript: str
    created_at: float


class ResultProfile(BaseModel):
    """Structured output of a resolve call, stored and forwarded untouched."""

    model_config = ConfigDict(extra="allow")

    customer_id: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    current_tier: str | None = None
    latest_sentiment: str | None = None
    identified_intent: str | None = None
    updates_applied: list[str] = Field(default_factory=list)
    confidence_score: float | None = None
    reasoning_insight: str | None = None


class ConsolidatedResolution(BaseModel):
    result: ResultProfile | None = None
    logs: list[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0
    state: PathState = PathState.PENDING


class ModelResolution(ConsolidatedResolution):
    stream_text: str | None = None


class ResolutionRecord(BaseModel):
    id: str
    source_item: WorkItem
    fast: ModelResolution = Field(default_factory=ModelResolution)
    deep: ModelResolution = Field(default_factory=ModelResolution)
    consolidated: ConsolidatedResolution | None = None
    summary: str | None = None

    @classmethod
    def begin(cls, item: WorkItem, mode: ProcessingMode) -> "ResolutionRecord":
        """Create the history entry for a freshly dequeued item."""

        def initial(path: PathName) -> ModelResolution:
            state = PathState.RUNNING if mode.selects(path) else PathState.PENDING
            return ModelResolution(state=state)

        return cls(id=item.id, source_item=item, fast=initial(PathName.FAST), deep=initial(PathName.DEEP))

    def path(self, name: PathName) -> ModelResolution:
        return self.fast if name is PathName.FAST else self.deep

    def best_profile(self) -> ResultProfile | None:
        """Consolidated result first, then deep, then fast."""

        if self.consolidated is not None and self.consolidated.result is not None:
            return self.consolidated.result
        return self.deep.result or self.fast.result


class LabSnapshot(BaseModel):
    queue: list[WorkItem] = Field(default_factory=list)
    history: list[ResolutionRecord] = Field(default_factory=list)
