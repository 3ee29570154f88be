"""Contract between the orchestrator and the remote inference backends.

Streaming resolve calls are exposed as async iterators of :class:`StreamEvent`
values. Every stream yields zero or more :class:`PartialText` snapshots and
then exactly one terminal event, either :class:`ProfileReady` or
:class:`PathFailed`. :func:`single_terminal` enforces that postcondition for
implementations.
"""
from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Protocol, Union

from resolution_lab.core.schema import ResultProfile, WorkItem

SUMMARY_FAILED = "Summary generation failed."
NO_SUMMARY = "No summary available."


class GatewayError(RuntimeError):
    """Raised when a remote call fails at the transport or protocol layer."""


class GatewayConfigurationError(GatewayError):
    """Raised before any request is issued when the gateway is not usable."""


class StreamContractError(GatewayError):
    """Raised when a resolve stream breaks the single-terminal-event contract."""


@dataclass(slots=True, frozen=True)
class PartialText:
    """Cumulative text received so far."""

    text: str


@dataclass(slots=True, frozen=True)
class ProfileReady:
    profile: ResultProfile


@dataclass(slots=True, frozen=True)
class PathFailed:
    message: str


StreamEvent = Union[PartialText, ProfileReady, PathFailed]
TERMINAL_EVENTS = (ProfileReady, PathFailed)


class InferenceGateway(Protocol):
    """Operations offered by the remote inference backends."""

    async def summarize(self, transcript: str) -> str:
        """Return a one-sentence synopsis or a sentinel string; never raises."""

    def fast_resolve(self, item: WorkItem) -> AsyncIterator[StreamEvent]:
        """Stream the low-latency resolution of ``item``."""

    def deep_resolve(self, item: WorkItem) -> AsyncIterator[StreamEvent]:
        """Stream the deep-reasoning resolution of ``item``."""

    async def synthesize(self, item: WorkItem, fast: ResultProfile, deep: ResultProfile) -> ResultProfile:
        """Reconcile both proposals into one profile; raises on any fault."""


def single_terminal(
    func: Callable[..., AsyncIterator[StreamEvent]],
) -> Callable[..., AsyncIterator[StreamEvent]]:
    """Wrap an async generator so it must end with exactly one terminal event."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> AsyncIterator[StreamEvent]:
        finished = False
        async for event in func(*args, **kwargs):
            if finished:
                raise StreamContractError(f"{type(event).__name__} emitted after the terminal event")
            if isinstance(event, TERMINAL_EVENTS):
                finished = True
            yield event
        if not finished:
            raise StreamContractError("stream ended without a terminal event")

    return wrapper


__all__ = [
    "GatewayConfigurationError",
    "GatewayError",
    "InferenceGateway",
    "NO_SUMMARY",
    "PartialText",
    "PathFailed",
    "ProfileReady",
    "SUMMARY_FAILED",
    "StreamContractError",
    "StreamEvent",
    "single_terminal",
]
