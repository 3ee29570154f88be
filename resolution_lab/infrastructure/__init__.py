"""Infrastructure layer exports."""

from .gateway import (
    GatewayConfigurationError,
    GatewayError,
    InferenceGateway,
    PartialText,
    PathFailed,
    ProfileReady,
    StreamContractError,
    StreamEvent,
)
from .gemini import GeminiGateway
from .storage import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "FileKeyValueStore",
    "GatewayConfigurationError",
    "GatewayError",
    "GeminiGateway",
    "InMemoryKeyValueStore",
    "InferenceGateway",
    "KeyValueStore",
    "PartialText",
    "PathFailed",
    "ProfileReady",
    "StreamContractError",
    "StreamEvent",
]
