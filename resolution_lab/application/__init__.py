"""Application services."""

from .orchestrator import ResolutionInFlightError, ResolutionOrchestrator
from .retry import RetryCoordinator
from .service import LabService, build_lab_service, configure_lab_service, get_lab_service, reset_lab_state
from .store import ResolutionStateStore

__all__ = [
    "LabService",
    "ResolutionInFlightError",
    "ResolutionOrchestrator",
    "ResolutionStateStore",
    "RetryCoordinator",
    "build_lab_service",
    "configure_lab_service",
    "get_lab_service",
    "reset_lab_state",
]
