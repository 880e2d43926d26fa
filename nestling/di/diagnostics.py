"""
DI Diagnostics - Observability and event tracking for DI containers.
"""

import time
from typing import Any, Dict, List, Optional, Protocol
from enum import Enum
import dataclasses
import logging

from .tokens import serialize_token

logger = logging.getLogger("nestling.di.diagnostics")


class DIEventType(Enum):
    """Types of DI events."""
    REGISTRATION = "registration"
    RESOLUTION_SUCCESS = "resolution_success"
    RESOLUTION_FAILURE = "resolution_failure"
    RESOLUTION_SKIPPED = "resolution_skipped"
    LIFECYCLE_PHASE = "lifecycle_phase"
    LIFECYCLE_HOOK_FAILURE = "lifecycle_hook_failure"


@dataclasses.dataclass
class DIEvent:
    """A diagnostic event in the DI system."""
    type: DIEventType
    timestamp: float = dataclasses.field(default_factory=time.time)
    token: Optional[Any] = None
    container: Optional[str] = None
    mode: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[BaseException] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)


class DiagnosticListener(Protocol):
    """Interface for DI diagnostic listeners."""
    def on_event(self, event: DIEvent) -> None:
        """Called when a DI event occurs."""
        ...


class LoggingDiagnosticListener:
    """Diagnostic listener that writes events to the logging system."""

    def __init__(self, log_level: int = logging.DEBUG):
        self.log_level = log_level

    def on_event(self, event: DIEvent) -> None:
        token = serialize_token(event.token) if event.token is not None else None

        if event.type == DIEventType.REGISTRATION:
            logger.log(self.log_level, f"Registered {token} (mode={event.mode}) in {event.container}")
        elif event.type == DIEventType.RESOLUTION_SUCCESS:
            logger.log(self.log_level, f"Resolved {token} in {event.duration:.6f}s")
        elif event.type == DIEventType.RESOLUTION_FAILURE:
            logger.log(self.log_level, f"Failed to resolve {token}: {event.error}")
        elif event.type == DIEventType.RESOLUTION_SKIPPED:
            reason = event.metadata.get("reason", "best-effort")
            logger.log(self.log_level, f"Skipped {token} during {reason}: {event.error}")
        elif event.type == DIEventType.LIFECYCLE_PHASE:
            logger.log(self.log_level, f"Lifecycle phase {event.metadata.get('phase')}: {event.metadata.get('state')}")
        elif event.type == DIEventType.LIFECYCLE_HOOK_FAILURE:
            logger.log(logging.ERROR, f"Hook {event.metadata.get('hook')} failed: {event.error}")


class DIDiagnostics:
    """Coordinator for DI diagnostic listeners."""

    def __init__(self):
        self._listeners: List[DiagnosticListener] = []

    def add_listener(self, listener: DiagnosticListener) -> None:
        """Add a diagnostic listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def enabled(self) -> bool:
        return bool(self._listeners)

    def emit(self, event_type: DIEventType, **kwargs) -> None:
        """Emit a diagnostic event to all listeners."""
        if not self._listeners:
            return

        event = DIEvent(type=event_type, **kwargs)
        for listener in self._listeners:
            try:
                listener.on_event(event)
            except Exception as e:
                # Diagnostics should never crash the main application
                logger.error(f"Diagnostic listener error: {e}")

    def measure(self, **kwargs) -> "_DiagnosticMeasure":
        """Context manager timing a resolution; emits success or failure."""
        return _DiagnosticMeasure(self, **kwargs)


class _DiagnosticMeasure:
    def __init__(self, diagnostics: DIDiagnostics, **kwargs):
        self.diagnostics = diagnostics
        self.kwargs = kwargs
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type:
            self.diagnostics.emit(
                DIEventType.RESOLUTION_FAILURE,
                duration=duration,
                error=exc_val,
                **self.kwargs
            )
        else:
            self.diagnostics.emit(
                DIEventType.RESOLUTION_SUCCESS,
                duration=duration,
                **self.kwargs
            )
        return False
