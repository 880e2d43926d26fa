"""
Application lifecycle phases and transition events.
"""

from typing import Callable, List, Optional
from dataclasses import dataclass
from enum import Enum
import logging


logger = logging.getLogger("nestling.lifecycle")


class LifecyclePhase(Enum):
    """Lifecycle phases."""
    INIT = "init"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class LifecycleEvent:
    """Event emitted during lifecycle transitions."""
    phase: LifecyclePhase
    module_name: Optional[str] = None
    message: Optional[str] = None
    error: Optional[Exception] = None


LifecycleEventHandler = Callable[[LifecycleEvent], None]


class LifecycleEventEmitter:
    """Fan-out of lifecycle events to registered handlers."""

    def __init__(self):
        self.event_handlers: List[LifecycleEventHandler] = []

    def on_event(self, handler: LifecycleEventHandler) -> None:
        """
        Register event handler.

        Args:
            handler: Callable that receives LifecycleEvent
        """
        self.event_handlers.append(handler)

    def emit(self, event: LifecycleEvent) -> None:
        """Emit lifecycle event to all handlers."""
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error: {e}")
