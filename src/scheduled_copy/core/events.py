"""
Event Dispatcher

Listener registration for the notifications raised by the copy pipeline and
the schedule engine. Listeners are read-only observers: a failing listener
is logged and never interrupts the code that emitted the event.

Author: Scheduled Copy Project
License: MIT
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List

from ..utils.logger import get_logger

logger = get_logger(__name__)

Listener = Callable[[Any], None]


class EventType(str, Enum):
    """Notifications emitted by the core."""
    OPERATION_STARTED = "operation_started"      # CopyOperationResult (in progress)
    OPERATION_COMPLETED = "operation_completed"  # CopyOperationResult (final)
    FILE_PROCESSING = "file_processing"          # FileOperationResult (before copy)
    FILE_PROCESSED = "file_processed"            # FileOperationResult (after copy)
    TASK_SCHEDULED = "task_scheduled"            # TaskScheduleEvent
    TASK_EXECUTING = "task_executing"            # TaskScheduleEvent


@dataclass(frozen=True)
class TaskScheduleEvent:
    """Payload of TASK_SCHEDULED and TASK_EXECUTING."""
    task_id: str
    task_name: str
    scheduled_time: datetime
    actual_time: datetime


class EventDispatcher:
    """
    Thread-safe observer registry.

    Listeners run synchronously on the emitting thread, in registration
    order. Emitting with nobody subscribed is a no-op.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: EventType, listener: Listener) -> None:
        """Register ``listener`` for ``event_type``."""
        event_type = EventType(event_type)
        with self._lock:
            self._listeners.setdefault(event_type, []).append(listener)

    def unsubscribe(self, event_type: EventType, listener: Listener) -> bool:
        """Remove a listener; returns False when it was not registered."""
        event_type = EventType(event_type)
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)
                return True
            return False

    def listener_count(self, event_type: EventType) -> int:
        with self._lock:
            return len(self._listeners.get(EventType(event_type), []))

    def emit(self, event_type: EventType, payload: Any) -> None:
        """Deliver ``payload`` to every listener of ``event_type``."""
        event_type = EventType(event_type)
        with self._lock:
            listeners = list(self._listeners.get(event_type, []))

        for listener in listeners:
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed on {event_type.value}: {e}")
