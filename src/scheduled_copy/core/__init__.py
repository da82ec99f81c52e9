"""
Scheduled Copy Core Module

Persisted models, exceptions, stores and event dispatch. The service facade
lives in ``core.orchestrator``.

Author: Scheduled Copy Project
License: MIT
"""

from .exceptions import (
    ScheduledCopyError, TaskNotFoundError, ScheduleConfigurationError,
    PersistenceError, OperationCancelledError, RenameExhaustedError
)
from .models import (
    CopyTask, ScheduleConfiguration, FileCondition, FileOperationResult,
    CopyOperationResult, DuplicateHandling, DuplicateComparison, ScheduleType,
    CopyStatus, DayOfWeek
)
from .events import EventDispatcher, EventType, TaskScheduleEvent
from .task_store import TaskStore, ScheduleStore

__all__ = [
    'ScheduledCopyError', 'TaskNotFoundError', 'ScheduleConfigurationError',
    'PersistenceError', 'OperationCancelledError', 'RenameExhaustedError',
    'CopyTask', 'ScheduleConfiguration', 'FileCondition', 'FileOperationResult',
    'CopyOperationResult', 'DuplicateHandling', 'DuplicateComparison',
    'ScheduleType', 'CopyStatus', 'DayOfWeek',
    'EventDispatcher', 'EventType', 'TaskScheduleEvent',
    'TaskStore', 'ScheduleStore'
]
