"""
Exceptions

Error types raised by the stores, the copy pipeline and the schedule engine.

Author: Scheduled Copy Project
License: MIT
"""

from typing import Any, Optional


class ScheduledCopyError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class TaskNotFoundError(ScheduledCopyError):
    """Raised when an operation references a task id that does not exist."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class ScheduleConfigurationError(ScheduledCopyError, ValueError):
    """
    Raised when a schedule definition cannot be accepted.

    Examples are a Daily schedule without execution times, a Weekly schedule
    without days, or an Interval schedule with a non-positive interval.
    """


class PersistenceError(ScheduledCopyError):
    """Raised when a store cannot be read from or written to disk."""

    def __init__(self, message: str, path: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.path = path


class OperationCancelledError(ScheduledCopyError):
    """Raised inside the copy loop when cancellation has been requested."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class RenameExhaustedError(ScheduledCopyError):
    """Raised when no free alternate destination name could be found."""

    def __init__(self, path: str, attempts: int):
        super().__init__(
            f"Could not find a free name for {path} after {attempts} attempts"
        )
        self.path = path
        self.attempts = attempts
