"""
Task and Schedule Models

Pydantic models for the persisted copy-task and schedule records, the
file-selection conditions attached to a task, and the dataclasses that
describe the outcome of a copy run.

Author: Scheduled Copy Project
License: MIT
"""

import os
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import ScheduleConfigurationError


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def file_created_at(stat: os.stat_result) -> datetime:
    """Best available creation time: birth time where the platform has it, else ctime."""
    birth = getattr(stat, "st_birthtime", None)
    return datetime.fromtimestamp(birth if birth is not None else stat.st_ctime)


def file_modified_at(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat.st_mtime)


class DuplicateHandling(str, Enum):
    """What to do when the destination file already exists."""
    SKIP = "Skip"                            # skip when identical, otherwise overwrite
    OVERWRITE = "Overwrite"
    OVERWRITE_IF_NEWER = "OverwriteIfNewer"
    RENAME_NEW = "RenameNew"


class DuplicateComparison(str, Enum):
    """How source and existing destination are compared."""
    SIZE_AND_DATE = "SizeAndDate"
    SIZE_ONLY = "SizeOnly"
    DATE_ONLY = "DateOnly"
    HASH_CONTENT = "HashContent"


class ScheduleType(str, Enum):
    """Cadence kinds supported by the schedule engine."""
    INTERVAL = "Interval"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class CopyStatus(str, Enum):
    """Overall status of one task execution."""
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    PARTIAL_SUCCESS = "PartialSuccess"
    FAILED = "Failed"


class DayOfWeek(str, Enum):
    """Day names, ordered to match ``date.weekday()``."""
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def weekday(self) -> int:
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        return list(cls)[value.weekday()]


WEEKDAYS = (
    DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY, DayOfWeek.FRIDAY,
)
WEEKEND = (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY)


# ---------------------------------------------------------------------------
# File selection conditions
# ---------------------------------------------------------------------------

class _Condition(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    def matches(self, path: Path, stat: os.stat_result, today: date) -> bool:
        raise NotImplementedError


class ModifiedToday(_Condition):
    type: Literal["ModifiedToday"] = "ModifiedToday"

    def matches(self, path, stat, today):
        return file_modified_at(stat).date() == today


class ModifiedSince(_Condition):
    type: Literal["ModifiedSince"] = "ModifiedSince"
    value: datetime

    @field_validator("value")
    @classmethod
    def normalize_value(cls, v):
        return to_local_naive(v)

    def matches(self, path, stat, today):
        return file_modified_at(stat) >= self.value


class CreatedToday(_Condition):
    type: Literal["CreatedToday"] = "CreatedToday"

    def matches(self, path, stat, today):
        return file_created_at(stat).date() == today


class CreatedSince(_Condition):
    type: Literal["CreatedSince"] = "CreatedSince"
    value: datetime

    @field_validator("value")
    @classmethod
    def normalize_value(cls, v):
        return to_local_naive(v)

    def matches(self, path, stat, today):
        return file_created_at(stat) >= self.value


class FileSizeGreaterThan(_Condition):
    type: Literal["FileSizeGreaterThan"] = "FileSizeGreaterThan"
    value: int

    def matches(self, path, stat, today):
        return stat.st_size > self.value


class FileSizeLessThan(_Condition):
    type: Literal["FileSizeLessThan"] = "FileSizeLessThan"
    value: int

    def matches(self, path, stat, today):
        return stat.st_size < self.value


class FileExtension(_Condition):
    """Extension match, ignoring case and a leading dot on either side."""
    type: Literal["FileExtension"] = "FileExtension"
    value: str

    def matches(self, path, stat, today):
        if not self.value:
            return True
        wanted = self.value.lstrip('.').casefold()
        return path.suffix.lstrip('.').casefold() == wanted


class FileName(_Condition):
    """Case-insensitive substring match against the name without extension."""
    type: Literal["FileName"] = "FileName"
    value: str

    def matches(self, path, stat, today):
        if not self.value:
            return True
        return self.value.casefold() in path.stem.casefold()


FileCondition = Annotated[
    Union[
        ModifiedToday,
        ModifiedSince,
        CreatedToday,
        CreatedSince,
        FileSizeGreaterThan,
        FileSizeLessThan,
        FileExtension,
        FileName,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class CopyTask(BaseModel):
    """
    A copy task: which files to take from ``source_path`` and where to put them.

    When ``specific_files`` is non-empty it wins over ``file_patterns``.
    All ``conditions`` must hold for a file to be selected.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = ""
    source_path: str = ""
    destination_paths: List[str] = Field(default_factory=list)
    file_patterns: List[str] = Field(default_factory=list)
    specific_files: List[str] = Field(default_factory=list)
    conditions: List[FileCondition] = Field(default_factory=list)
    is_enabled: bool = True
    duplicate_handling: DuplicateHandling = DuplicateHandling.SKIP
    duplicate_comparison: DuplicateComparison = DuplicateComparison.SIZE_AND_DATE
    created_at: datetime = Field(default_factory=datetime.now)
    last_executed: Optional[datetime] = None

    # Fluent helpers

    def add_destination(self, destination_path: Union[str, Path]) -> "CopyTask":
        self.destination_paths.append(str(destination_path))
        return self

    def add_destinations(self, *destination_paths: Union[str, Path]) -> "CopyTask":
        self.destination_paths.extend(str(p) for p in destination_paths)
        return self

    def add_file_pattern(self, pattern: str) -> "CopyTask":
        self.file_patterns.append(pattern)
        return self

    def add_file_patterns(self, *patterns: str) -> "CopyTask":
        self.file_patterns.extend(patterns)
        return self

    def add_specific_file(self, file_name: str) -> "CopyTask":
        self.specific_files.append(file_name)
        return self

    def add_specific_files(self, *file_names: str) -> "CopyTask":
        self.specific_files.extend(file_names)
        return self

    def clear_specific_files(self) -> "CopyTask":
        self.specific_files.clear()
        return self

    def add_condition(self, condition: _Condition) -> "CopyTask":
        self.conditions.append(condition)
        return self

    def skip_duplicates(self) -> "CopyTask":
        self.duplicate_handling = DuplicateHandling.SKIP
        return self

    def overwrite_always(self) -> "CopyTask":
        self.duplicate_handling = DuplicateHandling.OVERWRITE
        return self

    def overwrite_if_newer(self) -> "CopyTask":
        self.duplicate_handling = DuplicateHandling.OVERWRITE_IF_NEWER
        return self

    def rename_if_exists(self) -> "CopyTask":
        self.duplicate_handling = DuplicateHandling.RENAME_NEW
        return self

    def compare_by(self, comparison: DuplicateComparison) -> "CopyTask":
        self.duplicate_comparison = comparison
        return self

    def enable(self) -> "CopyTask":
        self.is_enabled = True
        return self

    def disable(self) -> "CopyTask":
        self.is_enabled = False
        return self


class ScheduleConfiguration(BaseModel):
    """
    When a task runs. One schedule per task, keyed by ``task_id``.

    ``execution_times`` are times of day used by Daily, Weekly and Monthly
    schedules. ``days_of_week`` is only read by Weekly schedules and
    ``interval_minutes`` only by Interval schedules. Fire times outside
    ``start_date``/``end_date`` are dropped.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    task_id: str = ""
    type: ScheduleType = ScheduleType.DAILY
    execution_times: List[time] = Field(default_factory=list)
    days_of_week: List[DayOfWeek] = Field(default_factory=list)
    interval_minutes: int = 60
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_enabled: bool = True

    @field_validator("days_of_week")
    @classmethod
    def dedupe_days(cls, v):
        """Days form a set; keep first occurrence order."""
        return list(dict.fromkeys(v))

    @field_validator("execution_times")
    @classmethod
    def strip_time_zones(cls, v):
        return [t.replace(tzinfo=None) for t in v]

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_window(cls, v):
        return to_local_naive(v)

    def validate_for_scheduling(self) -> None:
        """
        Reject definitions that cannot drive the engine.

        Raises:
            ScheduleConfigurationError: If the schedule is malformed
        """
        if self.type == ScheduleType.INTERVAL:
            if self.interval_minutes <= 0:
                raise ScheduleConfigurationError(
                    f"Interval schedule requires interval_minutes > 0, got {self.interval_minutes}"
                )
        elif not self.execution_times:
            raise ScheduleConfigurationError(
                f"{self.type.value} schedule requires at least one execution time"
            )

        if self.type == ScheduleType.WEEKLY and not self.days_of_week:
            raise ScheduleConfigurationError("Weekly schedule requires at least one day of week")

        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ScheduleConfigurationError(
                f"start_date {self.start_date.isoformat()} is after end_date {self.end_date.isoformat()}"
            )

    def in_window(self, moment: datetime) -> bool:
        """True when ``moment`` falls inside the optional validity window."""
        if self.start_date is not None and moment < self.start_date:
            return False
        if self.end_date is not None and moment > self.end_date:
            return False
        return True

    # Fluent helpers

    def daily(self) -> "ScheduleConfiguration":
        self.type = ScheduleType.DAILY
        return self

    def weekly(self) -> "ScheduleConfiguration":
        self.type = ScheduleType.WEEKLY
        return self

    def monthly(self) -> "ScheduleConfiguration":
        self.type = ScheduleType.MONTHLY
        return self

    def every_minutes(self, minutes: int) -> "ScheduleConfiguration":
        self.type = ScheduleType.INTERVAL
        self.interval_minutes = minutes
        return self

    def add_execution_time(self, hour: Union[int, time], minute: int = 0) -> "ScheduleConfiguration":
        value = hour if isinstance(hour, time) else time(hour, minute)
        self.execution_times = [*self.execution_times, value]
        return self

    def add_execution_times(self, *times: time) -> "ScheduleConfiguration":
        self.execution_times = [*self.execution_times, *times]
        return self

    def on_days(self, *days: Union[DayOfWeek, str]) -> "ScheduleConfiguration":
        self.days_of_week = [*self.days_of_week, *days]
        return self

    def on_weekdays(self) -> "ScheduleConfiguration":
        return self.on_days(*WEEKDAYS)

    def on_weekends(self) -> "ScheduleConfiguration":
        return self.on_days(*WEEKEND)

    def between(self, start_date: datetime, end_date: datetime) -> "ScheduleConfiguration":
        self.start_date = start_date
        self.end_date = end_date
        return self

    def starting_at(self, start_date: datetime) -> "ScheduleConfiguration":
        self.start_date = start_date
        return self

    def ending_at(self, end_date: datetime) -> "ScheduleConfiguration":
        self.end_date = end_date
        return self

    def enable(self) -> "ScheduleConfiguration":
        self.is_enabled = True
        return self

    def disable(self) -> "ScheduleConfiguration":
        self.is_enabled = False
        return self


# ---------------------------------------------------------------------------
# Execution results (never persisted)
# ---------------------------------------------------------------------------

@dataclass
class FileOperationResult:
    """Outcome of one source file against one destination directory."""
    source_path: str
    destination_path: str
    success: bool = False
    skipped: bool = False
    reason: Optional[str] = None
    error_message: Optional[str] = None
    file_size_bytes: int = 0
    bytes_copied: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass
class CopyOperationResult:
    """Outcome of one task execution."""
    task_id: str
    task_name: str = ""
    status: CopyStatus = CopyStatus.IN_PROGRESS
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    file_results: List[FileOperationResult] = field(default_factory=list)
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    general_error: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    @property
    def is_completed(self) -> bool:
        return self.status in (CopyStatus.COMPLETED, CopyStatus.PARTIAL_SUCCESS, CopyStatus.FAILED)

    @property
    def bytes_copied(self) -> int:
        return sum(r.bytes_copied for r in self.file_results)

    def finish(self, status: Optional[CopyStatus] = None, error: Optional[str] = None) -> "CopyOperationResult":
        """Stamp the end time and settle the status from the file counts."""
        if error is not None:
            self.general_error = error
        if status is None:
            if self.failed_files == 0:
                status = CopyStatus.COMPLETED
            elif self.successful_files > 0:
                status = CopyStatus.PARTIAL_SUCCESS
            else:
                status = CopyStatus.FAILED
        self.status = status
        self.end_time = datetime.now()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'task_name': self.task_name,
            'status': self.status.value,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'total_files': self.total_files,
            'successful_files': self.successful_files,
            'failed_files': self.failed_files,
            'general_error': self.general_error,
            'file_results': [r.to_dict() for r in self.file_results],
        }