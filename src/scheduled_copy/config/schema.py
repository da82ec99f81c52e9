"""
Configuration Schema and Models

Defines Pydantic models for the configuration schema, providing validation,
default values, and type checking for all configuration options.

Author: Scheduled Copy Project
License: MIT
"""

from enum import Enum
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.file_ops import is_strong_hash_algorithm


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application-wide logging configuration."""

    model_config = ConfigDict(use_enum_values=True)

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application logging level"
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable logging to file"
    )
    log_file_path: str = Field(
        default="logs/scheduled_copy.log",
        description="Path of the rotating log file"
    )
    log_rotation_size: int = Field(
        default=10485760,  # 10MB
        description="Log file size before rotation (bytes)"
    )
    log_retention_count: int = Field(
        default=5,
        description="Number of rotated log files to keep"
    )
    json_logs: bool = Field(
        default=False,
        description="Emit log records as JSON"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.upper()
        return v


class StorageConfig(BaseModel):
    """Where task and schedule definitions are persisted."""

    directory: str = Field(
        default="data",
        description="Directory holding the task and schedule JSON documents"
    )
    tasks_file: str = Field(
        default="tasks.json",
        description="File name of the task document"
    )
    schedules_file: str = Field(
        default="schedules.json",
        description="File name of the schedule document"
    )

    @field_validator("tasks_file", "schedules_file")
    @classmethod
    def validate_file_name(cls, v):
        """File names must not contain directories."""
        if not v or Path(v).name != v:
            raise ValueError(f"Storage file must be a plain file name: {v!r}")
        return v

    @property
    def tasks_path(self) -> Path:
        return Path(self.directory) / self.tasks_file

    @property
    def schedules_path(self) -> Path:
        return Path(self.directory) / self.schedules_file


class SchedulingConfig(BaseModel):
    """Task scheduling configuration."""

    tick_seconds: float = Field(
        default=30.0,
        description="Seconds between scheduler evaluation passes"
    )
    lookahead: int = Field(
        default=10,
        description="Fire times generated per task on each refill"
    )
    low_water_mark: int = Field(
        default=3,
        description="Refill a task's queue when fewer fire times remain"
    )
    max_workers: int = Field(
        default=4,
        description="Maximum number of task executions running at once"
    )
    shutdown_grace_seconds: float = Field(
        default=10.0,
        description="How long stop() waits for running executions"
    )
    daily_day_cap: int = Field(
        default=366,
        description="Safety cap on days scanned for Daily schedules"
    )
    weekly_day_cap: int = Field(
        default=365,
        description="Safety cap on days scanned for Weekly schedules"
    )

    @field_validator("tick_seconds")
    @classmethod
    def validate_tick(cls, v):
        if v <= 0:
            raise ValueError(f"tick_seconds must be positive: {v}")
        return v

    @field_validator("lookahead", "max_workers", "daily_day_cap", "weekly_day_cap")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError(f"Value must be at least 1: {v}")
        return v

    @field_validator("low_water_mark", "shutdown_grace_seconds")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError(f"Value must not be negative: {v}")
        return v


class CopyConfig(BaseModel):
    """Copy pipeline configuration."""

    buffer_size: int = Field(
        default=81920,
        description="Bytes per chunk when streaming a file"
    )
    max_rename_attempts: int = Field(
        default=1000,
        description="Highest _(N) suffix probed by the RenameNew policy"
    )
    hash_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used by the HashContent comparison"
    )

    @field_validator("buffer_size", "max_rename_attempts")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError(f"Value must be at least 1: {v}")
        return v

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v):
        """Only collision-resistant digests of 256 bits or more."""
        v = v.lower()
        if not is_strong_hash_algorithm(v):
            raise ValueError(f"Unsupported or weak hash algorithm: {v}")
        return v


class Config(BaseModel):
    """
    Root configuration model for Scheduled Copy.

    Loaded from config.yaml and overridable by environment variables.
    """

    model_config = ConfigDict(
        use_enum_values=True,
        validate_assignment=True,
        populate_by_name=True
    )

    app: AppConfig = Field(default_factory=AppConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    copy_settings: CopyConfig = Field(default_factory=CopyConfig, alias="copy")
