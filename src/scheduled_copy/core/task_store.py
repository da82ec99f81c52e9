"""
Task and Schedule Stores

Thread-safe, JSON-backed collections of copy tasks and schedule
configurations keyed by task id. Every mutation rewrites the whole document;
a failed write rolls the in-memory state back before the error propagates.

Author: Scheduled Copy Project
License: MIT
"""

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..utils.logger import get_logger
from .exceptions import PersistenceError
from .models import CopyTask, ScheduleConfiguration

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class JsonRecordStore(Generic[RecordT]):
    """
    Keyed record collection persisted as a JSON list.

    Features:
    - Copies in, copies out (callers never hold a live reference)
    - Atomic whole-file writes (temp file + rename)
    - Rollback of the in-memory map when a write fails
    - Per-key locks for read-modify-write sequences
    - Unknown fields in the document are ignored on load
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        model: Type[RecordT],
        key: Callable[[RecordT], str],
        label: str
    ):
        """
        Initialize the store.

        Args:
            file_path: JSON document location
            model: Pydantic model of one record
            key: Function returning the record's key
            label: Human readable record name for log lines
        """
        self.file_path = Path(file_path)
        self._model = model
        self._key = key
        self._label = label
        self._records: Dict[str, RecordT] = {}
        self._lock = threading.RLock()
        self._key_locks: Dict[str, threading.RLock] = {}

    @contextmanager
    def lock_for(self, key: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on one key."""
        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.RLock())
        with key_lock:
            yield

    def _copy(self, record: RecordT) -> RecordT:
        return record.model_copy(deep=True)

    def get(self, key: str) -> Optional[RecordT]:
        with self._lock:
            record = self._records.get(key)
            return self._copy(record) if record is not None else None

    def get_all(self) -> List[RecordT]:
        with self._lock:
            return [self._copy(r) for r in self._records.values()]

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _mutate(self, change: Callable[[Dict[str, RecordT]], None]) -> None:
        """Apply ``change`` to the map and persist; undo the change if saving fails."""
        with self._lock:
            snapshot = dict(self._records)
            change(self._records)
            try:
                self.save()
            except PersistenceError:
                self._records = snapshot
                raise

    def put(self, record: RecordT) -> str:
        """Insert or replace a record and persist the collection."""
        key = self._key(record)
        stored = self._copy(record)
        self._mutate(lambda records: records.__setitem__(key, stored))
        return key

    def replace(self, record: RecordT) -> bool:
        """Replace an existing record; returns False when the key is unknown."""
        key = self._key(record)
        with self._lock:
            if key not in self._records:
                return False
            self.put(record)
            return True

    def delete(self, key: str) -> bool:
        """Remove a record; returns False when the key is unknown."""
        with self._lock:
            if key not in self._records:
                return False
            self._mutate(lambda records: records.pop(key))
            self._key_locks.pop(key, None)
            return True

    def save(self) -> None:
        """
        Write the whole collection to disk.

        Raises:
            PersistenceError: If the document cannot be written
        """
        with self._lock:
            payload = [r.model_dump(mode="json") for r in self._records.values()]
            tmp_name = None
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self.file_path.name}.",
                    suffix=".tmp",
                    dir=str(self.file_path.parent)
                )
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.file_path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    try:
                        os.unlink(tmp_name)
                    except OSError:
                        logger.warning(f"Could not remove temp file {tmp_name}")
                logger.error(f"Error saving {self._label}s to {self.file_path}: {e}")
                raise PersistenceError(
                    f"Could not save {self._label}s", path=str(self.file_path), details=str(e)
                ) from e

            logger.debug(f"Saved {len(payload)} {self._label}s to {self.file_path}")

    def load(self) -> int:
        """
        Replace the in-memory collection with the document on disk.

        A missing file leaves the store empty. Records that fail validation
        are logged and skipped.

        Returns:
            Number of records loaded

        Raises:
            PersistenceError: If the file cannot be read or is not a JSON list
        """
        if not self.file_path.exists():
            logger.debug(f"{self._label.capitalize()} file does not exist: {self.file_path}")
            return 0

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading {self._label}s from {self.file_path}: {e}")
            raise PersistenceError(
                f"Could not load {self._label}s", path=str(self.file_path), details=str(e)
            ) from e

        if not isinstance(data, list):
            raise PersistenceError(
                f"Expected a JSON list of {self._label}s", path=str(self.file_path)
            )

        records: Dict[str, RecordT] = {}
        for item in data:
            try:
                record = self._model.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid {self._label} record: {e}")
                continue
            records[self._key(record)] = record

        with self._lock:
            self._records = records

        logger.info(f"Loaded {len(records)} {self._label}s from {self.file_path}")
        return len(records)


class TaskStore(JsonRecordStore[CopyTask]):
    """Copy tasks keyed by task id."""

    def __init__(self, file_path: Union[str, Path]):
        super().__init__(file_path, CopyTask, key=lambda t: t.id, label="task")

    def add_task(self, task: CopyTask) -> str:
        """
        Store a new task, stamping its creation time.

        Returns:
            The task id
        """
        if not task.id:
            task = task.model_copy(update={"id": CopyTask().id})
        task = task.model_copy(update={"created_at": datetime.now()})
        task_id = self.put(task)
        logger.info(f"Task added: {task.name} (ID: {task_id})")
        return task_id

    def update_task(self, task: CopyTask) -> bool:
        updated = self.replace(task)
        if updated:
            logger.info(f"Task updated: {task.name} (ID: {task.id})")
        return updated

    def remove_task(self, task_id: str) -> bool:
        removed = self.delete(task_id)
        if removed:
            logger.info(f"Task removed: {task_id}")
        return removed

    def get_task(self, task_id: str) -> Optional[CopyTask]:
        return self.get(task_id)

    def get_all_tasks(self) -> List[CopyTask]:
        return self.get_all()

    def get_enabled_tasks(self) -> List[CopyTask]:
        return [t for t in self.get_all() if t.is_enabled]

    def mark_executed(self, task_id: str, when: datetime) -> bool:
        """Record ``when`` as the task's last execution time."""
        with self.lock_for(task_id):
            task = self.get(task_id)
            if task is None:
                return False
            task.last_executed = when
            return self.replace(task)


class ScheduleStore(JsonRecordStore[ScheduleConfiguration]):
    """Schedule configurations keyed by owning task id (one per task)."""

    def __init__(self, file_path: Union[str, Path]):
        super().__init__(file_path, ScheduleConfiguration, key=lambda s: s.task_id, label="schedule")

    def add_or_update_schedule(self, schedule: ScheduleConfiguration) -> None:
        self.put(schedule)
        logger.info(f"Schedule stored for task: {schedule.task_id}")

    def remove_schedule(self, task_id: str) -> bool:
        removed = self.delete(task_id)
        if removed:
            logger.info(f"Schedule removed for task: {task_id}")
        return removed

    def get_schedule(self, task_id: str) -> Optional[ScheduleConfiguration]:
        return self.get(task_id)

    def get_all_schedules(self) -> List[ScheduleConfiguration]:
        return self.get_all()

    def get_enabled_schedules(self) -> List[ScheduleConfiguration]:
        return [s for s in self.get_all() if s.is_enabled]
