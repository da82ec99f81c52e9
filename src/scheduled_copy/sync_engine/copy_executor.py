"""
Copy Executor

Runs one copy task end to end: selects files, consults the duplicate
resolver for every destination, streams the data and reports a structured
result. One file's failure never aborts the rest of the batch.

Author: Scheduled Copy Project
License: MIT
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..utils.logger import get_logger
from ..utils.file_ops import copy_file_chunked, ensure_directory, DEFAULT_CHUNK_SIZE
from ..core.events import EventDispatcher, EventType
from ..core.exceptions import OperationCancelledError, PersistenceError
from ..core.models import CopyOperationResult, CopyStatus, CopyTask, FileOperationResult
from ..core.task_store import TaskStore
from .deduplicator import DuplicateResolver
from .file_selector import FileSelector

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Operation cancelled"


class CopyExecutor:
    """
    Executes copy tasks.

    Features:
    - Bounded-buffer streaming with cancellation between chunks
    - Duplicate handling per destination
    - Per-file results and started/processed/completed events
    - Last execution time written back to the task store
    """

    def __init__(
        self,
        task_store: Optional[TaskStore] = None,
        selector: Optional[FileSelector] = None,
        resolver: Optional[DuplicateResolver] = None,
        events: Optional[EventDispatcher] = None,
        buffer_size: int = DEFAULT_CHUNK_SIZE
    ):
        """
        Initialize the executor.

        Args:
            task_store: Store used to look tasks up by id and record runs
            selector: File selector (default instance if None)
            resolver: Duplicate resolver (default instance if None)
            events: Event dispatcher for progress notifications
            buffer_size: Bytes per streamed chunk
        """
        self.task_store = task_store
        self.selector = selector or FileSelector()
        self.resolver = resolver or DuplicateResolver()
        self.events = events or EventDispatcher()
        self.buffer_size = buffer_size

    def execute_task_by_id(
        self,
        task_id: str,
        cancel_event: Optional[threading.Event] = None
    ) -> CopyOperationResult:
        """
        Look a task up in the store and execute it.

        An unknown id yields a Failed result rather than an exception.
        """
        task = self.task_store.get_task(task_id) if self.task_store else None
        if task is None:
            logger.error(f"Task not found: {task_id}")
            result = CopyOperationResult(task_id=task_id)
            return result.finish(CopyStatus.FAILED, f"Task not found: {task_id}")

        return self.execute_task(task, cancel_event)

    def execute_task(
        self,
        task: CopyTask,
        cancel_event: Optional[threading.Event] = None
    ) -> CopyOperationResult:
        """
        Copy every selected file of ``task`` to each of its destinations.

        Args:
            task: Task definition
            cancel_event: Optional cooperative cancellation token

        Returns:
            CopyOperationResult describing the run
        """
        result = CopyOperationResult(task_id=task.id, task_name=task.name)

        try:
            logger.info(f"Starting copy task: {task.name} (ID: {task.id})")
            self.events.emit(EventType.OPERATION_STARTED, result)

            # Path("") would resolve to the working directory
            if not task.source_path or not Path(task.source_path).is_dir():
                logger.error(f"Source path does not exist: {task.source_path}")
                return result.finish(
                    CopyStatus.FAILED, f"Source path does not exist: {task.source_path}"
                )

            files = self.selector.select_files(task)
            result.total_files = len(files)
            logger.info(f"Found {len(files)} files to copy")

            if not files:
                logger.info("No files matched the task's selection rules")
                result.finish(CopyStatus.COMPLETED)
                self._record_execution(task, result.end_time)
                return result

            for source_file in files:
                self._check_cancelled(cancel_event)

                for destination_dir in task.destination_paths:
                    destination_dir = Path(destination_dir)
                    file_result = FileOperationResult(
                        source_path=str(source_file),
                        destination_path=str(destination_dir / source_file.name)
                    )
                    try:
                        self._process_file(
                            task, source_file, destination_dir, file_result, cancel_event
                        )
                    finally:
                        self._record_file(result, file_result)

            result.finish()
            self._record_execution(task, result.end_time)

            logger.info(
                f"Task completed: {task.name}. Status: {result.status.value}, "
                f"succeeded: {result.successful_files}, failed: {result.failed_files}, "
                f"bytes: {result.bytes_copied}, duration: {result.duration}"
            )

        except OperationCancelledError:
            result.finish(CopyStatus.FAILED, CANCELLED_MESSAGE)
            logger.warning(f"Task cancelled: {task.name}")

        except Exception as e:
            result.finish(CopyStatus.FAILED, str(e))
            logger.exception(f"Error executing task {task.name}: {e}")

        finally:
            self.events.emit(EventType.OPERATION_COMPLETED, result)

        return result

    def _record_file(self, result: CopyOperationResult, file_result: FileOperationResult):
        result.file_results.append(file_result)
        if file_result.success:
            result.successful_files += 1
        else:
            result.failed_files += 1
        self.events.emit(EventType.FILE_PROCESSED, file_result)

    def _process_file(
        self,
        task: CopyTask,
        source_file: Path,
        destination_dir: Path,
        file_result: FileOperationResult,
        cancel_event: Optional[threading.Event]
    ):
        """
        Resolve duplicates for one destination and copy if needed.

        Fills in ``file_result``. Cancellation is recorded on it and re-raised.
        """
        naive_destination = Path(file_result.destination_path)

        try:
            file_result.file_size_bytes = source_file.stat().st_size

            decision = self.resolver.resolve(
                source_file,
                naive_destination,
                task.duplicate_handling,
                task.duplicate_comparison
            )
            file_result.reason = decision.reason

            if not decision.copy:
                file_result.success = True
                file_result.skipped = True
                logger.debug(f"Skipped {source_file.name} -> {destination_dir}: {decision.reason}")
                return

            file_result.destination_path = str(decision.destination)
            self.events.emit(EventType.FILE_PROCESSING, file_result)

            ensure_directory(destination_dir)
            file_result.bytes_copied = self.copy_one(
                source_file,
                decision.destination,
                cancel_event,
                exclusive=decision.renamed
            )
            file_result.success = True
            logger.debug(f"Copied {source_file} -> {decision.destination}")

        except OperationCancelledError:
            file_result.success = False
            file_result.error_message = CANCELLED_MESSAGE
            raise

        except Exception as e:
            file_result.success = False
            file_result.error_message = str(e)
            logger.error(f"Error copying {source_file} -> {file_result.destination_path}: {e}")

        finally:
            file_result.timestamp = datetime.now()

    def copy_one(
        self,
        source: Path,
        destination: Path,
        cancel_event: Optional[threading.Event] = None,
        exclusive: bool = False
    ) -> int:
        """
        Stream a single file to ``destination``.

        Returns:
            Bytes written

        Raises:
            OperationCancelledError: If cancellation was requested mid-copy
            OSError: On I/O failure
        """
        return copy_file_chunked(
            source,
            destination,
            chunk_size=self.buffer_size,
            cancel_event=cancel_event,
            exclusive=exclusive
        )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(CANCELLED_MESSAGE)

    def _record_execution(self, task: CopyTask, when: Optional[datetime]):
        """Persist the last execution time; a failure here does not fail the run."""
        task.last_executed = when
        if self.task_store is None:
            return
        try:
            self.task_store.mark_executed(task.id, when)
        except PersistenceError as e:
            logger.error(f"Could not record last execution of {task.name}: {e}")
