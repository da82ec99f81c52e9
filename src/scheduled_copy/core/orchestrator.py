"""
Orchestrator

Service facade that wires configuration, stores, the copy pipeline and the
schedule engine together and exposes task management to callers.

Author: Scheduled Copy Project
License: MIT
"""

import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

from ..utils.logger import get_logger
from ..utils.file_ops import ensure_directory
from ..config.schema import Config
from ..scheduler.task_scheduler import ScheduleEngine
from ..sync_engine.copy_executor import CopyExecutor
from ..sync_engine.deduplicator import DuplicateResolver
from ..sync_engine.file_selector import FileSelector
from .events import EventDispatcher, EventType
from .exceptions import ScheduledCopyError, TaskNotFoundError
from .models import CopyOperationResult, CopyTask, ScheduleConfiguration
from .task_store import ScheduleStore, TaskStore

logger = get_logger(__name__)


class FileTaskService:
    """
    Main entry point for managing and running copy tasks.

    Creates the task and schedule stores under the configured storage
    directory, a copy executor and a schedule engine that share one event
    dispatcher.

    Usage:
        with FileTaskService(config) as service:
            task_id = service.create_task(task, schedule)
            service.start_scheduler()
    """

    def __init__(self, config: Optional[Config] = None, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize the service.

        Args:
            config: Application configuration (defaults if None)
            clock: Source of the current local time for the scheduler
        """
        self.config = config or Config()
        storage = self.config.storage
        copy_settings = self.config.copy_settings

        self.events = EventDispatcher()
        self.task_store = TaskStore(storage.tasks_path)
        self.schedule_store = ScheduleStore(storage.schedules_path)

        self.executor = CopyExecutor(
            task_store=self.task_store,
            selector=FileSelector(),
            resolver=DuplicateResolver(
                hash_algorithm=copy_settings.hash_algorithm,
                chunk_size=copy_settings.buffer_size,
                max_rename_attempts=copy_settings.max_rename_attempts
            ),
            events=self.events,
            buffer_size=copy_settings.buffer_size
        )

        self.engine = ScheduleEngine(
            task_store=self.task_store,
            schedule_store=self.schedule_store,
            executor=self.executor,
            events=self.events,
            settings=self.config.scheduling,
            clock=clock
        )

        self._initialized = False
        self._init_lock = threading.Lock()

        logger.info("FileTaskService initialized")

    def initialize(self):
        """Create the storage directory and load persisted tasks and schedules."""
        with self._init_lock:
            if self._initialized:
                return
            ensure_directory(self.config.storage.directory)
            self.task_store.load()
            self.schedule_store.load()
            self._initialized = True

    def __enter__(self) -> "FileTaskService":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_scheduler()

    # Task management

    def create_task(self, task: CopyTask, schedule: Optional[ScheduleConfiguration] = None) -> str:
        """
        Store a new task and optionally schedule it.

        If scheduling fails the task is removed again and the error re-raised.

        Returns:
            The task id

        Raises:
            ScheduleConfigurationError: If the schedule is malformed
            PersistenceError: If the task or schedule cannot be saved
        """
        self.initialize()
        task_id = self.task_store.add_task(task)

        if schedule is not None:
            try:
                self.engine.schedule_task(task_id, schedule)
            except ScheduledCopyError:
                self.task_store.remove_task(task_id)
                raise

        return task_id

    def update_task(self, task: CopyTask, schedule: Optional[ScheduleConfiguration] = None) -> None:
        """
        Replace a stored task and, if given, its schedule.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        self.initialize()
        with self.task_store.lock_for(task.id):
            if not self.task_store.update_task(task):
                raise TaskNotFoundError(task.id)

        if schedule is not None:
            self.engine.schedule_task(task.id, schedule)

    def delete_task(self, task_id: str) -> bool:
        """
        Delete a task together with its schedule.

        Returns:
            True if the task existed
        """
        self.initialize()
        with self.task_store.lock_for(task_id):
            self.engine.unschedule_task(task_id)
            return self.task_store.remove_task(task_id)

    def get_task(self, task_id: str) -> Optional[CopyTask]:
        self.initialize()
        return self.task_store.get_task(task_id)

    def get_all_tasks(self) -> List[CopyTask]:
        self.initialize()
        return self.task_store.get_all_tasks()

    def get_schedule(self, task_id: str) -> Optional[ScheduleConfiguration]:
        self.initialize()
        return self.engine.get_schedule(task_id)

    def get_all_schedules(self) -> List[ScheduleConfiguration]:
        self.initialize()
        return self.engine.get_all_schedules()

    def schedule_task(self, task_id: str, schedule: ScheduleConfiguration) -> ScheduleConfiguration:
        self.initialize()
        return self.engine.schedule_task(task_id, schedule)

    def unschedule_task(self, task_id: str) -> bool:
        self.initialize()
        return self.engine.unschedule_task(task_id)

    # Execution

    def execute_task_now(
        self,
        task_id: str,
        cancel_event: Optional[threading.Event] = None
    ) -> CopyOperationResult:
        """Run a task immediately and return its result."""
        self.initialize()
        return self.engine.execute_now(task_id, cancel_event)

    def get_next_execution_times(self, task_id: str, count: int = 5) -> List[datetime]:
        return self.engine.get_next_execution_times(task_id, count)

    # Scheduler control

    def start_scheduler(self):
        self.initialize()
        self.engine.start()

    def stop_scheduler(self, grace: Optional[float] = None):
        self.engine.stop(grace)

    @property
    def is_scheduler_running(self) -> bool:
        return self.engine.is_running

    # Events

    def subscribe(self, event_type: EventType, listener: Callable[[Any], None]):
        self.events.subscribe(event_type, listener)

    def unsubscribe(self, event_type: EventType, listener: Callable[[Any], None]) -> bool:
        return self.events.unsubscribe(event_type, listener)
