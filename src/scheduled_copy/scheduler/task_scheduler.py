"""
Schedule Engine

Tick-driven scheduler for copy tasks. A daemon thread wakes on a fixed
period, dispatches every task whose next fire time has passed to a worker
pool and tops up each task's queue of upcoming fire times.

Author: Scheduled Copy Project
License: MIT
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Callable, List, Optional, Set

from ..utils.logger import get_logger
from ..config.schema import SchedulingConfig
from ..core.events import EventDispatcher, EventType, TaskScheduleEvent
from ..core.exceptions import ScheduleConfigurationError, TaskNotFoundError
from ..core.models import CopyOperationResult, CopyStatus, ScheduleConfiguration, ScheduleType
from ..core.task_store import ScheduleStore, TaskStore
from ..sync_engine.copy_executor import CopyExecutor
from .fire_times import compute_fire_times
from .runtime import RuntimeRegistry, ScheduledTaskRuntime

logger = get_logger(__name__)


class ScheduleEngine:
    """
    Runs copy tasks on their schedules.

    Features:
    - Interval, Daily, Weekly and Monthly schedules with validity windows
    - Fixed-period tick loop on a daemon thread
    - Executions on a thread pool, never blocking the tick loop
    - At most one execution per task; missed fire times are coalesced
    - Cooperative cancellation of running executions on shutdown
    """

    CANCEL_WAIT_SECONDS = 5.0

    def __init__(
        self,
        task_store: TaskStore,
        schedule_store: ScheduleStore,
        executor: CopyExecutor,
        events: Optional[EventDispatcher] = None,
        settings: Optional[SchedulingConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the engine.

        Args:
            task_store: Store the scheduled tasks are read from
            schedule_store: Store schedules are persisted to
            executor: Copy executor running each task
            events: Dispatcher for task_scheduled / task_executing
            settings: Scheduling configuration (defaults if None)
            clock: Source of the current local time
        """
        self.task_store = task_store
        self.schedule_store = schedule_store
        self.executor = executor
        self.events = events or EventDispatcher()
        self.settings = settings or SchedulingConfig()
        self._clock = clock

        self._registry = RuntimeRegistry()
        self._stop_event = threading.Event()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()
        self._futures: Set[Future] = set()
        self._futures_lock = threading.Lock()
        self._running = False

        logger.info("ScheduleEngine initialized")

    # Lifecycle

    def start(self):
        """Register the persisted schedules and start the tick loop."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._stop_event = threading.Event()
        self._cancel_event = threading.Event()
        self._running = True

        self._schedule_existing()

        self._thread = threading.Thread(
            target=self._run_loop,
            name="schedule-engine",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduler started ({len(self._registry)} tasks scheduled)")

    def stop(self, grace: Optional[float] = None):
        """
        Stop the tick loop and shut the worker pool down.

        Running executions get ``grace`` seconds to finish; after that they are
        asked to cancel at their next chunk boundary.

        Args:
            grace: Seconds to wait for running executions (configured default if None)
        """
        grace = self.settings.shutdown_grace_seconds if grace is None else grace

        if self._running:
            logger.info("Stopping scheduler...")
            self._running = False
            self._stop_event.set()
            if self._thread and self._thread.is_alive():
                self._thread.join(timeout=self.CANCEL_WAIT_SECONDS)
            self._thread = None

        if not self.wait_for_executions(grace):
            logger.warning(
                f"Executions still running after {grace}s; requesting cancellation"
            )
            self._cancel_event.set()
            if not self.wait_for_executions(self.CANCEL_WAIT_SECONDS):
                logger.error("Some executions did not stop within the cancellation window")

        with self._pool_lock:
            if self._pool is not None:
                # Cancelled queued runs release their claim in _on_done
                self._pool.shutdown(wait=False, cancel_futures=True)
                self._pool = None

        # Runs still going keep the set event; later manual runs get a fresh one
        self._cancel_event = threading.Event()
        self._registry.clear()
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_for_executions(self, timeout: Optional[float] = None) -> bool:
        """
        Block until dispatched executions finish.

        Returns:
            True if nothing is left running
        """
        with self._futures_lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _run_loop(self):
        logger.info("Scheduler loop started")
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Error in scheduler tick: {e}")
            self._stop_event.wait(self.settings.tick_seconds)
        logger.info("Scheduler loop stopped")

    def _schedule_existing(self):
        """Register every enabled persisted schedule whose task is enabled."""
        for schedule in self.schedule_store.get_enabled_schedules():
            task = self.task_store.get_task(schedule.task_id)
            if task is None:
                logger.warning(f"Schedule references unknown task: {schedule.task_id}")
                continue
            if not task.is_enabled:
                logger.debug(f"Task disabled, not scheduling: {task.name}")
                continue
            try:
                self._check_schedulable(schedule)
                self._register(task.name, schedule)
            except ScheduleConfigurationError as e:
                logger.error(f"Invalid schedule for task {task.name}: {e}")

    # Scheduling

    def schedule_task(self, task_id: str, schedule: ScheduleConfiguration) -> ScheduleConfiguration:
        """
        Schedule a task, replacing any schedule it already has.

        Args:
            task_id: Id of an existing task
            schedule: Schedule definition (its task_id is overwritten)

        Returns:
            The stored schedule

        Raises:
            TaskNotFoundError: If the task does not exist
            ScheduleConfigurationError: If the schedule is malformed
            PersistenceError: If the schedule cannot be saved
        """
        task = self.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        schedule = schedule.model_copy(update={"task_id": task_id}, deep=True)
        self._check_schedulable(schedule)
        self.schedule_store.add_or_update_schedule(schedule)
        self._register(task.name, schedule)

        logger.info(f"Task scheduled: {task.name} ({schedule.type.value})")
        return schedule

    def update_schedule(self, schedule: ScheduleConfiguration) -> ScheduleConfiguration:
        """Replace the schedule of ``schedule.task_id``."""
        return self.schedule_task(schedule.task_id, schedule)

    def unschedule_task(self, task_id: str) -> bool:
        """
        Remove a task's schedule. A running execution is left to finish.

        Returns:
            True if a schedule or runtime entry was removed
        """
        removed = self.schedule_store.remove_schedule(task_id)
        runtime = self._registry.remove(task_id)
        if runtime is not None or removed:
            logger.info(f"Task unscheduled: {task_id}")
            return True
        return False

    def get_schedule(self, task_id: str) -> Optional[ScheduleConfiguration]:
        return self.schedule_store.get_schedule(task_id)

    def get_all_schedules(self) -> List[ScheduleConfiguration]:
        return self.schedule_store.get_all_schedules()

    def get_next_execution_time(self, task_id: str) -> Optional[datetime]:
        upcoming = self.get_next_execution_times(task_id, 1)
        return upcoming[0] if upcoming else None

    def get_next_execution_times(self, task_id: str, count: int = 5) -> List[datetime]:
        """Queued fire times of a task, earliest first."""
        runtime = self._registry.get(task_id)
        if runtime is None:
            return []
        with runtime.lock:
            return runtime.upcoming(count)

    def get_last_execution_time(self, task_id: str) -> Optional[datetime]:
        runtime = self._registry.get(task_id)
        if runtime is None:
            return None
        with runtime.lock:
            return runtime.last_executed

    def is_scheduled(self, task_id: str) -> bool:
        return task_id in self._registry

    def is_executing(self, task_id: str) -> bool:
        return self._registry.is_executing(task_id)

    def _check_schedulable(self, schedule: ScheduleConfiguration):
        schedule.validate_for_scheduling()
        if schedule.end_date is not None and schedule.end_date <= self._clock():
            raise ScheduleConfigurationError(
                f"Schedule window ended at {schedule.end_date.isoformat()}"
            )

    def _fire_times(
        self,
        schedule: ScheduleConfiguration,
        now: datetime,
        count: Optional[int] = None
    ) -> List[datetime]:
        if not schedule.is_enabled:
            return []
        return compute_fire_times(
            schedule,
            self.settings.lookahead if count is None else count,
            now,
            daily_day_cap=self.settings.daily_day_cap,
            weekly_day_cap=self.settings.weekly_day_cap
        )

    def _register(self, task_name: str, schedule: ScheduleConfiguration):
        now = self._clock()
        runtime = ScheduledTaskRuntime(
            task_id=schedule.task_id,
            task_name=task_name,
            schedule=schedule
        )
        runtime.merge(self._fire_times(schedule, now), now)
        self._registry.put(runtime)

        next_time = runtime.peek()
        if next_time is None:
            logger.info(f"No upcoming fire times for task {task_name}")
            return
        logger.debug(f"Next execution of {task_name}: {next_time.isoformat()}")
        self.events.emit(
            EventType.TASK_SCHEDULED,
            TaskScheduleEvent(schedule.task_id, task_name, next_time, now)
        )

    # Tick and dispatch

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        Run one evaluation pass.

        Dispatches every enabled, idle task whose earliest fire time is at or
        before ``now``, then refills queues below the low-water mark.

        Returns:
            Ids of the tasks dispatched
        """
        now = now or self._clock()
        dispatched = []

        for runtime in self._registry.snapshot():
            fire_time = self._registry.claim_due(runtime, now)
            if fire_time is None:
                continue
            if self._dispatch(runtime, fire_time):
                dispatched.append(runtime.task_id)

        self._refill(now)

        if dispatched:
            logger.debug(f"Tick at {now.isoformat()} dispatched {dispatched}")
        return dispatched

    def _refill(self, now: datetime):
        for runtime in self._registry.snapshot():
            with runtime.lock:
                queued = len(runtime.next_executions)
                if queued >= self.settings.low_water_mark:
                    continue
                schedule = runtime.schedule
                last_queued = runtime.next_executions[-1] if queued else None

            if ScheduleType(schedule.type) == ScheduleType.INTERVAL and last_queued is not None:
                # Continue the queued series instead of starting one offset by tick drift
                fire_times = self._fire_times(
                    schedule,
                    max(last_queued, now),
                    self.settings.lookahead - queued
                )
            else:
                fire_times = self._fire_times(schedule, now)

            with runtime.lock:
                added = runtime.merge(fire_times, now)
            if added:
                logger.debug(f"Queued {added} fire times for {runtime.task_name}")

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="copy-task"
                )
            return self._pool

    def _dispatch(self, runtime: ScheduledTaskRuntime, fire_time: datetime) -> bool:
        try:
            future = self._get_pool().submit(self._execute, runtime, fire_time)
        except RuntimeError as e:
            logger.error(f"Could not dispatch {runtime.task_name}: {e}")
            self._registry.release(runtime.task_id)
            return False

        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(
            lambda done, task_id=runtime.task_id: self._on_done(done, task_id)
        )
        return True

    def _on_done(self, future: Future, task_id: str):
        with self._futures_lock:
            self._futures.discard(future)
        if future.cancelled():
            # _execute never ran, so its finally did not release the claim
            logger.info(f"Queued run cancelled before it started: {task_id}")
            self._registry.release(task_id)

    def _execute(self, runtime: ScheduledTaskRuntime, fire_time: datetime):
        """Worker body for one scheduled run."""
        finished_at = None
        try:
            task = self.task_store.get_task(runtime.task_id)
            if task is None:
                logger.warning(f"Scheduled task no longer exists, unscheduling: {runtime.task_id}")
                self._registry.remove(runtime.task_id)
                return
            if not task.is_enabled:
                logger.info(f"Task disabled, skipping scheduled run: {task.name}")
                return

            logger.info(f"Executing scheduled task: {task.name} (due {fire_time.isoformat()})")
            self.events.emit(
                EventType.TASK_EXECUTING,
                TaskScheduleEvent(task.id, task.name, fire_time, datetime.now())
            )

            result = self.executor.execute_task(task, self._cancel_event)
            finished_at = result.end_time or datetime.now()
            logger.info(f"Scheduled run of {task.name} finished: {result.status.value}")

        except Exception as e:
            logger.exception(f"Error executing scheduled task {runtime.task_name}: {e}")

        finally:
            self._registry.release(runtime.task_id, finished_at)

    def execute_now(
        self,
        task_id: str,
        cancel_event: Optional[threading.Event] = None
    ) -> CopyOperationResult:
        """
        Run a task immediately on the calling thread.

        Honours the one-execution-per-task guard shared with scheduled runs.
        """
        if not self._registry.claim(task_id):
            logger.warning(f"Task is already executing: {task_id}")
            result = CopyOperationResult(task_id=task_id)
            return result.finish(CopyStatus.FAILED, f"Task is already executing: {task_id}")

        finished_at = None
        try:
            result = self.executor.execute_task_by_id(task_id, cancel_event or self._cancel_event)
            finished_at = result.end_time
            return result
        finally:
            self._registry.release(task_id, finished_at)
