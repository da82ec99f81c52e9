"""
Schedule Runtime

In-memory state the schedule engine keeps per scheduled task: the queue of
upcoming fire times, the last execution time and the executing flag.

Author: Scheduled Copy Project
License: MIT
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Iterable, List, Optional, Set

from ..core.models import ScheduleConfiguration


@dataclass(eq=False)
class ScheduledTaskRuntime:
    """Runtime entry for one scheduled task. Guard mutations with ``lock``."""
    task_id: str
    task_name: str
    schedule: ScheduleConfiguration
    next_executions: Deque[datetime] = field(default_factory=deque)
    last_executed: Optional[datetime] = None
    is_executing: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def peek(self) -> Optional[datetime]:
        """Earliest queued fire time, if any."""
        return self.next_executions[0] if self.next_executions else None

    def pop_due(self, now: datetime) -> Optional[datetime]:
        """
        Remove every queued fire time at or before ``now``.

        Missed fire times are coalesced into a single run.

        Returns:
            The earliest due fire time, or None if nothing is due
        """
        due = None
        while self.next_executions and self.next_executions[0] <= now:
            fire_time = self.next_executions.popleft()
            if due is None:
                due = fire_time
        return due

    def merge(self, fire_times: Iterable[datetime], now: datetime) -> int:
        """
        Add future fire times that are not queued yet, keeping the queue sorted.

        Returns:
            Number of fire times added
        """
        known = set(self.next_executions)
        fresh = [t for t in fire_times if t > now and t not in known]
        if fresh:
            self.next_executions = deque(sorted(known.union(fresh)))
        return len(fresh)

    def upcoming(self, count: int) -> List[datetime]:
        return list(self.next_executions)[:max(count, 0)]


class RuntimeRegistry:
    """
    Thread-safe map of task id to runtime entry.

    Also tracks which task ids are executing, independently of the entry
    objects, so a task that is rescheduled while running is still guarded
    against a second concurrent run.
    """

    def __init__(self):
        self._runtimes: Dict[str, ScheduledTaskRuntime] = {}
        self._executing: Set[str] = set()
        self._lock = threading.RLock()

    def get(self, task_id: str) -> Optional[ScheduledTaskRuntime]:
        with self._lock:
            return self._runtimes.get(task_id)

    def put(self, runtime: ScheduledTaskRuntime) -> None:
        """Register ``runtime``, replacing any entry for the same task."""
        with self._lock:
            previous = self._runtimes.get(runtime.task_id)
            with runtime.lock:
                runtime.is_executing = runtime.task_id in self._executing
                if previous is not None and runtime.last_executed is None:
                    runtime.last_executed = previous.last_executed
            self._runtimes[runtime.task_id] = runtime

    def remove(self, task_id: str) -> Optional[ScheduledTaskRuntime]:
        with self._lock:
            return self._runtimes.pop(task_id, None)

    def snapshot(self) -> List[ScheduledTaskRuntime]:
        with self._lock:
            return list(self._runtimes.values())

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._runtimes)

    def clear(self) -> None:
        with self._lock:
            self._runtimes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._runtimes)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._runtimes

    def is_executing(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._executing

    def claim(self, task_id: str) -> bool:
        """
        Mark ``task_id`` as executing.

        Returns:
            False if the task is already executing
        """
        with self._lock:
            if task_id in self._executing:
                return False
            self._executing.add(task_id)
            runtime = self._runtimes.get(task_id)
            if runtime is not None:
                with runtime.lock:
                    runtime.is_executing = True
            return True

    def claim_due(self, runtime: ScheduledTaskRuntime, now: datetime) -> Optional[datetime]:
        """
        Claim ``runtime`` for execution if it is enabled, idle and due.

        Returns:
            The fire time being served, or None if nothing was claimed
        """
        with self._lock:
            if runtime.task_id in self._executing:
                return None
            with runtime.lock:
                if runtime.is_executing or not runtime.schedule.is_enabled:
                    return None
                fire_time = runtime.pop_due(now)
                if fire_time is None:
                    return None
                runtime.is_executing = True
            self._executing.add(runtime.task_id)
            return fire_time

    def release(self, task_id: str, when: Optional[datetime] = None) -> None:
        """Clear the executing flag and record ``when`` as the last run."""
        with self._lock:
            self._executing.discard(task_id)
            runtime = self._runtimes.get(task_id)
            if runtime is not None:
                with runtime.lock:
                    runtime.is_executing = False
                    if when is not None:
                        runtime.last_executed = when
