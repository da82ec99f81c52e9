"""
Scheduler Module

Fire-time computation and the tick-driven schedule engine.

Author: Scheduled Copy Project
License: MIT
"""

from .fire_times import compute_fire_times
from .runtime import RuntimeRegistry, ScheduledTaskRuntime
from .task_scheduler import ScheduleEngine

__all__ = ['compute_fire_times', 'RuntimeRegistry', 'ScheduledTaskRuntime', 'ScheduleEngine']
