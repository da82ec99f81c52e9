"""
Fire Time Computation

Pure functions that turn a schedule configuration into the next fire times
after a given moment.

Author: Scheduled Copy Project
License: MIT
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from ..core.models import DayOfWeek, ScheduleConfiguration, ScheduleType

DEFAULT_DAILY_DAY_CAP = 366
DEFAULT_WEEKLY_DAY_CAP = 365


def _add_months(first_of_month: date, months: int) -> date:
    index = first_of_month.month - 1 + months
    return date(first_of_month.year + index // 12, index % 12 + 1, 1)


def compute_fire_times(
    schedule: ScheduleConfiguration,
    count: int,
    now: Optional[datetime] = None,
    daily_day_cap: int = DEFAULT_DAILY_DAY_CAP,
    weekly_day_cap: int = DEFAULT_WEEKLY_DAY_CAP
) -> List[datetime]:
    """
    Compute up to ``count`` fire times strictly after ``now``.

    Interval schedules step from ``now`` without aligning to the clock.
    Daily and Weekly schedules walk forward day by day from today. Monthly
    schedules only fire on the first day of the current and following months.
    Every result lies inside the schedule's validity window; the list is
    sorted ascending and free of duplicates.

    Args:
        schedule: Schedule definition
        count: Maximum number of fire times
        now: Reference moment (defaults to the current local time)
        daily_day_cap: Days scanned at most for Daily schedules
        weekly_day_cap: Days scanned at most for Weekly schedules

    Returns:
        Ascending list of fire times
    """
    if count <= 0:
        return []

    now = now or datetime.now()
    kind = ScheduleType(schedule.type)
    times = schedule.execution_times
    found = set()

    def accept(moment: datetime) -> None:
        if moment > now and schedule.in_window(moment):
            found.add(moment)

    if kind == ScheduleType.INTERVAL:
        if schedule.interval_minutes > 0:
            step = timedelta(minutes=schedule.interval_minutes)
            current = now
            for _ in range(count):
                current += step
                accept(current)

    elif kind in (ScheduleType.DAILY, ScheduleType.WEEKLY) and times:
        days = set(DayOfWeek(d) for d in schedule.days_of_week)
        cap = daily_day_cap if kind == ScheduleType.DAILY else weekly_day_cap
        today = now.date()

        for offset in range(cap):
            if len(found) >= count:
                break
            day = today + timedelta(days=offset)
            if schedule.end_date is not None and datetime.combine(day, datetime.min.time()) > schedule.end_date:
                break
            if kind == ScheduleType.WEEKLY and DayOfWeek.from_date(day) not in days:
                continue
            for time_of_day in sorted(times):
                accept(datetime.combine(day, time_of_day))
                if len(found) >= count:
                    break

    elif kind == ScheduleType.MONTHLY and times:
        # First day of the month only
        first_of_month = now.date().replace(day=1)
        for offset in range(count):
            month_start = _add_months(first_of_month, offset)
            for time_of_day in times:
                accept(datetime.combine(month_start, time_of_day))

    return sorted(found)[:count]
