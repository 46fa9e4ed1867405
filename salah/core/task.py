"""
Daily tasks: the next run is a wall-clock time in a named timezone, stored in
TaskSchedule so it survives restarts. Subclasses only implement run().
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import pytz
from sqlalchemy import select

from salah.core.db import session_scope
from salah.core.models import TaskSchedule

RETRY_AFTER_FAILURE = timedelta(minutes=5)


def utc_naive_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_hhmm(value: Any, default: Tuple[int, int] = (0, 0)) -> Tuple[int, int]:
    """Parse "HH:MM" (or "HH") into (hour, minute); default on malformed input."""
    try:
        parts = str(value).strip().split(":")
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 else 0
    except (ValueError, IndexError):
        return default
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return default
    return hour, minute


def next_daily_run(run_at: str, tz_name: str, after: datetime) -> datetime:
    """First occurrence of run_at in tz_name strictly after `after`. Naive UTC in and out."""
    hour, minute = parse_hhmm(run_at)
    tz = pytz.timezone(tz_name)
    local_after = pytz.utc.localize(after).astimezone(tz)
    day = local_after.date()
    while True:
        candidate = tz.localize(datetime(day.year, day.month, day.day, hour, minute))
        if candidate > local_after:
            return candidate.astimezone(pytz.utc).replace(tzinfo=None)
        day += timedelta(days=1)


def load_next_run(component_name: str) -> Optional[datetime]:
    """Stored next_run_at, or None when the task has never run (or is due now)."""
    with session_scope() as session:
        row = session.get(TaskSchedule, component_name)
        return row.next_run_at if row else None


class DailyTask(ABC):
    """A job that runs once a day at run_at local time.

    execute() wraps run(): on success the schedule moves to the next day, on
    failure the error is stored and the task is retried a few minutes later.
    """

    DEFAULT_RUN_AT = "00:00"

    def __init__(self, component_name: str, run_at: Optional[str], tz_name: str = "UTC"):
        hour, minute = parse_hhmm(run_at, default=parse_hhmm(self.DEFAULT_RUN_AT))
        self.component_name = component_name
        self.run_at = f"{hour:02d}:{minute:02d}"
        self.tz_name = tz_name
        self.logger = logging.getLogger(self.__class__.__name__)

    def register_schedule(self) -> None:
        """Create the TaskSchedule row, or move it when run_at/timezone changed."""
        with session_scope() as session:
            row = session.get(TaskSchedule, self.component_name)
            if row is None:
                session.add(TaskSchedule(
                    component_name=self.component_name,
                    run_at=self.run_at,
                    timezone=self.tz_name,
                ))
                return
            if (row.run_at, row.timezone) != (self.run_at, self.tz_name):
                row.run_at = self.run_at
                row.timezone = self.tz_name
                if row.last_run_at is not None:
                    row.next_run_at = next_daily_run(self.run_at, self.tz_name, row.last_run_at)

    def mark_success(self) -> None:
        with session_scope() as session:
            row = session.get(TaskSchedule, self.component_name)
            if row is None:
                return
            now = utc_naive_now()
            row.last_run_at = now
            row.last_error = None
            row.next_run_at = next_daily_run(self.run_at, self.tz_name, now)

    def mark_failure(self, error: str, retry_in: timedelta = RETRY_AFTER_FAILURE) -> None:
        with session_scope() as session:
            row = session.get(TaskSchedule, self.component_name)
            if row is None:
                return
            row.last_error = error
            row.next_run_at = utc_naive_now() + retry_in

    def execute(self) -> Optional[Any]:
        """Run once and record the outcome. Returns run()'s result, or None on failure."""
        try:
            result = self.run()
        except Exception as e:
            self.logger.exception(f"{self.component_name} task failed: {e}")
            self.mark_failure(str(e))
            return None
        self.mark_success()
        return result

    @abstractmethod
    def run(self) -> Any:
        """Do the work. Exceptions are recorded by execute()."""
