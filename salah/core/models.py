"""
Bookkeeping for daily tasks, so a restart resumes the schedule instead of
recomputing immediately.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Column, DateTime, String, Text, select

from salah.core.db import Base, session_scope


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskSchedule(Base):
    """One row per daily task. Datetimes are naive UTC."""
    __tablename__ = "task_schedules"

    component_name = Column(String(255), primary_key=True)
    run_at = Column(String(5), nullable=False)  # "HH:MM" wall-clock in timezone
    timezone = Column(String(64), nullable=False, default="UTC")
    next_run_at = Column(DateTime(timezone=False), nullable=True)  # null: due now
    last_run_at = Column(DateTime(timezone=False), nullable=True)
    last_error = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "component_name": self.component_name,
            "run_at": self.run_at,
            "timezone": self.timezone,
            "next_run_at": self.next_run_at,
            "last_run_at": self.last_run_at,
            "last_error": self.last_error,
        }


def list_task_schedules() -> List[Dict[str, Any]]:
    with session_scope() as session:
        return [row.as_dict() for row in session.execute(select(TaskSchedule)).scalars()]
