"""
SQLAlchemy models for prayer times: one row per computed day per component.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON

from salah.core.db import Base


class PrayerTimesRecord(Base):
    """One day's computed prayer times. data is JSON: PrayerTimesResult.as_dict()."""
    __tablename__ = "prayer_times_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    component_name = Column(String(255), nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=False), nullable=False, index=True)
    prayer_date = Column(Date, nullable=False, index=True)
    location = Column(String(64), nullable=False)
    method = Column(String(32), nullable=False)
    asr_convention = Column(String(16), nullable=False)
    data = Column(JSON, nullable=False)
