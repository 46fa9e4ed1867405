"""
Stored prayer-time snapshots: one row per component and day.
"""
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import delete, select

from salah.core.db import session_scope
from salah.plugins.prayer.models import PrayerTimesRecord
from salah.plugins.prayer.prayer_base import PrayerTimesResult


def save_prayer_times(component_name: str, result: PrayerTimesResult) -> None:
    """Store result, replacing any earlier snapshot for the same day."""
    with session_scope() as session:
        session.execute(
            delete(PrayerTimesRecord).where(
                PrayerTimesRecord.component_name == component_name,
                PrayerTimesRecord.prayer_date == result.date,
            )
        )
        session.add(PrayerTimesRecord(
            component_name=component_name,
            fetched_at=datetime.now(timezone.utc).replace(tzinfo=None),
            prayer_date=result.date,
            location=result.location,
            method=result.method,
            asr_convention=result.asr_convention.value,
            data=result.as_dict(),
        ))


def get_latest_prayer_times_record(component_name: str) -> Optional[PrayerTimesRecord]:
    with session_scope() as session:
        query = (
            select(PrayerTimesRecord)
            .where(PrayerTimesRecord.component_name == component_name)
            .order_by(PrayerTimesRecord.fetched_at.desc(), PrayerTimesRecord.id.desc())
        )
        return session.execute(query).scalars().first()


def get_prayer_times_for_date(component_name: str, prayer_date: date) -> Optional[PrayerTimesRecord]:
    with session_scope() as session:
        query = select(PrayerTimesRecord).where(
            PrayerTimesRecord.component_name == component_name,
            PrayerTimesRecord.prayer_date == prayer_date,
        )
        return session.execute(query).scalars().first()
