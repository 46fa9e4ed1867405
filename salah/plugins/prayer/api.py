"""
Per-plugin API for Prayer Times. Mounted at /api/components/prayer/.
Live calculation goes through the app's PrayerCalculator; /data serves stored
snapshots via PrayerTimesRecord ORM with Pydantic from_attributes.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pytz
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from salah.core.config import PRAYER_COMPONENT
from .calculator import PrayerCalculator
from .prayer_base import CALCULATION_METHODS, PrayerTimesResult
from .service import get_latest_prayer_times_record, get_prayer_times_for_date


class PrayerTimeResponse(BaseModel):
    name: str
    arabic_name: str
    time: datetime
    is_next: bool


class PrayerTimesResponse(BaseModel):
    location: str
    date: date
    method: str
    asr_convention: str
    timezone: str
    fallbacks: List[str]
    prayers: List[PrayerTimeResponse]

    @classmethod
    def from_result(cls, result: PrayerTimesResult) -> "PrayerTimesResponse":
        return cls(
            location=result.location,
            date=result.date,
            method=result.method,
            asr_convention=result.asr_convention.value,
            timezone=result.timezone,
            fallbacks=list(result.fallbacks),
            prayers=[
                PrayerTimeResponse(
                    name=p.name, arabic_name=p.arabic_name, time=p.time, is_next=p.is_next
                )
                for p in result.prayers
            ],
        )


class MethodResponse(BaseModel):
    key: str
    name: str
    fajr_angle: float
    isha_angle: float
    isha_minutes_after_maghrib: int


class PrayerTimesRecordResponse(BaseModel):
    """Pydantic view of PrayerTimesRecord for API; serializes from ORM."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    component_name: Optional[str] = None
    fetched_at: Optional[datetime] = None
    prayer_date: Optional[date] = None
    location: Optional[str] = None
    method: Optional[str] = None
    asr_convention: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


def _calculator_for(base: PrayerCalculator, tz_name: Optional[str]) -> PrayerCalculator:
    """Same settings and cache as base, rendered in another timezone."""
    if not tz_name:
        return base
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {tz_name}")
    return PrayerCalculator(
        latitude=base.latitude,
        longitude=base.longitude,
        method=base.method,
        asr_convention=base.asr_convention,
        tz=tz,
        cache=base.cache,
        clock=base.clock,
        fallback_hours=base.fallback_hours,
    )


def get_router(salah_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/prayer."""
    router = APIRouter(tags=["Prayer Times"])

    @router.get("/times", response_model=PrayerTimesResponse)
    def get_times(
        latitude: float,
        longitude: float,
        day: Optional[date] = Query(None, alias="date"),
        method: Optional[str] = None,
        asr_convention: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> PrayerTimesResponse:
        """Prayer times for any location. Invalid coordinates are computed as (0, 0)."""
        calculator = _calculator_for(salah_app.calculator, timezone)
        try:
            result = calculator.calculate_prayer_times(
                latitude, longitude, day, method=method, asr_convention=asr_convention
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return PrayerTimesResponse.from_result(result)

    @router.get("/today", response_model=PrayerTimesResponse)
    def get_today() -> PrayerTimesResponse:
        """Prayer times for the configured location."""
        return PrayerTimesResponse.from_result(salah_app.calculator.get_today_prayer_times())

    @router.get("/next")
    def get_next() -> Dict[str, Any]:
        """Upcoming prayer at the configured location and seconds until it starts."""
        calculator = salah_app.calculator
        prayer = calculator.get_next_prayer()
        return {
            "name": prayer.name,
            "arabic_name": prayer.arabic_name,
            "time": prayer.time.isoformat(),
            "seconds_remaining": int((prayer.time - calculator.clock()).total_seconds()),
        }

    @router.get("/methods", response_model=List[MethodResponse])
    def list_methods() -> List[MethodResponse]:
        return [
            MethodResponse(
                key=m.key,
                name=m.name,
                fajr_angle=m.fajr_angle,
                isha_angle=m.isha_angle,
                isha_minutes_after_maghrib=m.isha_minutes_after_maghrib,
            )
            for m in CALCULATION_METHODS.values()
        ]

    @router.delete("/cache")
    def clear_cache() -> Dict[str, Any]:
        salah_app.calculator.clear_cache()
        return {"cleared": True}

    @router.get("/data", response_model=PrayerTimesRecordResponse)
    def get_data(day: Optional[date] = Query(None, alias="date")) -> PrayerTimesRecordResponse:
        """Stored snapshot for date, or the most recently stored one."""
        if day is None:
            record = get_latest_prayer_times_record(PRAYER_COMPONENT)
        else:
            record = get_prayer_times_for_date(PRAYER_COMPONENT, day)
        if record is None:
            raise HTTPException(status_code=404, detail="No prayer times data available")
        return PrayerTimesRecordResponse.model_validate(record)

    return router
