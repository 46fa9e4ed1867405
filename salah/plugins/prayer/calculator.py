"""
Prayer time assembler and its cached entry point.

PrayerCalculator never raises for bad coordinates or polar days: invalid
coordinates are replaced by (0, 0) and unreachable angles by fixed fallback
hours, both with a warning in the log.
"""
import logging
import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Callable, Dict, Optional, Union

import pytz

from salah.core.cache_helper import CacheHelper, utc_now
from salah.plugins.prayer.astronomy import (
    HORIZON_ANGLE,
    UNREACHABLE,
    SolveResult,
    Solved,
    julian_day,
    solar_noon,
    solve_angle,
    solve_asr,
)
from salah.plugins.prayer.prayer_base import (
    ARABIC_NAMES,
    DEFAULT_FALLBACK_HOURS,
    DEFAULT_METHOD,
    PRAYER_NAMES,
    AsrConvention,
    CalculationMethod,
    PrayerTime,
    PrayerTimesResult,
    get_calculation_method,
)

MethodLike = Union[str, CalculationMethod]


def resolve_timezone(tz: Any) -> tzinfo:
    """Accept a tzinfo, an IANA name, or None (UTC)."""
    if tz is None:
        return pytz.utc
    if isinstance(tz, tzinfo):
        return tz
    return pytz.timezone(str(tz))


def zone_name(tz: tzinfo) -> str:
    return getattr(tz, "zone", None) or str(tz)


def localize(tz: tzinfo, naive: datetime) -> datetime:
    # pytz zones need localize() to pick the right offset
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def _coordinate(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class PrayerCalculator:
    """Computes the six daily prayer times for a location.

    The calculator carries a default location, method, Asr convention and
    timezone for get_today_prayer_times(); calculate_prayer_times() accepts
    any location. Results are memoized in an injected CacheHelper.
    """

    def __init__(
        self,
        latitude: float = 0.0,
        longitude: float = 0.0,
        method: MethodLike = DEFAULT_METHOD,
        asr_convention: Union[str, AsrConvention] = AsrConvention.SHAFI,
        tz: Any = None,
        cache: Optional[CacheHelper] = None,
        clock: Callable[[], datetime] = utc_now,
        fallback_hours: Optional[Dict[str, float]] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.latitude = latitude
        self.longitude = longitude
        self.method = get_calculation_method(method)
        self.asr_convention = AsrConvention.parse(asr_convention)
        self.tz = resolve_timezone(tz)
        self.clock = clock
        self.cache = cache if cache is not None else CacheHelper(clock=clock)
        self.fallback_hours = dict(DEFAULT_FALLBACK_HOURS)
        if fallback_hours:
            self.fallback_hours.update({k: float(v) for k, v in fallback_hours.items()})
        self.compute_count = 0

    @property
    def timezone_name(self) -> str:
        return zone_name(self.tz)

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def _as_date(self, value: Union[date, datetime, None]) -> date:
        if value is None:
            return self.today()
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.tz)
            return value.date()
        return value

    def _utc_offset_hours(self, day: date) -> float:
        offset = localize(self.tz, datetime.combine(day, time(12))).utcoffset()
        return offset.total_seconds() / 3600 if offset else 0.0

    def _to_datetime(self, day: date, hours: float) -> datetime:
        """Wall-clock hours on day (wrapped into [0, 24)) as an aware datetime, truncated to the minute."""
        minutes = int((hours % 24) * 60) % (24 * 60)
        return localize(self.tz, datetime.combine(day, time()) + timedelta(minutes=minutes))

    def _solve_all(
        self,
        latitude: float,
        longitude: float,
        day: date,
        method: CalculationMethod,
        asr_convention: AsrConvention,
    ) -> Dict[str, SolveResult]:
        jd = julian_day(day)
        noon = solar_noon(jd, longitude)
        maghrib = solve_angle(jd, latitude, longitude, HORIZON_ANGLE, rising=False)

        if method.uses_isha_interval:
            if isinstance(maghrib, Solved):
                isha = Solved(maghrib.hours + method.isha_minutes_after_maghrib / 60)
            else:
                isha = UNREACHABLE
        else:
            isha = solve_angle(jd, latitude, longitude, -method.isha_angle, rising=False)

        return {
            "Fajr": solve_angle(jd, latitude, longitude, -method.fajr_angle, rising=True),
            "Sunrise": solve_angle(jd, latitude, longitude, HORIZON_ANGLE, rising=True),
            "Dhuhr": Solved(noon) if math.isfinite(noon) else UNREACHABLE,
            "Asr": solve_asr(jd, latitude, longitude, asr_convention),
            "Maghrib": maghrib,
            "Isha": isha,
        }

    def compute_for_day(
        self,
        latitude: float,
        longitude: float,
        day: date,
        method: CalculationMethod,
        asr_convention: AsrConvention,
    ) -> PrayerTimesResult:
        """Compute the six prayer times for one day without touching the cache."""
        self.compute_count += 1
        solutions = self._solve_all(latitude, longitude, day, method, asr_convention)
        offset = self._utc_offset_hours(day)

        times: Dict[str, datetime] = {}
        fallbacks = []
        for name in PRAYER_NAMES:
            result = solutions[name]
            if isinstance(result, Solved):
                hours = result.hours + offset
            else:
                hours = self.fallback_hours[name]
                fallbacks.append(name)
                self.logger.warning(
                    f"{name} unreachable at ({latitude}, {longitude}) on {day}; "
                    f"using fallback hour {hours:g}"
                )
            times[name] = self._to_datetime(day, hours)

        now = self.clock()
        # Once Isha has passed, today's Fajr stands in for tomorrow's
        next_name = next((name for name in PRAYER_NAMES if times[name] > now), "Fajr")

        return PrayerTimesResult(
            prayers=tuple(
                PrayerTime(
                    name=name,
                    arabic_name=ARABIC_NAMES[name],
                    time=times[name],
                    is_next=name == next_name,
                )
                for name in PRAYER_NAMES
            ),
            location=f"{latitude:.2f}, {longitude:.2f}",
            date=day,
            method=method.key,
            asr_convention=asr_convention,
            timezone=self.timezone_name,
            fallbacks=tuple(fallbacks),
        )

    def cache_key(
        self,
        latitude: float,
        longitude: float,
        day: date,
        method: CalculationMethod,
        asr_convention: AsrConvention,
    ) -> str:
        return (
            f"{latitude:.4f}_{longitude:.4f}_{day.isoformat()}_"
            f"{method.name}_{asr_convention.value}_{self.timezone_name}"
        )

    def calculate_prayer_times(
        self,
        latitude: Any,
        longitude: Any,
        date: Union[date, datetime, None] = None,
        method: Optional[MethodLike] = None,
        asr_convention: Union[str, AsrConvention, None] = None,
    ) -> PrayerTimesResult:
        """Cached prayer times for any location.

        Args:
            latitude: Degrees north. Non-finite values fall back to 0.
            longitude: Degrees east. Non-finite values fall back to 0.
            date: Day to compute, in the calculator's timezone. Defaults to today.
            method: CalculationMethod or its key. Defaults to the calculator's method.
            asr_convention: Defaults to the calculator's convention.

        Raises:
            UnknownCalculationMethod: ``method`` is a string that names no method.
        """
        lat = _coordinate(latitude)
        lon = _coordinate(longitude)
        if lat is None or lon is None:
            self.logger.warning(f"Invalid coordinates ({latitude}, {longitude}); using (0, 0)")
            lat, lon = 0.0, 0.0

        day = self._as_date(date)
        resolved_method = self.method if method is None else get_calculation_method(method)
        convention = (
            self.asr_convention if asr_convention is None else AsrConvention.parse(asr_convention)
        )

        key = self.cache_key(lat, lon, day, resolved_method, convention)
        return self.cache.get_or_compute(
            key,
            lambda: self.compute_for_day(lat, lon, day, resolved_method, convention),
        )

    def get_today_prayer_times(self, date: Union[date, datetime, None] = None) -> PrayerTimesResult:
        return self.calculate_prayer_times(self.latitude, self.longitude, date)

    def get_next_prayer(self) -> PrayerTime:
        """The upcoming prayer at the configured location, rolling over to tomorrow's Fajr."""
        today = self.today()
        now = self.clock()
        result = self.get_today_prayer_times(today)
        # is_next may be up to one TTL old; compare against the clock instead
        upcoming = next((p for p in result.prayers if p.time > now), None)
        if upcoming is not None:
            return upcoming
        tomorrow = self.get_today_prayer_times(today + timedelta(days=1))
        return tomorrow.prayers[0]

    def time_until_next_prayer(self) -> timedelta:
        return self.get_next_prayer().time - self.clock()

    def clear_cache(self) -> None:
        self.cache.clear()
        self.logger.info("Prayer times cache cleared")
