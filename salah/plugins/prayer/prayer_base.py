"""
Domain types for the prayer calculator: calculation methods, Asr conventions,
and the immutable result records handed back to callers.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

PRAYER_NAMES = ("Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha")

ARABIC_NAMES = {
    "Fajr": "الفجر",
    "Sunrise": "الشروق",
    "Dhuhr": "الظهر",
    "Asr": "العصر",
    "Maghrib": "المغرب",
    "Isha": "العشاء",
}

# Wall-clock hours used when the sun never reaches the angle a prayer needs
# (high latitudes). Policy, not astronomy.
DEFAULT_FALLBACK_HOURS: Dict[str, float] = {
    "Fajr": 5.0,
    "Sunrise": 6.0,
    "Dhuhr": 12.0,
    "Asr": 15.0,
    "Maghrib": 18.0,
    "Isha": 20.0,
}


class UnknownCalculationMethod(ValueError):
    """Raised when a calculation method key is not one of CALCULATION_METHODS."""


class AsrConvention(str, Enum):
    """Juristic convention for the start of Asr."""

    SHAFI = "SHAFI"
    HANAFI = "HANAFI"

    @property
    def shadow_factor(self) -> int:
        return 2 if self is AsrConvention.HANAFI else 1

    @classmethod
    def parse(cls, value: Any) -> "AsrConvention":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown Asr convention: {value!r}") from None


@dataclass(frozen=True)
class CalculationMethod:
    """Named set of twilight angles.

    When isha_minutes_after_maghrib is non-zero it wins over isha_angle.
    """

    key: str
    name: str
    fajr_angle: float
    isha_angle: float
    isha_minutes_after_maghrib: int = 0

    @property
    def uses_isha_interval(self) -> bool:
        return bool(self.isha_minutes_after_maghrib)


CALCULATION_METHODS: Dict[str, CalculationMethod] = {
    "MWL": CalculationMethod("MWL", "Muslim World League", 18.0, 17.0),
    "ISNA": CalculationMethod("ISNA", "Islamic Society of North America", 15.0, 15.0),
    "EGYPT": CalculationMethod("EGYPT", "Egyptian General Authority of Survey", 19.5, 17.5),
    "KARACHI": CalculationMethod("KARACHI", "University of Islamic Sciences, Karachi", 18.0, 18.0),
    "UMMALQURA": CalculationMethod("UMMALQURA", "Umm al-Qura University, Makkah", 18.5, 0.0, 90),
}

DEFAULT_METHOD = CALCULATION_METHODS["MWL"]


def get_calculation_method(key: Any) -> CalculationMethod:
    """Resolve a method key ("MWL", "isna", ...) or pass a CalculationMethod through."""
    if isinstance(key, CalculationMethod):
        return key
    method = CALCULATION_METHODS.get(str(key).strip().upper())
    if method is None:
        known = ", ".join(CALCULATION_METHODS)
        raise UnknownCalculationMethod(f"Unknown calculation method {key!r} (known: {known})")
    return method


@dataclass(frozen=True)
class PrayerTime:
    name: str
    arabic_name: str
    time: datetime
    is_next: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "arabic_name": self.arabic_name,
            "time": self.time.isoformat(),
            "is_next": self.is_next,
        }


@dataclass(frozen=True)
class PrayerTimesResult:
    """The six prayer times of one day at one location. Read-only once built."""

    prayers: Tuple[PrayerTime, ...]
    location: str  # "lat, lon" rounded to 2 decimals
    date: date
    method: str  # CalculationMethod.key
    asr_convention: AsrConvention
    timezone: str = "UTC"
    fallbacks: Tuple[str, ...] = field(default=())  # prayers that used a fallback hour

    @property
    def next_prayer(self) -> PrayerTime:
        return next(p for p in self.prayers if p.is_next)

    def get(self, name: str) -> Optional[PrayerTime]:
        for prayer in self.prayers:
            if prayer.name.lower() == name.lower():
                return prayer
        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "date": self.date.isoformat(),
            "method": self.method,
            "asr_convention": self.asr_convention.value,
            "timezone": self.timezone,
            "fallbacks": list(self.fallbacks),
            "prayers": [p.as_dict() for p in self.prayers],
        }
