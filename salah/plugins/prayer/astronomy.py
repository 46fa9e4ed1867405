"""
Low-precision solar position math and the hour-angle solver behind the prayer
calculator.

All solver results are hours of the day in UTC. Angles are degrees at the
function boundaries and radians inside.
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Union

from salah.plugins.prayer.prayer_base import AsrConvention

J2000 = 2451545.0
OBLIQUITY = 23.439  # degrees
TROPICAL_YEAR = 365.2422
HORIZON_ANGLE = -0.833  # sunrise/sunset altitude with refraction and solar radius


@dataclass(frozen=True)
class Solved:
    hours: float


class Unreachable:
    """The sun never reaches the requested altitude on that day."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNREACHABLE"

    def __bool__(self) -> bool:
        return False


UNREACHABLE = Unreachable()

SolveResult = Union[Solved, Unreachable]


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def julian_day(day: date) -> int:
    """Julian Day Number of a Gregorian calendar date."""
    a = (14 - day.month) // 12
    y = day.year + 4800 - a
    m = day.month + 12 * a - 3
    return (
        day.day
        + (153 * m + 2) // 5
        + 365 * y
        + y // 4
        - y // 100
        + y // 400
        - 32045
    )


def solar_declination(jd: float) -> float:
    """Sun's declination in radians."""
    n = jd - J2000
    mean_longitude = (280.460 + 0.9856474 * n) % 360
    mean_anomaly = math.radians((357.528 + 0.9856003 * n) % 360)
    ecliptic_longitude = math.radians(
        mean_longitude
        + 1.915 * math.sin(mean_anomaly)
        + 0.020 * math.sin(2 * mean_anomaly)
    )
    return math.asin(math.sin(ecliptic_longitude) * math.sin(math.radians(OBLIQUITY)))


def equation_of_time(jd: float) -> float:
    """Apparent minus mean solar time, in minutes (Spencer's series)."""
    gamma = 2 * math.pi * ((jd - J2000) % TROPICAL_YEAR) / TROPICAL_YEAR
    return 229.18 * (
        0.000075
        + 0.001868 * math.cos(gamma)
        - 0.032077 * math.sin(gamma)
        - 0.014615 * math.cos(2 * gamma)
        - 0.040849 * math.sin(2 * gamma)
    )


def solar_noon(jd: float, longitude: float) -> float:
    return 12 - longitude / 15 - equation_of_time(jd) / 60


def solve_angle(
    jd: float,
    latitude: float,
    longitude: float,
    angle: float,
    rising: bool,
) -> SolveResult:
    """Time at which the sun's altitude equals ``angle`` degrees.

    Returns UNREACHABLE instead of raising when the altitude is never reached
    or any input is not finite.
    """
    if not _finite(jd, latitude, longitude, angle):
        return UNREACHABLE

    declination = solar_declination(jd)
    lat = math.radians(latitude)
    denominator = math.cos(lat) * math.cos(declination)
    if denominator == 0:
        return UNREACHABLE
    cos_hour_angle = (
        math.sin(math.radians(angle)) - math.sin(lat) * math.sin(declination)
    ) / denominator
    if not math.isfinite(cos_hour_angle) or not -1.0 <= cos_hour_angle <= 1.0:
        return UNREACHABLE

    offset = math.degrees(math.acos(cos_hour_angle)) / 15
    noon = solar_noon(jd, longitude)
    hours = noon - offset if rising else noon + offset
    if not math.isfinite(hours):
        return UNREACHABLE
    return Solved(hours)


def asr_angle(jd: float, latitude: float, convention: AsrConvention) -> float:
    """Sun altitude (degrees) at which a shadow reaches the Asr length."""
    declination = solar_declination(jd)
    noon_zenith = abs(math.radians(latitude) - declination)
    return math.degrees(math.atan(1 / (convention.shadow_factor + math.tan(noon_zenith))))


def solve_asr(
    jd: float,
    latitude: float,
    longitude: float,
    convention: AsrConvention,
) -> SolveResult:
    if not _finite(jd, latitude, longitude):
        return UNREACHABLE
    return solve_angle(jd, latitude, longitude, asr_angle(jd, latitude, convention), rising=False)
