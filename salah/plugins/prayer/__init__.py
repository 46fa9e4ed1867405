from .prayer_base import (
    CALCULATION_METHODS,
    AsrConvention,
    CalculationMethod,
    PrayerTime,
    PrayerTimesResult,
    get_calculation_method,
)
from .calculator import PrayerCalculator
