from datetime import date, datetime, time, timedelta

import pytest
import pytz

from salah.core.cache_helper import CacheHelper
from salah.plugins.prayer.calculator import PrayerCalculator
from salah.plugins.prayer.prayer_base import (
    CALCULATION_METHODS,
    PRAYER_NAMES,
    AsrConvention,
    UnknownCalculationMethod,
    get_calculation_method,
)

from conftest import FixedClock

SITES = [
    # (latitude, longitude, timezone)
    (40.7128, -74.0060, "America/New_York"),
    (21.4225, 39.8262, "Asia/Riyadh"),
    (-6.2088, 106.8456, "Asia/Jakarta"),
    (-33.9249, 18.4241, "Africa/Johannesburg"),
    (30.0444, 31.2357, "Africa/Cairo"),
    (33.6844, 73.0479, "Asia/Karachi"),
]
DAYS = [date(2024, 1, 15), date(2024, 6, 21), date(2024, 10, 1)]


def make_calculator(tz, clock, **kwargs):
    return PrayerCalculator(tz=tz, clock=clock, cache=CacheHelper(clock=clock), **kwargs)


@pytest.mark.parametrize("latitude,longitude,tz", SITES)
@pytest.mark.parametrize("day", DAYS)
@pytest.mark.parametrize("method", sorted(CALCULATION_METHODS))
def test_prayers_are_in_chronological_order(latitude, longitude, tz, day, method, clock):
    calculator = make_calculator(tz, clock)
    result = calculator.calculate_prayer_times(latitude, longitude, day, method=method)

    assert result.fallbacks == ()
    assert [p.name for p in result.prayers] == list(PRAYER_NAMES)
    times = [p.time for p in result.prayers]
    assert all(earlier < later for earlier, later in zip(times, times[1:]))
    assert all(t.astimezone(pytz.timezone(tz)).date() == day for t in times)


def test_new_york_dhuhr_is_local_solar_noon(calculator):
    result = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    dhuhr = result.get("Dhuhr").time
    assert dhuhr.hour == 12
    assert dhuhr.utcoffset() == timedelta(hours=-4)
    assert result.get("Fajr").time < result.get("Sunrise").time
    assert result.location == "40.71, -74.01"
    assert result.timezone == "America/New_York"


def test_times_are_truncated_to_the_minute(calculator):
    result = calculator.get_today_prayer_times()
    assert all(p.time.second == 0 and p.time.microsecond == 0 for p in result.prayers)


@pytest.mark.parametrize("latitude,longitude,tz", SITES)
def test_hanafi_asr_is_not_earlier_than_shafi(latitude, longitude, tz, clock):
    calculator = make_calculator(tz, clock)
    for day in DAYS:
        shafi = calculator.calculate_prayer_times(latitude, longitude, day, asr_convention="SHAFI")
        hanafi = calculator.calculate_prayer_times(latitude, longitude, day, asr_convention="HANAFI")
        assert hanafi.get("Asr").time >= shafi.get("Asr").time
        assert hanafi.get("Dhuhr").time == shafi.get("Dhuhr").time


def test_umm_al_qura_isha_follows_maghrib_by_ninety_minutes(clock):
    calculator = make_calculator("Asia/Riyadh", clock, method="UMMALQURA")
    result = calculator.calculate_prayer_times(21.4225, 39.8262, date(2024, 3, 1))
    gap = result.get("Isha").time - result.get("Maghrib").time
    assert timedelta(minutes=89) <= gap <= timedelta(minutes=91)


def test_angle_based_isha_differs_from_interval(clock):
    calculator = make_calculator("Asia/Riyadh", clock)
    mwl = calculator.calculate_prayer_times(21.4225, 39.8262, date(2024, 3, 1), method="MWL")
    karachi = calculator.calculate_prayer_times(21.4225, 39.8262, date(2024, 3, 1), method="KARACHI")
    # Karachi uses a deeper Isha angle (18 vs 17 degrees)
    assert karachi.get("Isha").time > mwl.get("Isha").time


def test_exactly_one_prayer_is_next(calculator):
    result = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    assert sum(p.is_next for p in result.prayers) == 1
    # 08:00 EDT: Fajr and Sunrise have passed
    assert result.next_prayer.name == "Dhuhr"


def test_fajr_is_next_before_dawn():
    clock = FixedClock(pytz.timezone("America/New_York").localize(datetime(2024, 6, 21, 0, 30)))
    calculator = PrayerCalculator(tz="America/New_York", clock=clock, cache=CacheHelper(clock=clock))
    result = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    assert result.next_prayer.name == "Fajr"
    assert result.next_prayer.time > clock()


def test_fajr_is_marked_next_after_isha_has_passed():
    clock = FixedClock(pytz.timezone("America/New_York").localize(datetime(2024, 6, 21, 23, 59)))
    calculator = PrayerCalculator(tz="America/New_York", clock=clock, cache=CacheHelper(clock=clock))
    result = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))

    fajr = result.prayers[0]
    assert fajr.name == "Fajr" and fajr.is_next
    # Today's timestamp is kept even though it is in the past
    assert fajr.time.date() == date(2024, 6, 21)
    assert fajr.time < clock()
    assert sum(p.is_next for p in result.prayers) == 1


def test_get_next_prayer_rolls_over_to_tomorrow():
    clock = FixedClock(pytz.timezone("America/New_York").localize(datetime(2024, 6, 21, 23, 59)))
    calculator = PrayerCalculator(
        latitude=40.7128, longitude=-74.0060, tz="America/New_York", clock=clock,
        cache=CacheHelper(clock=clock),
    )
    upcoming = calculator.get_next_prayer()
    assert upcoming.name == "Fajr"
    assert upcoming.time.date() == date(2024, 6, 22)
    remaining = calculator.time_until_next_prayer()
    assert timedelta(hours=3) < remaining < timedelta(hours=4)


def test_get_next_prayer_ignores_stale_next_flag(calculator, clock):
    maghrib = calculator.get_today_prayer_times().get("Maghrib").time
    clock.set(maghrib - timedelta(minutes=2))
    calculator.clear_cache()
    assert calculator.get_today_prayer_times().next_prayer.name == "Maghrib"

    # Still inside the TTL, so the cached result flags Maghrib
    clock.advance(minutes=3)
    assert calculator.get_today_prayer_times().next_prayer.name == "Maghrib"

    upcoming = calculator.get_next_prayer()
    assert upcoming.name == "Isha"
    assert upcoming.time.date() == date(2024, 6, 21)
    assert calculator.time_until_next_prayer() == upcoming.time - clock()


def test_time_until_next_prayer_same_day(calculator, clock):
    upcoming = calculator.get_next_prayer()
    assert upcoming.name == "Dhuhr"
    assert calculator.time_until_next_prayer() == upcoming.time - clock()


def test_invalid_coordinates_compute_as_origin(calculator):
    result = calculator.calculate_prayer_times(float("nan"), 10)
    origin = calculator.calculate_prayer_times(0, 0)
    assert result is origin
    assert result.location == "0.00, 0.00"
    assert calculator.compute_count == 1


@pytest.mark.parametrize("latitude,longitude", [(None, 1), ("north", 2), (float("inf"), 3), (5, float("-inf"))])
def test_garbage_coordinates_never_raise(calculator, latitude, longitude):
    result = calculator.calculate_prayer_times(latitude, longitude)
    assert result.location == "0.00, 0.00"
    assert len(result.prayers) == 6


def test_invalid_coordinates_are_logged(calculator, caplog):
    with caplog.at_level("WARNING"):
        calculator.calculate_prayer_times(float("nan"), 10)
    assert "Invalid coordinates" in caplog.text


def test_polar_day_uses_fallback_hours(clock):
    calculator = make_calculator(None, clock)
    result = calculator.calculate_prayer_times(80.0, 15.0, date(2024, 6, 21))
    assert result.fallbacks == ("Fajr", "Sunrise", "Maghrib", "Isha")
    assert result.get("Fajr").time.time() == time(5, 0)
    assert result.get("Sunrise").time.time() == time(6, 0)
    assert result.get("Maghrib").time.time() == time(18, 0)
    assert result.get("Isha").time.time() == time(20, 0)
    assert sum(p.is_next for p in result.prayers) == 1


def test_interval_isha_is_unreachable_when_maghrib_is(clock):
    calculator = make_calculator(None, clock, method="UMMALQURA")
    result = calculator.calculate_prayer_times(80.0, 15.0, date(2024, 6, 21))
    assert "Maghrib" in result.fallbacks
    assert "Isha" in result.fallbacks
    assert result.get("Isha").time.time() == time(20, 0)


def test_fallback_hours_are_overridable(clock):
    calculator = make_calculator(None, clock, fallback_hours={"Sunrise": 4.5})
    result = calculator.calculate_prayer_times(80.0, 15.0, date(2024, 6, 21))
    assert result.get("Sunrise").time.time() == time(4, 30)
    assert result.get("Fajr").time.time() == time(5, 0)


def test_polar_fallback_is_logged(clock, caplog):
    calculator = make_calculator(None, clock)
    with caplog.at_level("WARNING"):
        calculator.calculate_prayer_times(80.0, 15.0, date(2024, 6, 21))
    assert "Sunrise unreachable" in caplog.text


def test_default_date_is_today_in_calculator_timezone():
    # 02:00 UTC on the 22nd is still the 21st in New York
    clock = FixedClock(datetime(2024, 6, 22, 2, 0, tzinfo=pytz.utc))
    calculator = PrayerCalculator(tz="America/New_York", clock=clock, cache=CacheHelper(clock=clock))
    assert calculator.calculate_prayer_times(40.7, -74.0).date == date(2024, 6, 21)


def test_datetime_argument_is_reduced_to_local_date(calculator):
    moment = datetime(2024, 6, 22, 2, 0, tzinfo=pytz.utc)
    assert calculator.calculate_prayer_times(40.7, -74.0, moment).date == date(2024, 6, 21)


def test_results_are_cached(calculator):
    first = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    second = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    assert first is second
    assert calculator.compute_count == 1


def test_coordinates_are_keyed_to_four_decimals(calculator):
    first = calculator.calculate_prayer_times(40.71281, -74.00601, date(2024, 6, 21))
    second = calculator.calculate_prayer_times(40.71284, -74.00604, date(2024, 6, 21))
    assert first is second


def test_method_and_convention_are_part_of_the_key(calculator):
    calculator.calculate_prayer_times(40.7, -74.0, date(2024, 6, 21), method="MWL")
    calculator.calculate_prayer_times(40.7, -74.0, date(2024, 6, 21), method="ISNA")
    calculator.calculate_prayer_times(40.7, -74.0, date(2024, 6, 21), asr_convention=AsrConvention.HANAFI)
    assert calculator.compute_count == 3


def test_expired_entry_is_recomputed_with_identical_times(calculator, clock):
    first = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    clock.advance(seconds=301)
    second = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    assert second is not first
    assert calculator.compute_count == 2
    assert [p.time for p in first.prayers] == [p.time for p in second.prayers]


def test_entry_within_ttl_is_reused(calculator, clock):
    first = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    clock.advance(seconds=299)
    assert calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21)) is first


def test_eleventh_location_evicts_the_oldest(calculator):
    days = date(2024, 6, 21)
    for i in range(11):
        calculator.calculate_prayer_times(10.0 + i, 20.0, days)
    assert len(calculator.cache) == 10
    keys = calculator.cache.keys()
    assert not any(key.startswith("10.0000_") for key in keys)
    assert any(key.startswith("20.0000_") for key in keys)

    # The evicted location is recomputed, the others are not
    count = calculator.compute_count
    calculator.calculate_prayer_times(11.0, 20.0, days)
    assert calculator.compute_count == count
    calculator.calculate_prayer_times(10.0, 20.0, days)
    assert calculator.compute_count == count + 1


def test_clear_cache_forces_recompute(calculator):
    calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    calculator.clear_cache()
    assert len(calculator.cache) == 0
    calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21))
    assert calculator.compute_count == 2


def test_get_today_prayer_times_uses_configured_location(calculator):
    result = calculator.get_today_prayer_times()
    assert result.location == "40.71, -74.01"
    assert result.date == date(2024, 6, 21)
    assert result.method == "MWL"


def test_get_calculation_method_lookup():
    assert get_calculation_method("isna") is CALCULATION_METHODS["ISNA"]
    assert get_calculation_method(CALCULATION_METHODS["EGYPT"]) is CALCULATION_METHODS["EGYPT"]
    with pytest.raises(UnknownCalculationMethod):
        get_calculation_method("JAFARI")


def test_unknown_asr_convention_raises():
    with pytest.raises(ValueError):
        AsrConvention.parse("MALIKI")
    assert AsrConvention.parse("hanafi") is AsrConvention.HANAFI


def test_result_as_dict_is_json_ready(calculator):
    data = calculator.calculate_prayer_times(40.7128, -74.0060, date(2024, 6, 21)).as_dict()
    assert data["date"] == "2024-06-21"
    assert data["asr_convention"] == "SHAFI"
    assert [p["name"] for p in data["prayers"]] == list(PRAYER_NAMES)
    assert data["prayers"][0]["arabic_name"] == "الفجر"
    assert data["prayers"][2]["time"].startswith("2024-06-21T12:")
