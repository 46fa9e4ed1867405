from datetime import datetime, timedelta

import pytest
import pytz

from salah.core.cache_helper import CacheHelper
from salah.core.db import dispose_db, init_db
from salah.plugins.prayer.calculator import PrayerCalculator


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def __call__(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **kwargs) -> None:
        self._now += timedelta(**kwargs)


@pytest.fixture
def clock():
    # 2024-06-21 12:00 UTC
    return FixedClock(datetime(2024, 6, 21, 12, 0, tzinfo=pytz.utc))


@pytest.fixture
def cache(clock):
    return CacheHelper(ttl_seconds=300, max_entries=10, clock=clock)


@pytest.fixture
def calculator(cache, clock):
    return PrayerCalculator(
        latitude=40.7128,
        longitude=-74.0060,
        method="MWL",
        tz="America/New_York",
        cache=cache,
        clock=clock,
    )


@pytest.fixture
def db():
    dispose_db()
    init_db(db_url="sqlite://")
    yield
    dispose_db()
