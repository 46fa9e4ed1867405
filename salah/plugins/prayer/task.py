"""
Daily task: compute today's prayer times for the configured location shortly
after local midnight and store them.
"""
from typing import Optional

from salah.core.task import DailyTask
from salah.plugins.prayer.calculator import PrayerCalculator
from salah.plugins.prayer.prayer_base import PrayerTimesResult
from salah.plugins.prayer.service import save_prayer_times


class PrayerTimesTask(DailyTask):
    DEFAULT_RUN_AT = "00:05"

    def __init__(self, component_name: str, calculator: PrayerCalculator, run_at: Optional[str] = None):
        super().__init__(component_name, run_at, calculator.timezone_name)
        self.calculator = calculator

    def run(self) -> PrayerTimesResult:
        result = self.calculator.get_today_prayer_times()
        save_prayer_times(self.component_name, result)
        self.logger.info(
            f"Saved prayer times for {result.date} at {result.location}; "
            f"next is {result.next_prayer.name}"
        )
        return result
