from typing import Dict, Any, Optional
import logging
import sys
import threading
from datetime import datetime

from .cache_helper import CacheHelper, utc_now
from .config import Config, PRAYER_COMPONENT, QIBLA_COMPONENT
from .db import init_db
from .task_manager import TaskManager
from salah.plugins.prayer.calculator import PrayerCalculator
from salah.plugins.prayer.task import PrayerTimesTask

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


def build_calculator(prayer_config: Optional[Dict[str, Any]], clock=utc_now) -> PrayerCalculator:
    """Create a PrayerCalculator (and its cache) from the "Prayer Times" component config."""
    prayer_config = prayer_config or {}
    cache_config = prayer_config.get("cache") or {}
    cache = CacheHelper(
        ttl_seconds=cache_config.get("ttl_seconds"),
        max_entries=cache_config.get("max_entries"),
        clock=clock,
    )
    return PrayerCalculator(
        latitude=prayer_config.get("latitude", 0.0),
        longitude=prayer_config.get("longitude", 0.0),
        method=prayer_config.get("method", "MWL"),
        asr_convention=prayer_config.get("asr_convention", "SHAFI"),
        tz=prayer_config.get("timezone"),
        cache=cache,
        clock=clock,
        fallback_hours=prayer_config.get("fallback_hours"),
    )


class SalahApp:
    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = True,
        db_url: Optional[str] = None,
        clock=utc_now,
        schedule_tasks: bool = True,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.clock = clock
        self.schedule_tasks = schedule_tasks
        self._stop_event = threading.Event()

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database (before tasks so tables exist)
        init_db(self.config.data, db_url=db_url)

        self.task_manager = TaskManager()
        self.calculator = build_calculator(self.prayer_config, clock=clock)
        self.prayer_task: Optional[PrayerTimesTask] = None
        self.initialize_tasks()

    @property
    def prayer_config(self) -> Dict[str, Any]:
        return self.config.get_component_config(PRAYER_COMPONENT) or {}

    @property
    def qibla_enabled(self) -> bool:
        return (self.config.get_component_config(QIBLA_COMPONENT) or {}).get("enable", True)

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        if root_logger.handlers:
            root_logger.handlers.pop()
        logging_config = self.config.data.get("logging") or {}
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(LOG_FORMAT)

        if logging_config.get("file"):
            file_handler = logging.FileHandler(logging_config["file"])
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Salah application starting...")

    def initialize_tasks(self) -> None:
        """Register and schedule the daily prayer times task when the component is enabled."""
        prayer_config = self.prayer_config
        if not self.schedule_tasks:
            return
        if not prayer_config.get("enable", True):
            self.logger.info("Prayer Times component disabled; no task scheduled")
            self.task_manager.remove(PRAYER_COMPONENT)
            self.prayer_task = None
            return
        self.prayer_task = PrayerTimesTask(PRAYER_COMPONENT, self.calculator, prayer_config.get("schedule_time"))
        self.task_manager.add(self.prayer_task)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Rebuild the calculator (fresh cache) and reschedule tasks from the new config"""
        self.logger.info("Handling config change")
        try:
            self.calculator = build_calculator(self.prayer_config, clock=self.clock)
            self.initialize_tasks()
        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def print_today(self, out=sys.stdout) -> None:
        result = self.calculator.get_today_prayer_times()
        upcoming = self.calculator.get_next_prayer()
        out.write(f"Prayer times for {result.location} on {result.date} ({result.timezone}, {result.method})\n")
        for prayer in result.prayers:
            marker = "  <- next" if prayer.time == upcoming.time else ""
            out.write(f"  {prayer.name:<8} {prayer.arabic_name:<8} {prayer.time.strftime('%H:%M')}{marker}\n")
        if upcoming.time.date() != result.date:
            out.write(f"  Next: {upcoming.name} tomorrow at {upcoming.time.strftime('%H:%M')}\n")

    def stop(self) -> None:
        self._stop_event.set()
        self.task_manager.stop()
        self.config.cleanup()

    def run(self):
        from salah.api.server import run_api_server

        try:
            self.logger.info(f"Started at {datetime.now().isoformat(timespec='seconds')}")
            if (self.config.data.get("api") or {}).get("enabled", False):
                run_api_server(self)
            else:
                self.logger.info("API disabled; running scheduled tasks only")
                self._stop_event.wait()
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.stop()
