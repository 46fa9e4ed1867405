"""
Runs each DailyTask on a threading.Timer armed for its stored next_run_at.
"""
import logging
import threading
from datetime import datetime, timezone
from threading import Timer
from typing import Any, Dict, List

from salah.core.task import DailyTask, load_next_run, utc_naive_now


class TaskManager:
    def __init__(self):
        self.timers: Dict[str, Timer] = {}
        self._tasks: Dict[str, DailyTask] = {}
        self._lock = threading.Lock()
        self._stopped = False
        self.logger = logging.getLogger("TaskManager")

    def add(self, task: DailyTask) -> None:
        """Register task (replacing one with the same name) and arm its timer."""
        task.register_schedule()
        with self._lock:
            self._tasks[task.component_name] = task
        self._arm(task.component_name)

    def remove(self, name: str) -> None:
        with self._lock:
            self._tasks.pop(name, None)
            timer = self.timers.pop(name, None)
        if timer is not None:
            timer.cancel()
            self.logger.info(f"Cancelled task {name}")

    def _arm(self, name: str) -> None:
        next_run = load_next_run(name)
        now = utc_naive_now()
        delay = 0.0 if next_run is None else max(0.0, (next_run - now).total_seconds())
        due_at = (next_run if next_run is not None and next_run > now else now).replace(tzinfo=timezone.utc)

        with self._lock:
            if self._stopped or name not in self._tasks:
                return
            previous = self.timers.get(name)
            if previous is not None:
                previous.cancel()
            timer = Timer(delay, self._fire, args=(name,))
            timer.daemon = True
            timer.due_at = due_at
            self.timers[name] = timer
            timer.start()
        self.logger.info(f"{name} scheduled for {due_at.isoformat()}")

    def _fire(self, name: str) -> None:
        task = self._tasks.get(name)
        if task is None:
            return
        task.execute()
        self._arm(name)

    def active_timers(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [{"name": name, "next_run_at": timer.due_at} for name, timer in self.timers.items()]

    def stop(self) -> None:
        """Cancel every timer; nothing is armed afterwards."""
        with self._lock:
            self._stopped = True
            timers = list(self.timers.values())
            self.timers.clear()
        for timer in timers:
            timer.cancel()
