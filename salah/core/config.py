"""
YAML configuration with built-in defaults, .env loading and ${VAR} expansion.

The file is watched with watchdog. On change it is re-read and every
registered callback receives the new data; a file that cannot be parsed
leaves the last good configuration in place.
"""
import logging
import os
import re
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

PRAYER_COMPONENT = "Prayer Times"
QIBLA_COMPONENT = "Qibla"

DEFAULT_CONFIG_DIR = Path.home() / ".salah"

_ENV_ASSIGNMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
_ENV_REFERENCE = re.compile(r"^\$\{([^}]+)\}$|^\$([A-Za-z_][A-Za-z0-9_]*)$")


def default_config(config_dir: Path) -> Dict[str, Any]:
    return {
        "components": {
            PRAYER_COMPONENT: {
                "enable": True,
                "latitude": 21.4225,
                "longitude": 39.8262,
                "timezone": "Asia/Riyadh",
                "method": "MWL",
                "asr_convention": "SHAFI",
                "schedule_time": "00:05",
                "cache": {
                    "ttl_seconds": 300,
                    "max_entries": 10,
                },
            },
            QIBLA_COMPONENT: {
                "enable": True,
            },
        },
        "api": {
            "enabled": True,
            "host": "127.0.0.1",
            "port": 8765,
        },
        "database": {
            "path": str(config_dir / "salah.db"),
        },
        "logging": {
            "level": "INFO",
            "file": str(config_dir / "salah.log"),
        },
    }


def load_env_file(path: Path) -> None:
    """Export KEY=VALUE lines from path. Variables already in the environment win."""
    with open(path) as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            match = _ENV_ASSIGNMENT.match(line)
            if match is None:
                logger.debug(f"Skipping malformed .env line: {line}")
                continue
            key, value = match.groups()
            os.environ.setdefault(key, value.strip().strip("'\""))


def expand_env(value: Any) -> Any:
    """Replace "${NAME}" / "$NAME" strings with the variable's value; unknown names stay as written."""
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, str):
        match = _ENV_REFERENCE.match(value)
        if match:
            return os.environ.get(match.group(1) or match.group(2), value)
    return value


def changed_keys(old: Dict[str, Any], new: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any, Any]]:
    """Yield (dotted.key, before, after) for every leaf that differs."""
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}.{key}" if prefix else str(key)
        before, after = old.get(key), new.get(key)
        if isinstance(before, dict) and isinstance(after, dict):
            yield from changed_keys(before, after, path)
        elif before != after:
            yield path, before, after


class ConfigFileHandler(FileSystemEventHandler):
    """Reloads the config when its file is modified, at most once per cooldown."""

    COOLDOWN_SECONDS = 1.0

    def __init__(self, config: "Config"):
        self.config = config
        self._last_reload = 0.0

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent) or event.src_path != str(self.config.config_file):
            return
        now = time.monotonic()
        if now - self._last_reload < self.COOLDOWN_SECONDS:
            return
        self._last_reload = now
        self.config.reload()


class Config:
    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
        else:
            self.config_file = DEFAULT_CONFIG_DIR / "config.yaml"
        self.config_dir = self.config_file.parent
        self.change_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self._reload_lock = threading.Lock()
        self.observer = None

        self._load_env()
        if not self.config_file.exists():
            self._write_defaults()
        self.data = self._read()
        if self.data is None:
            logger.warning("Using default configuration")
            self.data = default_config(self.config_dir)

        if watch:
            self.observer = Observer()
            self.observer.schedule(ConfigFileHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()
            logger.info(f"Watching {self.config_file} for changes")

    def _load_env(self) -> None:
        for candidate in (self.config_dir / ".env", Path.cwd() / ".env"):
            if candidate.exists():
                logger.info(f"Loading environment variables from {candidate}")
                try:
                    load_env_file(candidate)
                except OSError as e:
                    logger.warning(f"Cannot read {candidate}: {e}")
                return

    def _write_defaults(self) -> None:
        logger.info(f"Creating default config file: {self.config_file}")
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(yaml.safe_dump(default_config(self.config_dir), allow_unicode=True))

    def _read(self) -> Optional[Dict[str, Any]]:
        """Parsed and expanded config with missing sections filled in; None when unusable."""
        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Cannot read config {self.config_file}: {e}")
            return None
        if not isinstance(data, dict):
            logger.error(f"Config {self.config_file} must be a mapping, not {type(data).__name__}")
            return None

        data = expand_env(data)
        for section, value in default_config(self.config_dir).items():
            data.setdefault(section, value)
        logging_config = data.get("logging")
        if isinstance(logging_config, dict) and logging_config.get("file"):
            logging_config["file"] = os.path.expanduser(logging_config["file"])
        return data

    def register_change_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Re-read the file and notify callbacks. Concurrent reloads are dropped."""
        if not self._reload_lock.acquire(blocking=False):
            return
        try:
            time.sleep(0.1)
            new_data = self._read()
            if new_data is None:
                logger.warning("Keeping previous configuration")
                return
            for key, before, after in changed_keys(self.data, new_data):
                logger.info(f"Config changed: {key}: {before!r} -> {after!r}")
            self.data = new_data
            for callback in self.change_callbacks:
                try:
                    callback(new_data)
                except Exception as e:
                    logger.exception(f"Config change callback failed: {e}")
        finally:
            self._reload_lock.release()

    def get_component_config(self, component_name: str) -> Optional[Dict[str, Any]]:
        return (self.data.get("components") or {}).get(component_name)

    def cleanup(self) -> None:
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
