"""
Configuration manager for the push relay.

Reads ``configs/relay_config.yml`` (or an explicit path), layers it over the
built-in defaults, validates it and exposes dot-path lookup and mutation.
Optional hot reload is provided through watchdog.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..core.presence import ContextRole

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Any], None]

DEFAULT_CONFIG: Dict[str, Any] = {
    "relay": {
        "role": ContextRole.HOST.value,
        "document_url": "about:blank",
    },
    "inbox": {
        "db_path": "./data/inbox.db",
        "table": "notification_opened",
    },
    "proxy": {
        # None keeps the listener count query waiting until the frame answers.
        "query_timeout": None,
    },
    "transport": {
        "queue_maxsize": 1000,
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for config file changes."""
    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self._last_modified = 0.0

    def on_modified(self, event):  # type: ignore[override]
        if not isinstance(event, FileModifiedEvent):
            return
        current_time = time.time()
        if current_time - self._last_modified < 0.5:
            return
        self._last_modified = current_time
        if Path(event.src_path) == self.config_manager.config_path:
            logger.info(f"Config file modified: {event.src_path}")
            try:
                self.config_manager.reload(notify=True)
            except Exception as e:
                logger.error(f"Failed to reload config: {e}")


class ConfigManager:
    """
    Thread-safe configuration holder.

    A missing file is not an error: the built-in defaults are used. An
    invalid file raises ``ValueError`` on load.
    """
    def __init__(self, config_path: Optional[Path] = None, watch: bool = False):
        self._lock = threading.RLock()
        self._config: Dict[str, Any] = {}
        self._observers: List[Observer] = []
        self._change_callbacks: List[ChangeCallback] = []
        if config_path is None:
            repo_root = Path(__file__).parent.parent.parent
            config_path = repo_root / "configs" / "relay_config.yml"
        self.config_path = Path(config_path)
        self.reload(notify=False)
        if watch:
            self.start_watching()

    def reload(self, notify: bool = True) -> None:
        with self._lock:
            if self.config_path.exists():
                logger.info(f"Loading configuration from {self.config_path}")
                config = _merge(DEFAULT_CONFIG, self._load_file())
            else:
                logger.info(f"No configuration at {self.config_path}; using defaults")
                config = copy.deepcopy(DEFAULT_CONFIG)
            valid, errors = self._validate_config(config)
            if not valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
                logger.error(error_msg)
                raise ValueError(error_msg)
            self._config = config
            if notify:
                self._notify_change("*", self._config)

    def _load_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load {self.config_path}: {e}")
            raise
        if not isinstance(data, dict):
            raise ValueError(f"Configuration root in {self.config_path} must be a mapping")
        return data

    def _validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        errors: List[str] = []
        for section in DEFAULT_CONFIG:
            if not isinstance(config.get(section), dict):
                errors.append(f"'{section}' must be a dict")
        if errors:
            return False, errors

        role = config["relay"].get("role")
        if role not in {r.value for r in ContextRole}:
            errors.append(f"relay.role must be one of {sorted(r.value for r in ContextRole)}, got {role!r}")
        if not isinstance(config["relay"].get("document_url"), str):
            errors.append("relay.document_url must be a string")

        db_path = config["inbox"].get("db_path")
        if not isinstance(db_path, str) or not db_path:
            errors.append("inbox.db_path must be a non-empty string")
        table = config["inbox"].get("table")
        if not isinstance(table, str) or not table.isidentifier():
            errors.append("inbox.table must be a plain identifier")

        timeout = config["proxy"].get("query_timeout")
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
            errors.append("proxy.query_timeout must be null or a positive number")

        maxsize = config["transport"].get("queue_maxsize")
        if isinstance(maxsize, bool) or not isinstance(maxsize, int) or maxsize < 0:
            errors.append("transport.queue_maxsize must be a non-negative integer")

        level = config["logging"].get("level")
        if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
            errors.append(f"logging.level must be one of {sorted(_LOG_LEVELS)}")
        return len(errors) == 0, errors

    def _notify_change(self, path: str, value: Any) -> None:
        for callback in self._change_callbacks:
            try:
                callback(path, value)
            except Exception as e:
                logger.error(f"Error in config change callback: {e}")

    def get(self, path: str, default: Any = None) -> Any:
        with self._lock:
            value: Any = self._config
            for key in path.split('.'):
                if not isinstance(value, dict):
                    return default
                value = value.get(key)
                if value is None:
                    return default
            return value

    def get_section(self, section: str, default: Any = None) -> Dict[str, Any]:
        if default is None:
            default = {}
        with self._lock:
            val = self._config.get(section, default)
            if isinstance(val, dict):
                return val
            return default

    def set(self, path: str, value: Any) -> None:
        """Set configuration value by dot-separated path."""
        with self._lock:
            keys = path.split(".")
            target = self._config
            for key in keys[:-1]:
                if key not in target:
                    target[key] = {}
                target = target[key]
            target[keys[-1]] = value
            self._notify_change(path, value)

    def save(self) -> None:
        """Save configuration to disk atomically."""
        with self._lock:
            valid, errors = self._validate_config(self._config)
            if not valid:
                error_msg = "Cannot save invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors)
                logger.error(error_msg)
                raise ValueError(error_msg)

            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.config_path.with_suffix(".tmp")
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False, indent=2)
                temp_path.replace(self.config_path)
                logger.info(f"Configuration saved to {self.config_path}")
            except Exception as e:
                if temp_path.exists():
                    temp_path.unlink()
                logger.error(f"Failed to save configuration: {e}")
                raise

    def start_watching(self) -> None:
        """Start file system watcher for hot-reload."""
        if not self.config_path.exists():
            logger.warning(f"Cannot watch non-existent config: {self.config_path}")
            return
        observer = Observer()
        observer.schedule(ConfigFileHandler(self), path=str(self.config_path.parent), recursive=False)
        observer.start()
        self._observers.append(observer)
        logger.info(f"Started watching config file: {self.config_path}")

    def stop_watching(self) -> None:
        for observer in self._observers:
            observer.stop()
            observer.join()
        self._observers.clear()

    def register_change_callback(self, callback: ChangeCallback) -> None:
        self._change_callbacks.append(callback)

    def export_to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._config)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_watching()


_global_config: Optional[ConfigManager] = None


def get_global_config() -> ConfigManager:
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager(watch=False)
    return _global_config


def reload_global_config() -> None:
    get_global_config().reload(notify=True)
