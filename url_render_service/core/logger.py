"""
Centralized logging setup for the URL Render Service.

This module provides functions to configure and obtain logger instances
throughout the application. It uses the `ConfigurationManager` to load
logging settings from YAML configuration files, supporting a console handler
and date-partitioned per-level log files:

    logs/<YYYY-MM-DD>/info.log
    logs/<YYYY-MM-DD>/warn.log
    logs/<YYYY-MM-DD>/error.log

Key Functions:
- `setup_logging()`: Initializes the logging system based on external configuration.
                     Should be called once at application startup.
- `get_logger(name)`: Returns a logger instance for the specified module name.
                      Ensures logging is initialized with fallback if needed.
"""
import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from url_render_service.core.config import ConfigurationManager

# Relative log directories are resolved against the working directory, like the
# screenshot tree.
DEFAULT_LOG_BASE_DIR = "logs"

# (file name, minimum level, maximum level) for each dated log file.
LEVEL_FILES = (
    ("info.log", logging.DEBUG, logging.INFO),
    ("warn.log", logging.WARNING, logging.WARNING),
    ("error.log", logging.ERROR, logging.CRITICAL),
)

_logging_initialized = False


class _LevelRangeFilter(logging.Filter):
    """Passes records whose level lies within [min_level, max_level]."""

    def __init__(self, min_level: int, max_level: int):
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self.min_level <= record.levelno <= self.max_level


class DatedFileHandler(logging.FileHandler):
    """
    Appends to `<base_dir>/<YYYY-MM-DD>/<filename>`.

    The date directory is re-evaluated on every record, so a long-running process
    starts writing into a new directory on the first record after midnight.
    Files are never rotated or pruned here.
    """

    def __init__(self, base_dir: str, filename: str, clock: Callable[[], datetime] = datetime.now):
        self.base_dir = base_dir
        self.log_filename = filename
        self._clock = clock
        self._current_date = self._clock().strftime("%Y-%m-%d")
        super().__init__(self._path_for(self._current_date), mode="a", encoding="utf-8", delay=True)

    def _path_for(self, date_str: str) -> str:
        directory = os.path.join(self.base_dir, date_str)
        os.makedirs(directory, exist_ok=True)
        return os.path.abspath(os.path.join(directory, self.log_filename))

    def emit(self, record: logging.LogRecord) -> None:
        date_str = self._clock().strftime("%Y-%m-%d")
        if date_str != self._current_date:
            self.acquire()
            try:
                if self.stream:
                    self.stream.close()
                    self.stream = None
                self._current_date = date_str
                self.baseFilename = self._path_for(date_str)
            finally:
                self.release()
        super().emit(record)


def setup_logging(config: Optional[ConfigurationManager] = None) -> None:
    """
    Sets up centralized logging for the application using settings from the
    provided `ConfigurationManager` instance.

    Falls back to `logging.basicConfig` when no configuration (or no `logging`
    section) is available. Designed to be called once at application startup.
    """
    global _logging_initialized
    if _logging_initialized:
        logging.getLogger(__name__).debug("Logging setup_logging: Already initialized.")
        return

    current_config = config
    if current_config is None:
        from url_render_service.core.config import config_manager as global_config_manager
        current_config = global_config_manager

    log_settings: Optional[Dict[str, Any]] = current_config.get("logging")
    if not log_settings:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        logging.warning("Logging setup: 'logging' section not found in configuration. Using basicConfig.")
        _logging_initialized = True
        return

    log_level_str = str(log_settings.get("level", "INFO")).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    log_format = log_settings.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s - %(message)s")

    root_logger = logging.getLogger()
    # Drop handlers installed by basicConfig or an earlier setup.
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)
    formatter = logging.Formatter(log_format)

    handlers_settings = log_settings.get("handlers", {}) or {}
    console_enabled = (handlers_settings.get("console") or {}).get("enabled", False)
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    file_settings = handlers_settings.get("file") or {}
    file_enabled = file_settings.get("enabled", False)
    if file_enabled:
        base_dir = file_settings.get("base_dir", DEFAULT_LOG_BASE_DIR)
        try:
            for filename, min_level, max_level in LEVEL_FILES:
                file_handler = DatedFileHandler(base_dir, filename)
                file_handler.setFormatter(formatter)
                file_handler.addFilter(_LevelRangeFilter(min_level, max_level))
                root_logger.addHandler(file_handler)
        except OSError as e:
            logging.error(f"Logging setup: Failed to configure file logging under '{base_dir}': {e}. File logging disabled.", exc_info=True)

    _logging_initialized = True
    logging.info(f"Logging system initialized. Level: {log_level_str}.")
    if file_enabled:
        logging.debug(f"Dated file logging enabled under: {file_settings.get('base_dir', DEFAULT_LOG_BASE_DIR)}")


def reset_logging() -> None:
    """Allows `setup_logging()` to run again (used by tests and config reloads)."""
    global _logging_initialized
    _logging_initialized = False


def get_logger(name: str) -> logging.Logger:
    """
    Retrieves a logger instance with the specified name.

    Ensures `setup_logging()` has been called at least once before a logger is
    dispensed, so it is safe to call from any module at import time.
    """
    if not _logging_initialized:
        setup_logging()
    return logging.getLogger(name)
