import logging
import os
from datetime import datetime

import pytest

from url_render_service.core import logger as logger_module
from url_render_service.core.logger import LEVEL_FILES, DatedFileHandler, _LevelRangeFilter, reset_logging, setup_logging


class SteppingClock:
    def __init__(self, *moments):
        self.moments = list(moments)

    def __call__(self):
        return self.moments[0] if len(self.moments) == 1 else self.moments.pop(0)


def _record(level, msg="hello"):
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


def test_dated_handler_switches_directory_at_midnight(tmp_path):
    clock = SteppingClock(datetime(2026, 10, 17, 23, 59), datetime(2026, 10, 17, 23, 59), datetime(2026, 10, 18, 0, 1))
    handler = DatedFileHandler(str(tmp_path), "info.log", clock=clock)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.emit(_record(logging.INFO, "before"))
    handler.emit(_record(logging.INFO, "after"))
    handler.close()

    with open(os.path.join(str(tmp_path), "2026-10-17", "info.log"), encoding="utf-8") as f:
        assert f.read().strip() == "before"
    with open(os.path.join(str(tmp_path), "2026-10-18", "info.log"), encoding="utf-8") as f:
        assert f.read().strip() == "after"


def test_level_files_partition_levels():
    routes = {name: _LevelRangeFilter(lo, hi) for name, lo, hi in LEVEL_FILES}
    assert routes["info.log"].filter(_record(logging.INFO))
    assert not routes["info.log"].filter(_record(logging.WARNING))
    assert routes["warn.log"].filter(_record(logging.WARNING))
    assert routes["error.log"].filter(_record(logging.CRITICAL))
    assert not routes["error.log"].filter(_record(logging.WARNING))


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logger_module._logging_initialized = True


def test_setup_logging_writes_per_level_files(tmp_path, mock_config, restore_root_logger):
    config = mock_config(settings={"logging": {
        "level": "DEBUG",
        "format": "%(levelname)s %(message)s",
        "handlers": {"console": {"enabled": False}, "file": {"enabled": True, "base_dir": str(tmp_path)}},
    }})
    reset_logging()
    setup_logging(config)

    log = logging.getLogger("url_render_service.test")
    log.info("render started")
    log.warning("slow page")
    log.error("render failed")
    for handler in restore_root_logger.handlers:
        handler.flush()

    day_dir = os.path.join(str(tmp_path), datetime.now().strftime("%Y-%m-%d"))
    with open(os.path.join(day_dir, "info.log"), encoding="utf-8") as f:
        info = f.read()
    with open(os.path.join(day_dir, "warn.log"), encoding="utf-8") as f:
        warn = f.read()
    with open(os.path.join(day_dir, "error.log"), encoding="utf-8") as f:
        error = f.read()
    assert "render started" in info and "slow page" not in info
    assert "slow page" in warn and "render failed" not in warn
    assert "render failed" in error


def test_setup_logging_without_section_falls_back(mock_config, restore_root_logger):
    reset_logging()
    setup_logging(mock_config(settings={}))
    assert logger_module._logging_initialized is True
