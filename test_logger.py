"""
Tests for loguru sink setup.
"""

import pytest
from loguru import logger

from mm_engine.strategy.order_tracker import OrderTracker
from mm_engine.utils.config import LoggingConfig, load_config
from mm_engine.utils.exceptions import ConfigurationError
from mm_engine.utils.logger import HOT_PATH_MODULES, LogConfig, LogLevel, get_logger


@pytest.fixture
def log_setup():
    lc = LogConfig()
    yield lc
    lc.unmute_hot_paths()
    logger.remove()


def test_file_sink_records_component(log_setup, tmp_path):
    path = str(tmp_path / "engine.log")
    log_setup.apply(LoggingConfig(log_level="SILENT", log_file=path))

    logger.bind(component="engine").info("quote ladder refreshed")
    assert log_setup.remove_file_logging(path)

    content = (tmp_path / "engine.log").read_text()
    assert "quote ladder refreshed" in content
    assert "'component': 'engine'" in content
    assert log_setup.current_level == LogLevel.SILENT


def test_add_file_logging_is_idempotent(log_setup, tmp_path):
    path = str(tmp_path / "engine.log")
    log_setup.setup_logging(LogLevel.SILENT)
    first = log_setup.add_file_logging(path)
    assert log_setup.add_file_logging(path) == first
    assert log_setup.remove_file_logging(path)
    assert not log_setup.remove_file_logging(path)


def test_muted_hot_paths(log_setup, tmp_path):
    path = str(tmp_path / "engine.log")
    log_setup.apply(LoggingConfig(log_level="SILENT", log_file=path, mute_hot_paths=True))
    assert log_setup.muted == HOT_PATH_MODULES

    # Unknown-order warnings come from a muted module
    OrderTracker().on_fill(7, 1.0, 100.0)
    log_setup.unmute_hot_paths()
    OrderTracker().on_fill(8, 1.0, 100.0)
    log_setup.remove_file_logging(path)

    content = (tmp_path / "engine.log").read_text()
    assert "unknown order 7" not in content
    assert "unknown order 8" in content


def test_get_logger_binds_component():
    bound = get_logger("risk")
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="INFO")
    try:
        bound.info("limit reached")
    finally:
        logger.remove(sink_id)
    assert records[0]["extra"]["component"] == "risk"


def test_logging_section_validation():
    cfg = load_config(logging={'log_level': 'VERBOSE', 'mute_hot_paths': True})
    assert cfg.logging.log_level == "VERBOSE"
    assert cfg.to_dict()['logging']['mute_hot_paths'] is True

    with pytest.raises(ConfigurationError):
        load_config(logging={'log_level': 'LOUD'})
