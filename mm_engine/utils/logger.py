"""
Logging Setup
============

loguru sinks for the engine. Console verbosity follows a LogLevel, an
optional rotating file sink records everything at DEBUG, and the per-tick
modules can be muted for long replays.
"""

import sys
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger


class LogLevel(Enum):
    """Console verbosity"""
    SILENT = "SILENT"           # Only critical errors
    QUIET = "QUIET"             # Errors and warnings only
    NORMAL = "NORMAL"           # Info, warnings, and errors
    VERBOSE = "VERBOSE"         # Debug and above
    TRACE = "TRACE"             # Everything


LEVEL_MAPPING = {
    LogLevel.SILENT: "CRITICAL",
    LogLevel.QUIET: "WARNING",
    LogLevel.NORMAL: "INFO",
    LogLevel.VERBOSE: "DEBUG",
    LogLevel.TRACE: "TRACE"
}

_SHORT_FORMAT = "<level>{level}</level> | {message}"
_TICK_FORMAT = ("<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> | {message}")
_FULL_FORMAT = ("<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | {message}")

CONSOLE_FORMATS = {
    LogLevel.SILENT: _SHORT_FORMAT,
    LogLevel.QUIET: _SHORT_FORMAT,
    LogLevel.NORMAL: _TICK_FORMAT,
    LogLevel.VERBOSE: _FULL_FORMAT,
    LogLevel.TRACE: _FULL_FORMAT
}

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {extra} | {message}"

# Modules that log on every tick
HOT_PATH_MODULES = [
    "mm_engine.strategy.pricing",
    "mm_engine.strategy.order_manager",
    "mm_engine.strategy.order_tracker",
    "mm_engine.engine.market_making_engine",
]


class LogConfig:
    """Owns the engine's loguru sinks"""

    def __init__(self):
        self.current_level = LogLevel.NORMAL
        self.file_sinks: Dict[str, int] = {}
        self.muted: List[str] = []
        self._initialized = False

    def setup_logging(self,
                      level: LogLevel = LogLevel.NORMAL,
                      show_backtrace: bool = False,
                      show_diagnose: bool = False) -> None:
        """
        Replace every sink with a single stderr sink

        Args:
            level: Console verbosity
            show_backtrace: Extend tracebacks beyond the catching frame
            show_diagnose: Show variable values in tracebacks
        """
        logger.remove()
        self.file_sinks.clear()

        logger.add(
            sys.stderr,
            format=CONSOLE_FORMATS[level],
            level=LEVEL_MAPPING[level],
            backtrace=show_backtrace,
            diagnose=show_diagnose,
            colorize=True
        )

        self.current_level = level
        self._initialized = True

        if level != LogLevel.SILENT:
            logger.debug(f"Console logging at {level.value}")

    def add_file_logging(self,
                         filepath: str,
                         level: LogLevel = LogLevel.VERBOSE,
                         rotation: str = "10 MB",
                         retention: str = "7 days") -> int:
        """Add a rotating file sink; returns the loguru sink id"""
        if filepath in self.file_sinks:
            return self.file_sinks[filepath]

        sink_id = logger.add(
            filepath,
            format=FILE_FORMAT,
            level=LEVEL_MAPPING[level],
            rotation=rotation,
            retention=retention,
            backtrace=True,
            diagnose=False
        )
        self.file_sinks[filepath] = sink_id

        logger.info(f"File logging enabled: {filepath}")
        return sink_id

    def remove_file_logging(self, filepath: str) -> bool:
        sink_id = self.file_sinks.pop(filepath, None)
        if sink_id is None:
            return False
        logger.remove(sink_id)
        return True

    def mute_hot_paths(self, modules: Optional[List[str]] = None) -> None:
        """Disable per-tick modules; warnings from them are muted too"""
        for module in modules or HOT_PATH_MODULES:
            logger.disable(module)
            if module not in self.muted:
                self.muted.append(module)

    def unmute_hot_paths(self) -> None:
        for module in self.muted:
            logger.enable(module)
        self.muted = []

    def apply(self, settings) -> None:
        """Configure sinks from a LoggingConfig section"""
        self.setup_logging(level=LogLevel[settings.log_level],
                           show_backtrace=settings.log_level in ("VERBOSE", "TRACE"))
        if settings.log_file:
            self.add_file_logging(settings.log_file,
                                  rotation=settings.log_rotation,
                                  retention=settings.log_retention)
        if settings.mute_hot_paths:
            self.mute_hot_paths()
        else:
            self.unmute_hot_paths()


# Process-wide sink owner
log_config = LogConfig()


def configure_logging(settings) -> LogConfig:
    """Apply the logging section of a Config"""
    log_config.apply(settings)
    return log_config


def setup_replay_logging():
    """Long replays: warnings and errors only, per-tick modules muted"""
    log_config.setup_logging(level=LogLevel.QUIET)
    log_config.mute_hot_paths()


def setup_development_logging():
    log_config.setup_logging(level=LogLevel.VERBOSE, show_backtrace=True, show_diagnose=True)
    log_config.unmute_hot_paths()


def setup_silent_logging():
    log_config.setup_logging(level=LogLevel.SILENT)


def get_logger(component: str):
    """
    Logger bound to an engine component name

    The name shows up in the file sink's extra field.
    """
    if not log_config._initialized:
        log_config.setup_logging()

    return logger.bind(component=component)
