"""
Logging utilities for swapdispatch.

Provides a small leveled logger on top of the standard ``logging`` module with
colored console output, a tqdm-based progress tracker for simulation stages and
convenience helpers used across the code base.
"""

import logging
import os
from enum import Enum

from tqdm import tqdm


class LogLevel(Enum):
    """Verbosity levels understood by the dispatch logger."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


class Colors:
    """ANSI color codes for terminal output."""

    GRAY = "\033[90m"
    CYAN = "\033[36m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class Symbols:
    """Unicode symbols for status messages."""

    CHECK = "✓"
    CROSS = "✗"
    ROCKET = "🚀"
    GEAR = "⚙️"
    WARNING = "⚠️"
    BATTERY = "🔋"
    TRUCK = "🚚"


class SimpleFormatter(logging.Formatter):
    """Formatter that colors the whole message according to its level."""

    LEVEL_COLORS = {
        "DEBUG": Colors.GRAY,
        "INFO": Colors.CYAN,
        "WARNING": Colors.YELLOW,
        "ERROR": Colors.RED,
        "CRITICAL": Colors.RED + Colors.BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        return f"{color}{record.getMessage()}{Colors.RESET}"


_ENV_LEVEL = "SWAPDISPATCH_LOG_LEVEL"
_ENV_EFFECTIVE_LEVEL = "SWAPDISPATCH_EFFECTIVE_LOG_LEVEL"


class DispatchLogger:
    """Process-wide logger registry with a shared verbosity level."""

    _current_level: LogLevel = LogLevel.NORMAL
    _loggers: dict[str, logging.Logger] = {}

    @classmethod
    def set_level(cls, level: LogLevel) -> None:
        cls._current_level = level
        for logger in cls._loggers.values():
            cls._configure_logger_level(logger, level)

    @classmethod
    def get_level(cls) -> LogLevel:
        return cls._current_level

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a cached logger configured for the current level."""
        if name not in cls._loggers:
            logger = logging.getLogger(name)
            cls._configure_logger_level(logger, cls._current_level)
            cls._loggers[name] = logger
        return cls._loggers[name]

    @staticmethod
    def _configure_logger_level(logger: logging.Logger, level: LogLevel) -> None:
        # Child processes and late imports pick the level up from the environment.
        env_level = os.environ.get(_ENV_EFFECTIVE_LEVEL)
        if env_level:
            try:
                level = LogLevel[env_level.upper()]
            except KeyError:
                pass

        if level == LogLevel.QUIET:
            logger.setLevel(logging.ERROR)
        elif level == LogLevel.DEBUG:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)

    @classmethod
    def progress(cls, message: str, symbol: str = Symbols.GEAR) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("swapdispatch.progress").info(f"{symbol} {message}")

    @classmethod
    def success(cls, message: str, symbol: str = Symbols.CHECK) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("swapdispatch.success").info(
                f"{Colors.GREEN}{symbol} {message}{Colors.RESET}"
            )

    @classmethod
    def detail(cls, message: str, prefix: str = "   ") -> None:
        if cls._current_level.value >= LogLevel.VERBOSE.value:
            cls.get_logger("swapdispatch.detail").info(f"{prefix}{message}")

    @classmethod
    def debug(cls, message: str, logger_name: str = "swapdispatch.debug") -> None:
        if cls._current_level.value >= LogLevel.DEBUG.value:
            cls.get_logger(logger_name).debug(message)

    @classmethod
    def warning(cls, message: str, symbol: str = Symbols.WARNING) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("swapdispatch.warning").warning(f"{symbol} {message}")

    @classmethod
    def error(cls, message: str, symbol: str = Symbols.CROSS) -> None:
        cls.get_logger("swapdispatch.error").error(f"{symbol} {message}")


def suppress_third_party_logs() -> None:
    """Keep chatty dependencies at WARNING."""
    for name in ("numba", "matplotlib", "urllib3", "openpyxl"):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(level: LogLevel | None = None) -> None:
    """Configure the root logger and the shared dispatch level.

    When ``level`` is omitted the ``SWAPDISPATCH_LOG_LEVEL`` environment variable
    (quiet, verbose, debug) is honoured, defaulting to NORMAL.
    """
    if level is None:
        env_value = os.environ.get(_ENV_LEVEL, "").lower()
        if env_value == "quiet":
            level = LogLevel.QUIET
        elif env_value == "verbose":
            level = LogLevel.VERBOSE
        elif env_value == "debug":
            level = LogLevel.DEBUG
        else:
            level = LogLevel.NORMAL

    DispatchLogger.set_level(level)
    os.environ[_ENV_EFFECTIVE_LEVEL] = getattr(level, "name", "NORMAL")

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(SimpleFormatter())

    if level == LogLevel.QUIET:
        handler.setLevel(logging.ERROR)
        root_logger.setLevel(logging.ERROR)
    elif level == LogLevel.DEBUG:
        handler.setLevel(logging.DEBUG)
        root_logger.setLevel(logging.DEBUG)
    elif level in (LogLevel.NORMAL, LogLevel.VERBOSE):
        handler.setLevel(logging.INFO)
        root_logger.setLevel(logging.INFO)
    else:
        handler.setLevel(logging.INFO)
        root_logger.setLevel(logging.INFO)

    root_logger.addHandler(handler)
    suppress_third_party_logs()


class ProgressTracker:
    """Step-wise progress bar for the simulation stages."""

    def __init__(self, steps: list[str]):
        self.steps = steps
        self.current = 0
        self.show_progress = DispatchLogger.get_level() != LogLevel.QUIET
        self.pbar = None
        if self.show_progress:
            self.pbar = tqdm(
                total=len(steps),
                desc=f"{Colors.BOLD}{Symbols.TRUCK} Dispatch{Colors.RESET}",
                bar_format="{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt}",
            )

    def advance(self, message: str | None = None, status: str = "success") -> None:
        if self.pbar is not None:
            if message:
                color = Colors.GREEN if status == "success" else Colors.YELLOW
                self.pbar.write(f"{color}{message}{Colors.RESET}")
            self.pbar.update(1)
        self.current += 1

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.write(
                f"\n{Colors.GREEN}{Symbols.CHECK} Simulation completed{Colors.RESET}"
            )
            self.pbar.close()


def log_progress(message: str) -> None:
    DispatchLogger.progress(message, Symbols.GEAR)


def log_success(message: str) -> None:
    DispatchLogger.success(message, Symbols.CHECK)


def log_detail(message: str, prefix: str = "  ") -> None:
    DispatchLogger.detail(message, prefix)


def log_warning(message: str) -> None:
    DispatchLogger.warning(message, Symbols.WARNING)


def log_error(message: str) -> None:
    DispatchLogger.error(message, Symbols.CROSS)


def log_debug(message: str, logger_name: str = "swapdispatch.debug") -> None:
    DispatchLogger.debug(message, logger_name)


def log_info(message: str) -> None:
    if DispatchLogger.get_level().value >= LogLevel.NORMAL.value:
        DispatchLogger.get_logger("swapdispatch.info").info(message)
