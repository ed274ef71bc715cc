import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from swapdispatch.utils.logging import (
    Colors,
    DispatchLogger,
    LogLevel,
    ProgressTracker,
    SimpleFormatter,
    log_detail,
    setup_logging,
)


class DummyRecord(logging.LogRecord):
    def __init__(self, levelname, msg):
        super().__init__(name="test", level=getattr(logging, levelname), pathname=__file__, lineno=0, msg=msg, args=(), exc_info=None)
        self.levelname = levelname


class DummyBar:
    def __init__(self):
        self.updates = []
        self.writes = []
        self.closed = False

    def update(self, n):
        self.updates.append(n)

    def write(self, msg):
        self.writes.append(msg)

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def restore_level(monkeypatch):
    for name in ("SWAPDISPATCH_EFFECTIVE_LOG_LEVEL", "SWAPDISPATCH_LOG_LEVEL"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    previous = DispatchLogger.get_level()
    yield
    monkeypatch.delenv("SWAPDISPATCH_EFFECTIVE_LOG_LEVEL", raising=False)
    DispatchLogger.set_level(previous)


@pytest.mark.parametrize("level, color", [
    ("DEBUG", Colors.GRAY),
    ("INFO", Colors.CYAN),
    ("WARNING", Colors.YELLOW),
    ("ERROR", Colors.RED),
    ("CRITICAL", Colors.RED + Colors.BOLD)
])
def test_simple_formatter_colors(level, color):
    fmt = SimpleFormatter()
    out = fmt.format(DummyRecord(level, "hello"))
    assert out.startswith(color)
    assert out.endswith(Colors.RESET)
    assert "hello" in out


def test_progress_tracker_advance_and_close(monkeypatch):
    import swapdispatch.utils.logging as logging_utils
    dummy = DummyBar()
    monkeypatch.setattr(logging_utils, "tqdm", lambda total, desc, bar_format: dummy)
    DispatchLogger.set_level(LogLevel.NORMAL)

    pt = ProgressTracker(["a", "b", "c"])
    pt.advance("msg1", status="success")
    pt.advance()
    pt.close()

    assert dummy.updates == [1, 1]
    assert any("msg1" in w for w in dummy.writes)
    assert any("completed" in w.lower() for w in dummy.writes)
    assert dummy.closed
    assert pt.current == 2


def test_progress_tracker_hidden_when_quiet(monkeypatch):
    import swapdispatch.utils.logging as logging_utils
    monkeypatch.setattr(logging_utils, "tqdm", MagicMock())
    DispatchLogger.set_level(LogLevel.QUIET)

    pt = ProgressTracker(["a"])
    pt.advance("ignored")
    pt.close()

    assert pt.pbar is None
    logging_utils.tqdm.assert_not_called()


class TestDispatchLogger:
    def test_configure_logger_level_invalid_env_var(self):
        with patch.dict(os.environ, {"SWAPDISPATCH_EFFECTIVE_LOG_LEVEL": "INVALID_LEVEL"}):
            logger = MagicMock()
            DispatchLogger._configure_logger_level(logger, LogLevel.VERBOSE)
            logger.setLevel.assert_called_with(logging.INFO)

    def test_env_var_overrides_level(self):
        with patch.dict(os.environ, {"SWAPDISPATCH_EFFECTIVE_LOG_LEVEL": "debug"}):
            logger = MagicMock()
            DispatchLogger._configure_logger_level(logger, LogLevel.NORMAL)
            logger.setLevel.assert_called_with(logging.DEBUG)

    @pytest.mark.parametrize("level, expected", [
        (LogLevel.QUIET, logging.ERROR),
        (LogLevel.NORMAL, logging.INFO),
        (LogLevel.DEBUG, logging.DEBUG),
    ])
    def test_configure_logger_level(self, level, expected):
        logger = MagicMock()
        DispatchLogger._configure_logger_level(logger, level)
        logger.setLevel.assert_called_with(expected)

    def test_get_logger_is_cached(self):
        assert DispatchLogger.get_logger("swapdispatch.test") is DispatchLogger.get_logger("swapdispatch.test")

    def test_detail_only_when_verbose(self):
        with patch.object(DispatchLogger, "get_logger") as get_logger:
            DispatchLogger._current_level = LogLevel.NORMAL
            log_detail("hidden")
            get_logger.assert_not_called()

            DispatchLogger._current_level = LogLevel.VERBOSE
            log_detail("shown")
            get_logger.assert_called_with("swapdispatch.detail")


class TestSetupLogging:
    def test_explicit_level(self, monkeypatch):
        setup_logging(LogLevel.DEBUG)
        assert DispatchLogger.get_level() == LogLevel.DEBUG
        assert os.environ["SWAPDISPATCH_EFFECTIVE_LOG_LEVEL"] == "DEBUG"
        assert logging.getLogger().level == logging.DEBUG

    @pytest.mark.parametrize("env_value, expected", [
        ("quiet", LogLevel.QUIET),
        ("verbose", LogLevel.VERBOSE),
        ("debug", LogLevel.DEBUG),
        ("", LogLevel.NORMAL),
        ("bogus", LogLevel.NORMAL),
    ])
    def test_level_from_environment(self, monkeypatch, env_value, expected):
        monkeypatch.setenv("SWAPDISPATCH_LOG_LEVEL", env_value)
        setup_logging()
        assert DispatchLogger.get_level() == expected

    def test_single_root_handler(self):
        setup_logging(LogLevel.NORMAL)
        setup_logging(LogLevel.NORMAL)
        handlers = logging.getLogger().handlers
        assert len([h for h in handlers if isinstance(h.formatter, SimpleFormatter)]) == 1
