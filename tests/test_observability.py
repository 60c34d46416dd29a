"""
Tests for observability — console level resolution and logging setup.
"""

import logging
import sys

import pytest

from devbox.core.observability.logging_config import (
    console_formatter,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_default_is_warning(self):
        assert resolve_level(env={}) == "WARNING"

    def test_env_variable(self):
        assert resolve_level(env={"DEVBOX_LOG_LEVEL": "INFO"}) == "INFO"

    def test_flags_beat_env(self):
        env = {"DEVBOX_LOG_LEVEL": "CRITICAL"}
        assert resolve_level(debug=True, env=env) == "DEBUG"
        assert resolve_level(verbose=True, env=env) == "INFO"
        assert resolve_level(quiet=True, env=env) == "ERROR"

    def test_debug_beats_verbose_beats_quiet(self):
        assert resolve_level(debug=True, verbose=True, quiet=True, env={}) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True, env={}) == "INFO"


class TestSetupLogging:
    def test_single_console_handler(self):
        setup_logging("INFO")
        setup_logging("INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_unknown_level_falls_back_to_warning(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_has_own_level(self, tmp_path):
        log_file = tmp_path / "devbox.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        logging.getLogger("devbox.test").debug("step detail")
        for handler in root.handlers:
            handler.flush()
        assert "step detail" in log_file.read_text()

    def test_file_parent_directory_created(self, tmp_path):
        log_file = tmp_path / "state" / "devbox" / "run.log"
        setup_logging("WARNING", log_file=str(log_file))
        logging.getLogger("devbox.test").warning("disk full")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "disk full" in log_file.read_text()

    def test_console_stays_on_stderr(self):
        setup_logging("INFO")
        [console] = logging.getLogger().handlers
        assert console.stream is sys.stderr


class TestConsoleFormatter:
    def _format(self, level: int) -> str:
        record = logging.LogRecord("devbox.engine", logging.WARNING, "executor.py", 42, "go failed", None, None)
        return console_formatter(level).format(record)

    def test_warning_is_bare(self):
        assert self._format(logging.WARNING) == "go failed"

    def test_verbose_names_the_logger(self):
        assert self._format(logging.INFO).endswith("[devbox.engine] go failed")

    def test_debug_adds_location(self):
        line = self._format(logging.DEBUG)
        assert "devbox.engine:42: go failed" in line
        assert "WARN" in line
