"""
Tests for logging configuration — level resolution and handler setup.
"""

import logging
from pathlib import Path

import pytest

from svcctl.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    ENV_LOG_LEVEL,
    _parse_level,
    resolve_level,
    setup_logging,
    setup_logging_from_env,
)


class TestResolveLevel:
    def test_default(self, monkeypatch):
        monkeypatch.delenv(ENV_LOG_LEVEL, raising=False)
        assert resolve_level() == "WARNING"

    def test_env(self, monkeypatch):
        monkeypatch.setenv(ENV_LOG_LEVEL, "INFO")
        assert resolve_level() == "INFO"

    @pytest.mark.parametrize(
        "flags, expected",
        [
            ({"debug": True, "verbose": True}, "DEBUG"),
            ({"verbose": True, "quiet": True}, "INFO"),
            ({"quiet": True}, "ERROR"),
        ],
    )
    def test_flags_beat_env(self, monkeypatch, flags: dict, expected: str):
        monkeypatch.setenv(ENV_LOG_LEVEL, "CRITICAL")
        assert resolve_level(**flags) == expected


class TestParseLevel:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("debug", logging.DEBUG),
            ("ERROR", logging.ERROR),
            ("", logging.WARNING),
            (None, logging.WARNING),
            ("LOUD", logging.WARNING),
            ("Formatter", logging.WARNING),
        ],
    )
    def test_parse(self, name, expected: int):
        assert _parse_level(name) == expected


class TestSetupLogging:
    def test_console_only(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.INFO

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "svcctl.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("svcctl.test").debug("to the file only")
        for h in root.handlers:
            h.flush()
        content = log_file.read_text()
        assert "to the file only" in content
        assert "svcctl.test" in content

    def test_from_env(self, tmp_path: Path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv(ENV_LOG_FILE, str(log_file))
        monkeypatch.setenv(ENV_LOG_FILE_LEVEL, "INFO")
        setup_logging_from_env("ERROR")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
