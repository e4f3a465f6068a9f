"""Config module tests.

Tests PROCLOOP_* environment variable parsing.
"""

from __future__ import annotations

import logging

import pytest

from procloop.config import (
    DEFAULT_EXECUTABLE,
    DEFAULT_READ_SIZE,
    DEFAULT_WORKERS,
    Config,
    Environment,
    load_config,
)


class TestDefaults:
    """Test defaults with an empty environment."""

    def test_empty_environment(self):
        config = load_config({})
        assert config == Config()
        assert config.environment is Environment.DEVELOPMENT
        assert config.workers == DEFAULT_WORKERS
        assert config.read_size == DEFAULT_READ_SIZE
        assert config.executable == DEFAULT_EXECUTABLE
        assert config.log_level == "INFO"
        assert config.log_file is None

    def test_for_testing(self):
        config = Config.for_testing(workers=2)
        assert config.environment is Environment.TESTING
        assert config.workers == 2
        assert config.log_level == "DEBUG"


class TestEnvironment:
    """Test PROCLOOP_ENV parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("production", Environment.PRODUCTION),
            ("PROD", Environment.PRODUCTION),
            (" testing ", Environment.TESTING),
            ("test", Environment.TESTING),
            ("dev", Environment.DEVELOPMENT),
            ("staging", Environment.DEVELOPMENT),
        ],
    )
    def test_from_string(self, value: str, expected: Environment):
        assert Environment.from_string(value) is expected

    def test_testing_defaults_to_debug_logging(self):
        assert load_config({"PROCLOOP_ENV": "testing"}).log_level == "DEBUG"

    def test_explicit_level_wins(self):
        config = load_config({"PROCLOOP_ENV": "testing", "PROCLOOP_LOG_LEVEL": "warning"})
        assert config.log_level == "WARNING"
        assert config.log_level_value == logging.WARNING


class TestNumbers:
    """Test numeric variables."""

    def test_workers(self):
        assert load_config({"PROCLOOP_WORKERS": "3"}).workers == 3

    @pytest.mark.parametrize("value", ["0", "-4"])
    def test_workers_clamped_low(self, value: str):
        assert load_config({"PROCLOOP_WORKERS": value}).workers == 1

    def test_workers_clamped_high(self):
        assert load_config({"PROCLOOP_WORKERS": "100000"}).workers == 256

    @pytest.mark.parametrize("value", ["", "many", "1.5"])
    def test_invalid_falls_back(self, value: str):
        assert load_config({"PROCLOOP_WORKERS": value}).workers == DEFAULT_WORKERS

    def test_read_size(self):
        assert load_config({"PROCLOOP_READ_SIZE": "1"}).read_size == 1


class TestStrings:
    """Test string variables."""

    def test_executable(self):
        assert load_config({"PROCLOOP_EXECUTABLE": "/bin/env"}).executable == "/bin/env"

    def test_log_file(self, tmp_path):
        path = str(tmp_path / "procloop.log")
        assert load_config({"PROCLOOP_LOG_FILE": path}).log_file == path

    def test_unknown_level_value(self):
        assert Config(log_level="LOUD").log_level_value == logging.INFO

    def test_config_is_immutable(self):
        with pytest.raises(AttributeError):
            Config().workers = 3  # type: ignore[misc]
