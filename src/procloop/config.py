"""procloop configuration.

Environment variables:
    PROCLOOP_ENV: development (default) | testing | production

    PROCLOOP_WORKERS: worker pool size
        - default 8, clamped to 1-256
        - each live process occupies one worker until it exits

    PROCLOOP_READ_SIZE: max bytes per pipe read
        - default 65536, clamped to 1-1048576

    PROCLOOP_EXECUTABLE: resolver used to launch commands
        - default /usr/bin/env (first argument resolved via PATH)

    PROCLOOP_LOG_LEVEL: level for the procloop logger namespace
        - default INFO, DEBUG in the testing environment

    PROCLOOP_LOG_FILE: write logs to this file instead of stderr

The configuration is an explicit value: build it with ``load_config`` and
pass it to ``Application``. Nothing is cached process-wide.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Config",
    "Environment",
    "load_config",
    "DEFAULT_EXECUTABLE",
    "DEFAULT_READ_SIZE",
    "DEFAULT_WORKERS",
]

DEFAULT_EXECUTABLE = "/usr/bin/env"
DEFAULT_READ_SIZE = 65536
DEFAULT_WORKERS = 8

MAX_WORKERS = 256
MAX_READ_SIZE = 1 << 20


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Parse an environment name; unknown values map to DEVELOPMENT.

        Accepts the short forms ``dev``, ``test`` and ``prod``.
        """
        value = value.lower().strip()
        aliases = {"dev": "development", "test": "testing", "prod": "production"}
        value = aliases.get(value, value)
        for env in cls:
            if env.value == value:
                return env
        return cls.DEVELOPMENT


@dataclass(frozen=True)
class Config:
    """procloop configuration.

    Attributes:
        environment: Deployment environment
        workers: Worker pool size
        read_size: Max bytes per pipe read
        executable: Resolver used to launch commands
        log_level: Level name for the procloop logger namespace
        log_file: Log file path (None = stderr)
    """

    environment: Environment = Environment.DEVELOPMENT
    workers: int = DEFAULT_WORKERS
    read_size: int = DEFAULT_READ_SIZE
    executable: str = DEFAULT_EXECUTABLE
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def for_testing(cls, **overrides) -> "Config":
        """Configuration used by test suites."""
        values = {"environment": Environment.TESTING, "workers": 4, "log_level": "DEBUG"}
        values.update(overrides)
        return cls(**values)

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def _parse_int(value: str | None, default: int, low: int, high: int) -> int:
    """Parse an integer variable, clamped to [low, high]."""
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        return default
    return max(low, min(number, high))


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from environment variables (defaults to os.environ)."""
    if environ is None:
        environ = os.environ

    environment = Environment.from_string(environ.get("PROCLOOP_ENV", ""))
    default_level = "DEBUG" if environment is Environment.TESTING else "INFO"

    return Config(
        environment=environment,
        workers=_parse_int(environ.get("PROCLOOP_WORKERS"), DEFAULT_WORKERS, 1, MAX_WORKERS),
        read_size=_parse_int(
            environ.get("PROCLOOP_READ_SIZE"), DEFAULT_READ_SIZE, 1, MAX_READ_SIZE
        ),
        executable=environ.get("PROCLOOP_EXECUTABLE") or DEFAULT_EXECUTABLE,
        log_level=(environ.get("PROCLOOP_LOG_LEVEL") or default_level).upper(),
        log_file=environ.get("PROCLOOP_LOG_FILE") or None,
    )
