"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Make src importable without installing
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from procloop.config import Config  # noqa: E402
from procloop.runtime import WorkerPool  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
EMIT_SCRIPT = FIXTURES_DIR / "emit.py"

IS_WINDOWS = sys.platform == "win32"


def emit_argv(*options: str) -> list[str]:
    """Arguments running the emit fixture with the current interpreter."""
    return [str(EMIT_SCRIPT), *options]


@pytest.fixture
def config() -> Config:
    return Config.for_testing()


@pytest.fixture
def pool():
    """Started worker pool, shut down after the test."""
    with WorkerPool(4, thread_name_prefix="procloop-test") as pool:
        yield pool
