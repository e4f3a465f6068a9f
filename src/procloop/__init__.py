"""procloop - run external processes from asyncio without blocking the loop.

Environment variables:
    PROCLOOP_ENV: development | testing | production
    PROCLOOP_WORKERS: worker pool size (default 8)
    PROCLOOP_LOG_LEVEL: log level for the procloop namespace

Usage:
    python -m procloop whoami
"""

__version__ = "0.1.0"

from .app import Application, ApplicationRoot, Context
from .config import Config, Environment, load_config
from .errors import (
    ProcessError,
    ProcessLaunchError,
    ProcessOutputError,
    ProcessUtilityError,
    WorkerPoolUnavailableError,
)
from .utility import ProcessResult, ProcessUtility

__all__ = [
    "__version__",
    "Application",
    "ApplicationRoot",
    "Config",
    "Context",
    "Environment",
    "ProcessError",
    "ProcessLaunchError",
    "ProcessOutputError",
    "ProcessResult",
    "ProcessUtility",
    "ProcessUtilityError",
    "WorkerPoolUnavailableError",
    "load_config",
]
