"""Runtime module for non-blocking process execution.

Blocking process syscalls run on a bounded worker pool; results are
delivered back on the asyncio event loop that started the call.
"""

from __future__ import annotations

from .output import FORWARD, IGNORE, Forward, Handle, Ignore, OutputPolicy, StreamDecoder
from .process import Drain, ProcessHandle, ProcessSpec
from .worker_pool import WorkerPool

__all__ = [
    "Drain",
    "FORWARD",
    "Forward",
    "Handle",
    "IGNORE",
    "Ignore",
    "OutputPolicy",
    "ProcessHandle",
    "ProcessSpec",
    "StreamDecoder",
    "WorkerPool",
]
