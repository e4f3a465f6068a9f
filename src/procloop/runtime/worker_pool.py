"""Bounded worker pool bridged to asyncio event loops.

Blocking calls (process launch, pipe reads, wait-for-exit) run on pool
threads. The returned future belongs to the loop that submitted the call,
so continuations always resume on that loop's thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from ..config import DEFAULT_WORKERS
from ..errors import WorkerPoolUnavailableError

__all__ = ["WorkerPool"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """Thread pool that only accepts work while active.

    Example:
        with WorkerPool(4) as pool:
            status = await pool.run_if_active(process.wait)
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_WORKERS,
        *,
        thread_name_prefix: str = "procloop-worker",
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.thread_name_prefix = thread_name_prefix
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        with self._lock:
            if self._closed:
                raise WorkerPoolUnavailableError("worker pool has been shut down")
            if self._executor is not None:
                return
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix=self.thread_name_prefix,
            )
        logger.debug(f"Worker pool started (max_workers={self.max_workers})")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work. Queued and running calls still complete."""
        with self._lock:
            executor = self._executor
            self._executor = None
            self._closed = True
        if executor is None:
            return
        executor.shutdown(wait=wait)
        logger.debug("Worker pool shut down")

    def run_if_active(self, fn: Callable[..., T], *args: Any) -> asyncio.Future[T]:
        """Run ``fn(*args)`` on a pool thread.

        Must be called from a running event loop; the future resolves on it.

        Raises:
            WorkerPoolUnavailableError: If the pool is not started or shut down
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            executor = self._executor
            if executor is None:
                raise WorkerPoolUnavailableError("worker pool is not active")
            try:
                return loop.run_in_executor(executor, fn, *args)
            except RuntimeError as e:
                # executor refuses new work during interpreter shutdown
                raise WorkerPoolUnavailableError(str(e)) from e

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"WorkerPool(max_workers={self.max_workers}, {state})"
