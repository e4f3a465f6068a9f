"""WorkerPool unit tests."""

from __future__ import annotations

import asyncio
import threading

import pytest

from procloop.errors import ProcessUtilityError, WorkerPoolUnavailableError
from procloop.runtime import WorkerPool


class TestLifecycle:
    """Test start/shutdown behaviour."""

    def test_not_active_until_started(self):
        pool = WorkerPool(2)
        assert not pool.is_active
        pool.start()
        assert pool.is_active
        pool.shutdown()
        assert not pool.is_active

    def test_shutdown_is_idempotent(self):
        pool = WorkerPool(2)
        pool.start()
        pool.shutdown()
        pool.shutdown()
        assert not pool.is_active

    def test_cannot_restart_after_shutdown(self):
        pool = WorkerPool(1)
        pool.start()
        pool.shutdown()
        with pytest.raises(WorkerPoolUnavailableError):
            pool.start()

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            WorkerPool(0)

    def test_unavailable_is_a_procloop_error(self):
        assert issubclass(WorkerPoolUnavailableError, ProcessUtilityError)


class TestRunIfActive:
    """Test running blocking work."""

    @pytest.mark.asyncio
    async def test_runs_off_loop_thread(self, pool: WorkerPool):
        loop_thread = threading.get_ident()
        worker_thread = await pool.run_if_active(threading.get_ident)
        assert worker_thread != loop_thread

    @pytest.mark.asyncio
    async def test_passes_arguments(self, pool: WorkerPool):
        assert await pool.run_if_active(divmod, 7, 2) == (3, 1)

    @pytest.mark.asyncio
    async def test_propagates_exceptions(self, pool: WorkerPool):
        def boom() -> None:
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await pool.run_if_active(boom)

    @pytest.mark.asyncio
    async def test_resumes_on_calling_loop(self, pool: WorkerPool):
        loop = asyncio.get_running_loop()
        future = pool.run_if_active(lambda: 1)
        assert future.get_loop() is loop
        assert await future == 1

    @pytest.mark.asyncio
    async def test_unstarted_pool_unavailable(self):
        with pytest.raises(WorkerPoolUnavailableError):
            WorkerPool(1).run_if_active(lambda: None)

    @pytest.mark.asyncio
    async def test_shut_down_pool_unavailable(self):
        pool = WorkerPool(1)
        pool.start()
        pool.shutdown()
        with pytest.raises(WorkerPoolUnavailableError):
            pool.run_if_active(lambda: None)

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self):
        """No more than max_workers calls run at once."""
        lock = threading.Lock()
        running = 0
        peak = 0
        release = threading.Event()

        def work() -> None:
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            release.wait(timeout=5)
            with lock:
                running -= 1

        with WorkerPool(2) as pool:
            futures = [pool.run_if_active(work) for _ in range(5)]
            await asyncio.sleep(0.1)
            release.set()
            await asyncio.gather(*futures)

        assert peak == 2
