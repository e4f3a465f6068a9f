"""Non-blocking process spawner.

This module provides:
- Process launch offloaded to a ``WorkerPool`` (never on the loop thread)
- Pipe draining for ``Handle`` streams on the same pool
- Termination delivered back on the originating event loop

Key design points:
- One pool job per process reads every captured pipe with ``selectors``
  until EOF and only then waits for exit. Trailing output written just
  before exit is never lost, and no timers are involved.
- Chunks are re-enqueued with ``call_soon_threadsafe`` ahead of the job's
  own result, so every sink call happens before termination resolves.
- Drains are flushed and closed exactly once, on the loop, before the
  termination task completes. Chunks arriving later are dropped.
- One pool thread stays busy per live process. The pool size therefore
  bounds how many processes are drained at once; extra processes queue.
- There is no backpressure beyond the OS pipe buffer: while the loop is
  slow to run sink callbacks, decoded chunks accumulate in its ready queue.
"""

from __future__ import annotations

import asyncio
import logging
import os
import selectors
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import IO

from ..config import DEFAULT_READ_SIZE
from ..errors import ProcessLaunchError
from .output import Handle, OutputPolicy, Sink, StreamDecoder, popen_target
from .worker_pool import WorkerPool

__all__ = [
    "Drain",
    "ProcessHandle",
    "ProcessSpec",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a process to run.

    Attributes:
        executable: Path of the program the OS launches
        arguments: Arguments passed after the executable
    """

    executable: str
    arguments: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]


class Drain:
    """Reader side of one captured stream.

    The pool thread reads ``pipe`` and closes it at EOF. Everything else
    (decoding, sink calls, ``close``) runs on the event loop.
    """

    def __init__(self, name: str, pipe: IO[bytes], sink: Sink) -> None:
        self.name = name
        self.pipe = pipe
        self.bytes_read = 0
        self.closed = False
        self.error: Exception | None = None
        self._sink = sink
        self._decoder = StreamDecoder(self._deliver)

    def fileno(self) -> int:
        return self.pipe.fileno()

    def feed(self, chunk: bytes) -> None:
        if self.closed:
            logger.warning(f"Dropped {len(chunk)} bytes on closed {self.name} drain")
            return
        self.bytes_read += len(chunk)
        self._decoder.feed(chunk)

    def close(self) -> None:
        """Flush the decoder and stop delivering. Safe to call twice."""
        if self.closed:
            return
        try:
            self._decoder.flush()
        finally:
            self.closed = True

    def _deliver(self, text: str) -> None:
        if self.error is not None:
            return
        try:
            self._sink(text)
        except Exception as e:
            # re-raised from ProcessHandle.wait() once the process is done
            logger.debug(f"{self.name} sink raised {type(e).__name__}: {e}")
            self.error = e

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Drain({self.name}, {state}, bytes_read={self.bytes_read})"


class ProcessHandle:
    """One in-flight OS process plus its drains.

    Created only by ``ProcessHandle.start``; a handle always refers to a
    process that launched successfully.

    Example:
        lines = []
        handle = await ProcessHandle.start(
            ProcessSpec("/usr/bin/env", ["ls"]),
            Handle(lines.append),
            IGNORE,
            pool,
        )
        status = await handle.wait()
    """

    def __init__(
        self,
        spec: ProcessSpec,
        process: subprocess.Popen[bytes],
        pool: WorkerPool,
        loop: asyncio.AbstractEventLoop,
        drains: tuple[Drain, ...],
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        self.spec = spec
        self.process = process
        self.pool = pool
        self.loop = loop
        self.drains = drains
        self._read_size = read_size
        self._termination: asyncio.Task[int] | None = None
        self._returncode: int | None = None

    @classmethod
    async def start(
        cls,
        spec: ProcessSpec,
        stdout: OutputPolicy,
        stderr: OutputPolicy,
        pool: WorkerPool,
        *,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> "ProcessHandle":
        """Launch ``spec`` on ``pool`` and start draining its captured streams.

        Cancelling the caller does not abandon the launch: the spawn step
        is shielded, so pipes are always handed to a drain job.

        Raises:
            ProcessLaunchError: If the OS refuses to create the process
            WorkerPoolUnavailableError: If ``pool`` is not active
        """
        if read_size < 1:
            raise ValueError("read_size must be at least 1")
        loop = asyncio.get_running_loop()
        spawn = loop.create_task(cls._spawn(spec, stdout, stderr, pool, loop, read_size))
        return await asyncio.shield(spawn)

    @classmethod
    async def _spawn(
        cls,
        spec: ProcessSpec,
        stdout: OutputPolicy,
        stderr: OutputPolicy,
        pool: WorkerPool,
        loop: asyncio.AbstractEventLoop,
        read_size: int,
    ) -> "ProcessHandle":
        argv = spec.argv
        stdout_target = popen_target(stdout)
        stderr_target = popen_target(stderr)

        def _launch() -> subprocess.Popen[bytes]:
            # stdin=None would hand the child our own stdin
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=stdout_target,
                stderr=stderr_target,
            )

        try:
            process = await pool.run_if_active(_launch)
        except (OSError, ValueError) as e:
            # ValueError: arguments Popen rejects, such as embedded NUL bytes
            logger.debug(f"Launch failed argv={argv[0]}: {e}")
            raise ProcessLaunchError(argv, e) from e

        drains = []
        for name, policy, pipe in (
            ("stdout", stdout, process.stdout),
            ("stderr", stderr, process.stderr),
        ):
            if isinstance(policy, Handle) and pipe is not None:
                drains.append(Drain(name, pipe, policy.sink))

        handle = cls(spec, process, pool, loop, tuple(drains), read_size)
        logger.debug(
            f"Started process pid={process.pid} argv={argv[0]} "
            f"drains={[d.name for d in drains]}"
        )

        try:
            pumping = pool.run_if_active(handle._drain_and_wait)
        except BaseException:
            logger.warning(
                f"Could not schedule wait for pid={process.pid}; closing its pipes"
            )
            for drain in drains:
                drain.close()
                drain.pipe.close()
            raise

        handle._termination = loop.create_task(handle._observe_termination(pumping))
        return handle

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        """Exit status once termination has been observed, else None."""
        return self._returncode

    @property
    def termination(self) -> asyncio.Task[int]:
        """Task resolving with the exit status after all drains are closed."""
        if self._termination is None:
            raise RuntimeError("ProcessHandle was not created by start()")
        return self._termination

    async def wait(self) -> int:
        """Wait for exit and return the raw exit status.

        Every call returns the same cached result. Negative values mean
        the process was killed by that signal number.

        Raises:
            Exception: Whatever a ``Handle`` sink raised while capturing
        """
        if asyncio.get_running_loop() is not self.loop:
            raise RuntimeError("ProcessHandle awaited from a different event loop")
        return await asyncio.shield(self.termination)

    def _drain_and_wait(self) -> int:
        """Read every captured pipe to EOF, then wait for exit.

        Runs on a pool thread. If the originating loop closes first (a
        timed-out caller whose loop has finished), reading continues and
        the output is discarded so the child never blocks on a full pipe.
        Pipes are always closed and the child always reaped.
        """
        try:
            if self.drains:
                self._pump_pipes()
        finally:
            for drain in self.drains:
                drain.pipe.close()
            status = self.process.wait()
        return status

    def _pump_pipes(self) -> None:
        deliver = True
        with selectors.DefaultSelector() as selector:
            for drain in self.drains:
                selector.register(drain.fileno(), selectors.EVENT_READ, drain)
            while selector.get_map():
                for key, _ in selector.select():
                    drain = key.data
                    chunk = os.read(key.fd, self._read_size)
                    if not chunk:
                        selector.unregister(key.fd)
                        drain.pipe.close()
                        continue
                    if not deliver:
                        continue
                    try:
                        self.loop.call_soon_threadsafe(drain.feed, chunk)
                    except RuntimeError:
                        # loop is closed
                        logger.debug(
                            f"Loop closed before pid={self.pid} exited; "
                            f"discarding its remaining output"
                        )
                        deliver = False

    async def _observe_termination(self, pumping: asyncio.Future[int]) -> int:
        try:
            status = await pumping
        finally:
            for drain in self.drains:
                drain.close()
        self._returncode = status
        logger.debug(f"Process exited pid={self.pid} returncode={status}")
        for drain in self.drains:
            if drain.error is not None:
                raise drain.error
        return status

    def __repr__(self) -> str:
        return (
            f"ProcessHandle(pid={self.pid}, argv={self.spec.argv!r}, "
            f"returncode={self._returncode})"
        )
