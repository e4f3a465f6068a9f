"""Process execution facade and convenience operations.

``ProcessUtility`` binds a worker pool and an event loop and turns
"run these arguments" into one awaitable ``ProcessResult``. A non-zero exit
status is data, not an error; the convenience operations (``cat``,
``SwiftPackage.dump``) are where it becomes ``ProcessError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

import anyio
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_EXECUTABLE, DEFAULT_READ_SIZE
from .errors import ProcessError, ProcessOutputError
from .runtime import Handle, ProcessHandle, ProcessSpec, WorkerPool

__all__ = [
    "PackageDump",
    "ProcessResult",
    "ProcessUtility",
    "SwiftPackage",
    "SwiftTool",
    "ToolsVersion",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one finished process.

    Attributes:
        status: Raw exit status (negative = killed by signal)
        output: Captured stdout, stripped
        error: Captured stderr, stripped
    """

    status: int
    output: str
    error: str

    @property
    def ok(self) -> bool:
        return self.status == 0

    def ensure_success(self, arguments: Sequence[str] = ()) -> "ProcessResult":
        """Return self, or raise ProcessError carrying stderr if status != 0."""
        if self.status != 0:
            raise ProcessError(self.error, status=self.status, arguments=arguments)
        return self


@dataclass(frozen=True)
class ProcessUtility:
    """Runs commands through ``executable`` (``/usr/bin/env`` by default).

    The pool and loop are borrowed; both must outlive every call. All
    coroutines must run on ``loop``.

    Example:
        utility = ProcessUtility(pool, asyncio.get_running_loop())
        result = await utility.run("ls", "-l")
        user = await utility.whoami()
    """

    pool: WorkerPool
    loop: asyncio.AbstractEventLoop
    executable: str = DEFAULT_EXECUTABLE
    read_size: int = DEFAULT_READ_SIZE

    async def run(self, *arguments: str, timeout: float | None = None) -> ProcessResult:
        return await self.execute(arguments, timeout=timeout)

    async def execute(
        self,
        arguments: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``arguments`` and collect status, stdout and stderr.

        Args:
            arguments: Argument vector; the first item names the program
            timeout: Seconds before giving up with ``TimeoutError``. The
                process is not killed and keeps running in the background.

        Raises:
            ProcessLaunchError: If the OS refuses to launch ``executable``
            WorkerPoolUnavailableError: If the pool is not active
            TimeoutError: If ``timeout`` expires
        """
        if asyncio.get_running_loop() is not self.loop:
            raise RuntimeError("ProcessUtility used from a different event loop")
        if timeout is None:
            return await self._collect(arguments)
        with anyio.fail_after(timeout):
            return await self._collect(arguments)

    async def _collect(self, arguments: Sequence[str]) -> ProcessResult:
        output: list[str] = []
        error: list[str] = []
        spec = ProcessSpec(self.executable, arguments)
        logger.debug(f"Executing: {' '.join(spec.argv)}")

        handle = await ProcessHandle.start(
            spec,
            Handle(output.append),
            Handle(error.append),
            self.pool,
            read_size=self.read_size,
        )
        status = await handle.wait()

        return ProcessResult(
            status=status,
            output="".join(output).strip(),
            error="".join(error).strip(),
        )

    async def whoami(self) -> str:
        """Name of the account this process runs as."""
        result = await self.run("whoami")
        return result.output

    async def cat(self, path: str) -> str:
        """Contents of ``path``.

        Raises:
            ProcessError: If ``cat`` fails; ``message`` holds its stderr
        """
        arguments = ("cat", path)
        result = await self.execute(arguments)
        return result.ensure_success(arguments).output

    @property
    def swift(self) -> "SwiftTool":
        return SwiftTool(process=self)


@dataclass(frozen=True)
class SwiftTool:
    """Runs ``swift`` subcommands."""

    process: ProcessUtility

    async def run(self, *arguments: str) -> ProcessResult:
        return await self.process.execute(["swift", *arguments])

    @property
    def package(self) -> "SwiftPackage":
        return SwiftPackage(swift=self)


@dataclass(frozen=True)
class SwiftPackage:
    """Runs ``swift package`` subcommands, optionally in another directory."""

    swift: SwiftTool
    directory_path: str | None = None

    def at(self, path: str) -> "SwiftPackage":
        return replace(self, directory_path=path)

    def _prefix(self) -> list[str]:
        prefix = ["package"]
        if self.directory_path is not None:
            prefix += ["-C", self.directory_path]
        return prefix

    async def run(self, *arguments: str) -> ProcessResult:
        return await self.swift.run(*self._prefix(), *arguments)

    async def dump(self) -> "PackageDump":
        """Parse ``swift package dump-package``.

        Raises:
            ProcessError: If the command exits non-zero
            ProcessOutputError: If the output is not a package description
        """
        result = await self.run("dump-package")
        result.ensure_success(["swift", *self._prefix(), "dump-package"])
        try:
            return PackageDump.model_validate_json(result.output)
        except ValidationError as e:
            raise ProcessOutputError(f"unexpected dump-package output: {e}") from e


class ToolsVersion(BaseModel):
    """``toolsVersion`` entry of a package dump."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    version: str = Field(alias="_version")


class PackageDump(BaseModel):
    """Subset of ``swift package dump-package`` output."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    name: str | None = None
    tools_version: ToolsVersion = Field(alias="toolsVersion")
