"""procloop exception hierarchy.

Launch and worker-pool failures surface immediately from the runtime layer.
A non-zero exit status is plain data in ``ProcessResult``; only the
convenience operations turn it into ``ProcessError``.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "ProcessUtilityError",
    "ProcessLaunchError",
    "WorkerPoolUnavailableError",
    "ProcessError",
    "ProcessOutputError",
]


class ProcessUtilityError(Exception):
    """Base class for every procloop failure."""
    pass


class ProcessLaunchError(ProcessUtilityError):
    """The OS refused to create the process.

    Attributes:
        argv: Full argument vector that was passed to the OS
        reason: Underlying OSError, or the ValueError Popen raises for
            arguments it cannot pass to the OS
    """

    def __init__(self, argv: Sequence[str], reason: OSError | ValueError) -> None:
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"failed to launch {self.argv[0]!r}: {reason}")


class WorkerPoolUnavailableError(ProcessUtilityError):
    """The worker pool is not started or has been shut down."""
    pass


class ProcessError(ProcessUtilityError):
    """A process exited with a non-zero status.

    Attributes:
        message: Captured diagnostic text (stderr), may be empty
        status: Exit status
        arguments: Arguments the process was run with
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        arguments: Sequence[str] = (),
    ) -> None:
        self.message = message
        self.status = status
        self.arguments = list(arguments)
        super().__init__(message)

    def __str__(self) -> str:
        command = " ".join(self.arguments) or "process"
        kind = f"{command} exited with status {self.status}"
        if self.message:
            return f"{kind}: {self.message}"
        return kind


class ProcessOutputError(ProcessUtilityError):
    """A tool's output could not be decoded."""
    pass
