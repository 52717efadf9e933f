"""Result and error types for spawned processes.

The result class depends only on which output handlers the caller supplied:

    handlers supplied    class                    fields
    none                 SpawnResultWithOutput    code, signal, stdout, stderr
    on_stdout only       SpawnResultWithStderr    code, signal, stderr
    on_stderr only       SpawnResultWithStdout    code, signal, stdout
    both                 SpawnResult              code, signal

Failures carry the same object as ``ProcessError.cause``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

__all__ = [
    "ABORT_SIGNAL_NAME",
    "AbortedError",
    "OutputHandler",
    "ProcessError",
    "SpawnResult",
    "SpawnResultWithOutput",
    "SpawnResultWithStderr",
    "SpawnResultWithStdout",
    "make_result",
]

# Reported as the signal of every cancellation failure
ABORT_SIGNAL_NAME = "SIGABRT"

# Handler signature: (chunk, abort) -> None
OutputHandler = Callable[[bytes, Callable[[], None]], None]


@dataclass(frozen=True)
class SpawnResult:
    """Outcome of a process run with both streams handled by callbacks.

    Attributes:
        code: Exit code, None if the process was terminated by a signal
        signal: Name of the terminating signal, None on normal exit
    """

    code: int | None
    signal: str | None

    @property
    def ok(self) -> bool:
        """True when the process exited with code 0 and no signal."""
        return self.code == 0 and self.signal is None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class SpawnResultWithStdout(SpawnResult):
    """Outcome with accumulated stdout (stderr went to a callback)."""

    stdout: str


@dataclass(frozen=True)
class SpawnResultWithStderr(SpawnResult):
    """Outcome with accumulated stderr (stdout went to a callback)."""

    stderr: str


@dataclass(frozen=True)
class SpawnResultWithOutput(SpawnResult):
    """Outcome with both streams accumulated."""

    stdout: str
    stderr: str


def make_result(
    code: int | None,
    signal: str | None,
    *,
    stdout: str | None = None,
    stderr: str | None = None,
) -> SpawnResult:
    """Build the result variant matching the accumulated streams.

    Args:
        code: Exit code or None
        signal: Terminating signal name or None
        stdout: Accumulated stdout, None when stdout went to a handler
        stderr: Accumulated stderr, None when stderr went to a handler
    """
    if stdout is not None and stderr is not None:
        return SpawnResultWithOutput(code=code, signal=signal, stdout=stdout, stderr=stderr)
    if stdout is not None:
        return SpawnResultWithStdout(code=code, signal=signal, stdout=stdout)
    if stderr is not None:
        return SpawnResultWithStderr(code=code, signal=signal, stderr=stderr)
    return SpawnResult(code=code, signal=signal)


class ProcessError(Exception):
    """Raised when a process exits with a non-zero code or by a signal.

    ``cause`` has the same shape as the result a successful run would have
    returned, including any output accumulated before the failure.
    """

    def __init__(self, message: str, cause: SpawnResult) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def code(self) -> int | None:
        return self.cause.code

    @property
    def signal(self) -> str | None:
        return self.cause.signal

    def __reduce__(self):
        return (type(self), (self.message, self.cause))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, cause={self.cause!r})"


class AbortedError(ProcessError):
    """Raised when the run is cancelled through its AbortSignal."""

    def __init__(self, cause: SpawnResult) -> None:
        super().__init__("Operation was aborted", cause)

    def __reduce__(self):
        return (type(self), (self.cause,))
