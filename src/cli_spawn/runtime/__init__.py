"""Runtime module for process execution and cancellation.

This module runs a command, streams or collects its output and settles
exactly once, with cooperative cancellation through AbortSignal.
"""

from __future__ import annotations

from .abort import AbortController, AbortSignal
from .process_runner import ProcessRunner, SpawnRequest, spawn
from .types import (
    AbortedError,
    ProcessError,
    SpawnResult,
    SpawnResultWithOutput,
    SpawnResultWithStderr,
    SpawnResultWithStdout,
)

__all__ = [
    "AbortController",
    "AbortSignal",
    "AbortedError",
    "ProcessError",
    "ProcessRunner",
    "SpawnRequest",
    "SpawnResult",
    "SpawnResultWithOutput",
    "SpawnResultWithStderr",
    "SpawnResultWithStdout",
    "spawn",
]
