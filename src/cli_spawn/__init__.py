"""cli-spawn - run a command, stream or collect its output, settle once.

Environment variables:
    CLI_SPAWN_ENCODING: encoding for accumulated output (default utf-8)
    CLI_SPAWN_DECODE_ERRORS: codec error handler (default replace)
    CLI_SPAWN_CHUNK_SIZE: bytes per pipe read (default 65536)
    CLI_SPAWN_LOG_DEBUG: debug logging to a temp file (default false)

Usage:
    result = await spawn("echo", ["hello world"])
"""

__version__ = "0.1.0"

from .runtime import (
    AbortController,
    AbortedError,
    AbortSignal,
    ProcessError,
    ProcessRunner,
    SpawnRequest,
    SpawnResult,
    SpawnResultWithOutput,
    SpawnResultWithStderr,
    SpawnResultWithStdout,
    spawn,
)

__all__ = [
    "__version__",
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
