"""Process runner: spawn a command, stream or collect its output, settle once.

cli-spawn runtime module v0.1.0

This module provides:
- spawn(): run a command and return its result, or raise on failure
- Per-stream choice between a chunk callback and internal accumulation
- Cooperative cancellation through an AbortSignal (soft terminate)
- An abort() capability passed to every chunk callback (forced abort)

Key design points:
- Every invocation owns one _Execution holding all per-run state
- Reader tasks, the close watcher and the abort listener are the only
  listeners; one teardown routine detaches all of them before settlement
- Settlement goes through a single future guarded by done()
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import signal
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import overload

import anyio

from ..config import get_config
from .abort import AbortSignal
from .types import (
    ABORT_SIGNAL_NAME,
    AbortedError,
    OutputHandler,
    ProcessError,
    SpawnResult,
    SpawnResultWithOutput,
    SpawnResultWithStderr,
    SpawnResultWithStdout,
    make_result,
)

__all__ = [
    "IS_WINDOWS",
    "ProcessRunner",
    "SpawnRequest",
    "spawn",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Signals used for the two cancellation entry points
DEFAULT_ABORT_SIGNAL = signal.SIGABRT  # abort() from a chunk callback
DEFAULT_TERMINATE_SIGNAL = signal.SIGTERM  # AbortSignal / caller cancellation

# Escalation after a cancellation whose exit nobody waits for
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after the terminate signal
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

# Strong references to reaper tasks so they are not garbage collected
_background_tasks: set[asyncio.Task[None]] = set()


@dataclass(frozen=True)
class SpawnRequest:
    """A single command invocation.

    Attributes:
        command: Executable name or path
        args: Arguments passed to the command
        on_stdout: Callback for stdout chunks (None = accumulate)
        on_stderr: Callback for stderr chunks (None = accumulate)
        signal: Optional AbortSignal that cancels the run
    """

    command: str
    args: tuple[str, ...] = ()
    on_stdout: OutputHandler | None = None
    on_stderr: OutputHandler | None = None
    signal: AbortSignal | None = None

    def __post_init__(self) -> None:
        if isinstance(self.args, (str, bytes)):
            raise TypeError("args must be a sequence of strings, not a single string")
        object.__setattr__(self, "args", tuple(self.args))


def _describe_returncode(returncode: int) -> tuple[int | None, str | None]:
    """Split an asyncio returncode into (code, signal name).

    A negative returncode means the process was killed by that signal.
    """
    if returncode < 0:
        try:
            return None, signal.Signals(-returncode).name
        except ValueError:
            return None, f"SIG{-returncode}"
    return returncode, None


class _OutputBuffer:
    """Append-only text accumulator for one stream.

    Uses an incremental decoder so a multi-byte character split across two
    chunks decodes correctly.
    """

    def __init__(self, encoding: str, errors: str) -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._parts: list[str] = []

    def feed(self, chunk: bytes) -> None:
        text = self._decoder.decode(chunk)
        if text:
            self._parts.append(text)

    def getvalue(self) -> str:
        """Flush the decoder and return everything accumulated."""
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._parts.append(tail)
        return "".join(self._parts)


class _Execution:
    """Per-invocation state of ProcessRunner.run().

    Created fresh for every run so nothing leaks between invocations.
    """

    def __init__(self, runner: ProcessRunner, request: SpawnRequest) -> None:
        self._runner = runner
        self._request = request
        self._future: asyncio.Future[SpawnResult] = asyncio.get_running_loop().create_future()
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._listening = False
        self._torn_down = False

        self._stdout_buffer = (
            None if request.on_stdout is not None
            else _OutputBuffer(runner.encoding, runner.decode_errors)
        )
        self._stderr_buffer = (
            None if request.on_stderr is not None
            else _OutputBuffer(runner.encoding, runner.decode_errors)
        )

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def run(self) -> SpawnResult:
        request = self._request
        abort_signal = request.signal

        if abort_signal is not None and abort_signal.aborted:
            logger.debug(f"Signal already aborted, not starting {request.command}")
            raise AbortedError(self._snapshot(None, ABORT_SIGNAL_NAME))

        # Spawn errors (FileNotFoundError, PermissionError, ...) propagate as-is.
        # stdin is DEVNULL so the child never inherits the parent's stdin.
        self._process = await asyncio.create_subprocess_exec(
            request.command,
            *request.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        logger.debug(
            f"Started subprocess pid={self._process.pid} "
            f"command={request.command} args={len(request.args)}"
        )

        self._attach()

        # The signal may have fired while the process was being created
        if abort_signal is not None and abort_signal.aborted:
            self._on_abort()

        try:
            return await self._future
        except (anyio.get_cancelled_exc_class(), asyncio.CancelledError):
            logger.info(f"Run cancelled by caller, terminating pid={self.pid}")
            self._teardown()
            self._send_signal(self._runner.terminate_signal)
            self._start_reaper()
            raise

    def abort(self) -> None:
        """Send the forced-abort signal to the process.

        Passed as the second argument to every chunk callback. Has no effect
        once the process has exited.
        """
        self._send_signal(self._runner.abort_signal)

    # ------------------------------------------------------------------
    # Listener wiring
    # ------------------------------------------------------------------

    def _attach(self) -> None:
        process = self._process
        assert process is not None and process.stdout and process.stderr

        loop = asyncio.get_running_loop()
        readers = [
            loop.create_task(self._pump(process.stdout, self._make_sink(
                self._request.on_stdout, self._stdout_buffer
            ))),
            loop.create_task(self._pump(process.stderr, self._make_sink(
                self._request.on_stderr, self._stderr_buffer
            ))),
        ]
        self._tasks = [*readers, loop.create_task(self._watch_close(readers))]

        if self._request.signal is not None:
            self._request.signal.add_listener(self._on_abort)
            self._listening = True

    def _make_sink(
        self,
        handler: OutputHandler | None,
        buffer: _OutputBuffer | None,
    ) -> Callable[[bytes], None]:
        if handler is not None:
            return lambda chunk: handler(chunk, self.abort)
        assert buffer is not None
        return buffer.feed

    def _teardown(self) -> None:
        """Detach every listener. Safe to call more than once."""
        if self._torn_down:
            return
        self._torn_down = True

        # Includes the current task when teardown runs from inside a callback.
        # A read that returns buffered data does not suspend, so _pump also
        # checks _torn_down before delivering.
        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._listening and self._request.signal is not None:
            self._request.signal.remove_listener(self._on_abort)
            self._listening = False

        logger.debug(f"Detached listeners pid={self.pid}")

    # ------------------------------------------------------------------
    # Event sources
    # ------------------------------------------------------------------

    async def _pump(
        self,
        stream: asyncio.StreamReader,
        sink: Callable[[bytes], None],
    ) -> None:
        """Read chunks from one pipe until EOF, in order."""
        while True:
            chunk = await stream.read(self._runner.chunk_size)
            if not chunk or self._torn_down:
                return
            sink(chunk)

    async def _watch_close(self, readers: list[asyncio.Task[None]]) -> None:
        """Wait for both pipes to close and the process to exit."""
        try:
            await asyncio.gather(*readers)
        except Exception as e:
            self._on_reader_error(e)
            return

        assert self._process is not None
        returncode = await self._process.wait()
        self._on_close(returncode)

    def _on_close(self, returncode: int) -> None:
        self._teardown()

        code, sig = _describe_returncode(returncode)
        result = self._snapshot(code, sig)
        logger.debug(f"Subprocess closed pid={self.pid} code={code} signal={sig}")

        if code == 0 and sig is None:
            self._resolve(result)
            return

        if sig is not None:
            message = f"Process killed with signal: {sig}"
        else:
            message = f"Process exited with code: {code}"
        self._reject(ProcessError(message, result))

    def _on_abort(self) -> None:
        if self._future.done():
            return
        logger.info(f"Abort signal received, terminating pid={self.pid}")

        self._teardown()
        self._send_signal(self._runner.terminate_signal)
        self._start_reaper()
        self._reject(AbortedError(self._snapshot(None, ABORT_SIGNAL_NAME)))

    def _on_reader_error(self, error: Exception) -> None:
        """A chunk callback (or decoding) raised: stop the process and fail."""
        logger.warning(f"Output reader failed pid={self.pid}: {error!r}")

        self._teardown()
        self.abort()
        self._start_reaper()
        self._reject(error)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _snapshot(self, code: int | None, sig: str | None) -> SpawnResult:
        return make_result(
            code,
            sig,
            stdout=self._stdout_buffer.getvalue() if self._stdout_buffer is not None else None,
            stderr=self._stderr_buffer.getvalue() if self._stderr_buffer is not None else None,
        )

    def _resolve(self, result: SpawnResult) -> None:
        if not self._future.done():
            self._future.set_result(result)

    def _reject(self, error: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(error)

    def _send_signal(self, signum: int) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return

        name = signal.Signals(signum).name
        try:
            if IS_WINDOWS and signum != signal.SIGTERM:
                # Windows only supports SIGTERM and console events
                process.kill()
            else:
                process.send_signal(signum)
            logger.debug(f"Sent {name} to pid={process.pid}")
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={process.pid}")
        except OSError as e:
            logger.warning(f"Error sending {name} to pid={process.pid}: {e}")

    # ------------------------------------------------------------------
    # Reaping
    # ------------------------------------------------------------------

    def _start_reaper(self) -> None:
        """Wait for the process in the background after an early settlement.

        The run settles before the child exits on cancellation and handler
        failure, so nothing else would collect it.
        """
        process = self._process
        if process is None or process.returncode is not None:
            return
        task = asyncio.get_running_loop().create_task(self._reap(process))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        """Wait for exit, escalating to SIGKILL if the child ignores the signal.

        Termination strategy:
        1. Wait up to term_timeout for the signal already sent to take effect
        2. If still running, SIGKILL (kill() on Windows)
        3. Wait up to kill_timeout for forced exit
        """
        pid = process.pid
        try:
            try:
                await asyncio.wait_for(process.wait(), timeout=self._runner.term_timeout)
                logger.debug(f"Subprocess exited pid={pid} returncode={process.returncode}")
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            process.kill()

            try:
                await asyncio.wait_for(process.wait(), timeout=self._runner.kill_timeout)
                logger.debug(f"Subprocess killed pid={pid} returncode={process.returncode}")
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except Exception as e:
            logger.warning(f"Error reaping subprocess pid={pid}: {e}")


@dataclass
class ProcessRunner:
    """Runs one command per call and settles exactly once.

    Fields left as None are filled from the environment configuration.

    Example:
        runner = ProcessRunner(chunk_size=4096)
        result = await runner.run(SpawnRequest("ls", ("-la",)))
        print(result.stdout)
    """

    encoding: str | None = None
    decode_errors: str | None = None
    chunk_size: int | None = None
    abort_signal: int = DEFAULT_ABORT_SIGNAL
    terminate_signal: int = DEFAULT_TERMINATE_SIGNAL
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    def __post_init__(self) -> None:
        config = get_config()
        if self.encoding is None:
            self.encoding = config.encoding
        if self.decode_errors is None:
            self.decode_errors = config.decode_errors
        if self.chunk_size is None:
            self.chunk_size = config.chunk_size
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    async def run(self, request: SpawnRequest) -> SpawnResult:
        """Run the request's command and return its result.

        Args:
            request: Command, arguments, callbacks and abort signal

        Returns:
            The result variant matching which callbacks were supplied

        Raises:
            AbortedError: The abort signal fired before or during the run
            ProcessError: Non-zero exit code or termination by a signal
            OSError: The process could not be started
        """
        return await _Execution(self, request).run()


@overload
async def spawn(
    command: str,
    args: Sequence[str] = ...,
    *,
    on_stdout: None = ...,
    on_stderr: None = ...,
    signal: AbortSignal | None = ...,
) -> SpawnResultWithOutput: ...


@overload
async def spawn(
    command: str,
    args: Sequence[str] = ...,
    *,
    on_stdout: OutputHandler,
    on_stderr: None = ...,
    signal: AbortSignal | None = ...,
) -> SpawnResultWithStderr: ...


@overload
async def spawn(
    command: str,
    args: Sequence[str] = ...,
    *,
    on_stdout: None = ...,
    on_stderr: OutputHandler,
    signal: AbortSignal | None = ...,
) -> SpawnResultWithStdout: ...


@overload
async def spawn(
    command: str,
    args: Sequence[str] = ...,
    *,
    on_stdout: OutputHandler,
    on_stderr: OutputHandler,
    signal: AbortSignal | None = ...,
) -> SpawnResult: ...


async def spawn(
    command: str,
    args: Sequence[str] = (),
    *,
    on_stdout: OutputHandler | None = None,
    on_stderr: OutputHandler | None = None,
    signal: AbortSignal | None = None,
) -> SpawnResult:
    """Run a command and wait for it to finish.

    Streams without a callback are accumulated and returned as text; streams
    with one are delivered chunk by chunk as ``callback(chunk, abort)``.

    Raises:
        AbortedError: ``signal`` was aborted (cause code=None, signal="SIGABRT")
        ProcessError: Non-zero exit or killed by a signal; ``cause`` carries
            code, signal and any accumulated output
        OSError: The command could not be started

    Example:
        result = await spawn("ls", ["-la"])
        print(result.stdout)

        try:
            await spawn("grep", ["pattern", "file.txt"])
        except ProcessError as e:
            if e.code == 1:
                print("No matches found")
    """
    request = SpawnRequest(
        command=command,
        args=args,  # type: ignore[arg-type]
        on_stdout=on_stdout,
        on_stderr=on_stderr,
        signal=signal,
    )
    return await ProcessRunner().run(request)
