"""cli-spawn command line entry point.

Runs one command through spawn() and mirrors its outcome.

Usage:
    cli-spawn [--timeout SECONDS] [--json] COMMAND [ARGS...]

Exit status:
    child's exit code, 128 + signal number when killed by a signal,
    127 when the command cannot be started, 130 when aborted by --timeout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Callable, Sequence
from typing import Any, BinaryIO

from . import __version__
from .config import Config, get_config
from .runtime import AbortController, AbortedError, ProcessError, spawn

__all__ = ["build_parser", "exit_status", "main", "run_command", "setup_logging"]

logger = logging.getLogger(__name__)

EXIT_ABORTED = 130  # 128 + SIGINT(2)
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cli-spawn",
        description="Run a command, stream or collect its output, and mirror its exit status.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the command after this many seconds",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Collect output and print the result as JSON instead of streaming",
    )
    parser.add_argument("command", help="Command to execute")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command")
    return parser


def exit_status(error: ProcessError) -> int:
    """Map a failure onto a shell-style exit status."""
    if isinstance(error, AbortedError):
        return EXIT_ABORTED
    if error.signal is not None:
        try:
            return 128 + signal.Signals[error.signal].value
        except KeyError:
            return 1
    return error.code if error.code is not None else 1


def _writer(stream: BinaryIO) -> Callable[[bytes, Callable[[], None]], None]:
    def write(chunk: bytes, abort: Callable[[], None]) -> None:
        stream.write(chunk)
        stream.flush()

    return write


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False))


async def run_command(options: argparse.Namespace) -> int:
    """Run the parsed command and return the exit status."""
    controller = AbortController()
    timer = None
    if options.timeout is not None:
        timer = controller.abort_after(options.timeout, reason="timeout")

    logger.debug(f"Running: {options.command} {' '.join(options.args)}")

    try:
        if options.json:
            result = await spawn(options.command, options.args, signal=controller.signal)
            _print_json(result.to_dict())
        else:
            await spawn(
                options.command,
                options.args,
                on_stdout=_writer(sys.stdout.buffer),
                on_stderr=_writer(sys.stderr.buffer),
                signal=controller.signal,
            )
        return 0

    except ProcessError as e:
        if options.json:
            _print_json({"error": e.message, **e.cause.to_dict()})
        else:
            print(f"cli-spawn: {e.message}", file=sys.stderr)
        return exit_status(e)

    except OSError as e:
        # The command could not be started (missing or not executable)
        if options.json:
            _print_json({"error": str(e), "code": None, "signal": None})
        else:
            print(f"cli-spawn: {e}", file=sys.stderr)
        if isinstance(e, PermissionError):
            return EXIT_NOT_EXECUTABLE
        return EXIT_NOT_FOUND

    finally:
        if timer is not None:
            timer.cancel()


def setup_logging(config: Config) -> None:
    """Configure handlers for the cli_spawn namespace."""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # Debug mode: log to a temp file
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # Default: log to stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Root logger (third-party libraries) stays at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("cli_spawn").setLevel(log_level)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    options = build_parser().parse_args(argv)
    setup_logging(get_config())
    sys.exit(asyncio.run(run_command(options)))


if __name__ == "__main__":
    main()
