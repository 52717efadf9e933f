#!/usr/bin/env python3
"""Fake child process for runner tests.

Writes controlled output to stdout/stderr and exits in a controlled way.

Usage:
    python fake_child.py [--stdout TEXT] [--stderr TEXT] [--lines N]
                         [--hex-stdout HEX] [--tick SECONDS] [--duration SECONDS]
                         [--ignore-term] [--print-pid] [--exit-code CODE]

Arguments:
    --stdout: Text written to stdout (no trailing newline added)
    --stderr: Text written to stderr (no trailing newline added)
    --lines: Write N numbered lines to stdout
    --hex-stdout: Raw bytes (hex encoded) written to stdout one byte at a time
    --tick: Print "tick" to stdout every SECONDS until --duration elapses
    --duration: Sleep/tick duration (default: 0)
    --ignore-term: Ignore SIGTERM
    --print-pid: Write "pid=<pid>" to stdout before anything else
    --exit-code: Exit code (default: 0)
"""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from typing import NoReturn


def main() -> NoReturn:
    parser = argparse.ArgumentParser(description="Fake child for testing")
    parser.add_argument("--stdout", type=str, default="")
    parser.add_argument("--stderr", type=str, default="")
    parser.add_argument("--lines", type=int, default=0)
    parser.add_argument("--hex-stdout", type=str, default="")
    parser.add_argument("--tick", type=float, default=0.0)
    parser.add_argument("--duration", type=float, default=0.0)
    parser.add_argument("--ignore-term", action="store_true")
    parser.add_argument("--print-pid", action="store_true")
    parser.add_argument("--exit-code", type=int, default=0)
    args = parser.parse_args()

    if args.ignore_term:
        signal.signal(signal.SIGTERM, signal.SIG_IGN)

    if args.print_pid:
        print(f"pid={os.getpid()}", flush=True)

    if args.stdout:
        sys.stdout.write(args.stdout)
        sys.stdout.flush()
    if args.stderr:
        sys.stderr.write(args.stderr)
        sys.stderr.flush()

    for i in range(args.lines):
        sys.stdout.write(f"Line {i}: This is a test line with some content\n")
    sys.stdout.flush()

    for byte in bytes.fromhex(args.hex_stdout):
        sys.stdout.buffer.write(bytes([byte]))
        sys.stdout.buffer.flush()
        time.sleep(0.01)

    deadline = time.monotonic() + args.duration
    while time.monotonic() < deadline:
        if args.tick:
            print("tick", flush=True)
            time.sleep(args.tick)
        else:
            time.sleep(0.05)

    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
