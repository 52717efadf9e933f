"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path (development checkouts)
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Fake child script
FAKE_CHILD_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_child.py"


@pytest.fixture
def fake_child() -> list[str]:
    """argv prefix that runs the fake child with the current interpreter.

    Use as ``spawn(fake_child[0], [*fake_child[1:], "--stdout", "x"])``.
    """
    return [sys.executable, str(FAKE_CHILD_PATH)]


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Run every test with default configuration."""
    from cli_spawn import config

    for name in (
        "CLI_SPAWN_ENCODING",
        "CLI_SPAWN_DECODE_ERRORS",
        "CLI_SPAWN_CHUNK_SIZE",
        "CLI_SPAWN_LOG_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    config.reload_config()
    yield
    config.reload_config()
