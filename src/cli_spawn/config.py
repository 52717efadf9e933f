"""cli-spawn environment configuration.

Environment variables:
    CLI_SPAWN_ENCODING: text encoding used for accumulated output
        - default "utf-8"
        - unknown codecs fall back to the default

    CLI_SPAWN_DECODE_ERRORS: codec error handler for accumulated output
        - strict / replace (default) / ignore / backslashreplace / surrogateescape

    CLI_SPAWN_CHUNK_SIZE: maximum bytes read from a pipe per chunk
        - default 65536
        - clamped to 1..16777216

    CLI_SPAWN_LOG_DEBUG: debug logging
        - true/1/yes = on (log written to a temp file)
        - false/0/no = off (default, log written to stderr)
"""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_ENCODING = "utf-8"
DEFAULT_DECODE_ERRORS = "replace"
DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_CHUNK_SIZE = 16 * 1024 * 1024

DECODE_ERROR_HANDLERS = frozenset(
    {"strict", "replace", "ignore", "backslashreplace", "surrogateescape"}
)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_encoding(value: str | None) -> str:
    """Parse an encoding name, falling back to utf-8 for unknown codecs."""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return DEFAULT_ENCODING


def _parse_decode_errors(value: str | None) -> str:
    if not value:
        return DEFAULT_DECODE_ERRORS
    value = value.lower().strip()
    return value if value in DECODE_ERROR_HANDLERS else DEFAULT_DECODE_ERRORS


def _parse_chunk_size(value: str | None) -> int:
    """Parse the read chunk size."""
    if not value:
        return DEFAULT_CHUNK_SIZE
    try:
        size = int(value)
    except ValueError:
        return DEFAULT_CHUNK_SIZE
    return max(1, min(size, MAX_CHUNK_SIZE))


@dataclass
class Config:
    """cli-spawn configuration.

    Attributes:
        encoding: Encoding for accumulated stdout/stderr text
        decode_errors: Codec error handler used while decoding
        chunk_size: Maximum bytes per pipe read
        log_debug: Debug logging mode (log to a temp file)
        log_file: Log file path (set automatically when log_debug=True)
    """

    encoding: str = DEFAULT_ENCODING
    decode_errors: str = DEFAULT_DECODE_ERRORS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(encoding={self.encoding}, "
            f"decode_errors={self.decode_errors}, "
            f"chunk_size={self.chunk_size}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "cli-spawn"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"cli_spawn_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("CLI_SPAWN_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        encoding=_parse_encoding(os.environ.get("CLI_SPAWN_ENCODING")),
        decode_errors=_parse_decode_errors(os.environ.get("CLI_SPAWN_DECODE_ERRORS")),
        chunk_size=_parse_chunk_size(os.environ.get("CLI_SPAWN_CHUNK_SIZE")),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global config instance (loaded lazily)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
