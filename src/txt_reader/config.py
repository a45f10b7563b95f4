# src/txt_reader/config.py

"""
Settings for the controller and the engine it starts.

- Read once from TXT_READER_* environment variables; a local .env is honoured.
- Nothing is required: every value has a default, and malformed values fall
  back to it.
- The engine process gets the values it needs as arguments, never by reading
  this module itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from dotenv import load_dotenv

ENV_PREFIX = "TXT_READER"

DEFAULT_CHUNK_SIZE = 1024 * 1024

# Self-documenting list of every variable Settings.from_env() reads.
ENV_VARS = {
    # App / logging
    f"{ENV_PREFIX}_APP_NAME": "App display name (default: txt-reader).",
    f"{ENV_PREFIX}_LOG_LEVEL": "Console logging level (default: INFO).",
    f"{ENV_PREFIX}_LOG_DIR": "Directory of txt-reader.log (default: .local/txt-reader).",
    f"{ENV_PREFIX}_LOG_TO_FILE": "Also write a log file (true/false, default: false).",
    # Engine
    f"{ENV_PREFIX}_CHUNK_SIZE": "Bytes read per chunk by the engine (default: 1048576).",
    f"{ENV_PREFIX}_VERBOSE": "Log every protocol message on both sides (true/false).",
    f"{ENV_PREFIX}_START_METHOD": "multiprocessing start method of the engine process (default: spawn).",
    f"{ENV_PREFIX}_SHUTDOWN_TIMEOUT": "Seconds to wait for the engine to stop before terminating it (default: 5).",
    # Controller
    f"{ENV_PREFIX}_STRICT_CLOSURES": "Reject callbacks that capture outer variables (true/false, default: true).",
    f"{ENV_PREFIX}_TASK_HISTORY": "Number of task records kept for inspection (default: 64).",
}


_T = TypeVar("_T")

load_dotenv(override=False)


def _raw(key: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}_{key}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _text(key: str, default: str) -> str:
    return _raw(key) or default


def _flag(key: str, default: bool) -> bool:
    value = _raw(key)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "y", "on")


def _number(key: str, default: _T, cast: Callable[[str], _T]) -> _T:
    value = _raw(key)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    # logging
    app_name: str
    log_level: str
    log_dir: Path
    log_to_file: bool

    # engine
    chunk_size: int
    verbose: bool
    start_method: str
    shutdown_timeout_seconds: float

    # controller
    strict_closures: bool
    task_history_size: int

    @classmethod
    def from_env(cls) -> Settings:
        chunk_size = _number("CHUNK_SIZE", DEFAULT_CHUNK_SIZE, int)
        log_dir = _raw("LOG_DIR")

        return cls(
            app_name=_text("APP_NAME", "txt-reader"),
            log_level=_text("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(log_dir).expanduser() if log_dir else Path(".local/txt-reader"),
            log_to_file=_flag("LOG_TO_FILE", False),
            chunk_size=chunk_size if chunk_size > 0 else DEFAULT_CHUNK_SIZE,
            verbose=_flag("VERBOSE", False),
            start_method=_text("START_METHOD", "spawn"),
            shutdown_timeout_seconds=max(0.1, _number("SHUTDOWN_TIMEOUT", 5.0, float)),
            strict_closures=_flag("STRICT_CLOSURES", True),
            task_history_size=max(1, _number("TASK_HISTORY", 64, int)),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Settings read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
