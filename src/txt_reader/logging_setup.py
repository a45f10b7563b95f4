# src/txt_reader/logging_setup.py

"""
Logging for both sides of the channel.

- setup_logging(): controller process, called once by the CLI (or the host app).
- setup_worker_logging(): engine process, which starts with an empty root logger.

Records from the txt_reader package always reach the console; everything else
(third-party loggers, warnings captured as 'py.warnings') only from ERROR up.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "txt_reader"
LOG_FILE_NAME = "txt-reader.log"

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(processName)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _PackageOnlyFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == PACKAGE_LOGGER or record.name.startswith(PACKAGE_LOGGER + "."):
            return True
        return record.levelno >= logging.ERROR


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    handler.addFilter(_PackageOnlyFilter())
    return handler


def setup_logging(
    *,
    log_dir: str | Path | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Replace the root handlers with a filtered console handler and, when log_dir
    is given, an unfiltered file handler writing <log_dir>/txt-reader.log.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(logging.DEBUG)

    root.addHandler(_console_handler(console_level))

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
        root.addHandler(file_handler)

    logging.captureWarnings(True)


def setup_worker_logging(*, verbose: bool = False) -> None:
    """Console logging for the engine process; a no-op for handlers already present."""
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(_console_handler(logging.DEBUG))
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
