# src/txt_reader/errors.py

"""
Exception taxonomy.

Task outcomes are plain string messages; exceptions are reserved for:
- protocol desynchronisation between controller and engine (fatal),
- awaiting a rejected task,
- callables that cannot cross the process boundary.
"""

from __future__ import annotations


class TxtReaderError(Exception):
    """Base class for txt_reader errors."""


class ProtocolError(TxtReaderError):
    """
    Controller and engine disagree about the running task.

    Never converted into a task rejection and never retried: once raised the
    scheduler refuses further work.
    """


class TaskFailedError(TxtReaderError):
    """Raised by ``await task`` when the task was rejected."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MarshalError(TxtReaderError):
    """A callable (or its captured state) cannot be turned into transmittable source."""
