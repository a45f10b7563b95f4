# src/txt_reader/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Notes:
    - QUEUED is skipped when the task is dispatched immediately.
    - COMPLETED is terminal, whatever the outcome.
    """

    INITIALIZED = "initialized"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class TaskResponse:
    # milliseconds between dispatch and the terminal response
    time_taken: int
    message: str
    result: Any


@dataclass(slots=True)
class TaskRecord:
    """History entry; outlives the task itself."""

    id: int
    action: str
    state: TaskState = TaskState.INITIALIZED
    success: bool | None = None
    time_taken: int | None = None
