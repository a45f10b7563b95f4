# src/txt_reader/core/messages.py

"""
Wire shapes exchanged with the engine.

Everything that crosses the process boundary is a plain dict with camelCase
keys (strings, numbers, bytes, lists, nested dicts). The dataclasses below are
the controller-side view of those dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

LinesRange = dict[str, int]
LinesRanges = list[int | LinesRange]


class Action(StrEnum):
    LOAD_FILE = "load-file"
    SNIFF_LINES = "sniff-lines"
    SET_CHUNK_SIZE = "set-chunk-size"
    ENABLE_DIAGNOSTICS = "enable-diagnostics"
    GET_LINES = "get-lines"
    GET_LINES_BY_RANGES = "get-lines-by-ranges"
    GET_SPORADIC_LINES = "get-sporadic-lines"
    ITERATE_LINES = "iterate-lines"
    ITERATE_SPORADIC_LINES = "iterate-sporadic-lines"


@dataclass(slots=True)
class RequestMessage:
    """
    One unit of work for the engine.

    task_id is assigned exactly once by the scheduler.
    """

    action: Action
    data: Any = None
    task_id: int | None = None

    def assign_task_id(self, task_id: int) -> None:
        if self.task_id is not None:
            raise ValueError(f"Request already has task id {self.task_id}")
        self.task_id = int(task_id)

    def to_wire(self) -> dict[str, Any]:
        return {"action": str(self.action), "data": self.data, "taskId": self.task_id}

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> RequestMessage:
        return cls(action=Action(raw["action"]), data=raw.get("data"), task_id=raw.get("taskId"))


@dataclass(frozen=True, slots=True)
class ResponseMessage:
    task_id: Any
    success: bool
    done: bool
    message: str
    result: Any = None

    @classmethod
    def progress(cls, task_id: int, percent: int | float) -> ResponseMessage:
        return cls(task_id=task_id, success=True, done=False, message="", result=percent)

    @classmethod
    def terminal(cls, task_id: int, *, success: bool, message: str, result: Any = None) -> ResponseMessage:
        return cls(task_id=task_id, success=success, done=True, message=message, result=result)

    def to_wire(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "success": self.success,
            "done": self.done,
            "message": self.message,
            "result": self.result,
        }

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> ResponseMessage:
        return cls(
            task_id=raw.get("taskId"),
            success=bool(raw.get("success")),
            done=bool(raw.get("done")),
            message=str(raw.get("message") or ""),
            result=raw.get("result"),
        )


AccessPath = tuple[str | int, ...]

EACH_LINE_PATH: AccessPath = ("eachLineSource",)


@dataclass(slots=True)
class IteratorConfigMessage:
    """
    A per-line callback and its scope, reduced to plain data.

    function_map lists, in depth-first order, every path (rooted at the wire
    dict of this message) whose value is function source text. The first
    entry is always EACH_LINE_PATH.
    """

    each_line_source: str
    scope: dict[str, Any] = field(default_factory=dict)
    function_map: list[AccessPath] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "eachLineSource": self.each_line_source,
            "scope": self.scope,
            "functionMap": [list(p) for p in self.function_map],
        }

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> IteratorConfigMessage:
        return cls(
            each_line_source=str(raw["eachLineSource"]),
            scope=dict(raw.get("scope") or {}),
            function_map=[tuple(p) for p in raw.get("functionMap") or []],
        )


def format_path(path: AccessPath) -> str:
    """Render a path the way it would be written as an index chain: ["scope"]["fn"]."""
    return "".join(f"[{p!r}]" if isinstance(p, int) else f'["{p}"]' for p in path)
