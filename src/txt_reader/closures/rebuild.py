# src/txt_reader/closures/rebuild.py

"""
Engine-side counterpart of the marshaller: turn source text back into functions.

Each function is compiled on its own, in a namespace that only holds the
builtins. Functions reach each other and shared data through the scope object
they are called with.
"""

from __future__ import annotations

import ast
import builtins
import copy
from typing import Any, Callable

from ..core.messages import EACH_LINE_PATH, IteratorConfigMessage, format_path


def compile_function(source: str, *, where: str = "") -> Callable[..., Any]:
    module = ast.parse(source)
    if len(module.body) != 1 or not isinstance(module.body[0], (ast.FunctionDef, ast.AsyncFunctionDef)):
        raise ValueError(f"{where or 'source'} is not a single function definition")
    name = module.body[0].name

    namespace: dict[str, Any] = {"__builtins__": builtins}
    exec(compile(module, f"<txt-reader {where or name}>", "exec"), namespace)
    return namespace[name]


class IteratorScope:
    """
    First argument of every each_line call.

    Top-level scope entries are attributes (assignments write back into the
    scope), nested containers are the plain dicts/lists that were sent.
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, Any]) -> None:
        object.__setattr__(self, "_data", data)

    def __getattr__(self, name: str) -> Any:
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"scope has no entry {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._data[name] = value

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    @staticmethod
    def decode(raw: bytes) -> str:
        return raw.decode("utf-8", errors="replace")

    def export(self) -> dict[str, Any]:
        """Scope data with every function removed, safe to send back."""
        return _strip_functions(self._data)


def _strip_functions(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _strip_functions(v) for k, v in value.items() if not callable(v)}
    if isinstance(value, list):
        return [_strip_functions(v) for v in value if not callable(v)]
    return value


def rebuild_iterator(raw: dict[str, Any]) -> tuple[Callable[..., Any], IteratorScope]:
    """Compile every function-map entry of a wire IteratorConfigMessage."""
    message = IteratorConfigMessage.from_wire(raw)
    tree: dict[str, Any] = {
        "eachLineSource": message.each_line_source,
        "scope": copy.deepcopy(message.scope),
    }

    for path in message.function_map:
        if not path:
            raise ValueError("empty path in functionMap")
        parent: Any = tree
        for key in path[:-1]:
            parent = parent[key]
        where = format_path(path)
        source = parent[path[-1]]
        if not isinstance(source, str):
            raise ValueError(f"{where} does not hold function source")
        parent[path[-1]] = compile_function(source, where=where)

    each_line = tree["eachLineSource"]
    if EACH_LINE_PATH not in message.function_map or not callable(each_line):
        raise ValueError("functionMap does not include the each-line callback")
    return each_line, IteratorScope(tree["scope"])
