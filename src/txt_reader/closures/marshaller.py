# src/txt_reader/closures/marshaller.py

"""
Closure marshalling.

The engine runs in another process and can only receive plain data, so a
per-line callback travels as source text:

    IteratorConfig(each_line=count_words, scope={"util": {"split": split}, "total": 0})

becomes

    {
        "eachLineSource": "def count_words(scope, raw, progress, line_number): ...",
        "scope": {"util": {"split": "def split(text): ..."}, "total": 0},
        "functionMap": [["eachLineSource"], ["scope", "util", "split"]],
    }

Only the source text crosses the boundary. Anything a function reads from its
enclosing function or its module is gone on the other side, so by default such
captures are rejected here instead of failing (or silently misbehaving) in the
engine. The scope graph must be acyclic; there is no cycle detection.
"""

from __future__ import annotations

import ast
import inspect
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any, Callable

from ..core.messages import EACH_LINE_PATH, AccessPath, IteratorConfigMessage, format_path
from ..errors import MarshalError

logger = logging.getLogger(__name__)

EachLineCallback = Callable[[Any, bytes, float, int], None]


@dataclass(slots=True)
class IteratorConfig:
    """
    each_line(scope, raw, progress, line_number) is called once per line in the engine.

    scope holds everything the callback needs: plain data plus helper functions,
    nested in dicts/lists at any depth. Inside the engine the top-level keys are
    readable and writable as attributes of the first argument, which also offers
    decode(raw).
    """

    each_line: EachLineCallback
    scope: dict[str, Any] = field(default_factory=dict)


def function_source(fn: Callable[..., Any], *, where: str = "", strict: bool = True) -> str:
    """
    Return the dedented `def` source of fn, decorators removed.

    Raises MarshalError for callables without usable source (lambdas, builtins,
    callable objects) and, when strict, for functions that capture state.
    """
    label = where or getattr(fn, "__qualname__", repr(fn))

    if not inspect.isfunction(fn):
        raise MarshalError(f"{label}: only plain functions can be sent to the engine, got {type(fn).__name__}")
    if fn.__name__ == "<lambda>":
        raise MarshalError(f"{label}: lambdas cannot be sent to the engine; use a def function")

    try:
        source = textwrap.dedent(inspect.getsource(fn))
    except (OSError, TypeError) as e:
        raise MarshalError(f"{label}: source of {fn.__qualname__} is not available ({e})") from e

    try:
        module = ast.parse(source)
    except SyntaxError as e:
        raise MarshalError(f"{label}: source of {fn.__qualname__} does not parse on its own ({e})") from e

    node = module.body[0] if module.body else None
    if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        raise MarshalError(f"{label}: source of {fn.__qualname__} is not a function definition")

    # `def` line onwards; decorators are not available in the engine.
    source = "\n".join(source.splitlines()[node.lineno - 1:]) + "\n"

    captured = _captured_names(fn)
    if captured:
        names = ", ".join(captured)
        if strict:
            raise MarshalError(
                f"{label}: {fn.__qualname__} captures {names}; "
                "captured values are not sent to the engine, pass them through scope instead"
            )
        logger.warning("%s: %s captures %s; they will be missing in the engine", label, fn.__qualname__, names)

    return source


def _captured_names(fn: Callable[..., Any]) -> list[str]:
    cv = inspect.getclosurevars(fn)
    captured = set(cv.nonlocals) | set(cv.globals)
    # A self-reference resolves in the engine too: compile_function defines the name.
    if cv.globals.get(fn.__name__) is fn:
        captured.discard(fn.__name__)
    return sorted(captured)


def build_iterator_config_message(config: IteratorConfig, *, strict: bool = True) -> IteratorConfigMessage:
    """Marshal a config; the caller's scope objects are left untouched."""
    if not callable(config.each_line):
        raise MarshalError("each_line must be a function")

    function_map: list[AccessPath] = [EACH_LINE_PATH]
    each_line_source = function_source(config.each_line, where=format_path(EACH_LINE_PATH), strict=strict)

    def walk(value: Any, path: AccessPath) -> Any:
        if callable(value):
            source = function_source(value, where=format_path(path), strict=strict)
            function_map.append(path)
            return source
        if isinstance(value, dict):
            return {k: walk(v, path + (k,)) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [walk(v, path + (i,)) for i, v in enumerate(value)]
        return value

    scope = walk(config.scope or {}, ("scope",))
    return IteratorConfigMessage(each_line_source=each_line_source, scope=scope, function_map=function_map)
