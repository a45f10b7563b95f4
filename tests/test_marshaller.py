# tests/test_marshaller.py

from __future__ import annotations

import logging

import pytest

from txt_reader.closures.marshaller import IteratorConfig, build_iterator_config_message, function_source
from txt_reader.closures.rebuild import IteratorScope, compile_function, rebuild_iterator
from txt_reader.core.messages import EACH_LINE_PATH, format_path
from txt_reader.errors import MarshalError

THRESHOLD = 3


def each_line(scope, raw, progress, line_number):
    scope.seen.append(scope.util["double"](line_number))


def double(x):
    return x * 2


def triple(x):
    return x * 3


def countdown(n):
    return n if n <= 0 else countdown(n - 1)


def over_threshold(scope, raw, progress, line_number):
    if line_number > THRESHOLD:
        scope.seen.append(line_number)


def passthrough(fn):
    return fn


@passthrough
def decorated(scope, raw, progress, line_number):
    scope.seen.append(line_number)


def test_functions_become_source_and_paths_are_recorded() -> None:
    config = IteratorConfig(each_line=each_line, scope={"util": {"double": double}, "factor": 3, "seen": []})

    message = build_iterator_config_message(config)

    assert message.function_map == [EACH_LINE_PATH, ("scope", "util", "double")]
    assert message.each_line_source.startswith("def each_line(")
    assert message.scope["util"]["double"].startswith("def double(x):")
    assert message.scope["factor"] == 3
    assert message.scope["seen"] == []


def test_wire_form_uses_lists_for_paths() -> None:
    config = IteratorConfig(each_line=each_line, scope={"util": {"double": double}})

    wire = build_iterator_config_message(config).to_wire()

    assert set(wire) == {"eachLineSource", "scope", "functionMap"}
    assert wire["functionMap"] == [["eachLineSource"], ["scope", "util", "double"]]


def test_callers_scope_is_not_mutated() -> None:
    util = {"double": double}
    scope = {"util": util, "seen": []}

    build_iterator_config_message(IteratorConfig(each_line=each_line, scope=scope))

    assert scope["util"] is util
    assert util["double"] is double


def test_lists_are_walked_with_index_paths() -> None:
    config = IteratorConfig(each_line=each_line, scope={"steps": [double, 5, {"next": triple}]})

    message = build_iterator_config_message(config)

    assert message.function_map == [
        EACH_LINE_PATH,
        ("scope", "steps", 0),
        ("scope", "steps", 2, "next"),
    ]
    assert message.scope["steps"][1] == 5
    assert format_path(("scope", "steps", 0)) == '["scope"]["steps"][0]'


def test_lambda_is_rejected() -> None:
    config = IteratorConfig(each_line=each_line, scope={"fn": lambda x: x})

    with pytest.raises(MarshalError, match=r'\["scope"\]\["fn"\].*lambdas'):
        build_iterator_config_message(config)


def test_non_function_callable_is_rejected() -> None:
    with pytest.raises(MarshalError, match="only plain functions"):
        function_source(len)


def test_nonlocal_capture_is_rejected() -> None:
    offset = 10

    def shifted(scope, raw, progress, line_number):
        scope.seen.append(line_number + offset)

    with pytest.raises(MarshalError, match="captures offset"):
        build_iterator_config_message(IteratorConfig(each_line=shifted))


def test_module_global_capture_is_rejected() -> None:
    with pytest.raises(MarshalError, match="captures THRESHOLD"):
        build_iterator_config_message(IteratorConfig(each_line=over_threshold))


def test_capture_only_warns_when_not_strict(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="txt_reader.closures.marshaller"):
        message = build_iterator_config_message(IteratorConfig(each_line=over_threshold), strict=False)

    assert message.each_line_source.startswith("def over_threshold(")
    assert "THRESHOLD" in caplog.text


def test_decorators_are_stripped() -> None:
    source = function_source(decorated)
    assert source.startswith("def decorated(")
    assert "@passthrough" not in source


def test_nested_function_is_dedented() -> None:
    def inner(scope, raw, progress, line_number):
        scope.seen.append(line_number)

    source = function_source(inner)

    assert source.startswith("def inner(")
    compile_function(source, where="inner")


def test_rebuilt_iterator_runs_against_its_scope() -> None:
    config = IteratorConfig(each_line=each_line, scope={"util": {"double": double}, "seen": []})
    wire = build_iterator_config_message(config).to_wire()

    fn, scope = rebuild_iterator(wire)
    for n in (1, 2, 3):
        fn(scope, b"", 0, n)

    assert scope.seen == [2, 4, 6]
    assert scope.export() == {"util": {}, "seen": [2, 4, 6]}
    # The wire message itself is left as sent.
    assert isinstance(wire["scope"]["util"]["double"], str)


def test_rebuild_requires_each_line_in_function_map() -> None:
    wire = build_iterator_config_message(IteratorConfig(each_line=each_line)).to_wire()
    wire["functionMap"] = []

    with pytest.raises(ValueError, match="each-line"):
        rebuild_iterator(wire)


def test_compile_function_rejects_non_function_source() -> None:
    with pytest.raises(ValueError):
        compile_function("x = 1\n", where="x")


def test_scope_attributes_write_back() -> None:
    data = {"count": 0}
    scope = IteratorScope(data)

    scope.count += 1
    scope["extra"] = "y"

    assert data == {"count": 1, "extra": "y"}
    assert scope.decode(b"caf\xc3\xa9") == "café"
    with pytest.raises(AttributeError):
        scope.missing


def test_self_recursive_helper_is_not_a_capture() -> None:
    config = IteratorConfig(each_line=each_line, scope={"util": {"countdown": countdown}, "seen": []})

    wire = build_iterator_config_message(config).to_wire()
    _, scope = rebuild_iterator(wire)

    assert scope.util["countdown"](3) == 0
