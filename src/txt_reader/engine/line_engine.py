# src/txt_reader/engine/line_engine.py

"""
Line engine: the work that happens on the far side of the channel.

For every request it emits zero or more progress responses (integer percents,
strictly increasing) followed by exactly one terminal response carrying the
same taskId. Failures while handling a request are reported as a terminal
response with success=False; they never escape handle().

Files are read in byte chunks. load-file records the byte offset of every line
start so later requests can seek straight to the lines they need.
Line numbers are 1-based. "\n" and "\r\n" terminators are stripped; a last
line without a terminator still counts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, BinaryIO

from ..closures.rebuild import rebuild_iterator
from ..config import DEFAULT_CHUNK_SIZE
from ..core.messages import Action, LinesRanges, RequestMessage, ResponseMessage
from ..core.ports import WireMessage

logger = logging.getLogger(__name__)

Emit = Callable[[WireMessage], None]
HandlerResult = tuple[str, Any]


class _Progress:
    """Turns (done, total) into progress responses, one per new whole percent."""

    def __init__(self, task_id: int, emit: Emit) -> None:
        self._task_id = task_id
        self._emit = emit
        self._last = -1
        self.percent = 0.0

    def update(self, done: int, total: int) -> None:
        self.percent = 100.0 if total <= 0 else min(100.0, done * 100.0 / total)
        whole = int(self.percent)
        if whole > self._last:
            self._last = whole
            self._emit(ResponseMessage.progress(self._task_id, whole).to_wire())


def _decode(line: bytes) -> str:
    return line.decode("utf-8", errors="replace")


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


class LineEngine:
    def __init__(self, *, chunk_size: int = DEFAULT_CHUNK_SIZE, verbose: bool = False) -> None:
        self.chunk_size = _as_int(chunk_size, "chunk size")
        self.verbose = verbose

        self._path: Path | None = None
        self._offsets: list[int] = []
        self._size = 0

        self._handlers: dict[Action, Callable[[Any, _Progress], HandlerResult]] = {
            Action.LOAD_FILE: self._load_file,
            Action.SNIFF_LINES: self._sniff_lines,
            Action.SET_CHUNK_SIZE: self._set_chunk_size,
            Action.ENABLE_DIAGNOSTICS: self._enable_diagnostics,
            Action.GET_LINES: self._get_lines,
            Action.GET_LINES_BY_RANGES: self._get_lines_by_ranges,
            Action.GET_SPORADIC_LINES: self._get_sporadic_lines,
            Action.ITERATE_LINES: self._iterate_lines,
            Action.ITERATE_SPORADIC_LINES: self._iterate_sporadic_lines,
        }

    @property
    def line_count(self) -> int:
        return len(self._offsets)

    @property
    def path(self) -> Path | None:
        return self._path

    def handle(self, raw: WireMessage, emit: Emit) -> None:
        if self.verbose:
            logger.info("Engine received a message from the controller: %r", raw)

        task_id = raw.get("taskId")
        try:
            request = RequestMessage.from_wire(raw)
            handler = self._handlers[request.action]
            message, result = handler(request.data, _Progress(int(task_id), emit))
        except Exception as e:
            logger.debug("Task %s failed", task_id, exc_info=True)
            text = str(e) or type(e).__name__
            emit(ResponseMessage.terminal(task_id, success=False, message=text).to_wire())
            return

        emit(ResponseMessage.terminal(task_id, success=True, message=message, result=result).to_wire())

    # ---- reading ----

    def _scan(
            self,
            fh: BinaryIO,
            start: int,
            end: int,
            progress: _Progress | None = None,
    ) -> Iterator[tuple[int, int, bytes]]:
        """Yield (line_start, line_end, content) for every line between two byte offsets."""
        fh.seek(start)
        pos = start
        line_start = start
        pending = b""
        while pos < end:
            chunk = fh.read(min(self.chunk_size, end - pos))
            if not chunk:
                break
            pos += len(chunk)
            lines = (pending + chunk).split(b"\n")
            pending = lines.pop()
            for line in lines:
                line_end = line_start + len(line) + 1
                yield line_start, line_end, line.removesuffix(b"\r")
                line_start = line_end
            if progress is not None:
                progress.update(pos - start, end - start)
        if pending:
            yield line_start, line_start + len(pending), pending.removesuffix(b"\r")

    def _require_loaded(self) -> Path:
        if self._path is None:
            raise RuntimeError("No file has been loaded.")
        return self._path

    def _check_line(self, line_number: int) -> None:
        if not 1 <= line_number <= self.line_count:
            raise ValueError(f"Line {line_number} is out of range (1-{self.line_count}).")

    def _block(self, start: int, count: int) -> tuple[int, int]:
        """Byte span covering `count` lines from line `start`."""
        begin = self._offsets[start - 1]
        last = start + count - 1
        finish = self._offsets[last] if last < self.line_count else self._size
        return begin, finish

    def _read_block(self, fh: BinaryIO, start: int, count: int) -> Iterator[tuple[int, bytes]]:
        if count <= 0:
            return
        begin, finish = self._block(start, count)
        for n, (_, _, line) in enumerate(self._scan(fh, begin, finish), start=start):
            yield n, line

    def _normalize_range(self, item: Any) -> tuple[int, int]:
        if isinstance(item, dict):
            start = _as_int(item.get("start"), "range start")
            if item.get("count") is not None:
                count = _as_int(item["count"], "range count")
            elif item.get("end") is not None:
                count = _as_int(item["end"], "range end") - start + 1
            else:
                count = 1
        else:
            start, count = _as_int(item, "line number"), 1
        if count < 1:
            raise ValueError(f"Empty range {item!r}.")
        self._check_line(start)
        self._check_line(start + count - 1)
        return start, count

    def _normalize_ranges(self, ranges: LinesRanges) -> list[tuple[Any, int, int]]:
        if not isinstance(ranges, list):
            raise ValueError("lines ranges must be a list")
        return [(item, *self._normalize_range(item)) for item in ranges]

    # ---- actions ----

    def _load_file(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        path = Path(data["file"])
        config = data.get("config")
        each_line, scope = rebuild_iterator(config) if config else (None, None)

        self._path, self._offsets, self._size = None, [], 0

        size = path.stat().st_size
        offsets: list[int] = []
        with path.open("rb") as fh:
            for line_start, line_end, line in self._scan(fh, 0, size, progress):
                offsets.append(line_start)
                if each_line is not None:
                    each_line(scope, line, min(100.0, line_end * 100.0 / size), len(offsets))
        progress.update(size, size)

        self._path, self._offsets, self._size = path, offsets, size
        logger.debug("Indexed %s: %d lines, %d bytes", path, len(offsets), size)

        result: dict[str, Any] = {"lineCount": len(offsets)}
        if scope is not None:
            result["scope"] = scope.export()
        return f"{len(offsets)} lines loaded.", result

    def _sniff_lines(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        path = Path(data["file"])
        wanted = _as_int(data["lineNumber"], "line number")
        decode = bool(data.get("decode", True))

        lines: list[Any] = []
        if wanted > 0:
            size = path.stat().st_size
            with path.open("rb") as fh:
                for _, _, line in self._scan(fh, 0, size):
                    lines.append(_decode(line) if decode else line)
                    if len(lines) >= wanted:
                        break
        return f"{len(lines)} lines sniffed.", lines

    def _set_chunk_size(self, data: Any, progress: _Progress) -> HandlerResult:
        size = _as_int(data, "chunk size")
        if size <= 0:
            raise ValueError(f"chunk size must be positive, got {size}")
        self.chunk_size = size
        return f"Chunk size set to {size}.", size

    def _enable_diagnostics(self, data: Any, progress: _Progress) -> HandlerResult:
        self.verbose = True
        logging.getLogger("txt_reader").setLevel(logging.DEBUG)
        return "Diagnostics enabled.", None

    def _get_lines(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        path = self._require_loaded()
        start = _as_int(data["start"], "start")
        count = _as_int(data["count"], "count")
        self._check_line(start)
        count = max(0, min(count, self.line_count - start + 1))

        lines: list[bytes] = []
        with path.open("rb") as fh:
            for _, line in self._read_block(fh, start, count):
                lines.append(line)
                progress.update(len(lines), count)
        return f"{len(lines)} lines read.", lines

    def _get_lines_by_ranges(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        path = self._require_loaded()
        ranges = self._normalize_ranges(data["linesRanges"])
        decode = bool(data.get("decode", True))
        total = sum(count for _, _, count in ranges)

        out: list[dict[str, Any]] = []
        done = 0
        with path.open("rb") as fh:
            for item, start, count in ranges:
                contents: list[Any] = []
                for _, line in self._read_block(fh, start, count):
                    contents.append(_decode(line) if decode else line)
                    done += 1
                    progress.update(done, total)
                out.append({"range": item, "contents": contents})
        return f"{done} lines read.", out

    def _get_sporadic_lines(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        path = self._require_loaded()
        ranges = self._normalize_ranges(data["linesRanges"])
        decode = bool(data.get("decode", True))
        total = sum(count for _, _, count in ranges)

        out: list[dict[str, Any]] = []
        with path.open("rb") as fh:
            for _, start, count in ranges:
                for n, line in self._read_block(fh, start, count):
                    out.append({"lineNumber": n, "value": _decode(line) if decode else line})
                    progress.update(len(out), total)
        return f"{len(out)} lines read.", out

    def _iterate(
            self,
            config: dict[str, Any],
            blocks: list[tuple[int, int]],
            progress: _Progress,
    ) -> HandlerResult:
        path = self._require_loaded()
        each_line, scope = rebuild_iterator(config)
        total = sum(count for _, count in blocks)

        done = 0
        with path.open("rb") as fh:
            for start, count in blocks:
                for n, line in self._read_block(fh, start, count):
                    done += 1
                    each_line(scope, line, done * 100.0 / total, n)
                    progress.update(done, total)
        return f"{done} lines iterated.", scope.export()

    def _iterate_lines(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        self._require_loaded()
        start = 1 if data.get("start") is None else _as_int(data["start"], "start")
        if data.get("count") is None:
            count = self.line_count - start + 1
        else:
            count = _as_int(data["count"], "count")
        if self.line_count:
            self._check_line(start)
            count = max(0, min(count, self.line_count - start + 1))
        else:
            count = 0
        return self._iterate(data["config"], [(start, count)] if count else [], progress)

    def _iterate_sporadic_lines(self, data: dict[str, Any], progress: _Progress) -> HandlerResult:
        self._require_loaded()
        ranges = self._normalize_ranges(data["lines"])
        return self._iterate(data["config"], [(start, count) for _, start, count in ranges], progress)
