# src/txt_reader/core/reader.py

"""
TxtReader: read very large text files without blocking the event loop.

Every method returns a TxtReaderTask immediately. Tasks run one at a time, in
the order they were created, in the engine (a separate process by default).

    reader = TxtReader()
    await reader.load_file("big.log")
    response = await reader.get_lines(1, 100)

Methods that need a loaded file check for it when the task is dispatched, so a
request queued behind a load_file() sees the outcome of that load.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from ..closures.marshaller import IteratorConfig, build_iterator_config_message
from ..config import Settings, get_settings
from .messages import Action, LinesRanges
from .ports import PeerChannel, WireMessage
from ..tasks.task_future import TxtReaderTask
from ..tasks.task_models import TaskResponse
from ..tasks.task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

NOT_LOADED_MESSAGE = "TxtReader has not loaded a file yet."


class TxtReader:
    def __init__(
            self,
            channel: PeerChannel | None = None,
            *,
            settings: Settings | None = None,
            loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        channel defaults to a ProcessChannel built from settings; it then needs a
        running event loop (or an explicit loop) to deliver responses.
        """
        self.settings = settings if settings is not None else get_settings()

        owns_channel = channel is None
        if channel is None:
            from ..channels.process_channel import ProcessChannel

            channel = ProcessChannel(
                chunk_size=self.settings.chunk_size,
                verbose=self.settings.verbose,
                start_method=self.settings.start_method,
                shutdown_timeout=self.settings.shutdown_timeout_seconds,
                loop=loop,
            )

        try:
            self.scheduler = TaskScheduler(
                channel,
                loop=loop,
                history_size=self.settings.task_history_size,
                verbose=self.settings.verbose,
            )
        except Exception:
            # A channel created here is closed here.
            if owns_channel:
                channel.close()
            raise

        self._file: Path | None = None
        self._line_count = 0

    @property
    def file(self) -> Path | None:
        """The file of the last successful load_file(), None while (re)loading."""
        return self._file

    @property
    def line_count(self) -> int:
        return self._line_count

    def close(self) -> None:
        self.scheduler.close()

    # ---- helpers ----

    def _marshal(self, config: IteratorConfig) -> WireMessage:
        return build_iterator_config_message(config, strict=self.settings.strict_closures).to_wire()

    def _require_file(self) -> str | None:
        return None if self._file is not None else NOT_LOADED_MESSAGE

    def _new_loaded_task(self, action: Action, data: Any) -> TxtReaderTask:
        return self.scheduler.new_task(action, data, on_dispatch=self._require_file)

    # ---- actions ----

    def load_file(self, file: str | Path, config: IteratorConfig | None = None) -> TxtReaderTask:
        """
        Index `file` in the engine. With a config, its each_line callback also
        runs over every line and the final scope comes back as result["scope"].
        """
        data: dict[str, Any] = {"file": str(file)}
        if config is not None:
            data["config"] = self._marshal(config)

        def _reset() -> None:
            self._file = None
            self._line_count = 0

        def _loaded(response: TaskResponse) -> None:
            self._line_count = int(response.result["lineCount"])
            self._file = Path(file)
            logger.info("Loaded %s (%d lines, %d ms)", file, self._line_count, response.time_taken)

        return self.scheduler.new_task(Action.LOAD_FILE, data, on_dispatch=_reset).then(_loaded)

    def sniff_lines(self, file: str | Path, line_number: int, decode: bool = True) -> TxtReaderTask:
        """First `line_number` lines of a file, without loading it."""
        return self.scheduler.new_task(
            Action.SNIFF_LINES,
            {"file": str(file), "lineNumber": line_number, "decode": decode},
        )

    def set_chunk_size(self, chunk_size: int) -> TxtReaderTask:
        return self.scheduler.new_task(Action.SET_CHUNK_SIZE, chunk_size)

    def enable_diagnostics(self) -> TxtReaderTask:
        """Log every protocol message on both sides from now on."""
        self.scheduler.verbose = True
        logging.getLogger("txt_reader").setLevel(logging.DEBUG)
        return self.scheduler.new_task(Action.ENABLE_DIAGNOSTICS)

    def get_lines(self, start: int, count: int, decode: bool = True) -> TxtReaderTask:
        """`count` lines from line `start` (1-based)."""

        def _decode(response: TaskResponse) -> None:
            if decode:
                lines = response.result
                for i, line in enumerate(lines):
                    lines[i] = line.decode("utf-8", errors="replace")

        return self._new_loaded_task(Action.GET_LINES, {"start": start, "count": count}).then(_decode)

    def get_lines_by_ranges(self, lines_ranges: LinesRanges, decode: bool = True) -> TxtReaderTask:
        """One {"range", "contents"} entry per requested range."""
        return self._new_loaded_task(
            Action.GET_LINES_BY_RANGES,
            {"linesRanges": lines_ranges, "decode": decode},
        )

    def get_sporadic_lines(self, lines_ranges: LinesRanges, decode: bool = True) -> TxtReaderTask:
        """One {"lineNumber", "value"} entry per requested line."""
        return self._new_loaded_task(
            Action.GET_SPORADIC_LINES,
            {"linesRanges": lines_ranges, "decode": decode},
        )

    def iterate_lines(
            self,
            config: IteratorConfig,
            start: int | None = None,
            count: int | None = None,
    ) -> TxtReaderTask:
        return self._new_loaded_task(
            Action.ITERATE_LINES,
            {"config": self._marshal(config), "start": start, "count": count},
        )

    def iterate_sporadic_lines(self, config: IteratorConfig, lines_ranges: LinesRanges) -> TxtReaderTask:
        return self._new_loaded_task(
            Action.ITERATE_SPORADIC_LINES,
            {"config": self._marshal(config), "lines": lines_ranges},
        )
