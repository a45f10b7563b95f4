# src/txt_reader/tasks/task_future.py

"""
Caller-facing handle for one task.

Usage:
    reader.get_lines(1, 10).progress(on_progress).then(on_done).catch(on_failed)
or:
    response = await reader.get_lines(1, 10)

Observers are invoked synchronously by the scheduler while it handles the
engine's response. A task settles exactly once; observers registered after
that are invoked immediately with the stored outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Generator

from ..core.messages import RequestMessage, ResponseMessage
from ..errors import TaskFailedError
from .task_models import TaskRecord, TaskResponse, TaskState

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Any], None]
# Runs when the task is dispatched; a returned message rejects the task without contacting the engine.
DispatchCheck = Callable[[], str | None]
FulfilledCallback = Callable[[TaskResponse], None]
RejectedCallback = Callable[[str], None]


class TxtReaderTask:
    """
    Conventions:
    1. Only one task runs at a time.
    2. Tasks are created by TaskScheduler.new_task; do not instantiate directly.
    3. then/catch/progress all return the same task, so calls chain.
    """

    def __init__(
            self,
            task_id: int,
            request: RequestMessage,
            record: TaskRecord | None = None,
            on_dispatch: DispatchCheck | None = None,
    ) -> None:
        self.id = task_id
        self.request = request
        self.request.assign_task_id(task_id)
        self.state = TaskState.INITIALIZED
        self.on_dispatch = on_dispatch

        self._record = record
        self._start_time = 0.0

        self._on_progress: ProgressCallback | None = None
        self._on_fulfilled: list[FulfilledCallback] | None = []
        self._on_rejected: list[RejectedCallback] | None = []

        self._settled = False
        self._response: TaskResponse | None = None
        self._failure: str | None = None

    def __repr__(self) -> str:
        return f"<TxtReaderTask id={self.id} action={self.request.action} state={self.state}>"

    @property
    def settled(self) -> bool:
        return self._settled

    # ---- scheduler side ----

    def _set_state(self, state: TaskState) -> None:
        self.state = state
        if self._record is not None:
            self._record.state = state

    def mark_queued(self) -> None:
        self._set_state(TaskState.QUEUED)

    def run(self) -> str | None:
        """Mark the task running; returns the local failure message, if any."""
        self._set_state(TaskState.RUNNING)
        self._start_time = time.monotonic()
        check, self.on_dispatch = self.on_dispatch, None
        return check() if check is not None else None

    def update_progress(self, progress: int | float) -> None:
        if self._settled or self._on_progress is None:
            return
        try:
            self._on_progress(progress)
        except Exception:
            logger.exception("progress callback failed task_id=%s", self.id)

    def complete(self, response: ResponseMessage) -> None:
        """Settle the task (once) and release every registered observer."""
        if self._settled:
            return
        self._settled = True
        self._set_state(TaskState.COMPLETED)

        time_taken = int((time.monotonic() - self._start_time) * 1000)
        fulfilled = self._on_fulfilled or []
        rejected = self._on_rejected or []
        self._on_fulfilled = None
        self._on_rejected = None
        self._on_progress = None

        if self._record is not None:
            self._record.success = response.success
            self._record.time_taken = time_taken

        if response.success:
            self._response = TaskResponse(time_taken=time_taken, message=response.message, result=response.result)
            for cb in fulfilled:
                self._notify_fulfilled(cb)
        else:
            self._failure = response.message
            for cb in rejected:
                self._notify_rejected(cb)

    def _notify_fulfilled(self, cb: FulfilledCallback) -> None:
        assert self._response is not None
        try:
            cb(self._response)
        except Exception:
            # Not forwarded to catch observers: they observe the task outcome only.
            logger.exception("then callback failed task_id=%s", self.id)

    def _notify_rejected(self, cb: RejectedCallback) -> None:
        assert self._failure is not None
        try:
            cb(self._failure)
        except Exception:
            logger.exception("catch callback failed task_id=%s", self.id)

    # ---- caller side ----

    def progress(self, on_progress: ProgressCallback) -> TxtReaderTask:
        """Register the progress observer (the last registration wins)."""
        if not self._settled:
            self._on_progress = on_progress
        return self

    def then(self, on_fulfilled: FulfilledCallback) -> TxtReaderTask:
        if not self._settled:
            assert self._on_fulfilled is not None
            self._on_fulfilled.append(on_fulfilled)
        elif self._response is not None:
            self._notify_fulfilled(on_fulfilled)
        return self

    def catch(self, on_rejected: RejectedCallback) -> TxtReaderTask:
        if not self._settled:
            assert self._on_rejected is not None
            self._on_rejected.append(on_rejected)
        elif self._failure is not None:
            self._notify_rejected(on_rejected)
        return self

    def __await__(self) -> Generator[Any, None, TaskResponse]:
        fut: asyncio.Future[TaskResponse] = asyncio.get_running_loop().create_future()

        def _fulfilled(response: TaskResponse) -> None:
            if not fut.done():
                fut.set_result(response)

        def _rejected(message: str) -> None:
            if not fut.done():
                fut.set_exception(TaskFailedError(message))

        self.then(_fulfilled).catch(_rejected)
        return fut.__await__()
