# src/txt_reader/tasks/task_scheduler.py

"""
Task scheduler.

A single-flight dispatcher that:
- assigns task ids (1, 2, 3, ... in creation order),
- runs at most one task at a time and queues the rest (FIFO),
- sends requests to the engine via an injected PeerChannel port,
- correlates every response with the running task and settles it.

What a request means belongs to the engine, not the scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Any, NoReturn

from ..core.messages import Action, RequestMessage, ResponseMessage
from ..core.ports import PeerChannel, WireMessage
from ..errors import ProtocolError
from .task_future import DispatchCheck, TxtReaderTask
from .task_models import TaskRecord

logger = logging.getLogger(__name__)


class DispatchResult(str, Enum):
    SENT = "sent"
    REJECTED_LOCALLY = "rejected_locally"
    SEND_FAILED = "send_failed"


def is_progress_value(value: Any) -> bool:
    """A progress payload is a real number (bool excluded) within [0, 100]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0 <= value <= 100


class TaskScheduler:
    """
    Owns the channel for its whole lifetime.

    All mutation (running slot, queue) happens either in new_task() or in
    handle_response(), both on the event loop thread, so no locking is needed.
    """

    def __init__(
            self,
            channel: PeerChannel,
            *,
            loop: asyncio.AbstractEventLoop | None = None,
            history_size: int = 64,
            verbose: bool = False,
    ) -> None:
        self._channel = channel
        self._loop = loop
        self._last_task_id = 0
        self._running: TxtReaderTask | None = None
        self._queue: deque[TxtReaderTask] = deque()
        self._history: deque[TaskRecord] = deque(maxlen=max(1, int(history_size)))
        self._broken: ProtocolError | None = None
        self.verbose = verbose

        self._channel.set_response_handler(self.handle_response)

    # ---- introspection ----

    @property
    def running_task(self) -> TxtReaderTask | None:
        return self._running

    @property
    def queued_tasks(self) -> list[TxtReaderTask]:
        return list(self._queue)

    @property
    def history(self) -> list[TaskRecord]:
        return list(self._history)

    @property
    def last_task_id(self) -> int:
        return self._last_task_id

    # ---- public API ----

    def new_task(self, action: Action, data: Any = None, *, on_dispatch: DispatchCheck | None = None) -> TxtReaderTask:
        """
        Create a task and either dispatch it now (idle) or queue it (busy).

        on_dispatch runs when the task reaches the running slot; a message it
        returns rejects the task locally, and so does a send the channel refuses.
        Either way the returned task is pending and its outcome is delivered
        asynchronously.
        """
        if self._broken is not None:
            raise self._broken

        task_id = self._next_task_id()
        record = TaskRecord(id=task_id, action=str(action))
        task = TxtReaderTask(task_id, RequestMessage(action, data), record, on_dispatch)
        self._history.append(record)

        if self._running is None:
            self._run_task(task)
        else:
            self._queue.append(task)
            task.mark_queued()
            logger.debug("Task %s (%s) queued behind task %s", task_id, action, self._running.id)
        return task

    def handle_response(self, raw: WireMessage) -> None:
        """
        Process one response from the engine.

        Raises ProtocolError when the response cannot belong to the running task;
        that error is fatal for this scheduler.
        """
        if self.verbose:
            logger.info("Controller received a message from the engine: %r", raw)

        if self._broken is not None:
            raise self._broken

        response = ResponseMessage.from_wire(raw)
        running = self._running
        if running is None:
            self._fail(ProtocolError(f"Received a response for task {response.task_id!r} while no task is running."))
        if response.task_id != running.id:
            self._fail(
                ProtocolError(
                    f"Received task ID ({response.task_id}) does not match the running task ID ({running.id})."
                )
            )

        if response.done:
            self._complete_task(response)
            return

        if not is_progress_value(response.result):
            self._fail(ProtocolError(f"Unknown message type: {raw!r}"))
        running.update_progress(response.result)

    def close(self) -> None:
        self._channel.close()

    # ---- internals ----

    def _next_task_id(self) -> int:
        self._last_task_id += 1
        return self._last_task_id

    def _fail(self, error: ProtocolError) -> NoReturn:
        logger.error("Protocol desynchronised: %s", error)
        self._broken = error
        raise error

    def _dispatch(self, task: TxtReaderTask) -> tuple[DispatchResult, str | None]:
        local_failure = task.run()
        if local_failure is not None:
            return DispatchResult.REJECTED_LOCALLY, local_failure

        try:
            self._channel.send(task.request.to_wire())
        except Exception as e:
            # Dead engine or a payload that cannot cross the boundary.
            logger.exception("dispatch send failed task_id=%s action=%s", task.id, task.request.action)
            return DispatchResult.SEND_FAILED, str(e) or type(e).__name__
        return DispatchResult.SENT, None

    def _run_task(self, task: TxtReaderTask) -> None:
        self._running = task
        result, failure = self._dispatch(task)
        logger.debug("Task %s (%s) -> running (%s)", task.id, task.request.action, result.value)

        if result is not DispatchResult.SENT:
            # Same settlement path as an engine response, one loop turn later.
            synthetic = ResponseMessage.terminal(task.id, success=False, message=failure or "").to_wire()
            loop = self._loop or asyncio.get_running_loop()
            loop.call_soon(self.handle_response, synthetic)

    def _complete_task(self, response: ResponseMessage) -> None:
        task = self._running
        assert task is not None
        # Still the running task while observers run: anything they enqueue lands behind the queue.
        task.complete(response)
        self._running = None
        logger.debug("Task %s -> completed success=%s", task.id, response.success)
        self._run_next_task()

    def _run_next_task(self) -> None:
        if self._running is None and self._queue:
            self._run_task(self._queue.popleft())
