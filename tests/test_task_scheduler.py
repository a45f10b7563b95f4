# tests/test_task_scheduler.py

from __future__ import annotations

import pytest

from txt_reader.core.messages import Action
from txt_reader.errors import ProtocolError
from txt_reader.tasks.task_models import TaskState
from txt_reader.tasks.task_scheduler import TaskScheduler, is_progress_value

from .fakes import FakeChannel, drain


def test_task_ids_start_at_one_and_ignore_outcome() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)

    t1 = scheduler.new_task(Action.SET_CHUNK_SIZE, 64)
    t2 = scheduler.new_task(Action.GET_LINES, {"start": 1, "count": 2})
    t3 = scheduler.new_task(Action.ENABLE_DIAGNOSTICS)
    assert [t1.id, t2.id, t3.id] == [1, 2, 3]

    channel.respond(1, success=False, message="boom")
    channel.respond(2, result=[])
    channel.respond(3)

    t4 = scheduler.new_task(Action.SET_CHUNK_SIZE, 32)
    assert t4.id == 4
    assert [m["taskId"] for m in channel.sent] == [1, 2, 3, 4]
    assert scheduler.last_task_id == 4


def test_only_one_task_runs_and_queue_is_fifo() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)

    t1 = scheduler.new_task(Action.SET_CHUNK_SIZE, 1)
    t2 = scheduler.new_task(Action.SET_CHUNK_SIZE, 2)
    t3 = scheduler.new_task(Action.SET_CHUNK_SIZE, 3)

    assert len(channel.sent) == 1
    assert (t1.state, t2.state, t3.state) == (TaskState.RUNNING, TaskState.QUEUED, TaskState.QUEUED)
    assert scheduler.running_task is t1
    assert scheduler.queued_tasks == [t2, t3]

    channel.respond(1, result=1)
    assert t1.state == TaskState.COMPLETED
    assert scheduler.running_task is t2
    assert scheduler.queued_tasks == [t3]
    assert [m["data"] for m in channel.sent] == [1, 2]

    channel.respond(2, result=2)
    channel.respond(3, result=3)
    assert scheduler.running_task is None
    assert scheduler.queued_tasks == []
    assert [m["data"] for m in channel.sent] == [1, 2, 3]


def test_request_wire_shape() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    scheduler.new_task(Action.GET_LINES, {"start": 3, "count": 4})

    assert channel.sent == [{"action": "get-lines", "data": {"start": 3, "count": 4}, "taskId": 1}]


def test_task_created_by_an_observer_waits_behind_the_queue() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    created = []

    t1 = scheduler.new_task(Action.SET_CHUNK_SIZE, 1)
    scheduler.new_task(Action.SET_CHUNK_SIZE, 2)
    t1.then(lambda _: created.append(scheduler.new_task(Action.SET_CHUNK_SIZE, 3)))

    channel.respond(1)

    assert [m["data"] for m in channel.sent] == [1, 2]
    assert created[0].state == TaskState.QUEUED


def test_mismatched_task_id_is_fatal() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    t1 = scheduler.new_task(Action.SET_CHUNK_SIZE, 1)

    with pytest.raises(ProtocolError, match=r"Received task ID \(2\) does not match the running task ID \(1\)"):
        channel.respond(2)

    assert not t1.settled
    # Unrecoverable: the scheduler refuses any further work.
    with pytest.raises(ProtocolError):
        scheduler.new_task(Action.SET_CHUNK_SIZE, 2)
    with pytest.raises(ProtocolError):
        channel.respond(1)


def test_response_without_running_task_is_fatal() -> None:
    channel = FakeChannel()
    TaskScheduler(channel)

    with pytest.raises(ProtocolError, match="no task is running"):
        channel.respond(1)


def test_progress_is_forwarded_to_the_running_task() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    seen = []
    scheduler.new_task(Action.SET_CHUNK_SIZE, 1).progress(seen.append)

    channel.progress(1, 0)
    channel.progress(1, 42.5)
    channel.progress(1, 100)
    channel.respond(1)

    assert seen == [0, 42.5, 100]


@pytest.mark.parametrize("bad", [101, -1, "50", True, None, [10]])
def test_malformed_progress_is_fatal(bad) -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    seen = []
    scheduler.new_task(Action.SET_CHUNK_SIZE, 1).progress(seen.append)

    with pytest.raises(ProtocolError, match="Unknown message type"):
        channel.progress(1, bad)
    assert seen == []


def test_is_progress_value() -> None:
    assert is_progress_value(0)
    assert is_progress_value(99.9)
    assert not is_progress_value(False)
    assert not is_progress_value(100.01)


@pytest.mark.asyncio
async def test_local_failure_settles_asynchronously_without_sending() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    failures = []

    task = scheduler.new_task(Action.GET_LINES, {"start": 1, "count": 1}, on_dispatch=lambda: "not ready")
    task.catch(failures.append)

    # Never settles synchronously.
    assert failures == []
    assert task.state == TaskState.RUNNING
    assert channel.sent == []

    await drain()

    assert failures == ["not ready"]
    assert task.state == TaskState.COMPLETED
    assert scheduler.running_task is None
    assert channel.sent == []


@pytest.mark.asyncio
async def test_dispatch_check_runs_when_task_reaches_the_running_slot() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    ready = {"value": False}

    def check():
        return None if ready["value"] else "not ready"

    scheduler.new_task(Action.LOAD_FILE, {"file": "a.txt"}).then(lambda _: ready.update(value=True))
    queued = scheduler.new_task(Action.GET_LINES, {"start": 1, "count": 1}, on_dispatch=check)
    assert channel.actions == ["load-file"]

    channel.respond(1, result={"lineCount": 3})

    assert channel.actions == ["load-file", "get-lines"]
    assert queued.state == TaskState.RUNNING


@pytest.mark.asyncio
async def test_queue_continues_after_a_local_failure() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)

    scheduler.new_task(Action.GET_LINES, None, on_dispatch=lambda: "no")
    t2 = scheduler.new_task(Action.SET_CHUNK_SIZE, 8)
    assert channel.sent == []

    await drain()

    assert channel.sent == [{"action": "set-chunk-size", "data": 8, "taskId": 2}]
    assert scheduler.running_task is t2


def test_history_keeps_records_not_tasks() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel, history_size=2)

    scheduler.new_task(Action.SET_CHUNK_SIZE, 1)
    channel.respond(1, success=False, message="bad")
    scheduler.new_task(Action.SET_CHUNK_SIZE, 2)
    channel.respond(2)
    scheduler.new_task(Action.SET_CHUNK_SIZE, 3)

    history = scheduler.history
    assert [r.id for r in history] == [2, 3]
    assert history[0].state == TaskState.COMPLETED
    assert history[0].success is True
    assert history[1].state == TaskState.RUNNING


def test_close_closes_the_channel() -> None:
    channel = FakeChannel()
    TaskScheduler(channel).close()
    assert channel.closed


@pytest.mark.asyncio
async def test_refused_send_rejects_the_task_and_frees_the_slot() -> None:
    channel = FakeChannel(send_error=BrokenPipeError("engine gone"))
    scheduler = TaskScheduler(channel)
    failures = []

    # Does not raise: the failure is delivered like any other outcome.
    t1 = scheduler.new_task(Action.SET_CHUNK_SIZE, 1).catch(failures.append)
    assert failures == []
    assert scheduler.running_task is t1

    channel.send_error = None
    t2 = scheduler.new_task(Action.SET_CHUNK_SIZE, 2)
    assert t2.state == TaskState.QUEUED

    await drain()

    assert failures == ["engine gone"]
    assert t1.state == TaskState.COMPLETED
    assert scheduler.running_task is t2
    assert channel.sent == [{"action": "set-chunk-size", "data": 2, "taskId": 2}]


@pytest.mark.asyncio
async def test_refused_send_of_queued_task_does_not_escape_the_response_handler() -> None:
    channel = FakeChannel()
    scheduler = TaskScheduler(channel)
    failures = []

    scheduler.new_task(Action.SET_CHUNK_SIZE, 1)
    scheduler.new_task(Action.SET_CHUNK_SIZE, 2).catch(failures.append)
    channel.send_error = OSError("pipe closed")

    channel.respond(1)
    await drain()

    assert failures == ["pipe closed"]
    assert scheduler.running_task is None
    assert [r.success for r in scheduler.history] == [True, False]
