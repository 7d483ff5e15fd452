# tests/test_task_runner.py

from __future__ import annotations

import asyncio

import pytest

from task_center.center.task_center import TaskCenter
from task_center.tasks.task_models import (
    TargetType,
    TaskError,
    TaskKind,
    TaskRunOptions,
    TaskStatus,
    TaskTarget,
    ToastKind,
)

from .fakes import FakeTimeline, Gate, settle


def options(run, *, heavy: bool = False, title: str = "Job", **extra) -> TaskRunOptions:
    return TaskRunOptions(
        kind=TaskKind.CREATE_WORKSPACE,
        title=title,
        target=TaskTarget(type=TargetType.SYSTEM, label="system"),
        origin="test",
        fs_heavy=heavy,
        run=run,
        **extra,
    )


@pytest.mark.asyncio
async def test_submit_success_lifecycle(center: TaskCenter, timeline: FakeTimeline) -> None:
    gate = Gate()
    timeline.now = 10
    fut = center.submit(options(gate, initial_phase="Preparing"))

    # Light lane: running before submit() returns.
    record = center.get_task("task-1")
    assert record is not None
    assert record.status == TaskStatus.RUNNING
    assert record.started_at_ms == 10
    assert record.created_at_ms == 10
    assert record.phase == "Preparing"
    assert center.running_count == 1

    await settle()
    timeline.now = 250
    gate.resolve("result")
    assert await fut == "result"

    record = center.get_task("task-1")
    assert record.status == TaskStatus.SUCCESS
    assert record.phase == "Done"
    assert record.progress == 100
    assert record.ended_at_ms == 250
    assert record.retryable is False
    assert record.error is None
    assert center.running_count == 0
    assert [t.id for t in center.recent_tasks] == ["task-1"]
    assert not center.can_retry("task-1")

    assert [(t.kind, t.message, t.task_id) for t in center.toasts] == [
        (ToastKind.SUCCESS, "Job completed", "task-1")
    ]
    assert center.is_drawer_open is False


@pytest.mark.asyncio
async def test_queued_record_shape(center: TaskCenter, timeline: FakeTimeline) -> None:
    gates = [Gate(), Gate(), Gate()]
    for i, gate in enumerate(gates):
        timeline.now = i * 10
        center.submit(options(gate, heavy=True))

    queued = center.get_task("task-3")
    assert queued.status == TaskStatus.QUEUED
    assert queued.phase == "Queued"
    assert queued.started_at_ms is None
    assert queued.fs_heavy is True
    assert queued.retryable is False
    assert [t.id for t in center.running_tasks] == ["task-3", "task-2", "task-1"]

    await settle()
    for gate in gates[:2]:
        gate.resolve()
    await settle()
    gates[2].resolve()
    await settle()


@pytest.mark.asyncio
async def test_failure_marks_error_opens_drawer_and_rejects(center: TaskCenter, timeline: FakeTimeline) -> None:
    gate = Gate()
    fut = center.submit(options(gate, heavy=True, title="Clone"))
    await settle()

    timeline.now = 500
    gate.reject(TaskError("disk full"))
    with pytest.raises(TaskError) as excinfo:
        await fut
    assert excinfo.value.message == "disk full"
    assert excinfo.value.task_id == "task-1"

    record = center.get_task("task-1")
    assert record.status == TaskStatus.ERROR
    assert record.phase == "Failed"
    assert record.error == "disk full"
    assert record.retryable is True
    assert record.ended_at_ms == 500

    assert center.is_drawer_open is True
    assert [(t.kind, t.message) for t in center.toasts] == [(ToastKind.ERROR, "Clone failed")]
    assert center.heavy_running == 0


@pytest.mark.asyncio
async def test_bare_exception_still_gets_a_message(center: TaskCenter) -> None:
    async def body(controls) -> None:
        raise RuntimeError()

    fut = center.submit(options(body))
    with pytest.raises(TaskError):
        await fut

    record = center.get_task("task-1")
    assert record.error == "RuntimeError"
    assert record.retryable is True


@pytest.mark.asyncio
async def test_error_template_replaces_message_on_record_but_not_on_exception(center: TaskCenter) -> None:
    async def body(controls) -> None:
        raise OSError("No space left on device")

    fut = center.submit(options(body, error_message="Failed to create workspace: x"))
    with pytest.raises(TaskError) as excinfo:
        await fut

    assert excinfo.value.message == "No space left on device"
    assert isinstance(excinfo.value.__cause__, OSError)
    assert center.get_task("task-1").error == "Failed to create workspace: x"
    assert center.toasts[0].message == "Failed to create workspace: x"


@pytest.mark.asyncio
async def test_heavy_lane_with_limit_one_starts_second_task_at_release(timeline: FakeTimeline) -> None:
    center = TaskCenter(fs_concurrency=1, clock=timeline, timers=timeline)
    first, second = Gate(), Gate()

    fut1 = center.submit(options(first, heavy=True))
    fut2 = center.submit(options(second, heavy=True))
    id1, id2 = [t.id for t in center.tasks]

    await settle()
    assert center.get_task(id2).status == TaskStatus.QUEUED
    assert not second.started

    timeline.now = 100
    first.resolve()
    await fut1
    await settle()

    assert center.get_task(id1).ended_at_ms == 100
    assert center.get_task(id2).status == TaskStatus.RUNNING
    assert center.get_task(id2).started_at_ms == 100
    assert second.started

    second.resolve()
    await fut2


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 2, 3])
async def test_heavy_lane_never_exceeds_limit(timeline: FakeTimeline, limit: int) -> None:
    center = TaskCenter(fs_concurrency=limit, clock=timeline, timers=timeline)
    peak = 0

    def track(_record) -> None:
        nonlocal peak
        running = sum(1 for t in center.running_tasks if t.fs_heavy and t.status == TaskStatus.RUNNING)
        peak = max(peak, running)

    center.subscribe(track)

    gates = [Gate() for _ in range(6)]
    futures = [center.submit(options(g, heavy=True)) for g in gates]

    for i, gate in enumerate(gates):
        await settle()
        assert center.heavy_running == min(limit, len(gates) - i)
        if i % 2:
            gate.reject(RuntimeError("nope"))
        else:
            gate.resolve()
        await settle()

    for i, fut in enumerate(futures):
        if i % 2:
            with pytest.raises(TaskError):
                await fut
        else:
            await fut

    assert peak == limit
    assert center.heavy_running == 0
    assert center.heavy_waiting == 0


@pytest.mark.asyncio
async def test_light_task_runs_while_heavy_lane_is_saturated(timeline: FakeTimeline) -> None:
    center = TaskCenter(fs_concurrency=1, clock=timeline, timers=timeline)
    heavy1, heavy2, light = Gate(), Gate(), Gate()

    center.submit(options(heavy1, heavy=True))
    center.submit(options(heavy2, heavy=True))
    light_fut = center.submit(options(light))
    light_id = center.tasks[-1].id

    assert center.get_task(light_id).status == TaskStatus.RUNNING

    await settle()
    light.resolve(42)
    assert await light_fut == 42
    assert center.heavy_waiting == 1

    heavy1.resolve()
    await settle()
    heavy2.resolve()
    await settle()


@pytest.mark.asyncio
async def test_set_phase_updates_only_while_running(center: TaskCenter) -> None:
    gate = Gate()
    fut = center.submit(options(gate))
    await settle()

    gate.controls.set_phase("Copying files", 42.7)
    record = center.get_task("task-1")
    assert (record.phase, record.progress) == ("Copying files", 42)

    gate.controls.set_phase("Overflow", 250)
    assert center.get_task("task-1").progress == 100
    gate.controls.set_phase("Underflow", -5)
    assert center.get_task("task-1").progress == 0
    gate.controls.set_phase("No progress")
    assert center.get_task("task-1").progress is None

    for odd in (float("nan"), float("inf"), float("-inf")):
        gate.controls.set_phase("Odd progress", odd)
        record = center.get_task("task-1")
        assert (record.status, record.phase, record.progress) == (TaskStatus.RUNNING, "Odd progress", None)

    gate.resolve()
    await fut

    gate.controls.set_phase("Too late", 5)
    record = center.get_task("task-1")
    assert (record.phase, record.progress) == ("Done", 100)


@pytest.mark.asyncio
async def test_retry_creates_new_record_and_keeps_failed_one(center: TaskCenter, timeline: FakeTimeline) -> None:
    attempts = 0

    async def flaky(controls) -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise TaskError("disk full")
        return "ok"

    first = center.submit(options(flaky, heavy=True))
    with pytest.raises(TaskError):
        await first

    timeline.now = 100
    retried = center.retry("task-1")
    assert retried is not None
    assert await retried == "ok"

    failed = center.get_task("task-1")
    assert failed.status == TaskStatus.ERROR
    assert failed.retryable is False
    assert center.get_task("task-2").status == TaskStatus.SUCCESS
    assert [t.id for t in center.recent_tasks] == ["task-2", "task-1"]

    # Retry entry was consumed.
    assert center.retry("task-1") is None


@pytest.mark.asyncio
async def test_retry_is_noop_for_success_running_and_unknown(center: TaskCenter) -> None:
    async def ok(controls) -> None:
        return None

    await center.submit(options(ok))
    assert center.retry("task-1") is None

    gate = Gate()
    fut = center.submit(options(gate))
    assert center.retry("task-2") is None
    assert center.can_retry("task-2")

    assert center.retry("nope") is None
    assert len(center.tasks) == 2

    await settle()
    gate.resolve()
    await fut


@pytest.mark.asyncio
async def test_unawaited_failed_retry_is_still_recorded(center: TaskCenter) -> None:
    async def always_fails(controls) -> None:
        raise TaskError("still broken")

    with pytest.raises(TaskError):
        await center.submit(options(always_fails))

    center.retry("task-1")
    await settle()

    again = center.get_task("task-2")
    assert again.status == TaskStatus.ERROR
    assert again.retryable is True
    assert center.can_retry("task-2")


@pytest.mark.asyncio
async def test_success_toast_expires_before_error_toast(center: TaskCenter, timeline: FakeTimeline) -> None:
    ok_gate, bad_gate = Gate(), Gate()
    ok_fut = center.submit(options(ok_gate, title="Good"))
    bad_fut = center.submit(options(bad_gate, title="Bad"))
    await settle()

    ok_gate.resolve()
    bad_gate.reject(RuntimeError("x"))
    await ok_fut
    with pytest.raises(TaskError):
        await bad_fut
    assert [t.kind for t in center.toasts] == [ToastKind.SUCCESS, ToastKind.ERROR]

    timeline.advance(5000)
    assert [t.kind for t in center.toasts] == [ToastKind.ERROR]

    timeline.advance(5000)
    assert center.toasts == ()


@pytest.mark.asyncio
async def test_at_most_six_toasts(center: TaskCenter, timeline: FakeTimeline) -> None:
    gates = [Gate() for _ in range(7)]
    futures = [center.submit(options(g, title=f"Job {i}")) for i, g in enumerate(gates)]
    await settle()

    for gate, fut in zip(gates, futures):
        timeline.advance(100)
        gate.resolve()
        await fut
        assert len(center.toasts) <= 6

    assert [t.message for t in center.toasts] == [f"Job {i} completed" for i in range(1, 7)]


@pytest.mark.asyncio
async def test_view_task_and_drawer_controls(center: TaskCenter, timeline: FakeTimeline) -> None:
    center.view_task("x")
    timeline.advance(1000)
    center.view_task("y")
    timeline.advance(3999)
    assert center.focused_task_id == "y"
    timeline.advance(1)
    assert center.focused_task_id is None

    center.close_drawer()
    assert center.is_drawer_open is False
    center.toggle_drawer()
    assert center.is_drawer_open is True


@pytest.mark.asyncio
async def test_close_cancels_pending_timers(center: TaskCenter, timeline: FakeTimeline) -> None:
    async def ok(controls) -> None:
        return None

    await center.submit(options(ok))
    center.view_task("task-1")
    assert timeline.pending == 2

    center.close()

    assert timeline.pending == 0
    assert center.toasts == ()


@pytest.mark.asyncio
async def test_history_eviction_drops_retry_entries(timeline: FakeTimeline) -> None:
    counter = iter(range(1, 100))
    center = TaskCenter(
        clock=timeline,
        timers=timeline,
        recent_limit=1,
        id_factory=lambda: f"t{next(counter)}",
    )

    async def fails(controls) -> None:
        raise TaskError("x")

    for _ in range(25):
        with pytest.raises(TaskError):
            await center.submit(options(fails))

    # recent_limit + 20 settled records are kept.
    assert len(center.tasks) == 21
    assert len(center.recent_tasks) == 1

    for task_id in ("t1", "t2", "t3", "t4"):
        assert center.get_task(task_id) is None
        assert not center.can_retry(task_id)
        assert center.retry(task_id) is None

    assert all(center.can_retry(t.id) for t in center.tasks)


def _drivers() -> list[asyncio.Task]:
    return [t for t in asyncio.all_tasks() if getattr(t.get_coro(), "__qualname__", "") == "TaskRunner._drive"]


@pytest.mark.asyncio
async def test_cancelled_driver_fails_record_and_admits_nothing(timeline: FakeTimeline) -> None:
    center = TaskCenter(fs_concurrency=1, clock=timeline, timers=timeline)
    first, second = Gate(), Gate()

    fut1 = center.submit(options(first, heavy=True))
    fut2 = center.submit(options(second, heavy=True))
    id1, id2 = [t.id for t in center.tasks]
    await settle()

    drivers = _drivers()
    assert len(drivers) == 1
    drivers[0].cancel()
    await settle()

    record = center.get_task(id1)
    assert record.status == TaskStatus.ERROR
    assert record.error == "Task was cancelled"
    assert record.ended_at_ms is not None
    assert fut1.cancelled()
    assert drivers[0].cancelled()

    assert center.heavy_running == 0
    assert center.heavy_waiting == 1
    assert not second.started
    assert center.get_task(id2).status == TaskStatus.QUEUED
    assert _drivers() == []

    center.close()
    assert center.heavy_waiting == 0
    assert not fut2.done()


@pytest.mark.asyncio
async def test_close_stops_admission_of_queued_heavy_tasks(timeline: FakeTimeline) -> None:
    center = TaskCenter(fs_concurrency=1, clock=timeline, timers=timeline)
    first, second = Gate(), Gate()

    fut1 = center.submit(options(first, heavy=True))
    center.submit(options(second, heavy=True))
    id1, id2 = [t.id for t in center.tasks]
    await settle()

    center.close()
    first.resolve("done")
    assert await fut1 == "done"
    await settle()

    assert not second.started
    assert center.heavy_running == 0
    assert center.get_task(id1).status == TaskStatus.SUCCESS
    assert center.get_task(id2).status == TaskStatus.QUEUED
