# tests/conftest.py

from __future__ import annotations

import pytest

from task_center.center.task_center import TaskCenter

from .fakes import FakeTimeline, FakeWorkspaceOps


@pytest.fixture()
def timeline() -> FakeTimeline:
    """Shared clock + timers; time only moves when the test advances it."""
    return FakeTimeline(start_ms=0)


@pytest.fixture()
def center(timeline: FakeTimeline) -> TaskCenter:
    """
    TaskCenter wired to the fake timeline, heavy lane limited to 2 (the default).

    Sequential ids keep assertions readable.
    """
    counter = iter(range(1, 10_000))
    return TaskCenter(
        fs_concurrency=2,
        clock=timeline,
        timers=timeline,
        id_factory=lambda: f"task-{next(counter)}",
    )


@pytest.fixture()
def ops() -> FakeWorkspaceOps:
    return FakeWorkspaceOps()
