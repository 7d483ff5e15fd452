# src/task_center/center/task_center.py

"""
Task center facade.

This is the composition point of the engine: it owns the store, the admission queue,
the toast board, the drawer state and the runner, and exposes what the UI is allowed
to call and read. Nothing here is process-global; build one per application window.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TypeVar

from ..config import Settings
from ..core.ports import Clock, TimerScheduler
from ..core.timers import LoopTimers, SystemClock
from ..tasks.task_models import TaskRecord, TaskRunOptions, Toast
from ..tasks.task_policy import DEFAULT_FS_CONCURRENCY, MAX_RECENT_TASKS
from ..tasks.task_queue import AdmissionQueue
from ..tasks.task_runner import TaskRunner
from ..tasks.task_store import HISTORY_HEADROOM, StoreListener, TaskStore
from ..tasks.toasts import ToastBoard
from .drawer import DrawerState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskCenter:
    def __init__(
        self,
        fs_concurrency: int = DEFAULT_FS_CONCURRENCY,
        *,
        clock: Clock | None = None,
        timers: TimerScheduler | None = None,
        recent_limit: int = MAX_RECENT_TASKS,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._timers = timers or LoopTimers()
        self._recent_limit = recent_limit

        self._store = TaskStore(history_limit=recent_limit + HISTORY_HEADROOM)
        self._queue = AdmissionQueue(fs_concurrency)
        self._toasts = ToastBoard(self._timers, self._clock)
        self._drawer = DrawerState(self._timers)
        self._runner = TaskRunner(
            self._store,
            self._queue,
            self._toasts,
            clock=self._clock,
            on_failure=self._on_task_failed,
            id_factory=id_factory,
        )
        self._store.on_evict(lambda record: self._runner.forget(record.id))

        logger.info("TaskCenter ready fs_concurrency=%d recent_limit=%d", fs_concurrency, recent_limit)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> TaskCenter:
        return cls(settings.fs_concurrency, **kwargs)

    # ---- caller -> engine ----

    def submit(self, options: TaskRunOptions[T]) -> asyncio.Future[T]:
        return self._runner.submit(options)

    def retry(self, task_id: str) -> asyncio.Future[Any] | None:
        return self._runner.retry(task_id)

    def dismiss_toast(self, toast_id: str) -> bool:
        return self._toasts.dismiss(toast_id)

    def view_task(self, task_id: str) -> None:
        self._drawer.view_task(task_id)

    def open_drawer(self) -> None:
        self._drawer.open()

    def close_drawer(self) -> None:
        self._drawer.close()

    def toggle_drawer(self) -> None:
        self._drawer.toggle()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    def close(self) -> None:
        """
        Stop admitting queued tasks and cancel pending toast/focus timers.

        In-flight task bodies are left alone; queued ones never start.
        """
        self._queue.close()
        self._toasts.clear()
        self._drawer.close_timers()

    # ---- engine -> UI (read-only) ----

    @property
    def tasks(self) -> list[TaskRecord]:
        return self._store.all()

    @property
    def running_tasks(self) -> list[TaskRecord]:
        return self._store.running()

    @property
    def recent_tasks(self) -> list[TaskRecord]:
        return self._store.recent(self._recent_limit)

    @property
    def toasts(self) -> tuple[Toast, ...]:
        return self._toasts.toasts

    @property
    def running_count(self) -> int:
        return self._store.running_count

    @property
    def is_drawer_open(self) -> bool:
        return self._drawer.is_open

    @property
    def focused_task_id(self) -> str | None:
        return self._drawer.focused_task_id

    @property
    def fs_concurrency(self) -> int:
        return self._queue.fs_concurrency

    @property
    def heavy_running(self) -> int:
        return self._queue.running_heavy

    @property
    def heavy_waiting(self) -> int:
        return self._queue.pending_heavy

    def get_task(self, task_id: str) -> TaskRecord | None:
        return self._store.get(task_id)

    def can_retry(self, task_id: str) -> bool:
        return self._runner.has_retry(task_id)

    # ---- internals ----

    def _on_task_failed(self, task_id: str) -> None:
        # A failure always surfaces the drawer.
        self._drawer.open()
