# src/task_center/center/drawer.py

from __future__ import annotations

from ..core.ports import TimerHandle, TimerScheduler
from ..tasks.task_policy import FOCUS_TTL_MS


class DrawerState:
    """Open/closed flag of the task drawer plus a short-lived focused task."""

    def __init__(self, timers: TimerScheduler, focus_ttl_ms: int = FOCUS_TTL_MS) -> None:
        self._timers = timers
        self._focus_ttl_ms = focus_ttl_ms
        self._open = False
        self._focused: str | None = None
        self._focus_timer: TimerHandle | None = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def focused_task_id(self) -> str | None:
        return self._focused

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def toggle(self) -> None:
        self._open = not self._open

    def view_task(self, task_id: str) -> None:
        """Open the drawer and highlight `task_id` until the focus timer runs out."""
        self._open = True
        self._focused = task_id
        if self._focus_timer is not None:
            self._focus_timer.cancel()
        self._focus_timer = self._timers.call_later(
            self._focus_ttl_ms, lambda: self._expire_focus(task_id)
        )

    def _expire_focus(self, task_id: str) -> None:
        if self._focused == task_id:
            self._focused = None
        self._focus_timer = None

    def close_timers(self) -> None:
        if self._focus_timer is not None:
            self._focus_timer.cancel()
            self._focus_timer = None
