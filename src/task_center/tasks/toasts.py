# src/task_center/tasks/toasts.py

from __future__ import annotations

import logging
import uuid

from ..core.ports import Clock, TimerHandle, TimerScheduler
from .task_models import Toast, ToastKind
from .task_policy import MAX_TOASTS, toast_ttl_ms

logger = logging.getLogger(__name__)


class ToastBoard:
    """
    Bounded list of transient notifications, each with its own expiry timer.

    Whatever removes a toast (dismissal, expiry, eviction) also cancels its timer,
    so no callback fires for a toast that is already gone.
    """

    def __init__(self, timers: TimerScheduler, clock: Clock, max_toasts: int = MAX_TOASTS) -> None:
        self._timers = timers
        self._clock = clock
        self._max = max(1, int(max_toasts))
        self._toasts: list[Toast] = []
        self._pending: dict[str, TimerHandle] = {}

    @property
    def toasts(self) -> tuple[Toast, ...]:
        return tuple(self._toasts)

    def push(self, *, task_id: str, kind: ToastKind, message: str) -> Toast:
        toast = Toast(
            id=uuid.uuid4().hex,
            task_id=task_id,
            kind=ToastKind(kind),
            message=message,
            created_at_ms=self._clock.now_ms(),
        )

        while len(self._toasts) >= self._max:
            evicted = self._toasts.pop(0)
            self._cancel_timer(evicted.id)
            logger.debug("Toast %s evicted (cap=%d)", evicted.id, self._max)

        self._toasts.append(toast)
        self._pending[toast.id] = self._timers.call_later(
            toast_ttl_ms(toast.kind), lambda: self.dismiss(toast.id)
        )
        return toast

    def dismiss(self, toast_id: str) -> bool:
        """Remove a toast. Returns False if it was already gone."""
        self._cancel_timer(toast_id)
        for idx, toast in enumerate(self._toasts):
            if toast.id == toast_id:
                del self._toasts[idx]
                return True
        return False

    def clear(self) -> None:
        for toast_id in list(self._pending):
            self._cancel_timer(toast_id)
        self._toasts.clear()

    def _cancel_timer(self, toast_id: str) -> None:
        handle = self._pending.pop(toast_id, None)
        if handle is not None:
            handle.cancel()
