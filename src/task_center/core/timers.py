# src/task_center/core/timers.py

from __future__ import annotations

import asyncio
import time
from typing import Callable

from .ports import TimerHandle


class SystemClock:
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class LoopTimers:
    """
    TimerScheduler backed by the asyncio event loop.

    The loop is resolved lazily so the object can be built before the loop starts
    (e.g. in the composition root), but call_later itself must run inside the loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0, delay_ms) / 1000.0, callback)
