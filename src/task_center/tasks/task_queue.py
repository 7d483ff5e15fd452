# src/task_center/tasks/task_queue.py

from __future__ import annotations

"""
Admission queue.

Two independent FIFO lanes:
- light: unbounded, every item runs as soon as it is pumped
- heavy: at most `fs_concurrency` items running at once

`run` callbacks are invoked synchronously on admission. Whoever enqueued a heavy item
must call release() exactly once when that item settles, which re-pumps the queue.
After close() nothing new is admitted and pending items are dropped.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from .task_policy import DEFAULT_FS_CONCURRENCY

logger = logging.getLogger(__name__)


class Lane(StrEnum):
    HEAVY = "heavy"
    LIGHT = "light"

    @classmethod
    def for_task(cls, fs_heavy: bool) -> Lane:
        return cls.HEAVY if fs_heavy else cls.LIGHT


@dataclass(slots=True, frozen=True)
class QueueItem:
    lane: Lane
    run: Callable[[], None]


class AdmissionQueue:
    def __init__(self, fs_concurrency: int = DEFAULT_FS_CONCURRENCY) -> None:
        if int(fs_concurrency) < 1:
            raise ValueError(f"fs_concurrency must be >= 1, got {fs_concurrency!r}")
        self._limit = int(fs_concurrency)
        self._light: deque[QueueItem] = deque()
        self._heavy: deque[QueueItem] = deque()
        self._running_heavy = 0
        self._closed = False

    @property
    def fs_concurrency(self) -> int:
        return self._limit

    @property
    def running_heavy(self) -> int:
        return self._running_heavy

    @property
    def pending_heavy(self) -> int:
        return len(self._heavy)

    @property
    def pending_light(self) -> int:
        return len(self._light)

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, item: QueueItem) -> None:
        if self._closed:
            logger.warning("Admission queue is closed; dropping %s item", item.lane)
            return
        if item.lane == Lane.HEAVY:
            self._heavy.append(item)
        else:
            self._light.append(item)
        self.pump()

    def release(self, *, admit: bool = True) -> None:
        """Give back one heavy slot; with `admit`, start whatever now fits."""
        if self._running_heavy <= 0:
            logger.warning("Heavy lane release without a running item; ignoring")
        else:
            self._running_heavy -= 1
        if admit:
            self.pump()

    def close(self) -> None:
        """Stop admitting. Items still waiting are dropped."""
        dropped = len(self._heavy) + len(self._light)
        self._closed = True
        self._heavy.clear()
        self._light.clear()
        if dropped:
            logger.info("Admission queue closed; dropped %d waiting item(s)", dropped)

    def pump(self) -> None:
        if self._closed:
            return

        while self._light:
            self._light.popleft().run()

        while self._running_heavy < self._limit and self._heavy:
            item = self._heavy.popleft()
            self._running_heavy += 1
            logger.debug(
                "Heavy lane admit running=%d/%d waiting=%d",
                self._running_heavy,
                self._limit,
                len(self._heavy),
            )
            item.run()
