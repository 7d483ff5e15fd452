# src/task_center/tasks/task_store.py

from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from typing import Any, Callable

from .task_models import TaskRecord
from .task_policy import MAX_RECENT_TASKS, recent_tasks, running_tasks

logger = logging.getLogger(__name__)

HISTORY_HEADROOM = 20

StoreListener = Callable[[TaskRecord], None]


class TaskStore:
    """
    In-memory task record store.

    Storage is split in two:
    - active: queued/running records, never evicted (a settling task always finds its record)
    - history: settled records, bounded; the oldest are dropped first

    Records are frozen; every change replaces the stored object, so anything handed
    out earlier stays a consistent snapshot.
    """

    def __init__(self, history_limit: int = MAX_RECENT_TASKS + HISTORY_HEADROOM) -> None:
        self._active: dict[str, TaskRecord] = {}
        self._history: deque[TaskRecord] = deque()
        self._history_limit = max(1, int(history_limit))
        self._listeners: list[StoreListener] = []
        self._evict_listeners: list[StoreListener] = []

    # ---- listeners ----

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_evict(self, listener: StoreListener) -> None:
        """Called with each settled record dropped from history."""
        self._evict_listeners.append(listener)

    def _notify(self, record: TaskRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.exception("Task store listener failed task_id=%s", record.id)

    # ---- mutations ----

    def add(self, record: TaskRecord) -> None:
        if record.status.is_terminal:
            self._push_history(record)
        else:
            self._active[record.id] = record
        self._notify(record)

    def update(self, task_id: str, **changes: Any) -> TaskRecord | None:
        """
        Replace fields of a record. Returns the new record, or None if the id is unknown
        (never existed, or already evicted from history).
        """
        current = self._active.get(task_id)
        if current is not None:
            updated = replace(current, **changes)
            if updated.status.is_terminal:
                del self._active[task_id]
                self._push_history(updated)
            else:
                self._active[task_id] = updated
            self._notify(updated)
            return updated

        for idx, record in enumerate(self._history):
            if record.id == task_id:
                updated = replace(record, **changes)
                self._history[idx] = updated
                self._notify(updated)
                return updated

        return None

    def set_retryable(self, task_id: str, value: bool) -> TaskRecord | None:
        record = self.get(task_id)
        if record is None or record.retryable == value:
            return record
        return self.update(task_id, retryable=value)

    def _push_history(self, record: TaskRecord) -> None:
        self._history.append(record)
        while len(self._history) > self._history_limit:
            evicted = self._history.popleft()
            logger.debug("Evicted task %s from history", evicted.id)
            for listener in list(self._evict_listeners):
                try:
                    listener(evicted)
                except Exception:
                    logger.exception("Eviction listener failed task_id=%s", evicted.id)

    # ---- reads ----

    def get(self, task_id: str) -> TaskRecord | None:
        record = self._active.get(task_id)
        if record is not None:
            return record
        for record in self._history:
            if record.id == task_id:
                return record
        return None

    def all(self) -> list[TaskRecord]:
        """Every known record, oldest submission first."""
        out = [*self._active.values(), *self._history]
        out.sort(key=lambda r: r.created_at_ms)
        return out

    def running(self) -> list[TaskRecord]:
        return running_tasks(self._active.values())

    def recent(self, limit: int = MAX_RECENT_TASKS) -> list[TaskRecord]:
        return recent_tasks(self._history, limit)

    @property
    def running_count(self) -> int:
        return len(self._active)

    def __len__(self) -> int:
        return len(self._active) + len(self._history)
