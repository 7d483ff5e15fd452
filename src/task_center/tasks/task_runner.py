# src/task_center/tasks/task_runner.py

from __future__ import annotations

"""
Task runner.

Drives one submission through its lifecycle:
- create a queued record and a retry entry,
- hand a queue item to the admission queue,
- on admission: mark running and schedule the body on the event loop,
- on settlement: update the record, emit a toast, settle the caller's future,
  and (heavy lane only) release exactly one slot.

Settlement happens in one place (_drive), so a heavy slot is released once per task
and never before the body has finished.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from ..core.ports import Clock
from .task_models import (
    TaskControls,
    TaskError,
    TaskRecord,
    TaskRunOptions,
    TaskStatus,
    ToastKind,
)
from .task_policy import (
    failure_record_message,
    failure_toast_message,
    normalize_error,
    success_message,
)
from .task_queue import AdmissionQueue, Lane, QueueItem
from .task_store import TaskStore
from .toasts import ToastBoard

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RetryEntry(Generic[T]):
    """Recipe for re-submitting a task: the original options plus the submit function."""

    options: TaskRunOptions[T]
    submit: Callable[[TaskRunOptions[T]], asyncio.Future[T]]

    def resubmit(self) -> asyncio.Future[T]:
        return self.submit(self.options)


def _observe(fut: asyncio.Future[Any]) -> None:
    # Failures are already on the record and in a toast.
    if not fut.cancelled():
        fut.exception()


class TaskRunner:
    def __init__(
        self,
        store: TaskStore,
        queue: AdmissionQueue,
        toasts: ToastBoard,
        *,
        clock: Clock,
        on_failure: Callable[[str], None] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._toasts = toasts
        self._clock = clock
        self._on_failure = on_failure
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._retry: dict[str, RetryEntry[Any]] = {}
        self._drivers: set[asyncio.Task[None]] = set()

    # ---- public API ----

    def submit(self, options: TaskRunOptions[T]) -> asyncio.Future[T]:
        """
        Submit a task. Must be called from inside the running event loop.

        The record is created and queued before this returns; a light task is already
        `running` by then. The returned future settles with the body's result, or
        with a TaskError if the body failed.
        """
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[T] = loop.create_future()

        task_id = self._new_id()
        record = TaskRecord(
            id=task_id,
            kind=options.kind,
            status=TaskStatus.QUEUED,
            title=options.title,
            phase=options.initial_phase or "Queued",
            fs_heavy=bool(options.fs_heavy),
            origin=options.origin,
            target=options.target,
            created_at_ms=self._clock.now_ms(),
        )
        self._store.add(record)
        self._retry[task_id] = RetryEntry(options=options, submit=self.submit)

        lane = Lane.for_task(record.fs_heavy)
        logger.info("Task %s queued kind=%s lane=%s title=%r", task_id, options.kind, lane, options.title)

        def admit() -> None:
            self._start(task_id, options)
            driver = loop.create_task(self._drive(task_id, options, outcome, lane))
            self._drivers.add(driver)
            driver.add_done_callback(self._drivers.discard)

        self._queue.enqueue(QueueItem(lane=lane, run=admit))
        return outcome

    def retry(self, task_id: str) -> asyncio.Future[Any] | None:
        """
        Re-submit the original request of a failed task as a new record.

        Returns the new submission's future, or None when there is nothing to retry
        (unknown id, task succeeded, or its retry was already used).
        The failed record is left as it is, except that it is no longer retryable.
        """
        record = self._store.get(task_id)
        if record is not None and record.status != TaskStatus.ERROR:
            logger.debug("Retry ignored: task %s is %s", task_id, record.status)
            return None

        entry = self._retry.pop(task_id, None)
        if entry is None:
            logger.debug("Retry ignored: no retry entry for task %s", task_id)
            return None

        self._store.set_retryable(task_id, False)
        logger.info("Retrying task %s", task_id)
        fut = entry.resubmit()
        fut.add_done_callback(_observe)
        return fut

    def forget(self, task_id: str) -> None:
        """Drop the retry entry of a record that left the store."""
        if self._retry.pop(task_id, None) is not None:
            logger.debug("Dropped retry entry of evicted task %s", task_id)

    def has_retry(self, task_id: str) -> bool:
        return task_id in self._retry

    def retry_ids(self) -> list[str]:
        return list(self._retry)

    @property
    def in_flight(self) -> int:
        return len(self._drivers)

    # ---- lifecycle ----

    def _start(self, task_id: str, options: TaskRunOptions[Any]) -> None:
        self._store.update(
            task_id,
            status=TaskStatus.RUNNING,
            started_at_ms=self._clock.now_ms(),
            phase=options.initial_phase or "Starting",
            progress=None,
            error=None,
            retryable=False,
        )
        logger.info("Task %s -> running", task_id)

    def _set_phase(self, task_id: str, phase: str, progress: int | None) -> None:
        record = self._store.get(task_id)
        if record is None or record.status != TaskStatus.RUNNING:
            logger.debug("Ignoring phase %r for task %s (not running)", phase, task_id)
            return
        self._store.update(task_id, phase=phase, progress=progress)
        logger.debug("Task %s phase=%r progress=%s", task_id, phase, progress)

    async def _drive(
        self,
        task_id: str,
        options: TaskRunOptions[T],
        outcome: asyncio.Future[T],
        lane: Lane,
    ) -> None:
        controls = TaskControls(task_id, self._set_phase)
        cancelled = False
        try:
            result = await options.run(controls)
        except asyncio.CancelledError:
            cancelled = True
            self._fail(task_id, options, normalize_error("Task was cancelled", task_id=task_id))
            outcome.cancel()
            raise
        except Exception as exc:
            error = normalize_error(exc, task_id=task_id)
            self._fail(task_id, options, error)
            if not outcome.done():
                outcome.set_exception(error)
        else:
            self._succeed(task_id, options)
            if not outcome.done():
                outcome.set_result(result)
        finally:
            if lane == Lane.HEAVY:
                # A cancelled driver frees its slot without admitting the next item.
                self._queue.release(admit=not cancelled)

    def _succeed(self, task_id: str, options: TaskRunOptions[Any]) -> None:
        self._store.update(
            task_id,
            status=TaskStatus.SUCCESS,
            phase="Done",
            progress=100,
            ended_at_ms=self._clock.now_ms(),
            retryable=False,
        )
        self._retry.pop(task_id, None)
        logger.info("Task %s -> success", task_id)
        self._toasts.push(task_id=task_id, kind=ToastKind.SUCCESS, message=success_message(options))

    def _fail(self, task_id: str, options: TaskRunOptions[Any], error: TaskError) -> None:
        self._store.update(
            task_id,
            status=TaskStatus.ERROR,
            phase="Failed",
            ended_at_ms=self._clock.now_ms(),
            error=failure_record_message(options, error),
            retryable=task_id in self._retry,
        )
        logger.warning("Task %s -> error: %s", task_id, error.message)
        if self._on_failure is not None:
            self._on_failure(task_id)
        self._toasts.push(task_id=task_id, kind=ToastKind.ERROR, message=failure_toast_message(options))
