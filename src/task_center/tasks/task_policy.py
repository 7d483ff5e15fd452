# src/task_center/tasks/task_policy.py

"""
Notification policy.

Pure functions over task records: elapsed time, status labels/tones, toast lifetime,
default messages, failure normalization and the running/recent views.
Nothing here holds state or touches timers.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from enum import StrEnum

from .task_models import TaskError, TaskRecord, TaskRunOptions, TaskStatus, ToastKind

DEFAULT_FS_CONCURRENCY = 2
SUCCESS_TOAST_TTL_MS = 5000
ERROR_TOAST_TTL_MS = 10000
MAX_TOASTS = 6
MAX_RECENT_TASKS = 30
FOCUS_TTL_MS = 4000


class StatusTone(StrEnum):
    NEUTRAL = "neutral"
    ACCENT = "accent"
    SUCCESS = "success"
    ERROR = "error"


_LABELS = {
    TaskStatus.QUEUED: "Queued",
    TaskStatus.RUNNING: "Running",
    TaskStatus.SUCCESS: "Success",
    TaskStatus.ERROR: "Failed",
}

_TONES = {
    TaskStatus.QUEUED: StatusTone.NEUTRAL,
    TaskStatus.RUNNING: StatusTone.ACCENT,
    TaskStatus.SUCCESS: StatusTone.SUCCESS,
    TaskStatus.ERROR: StatusTone.ERROR,
}

_TONE_CLASSES = {
    StatusTone.NEUTRAL: "text-yellow",
    StatusTone.ACCENT: "text-accent",
    StatusTone.SUCCESS: "text-green",
    StatusTone.ERROR: "text-red",
}


def format_elapsed(
    started_at_ms: int | None,
    ended_at_ms: int | None = None,
    now_ms: int | None = None,
) -> str:
    """
    "waiting" until started, then "Ns" or "Mm Ss".

    A zero start is treated as "never started" (records use None, but callers
    rendering raw timestamps may pass 0).
    """
    if not started_at_ms:
        return "waiting"

    if ended_at_ms is not None:
        end = ended_at_ms
    elif now_ms is not None:
        end = now_ms
    else:
        end = int(time.time() * 1000)

    total_seconds = max(0, end - started_at_ms) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def status_label(status: TaskStatus) -> str:
    return _LABELS[TaskStatus(status)]


def status_tone(status: TaskStatus) -> StatusTone:
    return _TONES[TaskStatus(status)]


def status_style_class(status: TaskStatus) -> str:
    return _TONE_CLASSES[status_tone(status)]


def toast_ttl_ms(kind: ToastKind) -> int:
    if ToastKind(kind) == ToastKind.ERROR:
        return ERROR_TOAST_TTL_MS
    return SUCCESS_TOAST_TTL_MS


def success_message(options: TaskRunOptions) -> str:
    return options.success_message or f"{options.title} completed"


def failure_toast_message(options: TaskRunOptions) -> str:
    return options.error_message or f"{options.title} failed"


def failure_record_message(options: TaskRunOptions, error: TaskError) -> str:
    return options.error_message or error.message


def normalize_error(value: object, *, task_id: str | None = None) -> TaskError:
    """
    Turn whatever a task body failed with into a TaskError carrying a non-empty message.

    The original exception (if any) is kept as __cause__.
    """
    if isinstance(value, TaskError):
        if task_id is not None and value.task_id is None:
            value.task_id = task_id
        return value

    if isinstance(value, BaseException):
        message = str(value).strip() or type(value).__name__
        err = TaskError(message, task_id=task_id)
        err.__cause__ = value
        return err

    message = "" if value is None else str(value).strip()
    return TaskError(message or "Unknown error", task_id=task_id)


def running_tasks(records: Iterable[TaskRecord]) -> list[TaskRecord]:
    """Queued and running records, newest first."""
    out = [r for r in records if r.status.is_active]
    out.sort(key=lambda r: r.created_at_ms, reverse=True)
    return out


def recent_tasks(records: Iterable[TaskRecord], limit: int = MAX_RECENT_TASKS) -> list[TaskRecord]:
    """Settled records, most recently ended first, at most `limit`."""
    out = [r for r in records if r.status.is_terminal]
    out.sort(
        key=lambda r: r.ended_at_ms if r.ended_at_ms is not None else r.created_at_ms,
        reverse=True,
    )
    return out[: max(0, limit)]
