# src/task_center/tasks/task_models.py

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    queued -> running -> success | error. A failed task is never re-run in place:
    retry submits a new record.
    """

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (TaskStatus.QUEUED, TaskStatus.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCESS, TaskStatus.ERROR)


class TaskKind(StrEnum):
    CREATE_WORKSPACE = "create_workspace"
    DELETE_WORKSPACE = "delete_workspace"
    REMOVE_PROJECT = "remove_project"


class TargetType(StrEnum):
    PROJECT = "project"
    WORKSPACE = "workspace"
    SYSTEM = "system"


class ToastKind(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class TaskTarget:
    """Subject of an operation. Opaque to the engine; passed through for rendering."""

    type: TargetType
    label: str
    project_id: int | None = None
    workspace_id: int | None = None
    project_name: str | None = None
    branch: str | None = None
    path: str | None = None


@dataclass(slots=True, frozen=True)
class TaskRecord:
    id: str
    kind: TaskKind | str
    status: TaskStatus
    title: str
    phase: str
    fs_heavy: bool
    origin: str
    target: TaskTarget
    created_at_ms: int

    retryable: bool = False
    progress: int | None = None
    started_at_ms: int | None = None
    ended_at_ms: int | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class Toast:
    id: str
    task_id: str  # lookup only; the task may already be gone from history
    kind: ToastKind
    message: str
    created_at_ms: int


class TaskControls:
    """
    The only handle a task body gets on its own record.

    Bodies may report phase/progress; status and timestamps stay with the engine.
    """

    __slots__ = ("_task_id", "_apply")

    def __init__(self, task_id: str, apply: Callable[[str, str, int | None], None]) -> None:
        self._task_id = task_id
        self._apply = apply

    @property
    def task_id(self) -> str:
        return self._task_id

    def set_phase(self, phase: str, progress: int | float | None = None) -> None:
        if progress is None or not math.isfinite(progress):
            clamped = None
        else:
            clamped = max(0, min(100, int(progress)))
        self._apply(self._task_id, phase, clamped)


TaskBody = Callable[[TaskControls], Awaitable[T]]


@dataclass(slots=True, frozen=True)
class TaskRunOptions(Generic[T]):
    kind: TaskKind | str
    title: str
    target: TaskTarget
    origin: str
    fs_heavy: bool
    run: TaskBody[T]
    initial_phase: str | None = None
    success_message: str | None = None
    error_message: str | None = None


class TaskError(Exception):
    """Uniform failure shape for anything a task body raised."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.task_id = task_id
