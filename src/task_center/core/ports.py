# src/task_center/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The engine depends on Protocols instead of concrete implementations.
Time and timers are injected so the scheduling policy can be tested on a fake timeline,
and the git/filesystem/tmux layer stays outside of this package.
"""

from typing import TYPE_CHECKING, Any, Callable, Protocol

if TYPE_CHECKING:
    from ..tasks.task_api import Project, Workspace


class Clock(Protocol):
    """Wall clock in integer milliseconds."""
    def now_ms(self) -> int: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    """
    One-shot cancellable timers.

    asyncio.TimerHandle already satisfies TimerHandle, so the default implementation
    is a thin wrapper over loop.call_later.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class WorkspaceOps(Protocol):
    """
    External collaborators a workspace task body calls into.

    Project/workspace storage, git clones and tmux sessions all live behind this port.
    """

    async def load_project_settings(self, project_id: int) -> dict[str, Any]: ...

    async def create_workspace_copy(
        self,
        *,
        project: Project,
        branch: str,
        copy_ignored_skip: list[str],
        use_existing_branch: bool,
    ) -> Workspace: ...

    async def insert_workspace_record(self, workspace: Workspace) -> int: ...
    async def delete_workspace_files(self, path: str) -> None: ...
    async def delete_workspace_record(self, workspace_id: int) -> None: ...
    async def remove_project_record(self, project_id: int) -> None: ...

    async def kill_workspace_sessions(self, workspace: Workspace, project_name: str) -> None: ...
    async def kill_project_sessions(self, project_id: int, project_name: str) -> None: ...

    def close_workspace_tabs(self, workspace_id: int) -> None: ...
    def close_project_tabs(self, project_id: int) -> None: ...

    async def refresh_workspaces(self) -> None: ...
