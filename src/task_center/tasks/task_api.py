# src/task_center/tasks/task_api.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from ..core.ports import WorkspaceOps
from .task_models import TargetType, TaskControls, TaskKind, TaskRunOptions, TaskTarget

if TYPE_CHECKING:
    from ..center.task_center import TaskCenter

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Project:
    id: int
    name: str
    path: str


@dataclass(slots=True, frozen=True)
class Workspace:
    """A branch workspace: a full copy of a project checked out on its own branch."""

    project_id: int
    branch: str
    path: str
    id: int | None = None


def create_workspace(
    center: TaskCenter,
    ops: WorkspaceOps,
    *,
    project: Project,
    branch: str,
    use_existing_branch: bool = False,
    origin: str = "create_workspace_modal",
) -> asyncio.Future[Workspace]:
    """
    Clone `project` into a new workspace for `branch` (filesystem-heavy).
    Resolves with the stored workspace, including its new id.
    """

    async def run(controls: TaskControls) -> Workspace:
        controls.set_phase("Loading project settings")
        settings = await ops.load_project_settings(project.id)

        controls.set_phase("Creating repository copy")
        workspace = await ops.create_workspace_copy(
            project=project,
            branch=branch,
            copy_ignored_skip=list(settings.get("copy_ignored_skip") or []),
            use_existing_branch=use_existing_branch,
        )

        controls.set_phase("Saving workspace record")
        inserted_id = await ops.insert_workspace_record(workspace)

        controls.set_phase("Refreshing workspaces")
        await ops.refresh_workspaces()
        return replace(workspace, id=inserted_id)

    return center.submit(
        TaskRunOptions(
            kind=TaskKind.CREATE_WORKSPACE,
            title=f"Create workspace: {branch}",
            target=TaskTarget(
                type=TargetType.WORKSPACE,
                label=f"{project.name} / {branch}",
                project_id=project.id,
                project_name=project.name,
                branch=branch,
                path=project.path,
            ),
            origin=origin,
            fs_heavy=True,
            initial_phase="Queued",
            run=run,
            success_message=f"Created workspace: {branch}",
            error_message=f"Failed to create workspace: {branch}",
        )
    )


def delete_workspace(
    center: TaskCenter,
    ops: WorkspaceOps,
    *,
    workspace: Workspace,
    project_name: str,
    origin: str = "sidebar_context_menu",
) -> asyncio.Future[None]:
    """Delete a workspace's files, sessions, tabs and record (filesystem-heavy)."""
    if workspace.id is None:
        raise ValueError("Cannot delete a workspace that was never stored (id is None)")
    workspace_id = workspace.id

    async def run(controls: TaskControls) -> None:
        controls.set_phase("Deleting local files")
        await ops.delete_workspace_files(workspace.path)

        controls.set_phase("Closing terminal sessions")
        await ops.kill_workspace_sessions(workspace, project_name)

        controls.set_phase("Closing open tabs")
        ops.close_workspace_tabs(workspace_id)

        controls.set_phase("Removing database record")
        await ops.delete_workspace_record(workspace_id)

        controls.set_phase("Refreshing workspaces")
        await ops.refresh_workspaces()

    return center.submit(
        TaskRunOptions(
            kind=TaskKind.DELETE_WORKSPACE,
            title=f"Delete workspace: {workspace.branch}",
            target=TaskTarget(
                type=TargetType.WORKSPACE,
                label=f"{project_name} / {workspace.branch}",
                project_id=workspace.project_id,
                workspace_id=workspace_id,
                project_name=project_name,
                branch=workspace.branch,
                path=workspace.path,
            ),
            origin=origin,
            fs_heavy=True,
            initial_phase="Queued",
            run=run,
            success_message=f"Deleted workspace: {workspace.branch}",
            error_message=f"Failed to delete workspace: {workspace.branch}",
        )
    )


def remove_project(
    center: TaskCenter,
    ops: WorkspaceOps,
    *,
    project: Project,
    workspaces: list[Workspace],
    origin: str = "sidebar_context_menu",
) -> asyncio.Future[None]:
    """
    Forget a project: tabs, database row and tmux sessions.
    Files on disk are untouched, so this runs in the light lane.
    """

    async def run(controls: TaskControls) -> None:
        controls.set_phase("Closing open tabs")
        ops.close_project_tabs(project.id)

        controls.set_phase("Removing project from database")
        await ops.remove_project_record(project.id)

        controls.set_phase("Closing terminal sessions")
        await ops.kill_project_sessions(project.id, project.name)
        for workspace in workspaces:
            await ops.kill_workspace_sessions(workspace, project.name)

        controls.set_phase("Refreshing workspaces")
        await ops.refresh_workspaces()

    logger.debug("Removing project %s with %d workspaces", project.id, len(workspaces))
    return center.submit(
        TaskRunOptions(
            kind=TaskKind.REMOVE_PROJECT,
            title=f"Remove project: {project.name}",
            target=TaskTarget(
                type=TargetType.PROJECT,
                label=project.name,
                project_id=project.id,
                project_name=project.name,
            ),
            origin=origin,
            fs_heavy=False,
            initial_phase="Queued",
            run=run,
            success_message=f"Removed project: {project.name}",
            error_message=f"Failed to remove project: {project.name}",
        )
    )
