# src/task_center/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..center.task_center import TaskCenter
from ..tasks.task_models import TargetType, TaskControls, TaskRecord, TaskRunOptions, TaskTarget
from ..tasks.task_policy import format_elapsed, status_label

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[TaskCenter, list[str]], str]
CommandHandler3 = Callable[[TaskCenter, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        center: TaskCenter,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(center, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(center, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(task_id: str) -> str:
    return task_id[:8]


def _resolve_task_id(center: TaskCenter, prefix: str) -> str | None:
    """Accept a full id or an unambiguous prefix (ids are printed shortened)."""
    matches = [t.id for t in center.tasks if t.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return None


def _format_task(task: TaskRecord, now_ms: int | None, focused: bool) -> str:
    marker = "*" if focused else " "
    progress = f" {task.progress}%" if task.progress is not None and task.status == "running" else ""
    line = (
        f"{marker} {_short(task.id)}  {status_label(task.status):<7}  {task.title}"
        f"  [{task.phase}{progress}]  {format_elapsed(task.started_at_ms, task.ended_at_ms, now_ms)}"
    )
    if task.error:
        line += f"\n      error: {task.error}"
    if task.retryable:
        line += f"\n      retry with /retry {_short(task.id)}"
    return line


def cmd_help(center: TaskCenter, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(center: TaskCenter, args: list[str]) -> str:
    return (
        "Status:\n"
        f"  Running/queued tasks: {center.running_count}\n"
        f"  Heavy lane: {center.heavy_running}/{center.fs_concurrency} running, {center.heavy_waiting} waiting\n"
        f"  Toasts: {len(center.toasts)}\n"
        f"  Drawer: {'open' if center.is_drawer_open else 'closed'}"
    )


def cmd_tasks(center: TaskCenter, args: list[str]) -> str:
    focused = center.focused_task_id
    lines = ["Running:"]
    running = center.running_tasks
    if not running:
        lines.append("  No active tasks")
    lines.extend(_format_task(t, None, t.id == focused) for t in running)

    lines.append("Recent:")
    recent = center.recent_tasks
    if not recent:
        lines.append("  No recent tasks")
    lines.extend(_format_task(t, None, t.id == focused) for t in recent)
    return "\n".join(lines)


def cmd_toasts(center: TaskCenter, args: list[str]) -> str:
    toasts = center.toasts
    if not toasts:
        return "No notifications."
    lines = ["Notifications:"]
    for toast in toasts:
        lines.append(f"  {_short(toast.id)} [{toast.kind}] {toast.message} (task {_short(toast.task_id)})")
    return "\n".join(lines)


def cmd_run(center: TaskCenter, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /run <seconds> [heavy] [fail]  -> submit a demo task that reports progress once a second
    """
    if not args:
        return "Usage: /run <seconds> [heavy] [fail]"
    try:
        seconds = max(0.0, float(args[0]))
    except ValueError:
        return f"Not a number of seconds: {args[0]}"

    flags = {a.lower() for a in args[1:]}
    heavy = "heavy" in flags
    fail = "fail" in flags
    steps = max(1, int(seconds))

    async def run(controls: TaskControls) -> None:
        for i in range(steps):
            controls.set_phase(f"Step {i + 1}/{steps}", (i * 100) // steps)
            await asyncio.sleep(seconds / steps)
        if fail:
            raise RuntimeError("Demo task failed on purpose")

    if heavy and emit is not None and center.heavy_running >= center.fs_concurrency:
        emit(f"[TASK] Heavy lane is full ({center.fs_concurrency}); the task will wait for a free slot.")

    title = f"Demo {'heavy' if heavy else 'light'} task ({seconds:g}s)"
    fut = center.submit(
        TaskRunOptions(
            kind="demo",
            title=title,
            target=TaskTarget(type=TargetType.SYSTEM, label="demo"),
            origin="console",
            fs_heavy=heavy,
            run=run,
        )
    )
    # Outcome is reported through the task record and toasts.
    fut.add_done_callback(lambda f: f.cancelled() or f.exception())
    return f"Submitted: {title}"


def cmd_retry(center: TaskCenter, args: list[str]) -> str:
    if not args:
        return "Usage: /retry <task-id>"
    task_id = _resolve_task_id(center, args[0])
    if task_id is None:
        return f"No single task matches {args[0]!r}."
    if center.retry(task_id) is None:
        return f"Task {_short(task_id)} cannot be retried."
    return f"Retrying task {_short(task_id)} as a new task."


def cmd_view(center: TaskCenter, args: list[str]) -> str:
    if not args:
        return "Usage: /view <task-id>"
    task_id = _resolve_task_id(center, args[0])
    if task_id is None:
        return f"No single task matches {args[0]!r}."
    center.view_task(task_id)
    return f"Focused task {_short(task_id)}."


def cmd_dismiss(center: TaskCenter, args: list[str]) -> str:
    if not args:
        return "Usage: /dismiss <toast-id>|all"
    if args[0].lower() == "all":
        for toast in center.toasts:
            center.dismiss_toast(toast.id)
        return "All notifications dismissed."
    matches = [t.id for t in center.toasts if t.id.startswith(args[0])]
    if len(matches) != 1 or not center.dismiss_toast(matches[0]):
        return f"No single notification matches {args[0]!r}."
    return "Dismissed."


def cmd_drawer(center: TaskCenter, args: list[str]) -> str:
    """
    /drawer          -> toggle
    /drawer open     -> open
    /drawer close    -> close
    """
    sub = args[0].lower() if args else "toggle"
    if sub == "open":
        center.open_drawer()
    elif sub == "close":
        center.close_drawer()
    elif sub == "toggle":
        center.toggle_drawer()
    else:
        return "Usage: /drawer [open|close|toggle]"
    return f"Drawer is {'open' if center.is_drawer_open else 'closed'}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show lane usage, toasts and drawer state.")
registry.register("tasks", cmd_tasks, help_text="List running and recent tasks.", aliases=["ls"])
registry.register("toasts", cmd_toasts, help_text="List active notifications.")
registry.register("run", cmd_run, help_text="Submit a demo task: /run <seconds> [heavy] [fail].")
registry.register("retry", cmd_retry, help_text="Retry a failed task: /retry <task-id>.")
registry.register("view", cmd_view, help_text="Focus a task in the drawer: /view <task-id>.")
registry.register("dismiss", cmd_dismiss, help_text="Dismiss a notification: /dismiss <toast-id>|all.")
registry.register("drawer", cmd_drawer, help_text="Open/close the drawer: /drawer [open|close|toggle].")
