# src/task_center/cli/console.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..center.task_center import TaskCenter
from ..tasks.task_models import TaskRecord, TaskStatus
from .commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _announce_settled(record: TaskRecord) -> None:
    # Called on every store change; only settlements are worth a line.
    if record.status == TaskStatus.SUCCESS and record.phase == "Done":
        _print_ts(f"[TASK] {record.title}: done")
    elif record.status == TaskStatus.ERROR and record.phase == "Failed" and record.retryable:
        _print_ts(f"[TASK] {record.title}: failed ({record.error}). /retry {record.id[:8]}")


async def run_console_loop(center: TaskCenter) -> None:
    logger.info("Console started (fs_concurrency=%d).", center.fs_concurrency)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    unsubscribe = center.subscribe(_announce_settled)

    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break

            if not line:
                continue

            if line.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                response = command_registry.handle(center, line, emit=_print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Not a command. Use /help to list available commands."
            _print_ts(response)
    finally:
        unsubscribe()

    logger.info("Console finished.")
