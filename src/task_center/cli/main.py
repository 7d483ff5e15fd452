# src/task_center/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds a TaskCenter from settings, then runs the console
on the asyncio event loop until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..center.task_center import TaskCenter
from ..config import Settings, get_settings
from ..logging_setup import setup_logging
from .console import run_console_loop

logger = logging.getLogger(__name__)


async def _amain(settings: Settings) -> None:
    center = TaskCenter.from_settings(settings)
    try:
        await run_console_loop(center)
    finally:
        if center.running_count:
            logger.info("Exiting with %d unfinished task(s).", center.running_count)
        center.close()


def main() -> None:
    settings = get_settings()

    console_level = getattr(logging, settings.log_level, logging.INFO)
    setup_logging(
        log_dir=settings.data_dir if settings.log_to_file else None,
        console_level=console_level,
    )

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(_amain(settings))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
