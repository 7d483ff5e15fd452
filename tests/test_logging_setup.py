# tests/test_logging_setup.py

from __future__ import annotations

import logging

from task_center.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_own_logs_and_mutes_third_parties() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("task_center.center.task_center", logging.INFO))
    assert f.filter(_record("task_center.tasks.task_runner", logging.INFO))
    assert not f.filter(_record("task_center.tasks.task_runner", logging.DEBUG))

    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))
