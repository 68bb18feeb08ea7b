"""Runtime logging helpers."""

from __future__ import annotations

import sys
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "console"]

_DEFAULT_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[check]} | {message}"
)
_CONFIGURED: tuple[LogProfile, str] | None = None


def _build_console_handler(console: Console | None) -> Handler:
    return RichHandler(
        console=console or Console(stderr=True),
        show_level=True,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(
    *,
    profile: LogProfile = "default",
    level: str = "INFO",
    console: Console | None = None,
) -> None:
    """Configure process-level logging once per profile and level."""
    from sitwell.monitor.orchestrator import current_check

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["check"] = current_check() or "-"

    global _CONFIGURED
    level = level.upper()
    if _CONFIGURED == (profile, level):
        return

    logger.remove()
    logger.configure(patcher=inject_context)
    if profile == "console":
        logger.add(
            _build_console_handler(console),
            level=level,
            format="[{extra[check]}] {message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_DEFAULT_FORMAT,
            backtrace=False,
            diagnose=False,
        )
    _CONFIGURED = (profile, level)
