# -*- coding: utf-8 -*-
"""structlog setup shared by every module.

Usage::

    logger = setup_logger()
    logger.info("generation finished", path="NewPath", samples=120)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
import inspect
import logging
import sys
from typing import Any, Optional

import structlog

from .config import get_settings

_CONFIGURED = False
_NAME_WIDTH = 28


def _configure_structlog() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def _compact_console_processor(logger: Any, method_name: str, event_dict: Mapping[str, Any]) -> str:
    """Format as ``HH:MM:SS.mmm [lvl][module] event key=value ...``."""
    event_dict = dict(event_dict)
    timestamp = event_dict.pop("timestamp", "")
    try:
        dt = datetime.fromisoformat(str(timestamp).replace("Z", "+00:00"))
    except ValueError:
        dt = datetime.now()
    time_str = dt.strftime("%H:%M:%S") + f".{dt.microsecond // 1000:03d}"

    level = str(event_dict.pop("level", "???"))[:3].lower()
    name = str(event_dict.pop("logger", ""))[-_NAME_WIDTH:]
    event = event_dict.pop("event", "")
    exc = event_dict.pop("exception", None)
    for key in ("_record", "_from_structlog", "exc_info"):
        event_dict.pop(key, None)

    line = f"{time_str} [{level}][{name:<{_NAME_WIDTH}s}] {event}"
    kv = " ".join(f"{k}={v}" for k, v in sorted(event_dict.items()))
    if kv:
        line += " " + kv
    if exc:
        line += "\n" + str(exc)
    return line


def _default_level() -> int:
    name = get_settings().log_level.upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: Optional[str] = None, *, level: Optional[int] = None) -> Any:
    """Return a structlog logger named after the calling module."""
    if name is None:
        caller = inspect.currentframe().f_back
        name = caller.f_globals.get("__name__", "trajedit") if caller is not None else "trajedit"

    _configure_structlog()
    if level is None:
        level = _default_level()

    stdlib_logger = logging.getLogger(name)
    if stdlib_logger.hasHandlers():
        stdlib_logger.handlers.clear()
    stdlib_logger.setLevel(level)
    stdlib_logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=_compact_console_processor))
    stdlib_logger.addHandler(handler)

    return structlog.get_logger(name)
