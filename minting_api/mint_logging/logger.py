"""
structlog setup for the minting API.

One JSON object per line by default (LOG_FORMAT=console for local runs). Lines
carry timestamp, level, event_type and logger; once configure_logging() has
run with the loaded Settings they also carry the cluster name. The HTTP
middleware binds request_id through contextvars. Program output attached to
an event as program_logs is capped to its last MAX_PROGRAM_LOG_LINES lines.

Loggers returned by get_logger() are lazy, so configure_logging() can be
called again after Settings are loaded and module-level loggers pick it up.

No minting_api imports here; every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "json"
LOG_FORMATS = ("json", "console")

# Lines kept from the tail of program_logs
MAX_PROGRAM_LOG_LINES = 20


def log_level_value(level: str) -> int:
    """Numeric level for a name like "info". Raises ValueError for unknown names."""
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level {level!r}")
    return value


class _ModuleLogger(structlog.PrintLogger):
    """PrintLogger writing to the current sys.stdout, named after the calling module."""

    def __init__(self, name: str = "minting_api") -> None:
        super().__init__(sys.stdout)
        self.name = name


def _cap_program_logs(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    logs = event_dict.get("program_logs")
    if logs and len(logs) > MAX_PROGRAM_LOG_LINES:
        event_dict["program_logs"] = list(logs[-MAX_PROGRAM_LOG_LINES:])
        event_dict["program_logs_dropped"] = len(logs) - MAX_PROGRAM_LOG_LINES
    return event_dict


def _static_fields(**fields: Any):
    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    fmt: str = DEFAULT_LOG_FORMAT,
    *,
    cluster: str | None = None,
) -> None:
    """
    (Re)configure structlog.

    Raises:
        ValueError: unknown level name or format.
    """
    level_value = log_level_value(level)
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {fmt!r}; expected one of {', '.join(LOG_FORMATS)}")

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _cap_program_logs,
    ]
    if cluster:
        processors.append(_static_fields(cluster=cluster))
    if fmt == "json":
        processors.append(structlog.processors.EventRenamer("event_type"))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=_ModuleLogger,
        cache_logger_on_first_use=False,
    )


def _configure_from_env() -> None:
    # Settings validate these properly at startup; here a bad value just keeps the default
    level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    fmt = os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT).strip().lower()
    if fmt not in LOG_FORMATS:
        fmt = DEFAULT_LOG_FORMAT
    try:
        log_level_value(level)
    except ValueError:
        level = DEFAULT_LOG_LEVEL
    configure_logging(level, fmt)


if not structlog.is_configured():
    _configure_from_env()


def get_logger(name: str) -> Any:
    """
    Lazy structured logger bound to the module name.

        logger = get_logger(__name__)
        logger.info("mint_confirmed", mint=str(mint), signature=sig)
    """
    return structlog.get_logger(name)


def bind_request(request_id: str) -> None:
    """Start a fresh log context for one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
