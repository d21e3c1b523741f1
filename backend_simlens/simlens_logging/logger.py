"""
Structured JSON logging: timestamp, level, event_type, and keyword context.

structlog with ISO timestamps and consistent keys for aggregation. All modules
should use get_logger() and log snake_case event types with keyword context
(node_count, simulation_id, network_id, ...).

Threshold and renderer come from LOG_LEVEL / LOG_FORMAT, read through
backend_simlens.config.env so a project .env applies to logging too. Hex
context values (addresses, hashes, calldata) are shortened before rendering.

Imports only config.env and core.numeric from backend_simlens; neither logs.
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

from backend_simlens.config.env import get_log_format, get_log_level
from backend_simlens.core.numeric import shorten_hex

_HEX_VALUE_RE = re.compile(r"^0x[0-9a-fA-F]+$")


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _shorten_hex_values(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Top-level 0x-hex values are logged as 0x1234…abcd, never in full."""
    for key, value in event_dict.items():
        if isinstance(value, str) and _HEX_VALUE_RE.match(value):
            event_dict[key] = shorten_hex(value)
    return event_dict


def configure_structlog(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure structlog: JSON or console, timestamp, level, event_type.

    Arguments override LOG_LEVEL / LOG_FORMAT; by default both are read from
    the environment. Runs once on first import.
    """
    level = (log_level or get_log_level()).upper()
    fmt = (log_format or get_log_format()).lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _shorten_hex_values,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

    Log with event_type (first arg) and keyword context:
        logger = get_logger(__name__)
        logger.debug("call_tree_built", node_count=12, root_count=1)
    Output (JSON): {"event_type": "call_tree_built", "node_count": 12, "root_count": 1, "timestamp": "...", "level": "debug", "logger": "module.name"}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_simulation(simulation_id: str) -> structlog.BoundLogger:
    """Return a logger with simulation_id bound to all subsequent log calls."""
    return get_logger("backend_simlens").bind(simulation_id=simulation_id)
