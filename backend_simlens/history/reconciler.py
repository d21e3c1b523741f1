"""
History reconciler — local executions and saved simulations in one feed.

Responsibilities:
- Convert each remote saved-simulation record independently; records without
  a simulation id or destination address are dropped, never fatal.
- Accept the field spellings the simulation API uses across list and detail
  endpoints (simulation.*, transaction.*, or flat root fields).
- Merge with local executions (most recent 50 by default) sorted newest first.

Value heuristic: digit-only strings and integral numbers are wei and are
shown in ether; any other string is assumed already formatted. A small whole
ether amount sent as a bare number is therefore read as wei.
"""

from __future__ import annotations

import math
import time
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from backend_simlens.config import get_settings
from backend_simlens.core.numeric import format_ether, is_digit_string
from backend_simlens.history.models import (
    ExecutionRecord,
    HistoryItem,
    HistoryKind,
    HistoryStatus,
    method_for_calldata,
)
from backend_simlens.simlens_logging import get_logger

logger = get_logger(__name__)

# Numeric timestamps below this are seconds, otherwise milliseconds.
SECONDS_THRESHOLD = 10_000_000_000
DEFAULT_VALUE = "0"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def parse_timestamp_ms(value: Any) -> int | None:
    """
    Milliseconds since epoch from a number (seconds or ms) or a calendar string.

    Returns None when absent or unparsable.
    """
    if _is_number(value):
        return int(value * 1000) if value < SECONDS_THRESHOLD else int(value)
    text = _text(value)
    if text is None:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def _first_timestamp(*values: Any) -> int | None:
    for value in values:
        ms = parse_timestamp_ms(value)
        if ms is not None:
            return ms
    return None


def format_wei_to_ether(value: Any) -> str | None:
    """Ether display string for a wei-like value; formatted strings pass through."""
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if is_digit_string(s):
            return format_ether(int(s))
        return s
    if _is_number(value):
        if float(value).is_integer():
            return format_ether(int(value))
        return str(value)
    return None


def _gas_limit(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if _is_number(value):
        return str(int(value)) if float(value).is_integer() else str(value)
    return None


def _chain_id(value: str | None, default_chain_id: int) -> int:
    if value is None:
        return default_chain_id
    try:
        number = float(value)
    except ValueError:
        return default_chain_id
    if not math.isfinite(number) or not number.is_integer():
        return default_chain_id
    return int(number)


def _status(*candidates: Any) -> HistoryStatus:
    for value in candidates:
        if isinstance(value, bool):
            return HistoryStatus.SUCCESS if value else HistoryStatus.REVERTED
    return HistoryStatus.UNKNOWN


def remote_to_history_item(
    record: Any,
    default_chain_id: int,
    now_ms: int | None = None,
) -> HistoryItem | None:
    """Convert one saved-simulation record; None when it lacks an id or a destination."""
    if not isinstance(record, Mapping):
        return None
    sim = record.get("simulation")
    sim = sim if isinstance(sim, Mapping) else record
    tx = record.get("transaction")
    tx = tx if isinstance(tx, Mapping) else record

    simulation_id = _text(record.get("id")) or _text(sim.get("id")) or _text(record.get("simulationId"))
    if not simulation_id:
        return None
    to_address = _text(tx.get("to")) or _text(sim.get("to"))
    if not to_address:
        return None

    created_at = (
        _text(sim.get("created_at"))
        or _text(record.get("created_at"))
        or _text(record.get("createdAt"))
    )
    timestamp = _first_timestamp(created_at, record.get("timestamp"), sim.get("created_at"))
    if timestamp is None:
        timestamp = now_ms if now_ms is not None else _now_ms()

    network_id = (
        _text(sim.get("network_id"))
        or _text(record.get("network_id"))
        or _text(tx.get("network_id"))
    )
    calldata = (
        _text(tx.get("input"))
        or _text(tx.get("data"))
        or _text(record.get("input"))
        or _text(record.get("data"))
    )
    gas_limit = _gas_limit(tx.get("gas"))
    if gas_limit is None:
        gas_limit = _gas_limit(sim.get("gas"))

    return HistoryItem(
        kind=HistoryKind.SIMULATION,
        status=_status(sim.get("status"), record.get("status")),
        method=_text(sim.get("method")) or _text(record.get("method")) or method_for_calldata(calldata),
        from_address=_text(tx.get("from")) or _text(sim.get("from")),
        to_address=to_address,
        value=format_wei_to_ether(tx.get("value")) or format_wei_to_ether(sim.get("value")) or DEFAULT_VALUE,
        calldata=calldata,
        gas_limit=gas_limit,
        chain_id=_chain_id(network_id, default_chain_id),
        timestamp=timestamp,
        simulation_id=simulation_id,
    )


def merge(
    remote_simulations: Iterable[Any] | None,
    local_executions: Iterable[ExecutionRecord | HistoryItem] | None,
    *,
    default_chain_id: int | None = None,
    execution_limit: int | None = None,
    now_ms: int | None = None,
) -> list[HistoryItem]:
    """
    Merge saved simulations with local executions, newest first.

    local_executions is expected most-recent-first (as ExecutionLog keeps it);
    only the first execution_limit of them are kept. Remote records are not capped.
    """
    settings = get_settings()
    chain_id = default_chain_id if default_chain_id is not None else settings.default_chain_id
    limit = execution_limit if execution_limit is not None else settings.execution_history_limit
    now = now_ms if now_ms is not None else _now_ms()

    remote = list(remote_simulations or ())
    simulations = [
        item
        for item in (remote_to_history_item(r, chain_id, now) for r in remote)
        if item is not None
    ]

    executions: list[HistoryItem] = []
    for local in local_executions or ():
        item = local.to_history_item() if isinstance(local, ExecutionRecord) else local
        if isinstance(item, HistoryItem) and item.kind is HistoryKind.EXECUTION:
            executions.append(item)
    executions = executions[:limit]

    merged = sorted(simulations + executions, key=lambda h: h.timestamp, reverse=True)
    logger.debug(
        "history_merged",
        remote_count=len(remote),
        simulation_count=len(simulations),
        dropped=len(remote) - len(simulations),
        execution_count=len(executions),
    )
    return merged
