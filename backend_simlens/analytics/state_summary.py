"""
State and event summaries for the simulation dashboard.

Counts storage writes, balance and nonce updates per account, and builds an
event-name histogram from decoded logs.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from backend_simlens.simulation.models import LogEntry, StateChange

UNKNOWN_LABEL = "Unknown"


def _text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


@dataclass(frozen=True)
class StateSummary:
    slot_count: int
    balance_updates: int
    nonce_updates: int
    address_count: int
    slots_by_address: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_count": self.slot_count,
            "balance_updates": self.balance_updates,
            "nonce_updates": self.nonce_updates,
            "address_count": self.address_count,
            "slots_by_address": [
                {"address": addr, "slots": n} for addr, n in self.slots_by_address
            ],
        }


def summarize_state_changes(changes: Iterable[StateChange] | None) -> StateSummary:
    """Storage slot, balance and nonce update counts; per-address slot counts ranked descending."""
    slots: Counter[str] = Counter()
    addresses: set[str] = set()
    balance_updates = nonce_updates = 0
    for change in changes or ():
        if not isinstance(change, StateChange):
            continue
        address = _text(change.address) or UNKNOWN_LABEL
        addresses.add(address.lower())
        if change.balance is not None:
            balance_updates += 1
        if change.nonce is not None:
            nonce_updates += 1
        written = len(change.storage or ())
        if written:
            slots[address] += written
    ranked = sorted(slots.items(), key=lambda kv: kv[1], reverse=True)
    return StateSummary(
        slot_count=sum(slots.values()),
        balance_updates=balance_updates,
        nonce_updates=nonce_updates,
        address_count=len(addresses),
        slots_by_address=tuple(ranked),
    )


def count_event_names(logs: Iterable[LogEntry] | None) -> list[tuple[str, int]]:
    """(event name, count) ranked by count descending; blank names count as "Unknown"."""
    counts: Counter[str] = Counter(
        _text(log.name) or UNKNOWN_LABEL for log in logs or () if isinstance(log, LogEntry)
    )
    return counts.most_common()
