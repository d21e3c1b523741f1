"""
Activity feed models.

Responsibilities:
- HistoryItem: one immutable feed row, either a local execution or a saved
  simulation listed by the simulation API.
- ExecutionRecord: what the submission side reports after a transaction is sent.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

TRANSFER_METHOD = "Transfer"
CONTRACT_CALL_METHOD = "Contract Call"


class HistoryKind(str, Enum):
    EXECUTION = "execution"
    SIMULATION = "simulation"


class HistoryStatus(str, Enum):
    SUCCESS = "success"
    REVERTED = "reverted"
    UNKNOWN = "unknown"


def method_for_calldata(calldata: str | None) -> str:
    """"Contract Call" for non-empty calldata, "Transfer" for plain value sends."""
    if calldata and calldata.strip() not in ("", "0x"):
        return CONTRACT_CALL_METHOD
    return TRANSFER_METHOD


@dataclass(frozen=True)
class HistoryItem:
    """A reconciled feed entry. timestamp is in milliseconds; value is in ether."""

    kind: HistoryKind
    status: HistoryStatus
    method: str
    from_address: str | None
    to_address: str
    value: str
    calldata: str | None
    gas_limit: str | None
    chain_id: int
    timestamp: int
    tx_hash: str | None = None
    simulation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "status": self.status.value,
            "method": self.method,
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "calldata": self.calldata,
            "gasLimit": self.gas_limit,
            "chainId": self.chain_id,
            "timestamp": self.timestamp,
            "hash": self.tx_hash,
            "simulationId": self.simulation_id,
        }


@dataclass(frozen=True)
class ExecutionRecord:
    """A transaction sent from the connected wallet."""

    from_address: str | None
    to_address: str
    calldata: str
    value: str
    gas_limit: str | None
    chain_id: int
    tx_hash: str
    timestamp: int

    def to_history_item(self) -> HistoryItem:
        # Only confirmed submissions are recorded.
        return HistoryItem(
            kind=HistoryKind.EXECUTION,
            status=HistoryStatus.SUCCESS,
            method=method_for_calldata(self.calldata),
            from_address=self.from_address,
            to_address=self.to_address.strip(),
            value=self.value,
            calldata=self.calldata,
            gas_limit=self.gas_limit,
            chain_id=self.chain_id,
            timestamp=self.timestamp,
            tx_hash=self.tx_hash,
        )
