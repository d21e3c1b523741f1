"""
Canonical simulation result schema.

Responsibilities:
- Define frozen dataclasses for the normalized result and its nested records
  (trace entries, logs, state/asset/exposure/balance changes, access list).
- Declare, per model, the field-reconciliation table: logical attribute ->
  accepted upstream key spellings, canonical spelling first.
- Re-emit the canonical camelCase shape with to_dict() so a normalized result
  can be serialized and normalized again without change.

Numeric fields keep the upstream encoding verbatim; *_int properties give the
unsigned integer view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from backend_simlens.core.numeric import hex_to_int_safe


class SimulationStatus(str, Enum):
    """Ternary outcome of a simulated call."""

    SUCCESS = "success"
    REVERT = "revert"
    UNKNOWN = "unknown"


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, CanonicalModel):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return dict(value)
    return value


class CanonicalModel:
    """Mixin: field alias table plus canonical serialization."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {}

    extra: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Unknown upstream keys first, then every present field under its canonical key."""
        out: dict[str, Any] = dict(self.extra)
        for attr, aliases in self.FIELD_ALIASES.items():
            value = getattr(self, attr)
            if value is None:
                continue
            out[aliases[0]] = _to_jsonable(value)
        return out


@dataclass(frozen=True)
class DecodedParam(CanonicalModel):
    """A decoded call argument, return value, or event input."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "name": ("name",),
        "type": ("type",),
        "value": ("value",),
        "indexed": ("indexed", "is_indexed"),
    }

    name: str | None = None
    type: str | None = None
    value: Any = None
    indexed: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TraceEntry(CanonicalModel):
    """One call frame of the execution trace."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "call_type": ("type",),
        "from_address": ("from",),
        "to_address": ("to",),
        "gas": ("gas",),
        "gas_used": ("gasUsed", "gas_used"),
        "value": ("value",),
        "input": ("input",),
        "output": ("output",),
        "method": ("method",),
        "decoded_input": ("decodedInput", "decoded_input"),
        "decoded_output": ("decodedOutput", "decoded_output"),
        "subtraces": ("subtraces",),
        "trace_address": ("traceAddress", "trace_address"),
        "error": ("error",),
    }

    call_type: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    gas: Any = None
    gas_used: Any = None
    value: Any = None
    input: str | None = None
    output: str | None = None
    method: str | None = None
    decoded_input: tuple[DecodedParam, ...] | None = None
    decoded_output: tuple[DecodedParam, ...] | None = None
    subtraces: int | None = None
    trace_address: tuple[Any, ...] | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def gas_used_int(self) -> int | None:
        return hex_to_int_safe(self.gas_used)

    @property
    def path(self) -> tuple[int, ...]:
        """Position in the call tree; missing or invalid trace addresses mean root."""
        if self.trace_address is None:
            return ()
        out: list[int] = []
        for part in self.trace_address:
            if isinstance(part, bool) or not isinstance(part, int) or part < 0:
                return ()
            out.append(part)
        return tuple(out)


@dataclass(frozen=True)
class LogEntry(CanonicalModel):
    """An event emitted during the simulation."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "name": ("name",),
        "anonymous": ("anonymous",),
        "inputs": ("inputs", "decoded_inputs"),
        "raw": ("raw", "raw_log"),
    }

    name: str | None = None
    anonymous: bool | None = None
    inputs: tuple[DecodedParam, ...] | None = None
    raw: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str | None:
        addr = (self.raw or {}).get("address")
        return addr if isinstance(addr, str) else None


@dataclass(frozen=True)
class ValueChange(CanonicalModel):
    """Before/after pair for a nonce or balance."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "previous_value": ("previousValue", "previous_value"),
        "new_value": ("newValue", "new_value"),
    }

    previous_value: Any = None
    new_value: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def previous_int(self) -> int | None:
        return hex_to_int_safe(self.previous_value)

    @property
    def new_int(self) -> int | None:
        return hex_to_int_safe(self.new_value)


@dataclass(frozen=True)
class StorageChange(CanonicalModel):
    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "slot": ("slot",),
        "previous_value": ("previousValue", "previous_value"),
        "new_value": ("newValue", "new_value"),
    }

    slot: Any = None
    previous_value: Any = None
    new_value: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StateChange(CanonicalModel):
    """Storage, nonce, and balance changes of one account."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "address": ("address",),
        "nonce": ("nonce",),
        "balance": ("balance",),
        "storage": ("storage",),
    }

    address: str | None = None
    nonce: ValueChange | None = None
    balance: ValueChange | None = None
    storage: tuple[StorageChange, ...] | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssetInfo(CanonicalModel):
    """Token metadata attached to asset and exposure changes."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "standard": ("standard",),
        "type": ("type",),
        "contract_address": ("contractAddress", "contract_address"),
        "symbol": ("symbol",),
        "name": ("name",),
        "decimals": ("decimals",),
        "dollar_value": ("dollarValue", "dollar_value"),
        "logo": ("logo",),
    }

    standard: str | None = None
    type: str | None = None
    contract_address: str | None = None
    symbol: str | None = None
    name: str | None = None
    decimals: int | None = None
    dollar_value: str | None = None
    logo: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssetChange(CanonicalModel):
    """A token or native-asset transfer."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "type": ("type",),
        "from_address": ("from",),
        "to_address": ("to",),
        "raw_amount": ("rawAmount", "raw_amount"),
        "amount": ("amount",),
        "dollar_value": ("dollarValue", "dollar_value"),
        "asset_info": ("assetInfo", "asset_info"),
    }

    type: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    raw_amount: Any = None
    amount: str | None = None
    dollar_value: Any = None
    asset_info: AssetInfo | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_amount_int(self) -> int | None:
        return hex_to_int_safe(self.raw_amount)


@dataclass(frozen=True)
class ExposureChange(CanonicalModel):
    """An allowance/approval change."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "type": ("type",),
        "owner": ("owner",),
        "spender": ("spender",),
        "amount": ("amount",),
        "raw_amount": ("rawAmount", "raw_amount"),
        "dollar_value": ("dollarValue", "dollar_value"),
        "asset_info": ("assetInfo", "asset_info"),
    }

    type: str | None = None
    owner: str | None = None
    spender: str | None = None
    amount: str | None = None
    raw_amount: Any = None
    dollar_value: Any = None
    asset_info: AssetInfo | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BalanceChange(CanonicalModel):
    """Net USD balance change of one address, with the transfers it aggregates."""

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "address": ("address",),
        "dollar_value": ("dollarValue", "dollar_value"),
        "transfers": ("transfers",),
    }

    address: str | None = None
    dollar_value: Any = None
    transfers: tuple[Any, ...] | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessListEntry(CanonicalModel):
    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "address": ("address",),
        "storage_keys": ("storage_keys", "storageKeys"),
    }

    address: str | None = None
    storage_keys: tuple[str, ...] | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CanonicalResult(CanonicalModel):
    """
    The single normalized shape every downstream consumer reads.

    simulation and transaction hold the upstream metadata objects verbatim;
    extra holds any other top-level keys.
    """

    FIELD_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {
        "status": ("status",),
        "gas_used": ("gasUsed", "gas_used"),
        "cumulative_gas_used": ("cumulativeGasUsed", "cumulative_gas_used"),
        "block_number": ("blockNumber", "block_number"),
        "error_message": ("errorMessage", "error_message"),
        "trace": ("trace", "call_trace"),
        "logs": ("logs",),
        "state_changes": ("stateChanges", "state_changes"),
        "asset_changes": ("assetChanges", "asset_changes"),
        "exposure_changes": ("exposureChanges", "exposure_changes"),
        "balance_changes": ("balanceChanges", "balance_changes"),
        "generated_access_list": ("generated_access_list", "generatedAccessList"),
        "contracts": ("contracts",),
        "simulation": ("simulation",),
        "transaction": ("transaction",),
    }

    status: Any = None
    gas_used: Any = None
    cumulative_gas_used: Any = None
    block_number: Any = None
    error_message: str | None = None
    trace: tuple[TraceEntry, ...] | None = None
    logs: tuple[LogEntry, ...] | None = None
    state_changes: tuple[StateChange, ...] | None = None
    asset_changes: tuple[AssetChange, ...] | None = None
    exposure_changes: tuple[ExposureChange, ...] | None = None
    balance_changes: tuple[BalanceChange, ...] | None = None
    generated_access_list: tuple[AccessListEntry, ...] | None = None
    contracts: tuple[dict[str, Any], ...] | None = None
    simulation: dict[str, Any] | None = None
    transaction: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def outcome(self) -> SimulationStatus:
        if self.status is True:
            return SimulationStatus.SUCCESS
        if self.status is False:
            return SimulationStatus.REVERT
        code = hex_to_int_safe(self.status)
        if code == 1:
            return SimulationStatus.SUCCESS
        if code == 0:
            return SimulationStatus.REVERT
        return SimulationStatus.UNKNOWN

    @property
    def gas_used_int(self) -> int | None:
        return hex_to_int_safe(self.gas_used)

    @property
    def block_number_int(self) -> int | None:
        return hex_to_int_safe(self.block_number)

    @property
    def simulation_id(self) -> str | None:
        sim_id = (self.simulation or {}).get("id")
        return sim_id if isinstance(sim_id, str) and sim_id else None

    @property
    def access_map(self) -> dict[str, frozenset[str]]:
        """Generated access list as address -> storage keys (duplicate addresses merged)."""
        out: dict[str, set[str]] = {}
        for entry in self.generated_access_list or ():
            if not entry.address:
                continue
            out.setdefault(entry.address, set()).update(entry.storage_keys or ())
        return {addr: frozenset(keys) for addr, keys in out.items()}
