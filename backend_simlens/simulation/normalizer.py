"""
Simulation response normalizer — upstream payloads to the canonical result.

Responsibilities:
- Unwrap JSON-RPC style envelopes ({jsonrpc, id, result, ...}), folding
  sibling fields into the result (result's own fields win on conflict).
- Resolve each logical field by searching, in order: the root object,
  simulation, transaction, transaction.transaction_info, simulation.shared,
  accepting every spelling in the model's alias table.
- Normalize nested collections element by element; malformed elements are
  skipped without affecting their siblings.

Pure function of its input. Returns None only when the root is not an object.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.models import (
    AccessListEntry,
    AssetChange,
    AssetInfo,
    BalanceChange,
    CanonicalModel,
    CanonicalResult,
    DecodedParam,
    ExposureChange,
    LogEntry,
    StateChange,
    StorageChange,
    TraceEntry,
    ValueChange,
)

logger = get_logger(__name__)

ENVELOPE_KEYS = frozenset({"jsonrpc", "id"})
SUMMARY_KEY_LIMIT = 50

# Collections whose array lengths are reported in debug summaries.
_SUMMARY_COLLECTIONS = (
    ("trace", ("trace", "call_trace")),
    ("logs", ("logs",)),
    ("state_changes", ("stateChanges", "state_changes")),
    ("asset_changes", ("assetChanges", "asset_changes")),
    ("exposure_changes", ("exposureChanges", "exposure_changes")),
    ("balance_changes", ("balanceChanges", "balance_changes")),
    ("generated_access_list", ("generated_access_list", "generatedAccessList")),
)

M = TypeVar("M", bound=CanonicalModel)
T = TypeVar("T")


def _pick(obj: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    """First non-None value among keys."""
    for key in keys:
        value = obj.get(key)
        if value is not None:
            return value
    return None


def _reconcile(
    obj: Mapping[str, Any],
    aliases: Mapping[str, tuple[str, ...]],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split obj into (attribute -> first non-None alias value, remaining unknown keys)."""
    found: dict[str, Any] = {}
    consumed: set[str] = set()
    for attr, keys in aliases.items():
        consumed.update(keys)
        value = _pick(obj, keys)
        if value is not None:
            found[attr] = value
    extra = {k: v for k, v in obj.items() if k not in consumed}
    return found, extra


def _normalize_list(value: Any, normalize_item: Callable[[Any], T | None]) -> tuple[T, ...] | None:
    if not isinstance(value, list | tuple):
        return None
    out: list[T] = []
    for item in value:
        normalized = normalize_item(item)
        if normalized is not None:
            out.append(normalized)
    return tuple(out)


def _build(
    model: type[M],
    value: Any,
    converters: Mapping[str, Callable[[Any], Any]] | None = None,
) -> M | None:
    """Reconcile a mapping against model's alias table and apply per-field converters."""
    if not isinstance(value, Mapping):
        return None
    found, extra = _reconcile(value, model.FIELD_ALIASES)
    for attr, convert in (converters or {}).items():
        if attr in found:
            found[attr] = convert(found[attr])
    return model(**found, extra=extra)


def _as_dict(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def _as_tuple(value: Any) -> tuple[Any, ...] | None:
    return tuple(value) if isinstance(value, list | tuple) else None


def _normalize_param(value: Any) -> DecodedParam | None:
    return _build(DecodedParam, value)


def _normalize_params(value: Any) -> tuple[DecodedParam, ...] | None:
    return _normalize_list(value, _normalize_param)


def _normalize_trace_entry(value: Any) -> TraceEntry | None:
    return _build(
        TraceEntry,
        value,
        {
            "decoded_input": _normalize_params,
            "decoded_output": _normalize_params,
            "trace_address": _as_tuple,
        },
    )


def _normalize_log(value: Any) -> LogEntry | None:
    return _build(LogEntry, value, {"inputs": _normalize_params, "raw": _as_dict})


def _normalize_value_change(value: Any) -> ValueChange | None:
    change = _build(ValueChange, value)
    if change is None or (change.previous_value is None and change.new_value is None):
        return None
    return change


def _normalize_storage_change(value: Any) -> StorageChange | None:
    return _build(StorageChange, value)


def _normalize_state_change(value: Any) -> StateChange | None:
    return _build(
        StateChange,
        value,
        {
            "nonce": _normalize_value_change,
            "balance": _normalize_value_change,
            "storage": lambda v: _normalize_list(v, _normalize_storage_change),
        },
    )


def _normalize_asset_info(value: Any) -> AssetInfo | None:
    return _build(AssetInfo, value)


def _normalize_asset_change(value: Any) -> AssetChange | None:
    return _build(AssetChange, value, {"asset_info": _normalize_asset_info})


def _normalize_exposure_change(value: Any) -> ExposureChange | None:
    return _build(ExposureChange, value, {"asset_info": _normalize_asset_info})


def _normalize_balance_change(value: Any) -> BalanceChange | None:
    return _build(BalanceChange, value, {"transfers": _as_tuple})


def _normalize_access_list_entry(value: Any) -> AccessListEntry | None:
    entry = _build(AccessListEntry, value, {"storage_keys": _as_tuple})
    if entry is None or not isinstance(entry.address, str):
        return None
    return entry


def _collection(normalize_item: Callable[[Any], Any]) -> Callable[[Any], Any]:
    return lambda value: _normalize_list(value, normalize_item)


_ROOT_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "trace": _collection(_normalize_trace_entry),
    "logs": _collection(_normalize_log),
    "state_changes": _collection(_normalize_state_change),
    "asset_changes": _collection(_normalize_asset_change),
    "exposure_changes": _collection(_normalize_exposure_change),
    "balance_changes": _collection(_normalize_balance_change),
    "generated_access_list": _collection(_normalize_access_list_entry),
    "contracts": lambda v: _normalize_list(v, _as_dict),
    "simulation": _as_dict,
    "transaction": _as_dict,
}


def _unwrap_envelope(payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge envelope siblings into result; result's own fields take precedence.

    Nested `result` objects are unwrapped the same way until none is left, so a
    canonical result never carries an object-valued `result` in its extras.
    """
    base = dict(payload)
    dropped = ENVELOPE_KEYS
    while isinstance(base.get("result"), Mapping):
        result = base.pop("result")
        merged = {k: v for k, v in base.items() if k not in dropped}
        merged.update(result)
        base = merged
        dropped = frozenset()
    return base


def _search_scopes_named(base: Mapping[str, Any]) -> list[Mapping[str, Any] | None]:
    """Root, simulation, transaction, transaction.transaction_info, simulation.shared; None where not an object."""
    sim = base.get("simulation")
    tx = base.get("transaction")
    tx_info = tx.get("transaction_info") if isinstance(tx, Mapping) else None
    sim_shared = sim.get("shared") if isinstance(sim, Mapping) else None
    return [
        scope if isinstance(scope, Mapping) else None
        for scope in (base, sim, tx, tx_info, sim_shared)
    ]


def _search_scopes(base: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    return [scope for scope in _search_scopes_named(base) if scope is not None]


def summarize_payload(value: Any) -> dict[str, Any]:
    """Shape summary for diagnostics: key preview and collection lengths, never values."""
    if value is None:
        return {"type": "null"}
    if isinstance(value, list | tuple):
        return {"type": "array", "length": len(value)}
    if not isinstance(value, Mapping):
        return {"type": type(value).__name__}

    keys = list(value.keys())
    preview = keys[:SUMMARY_KEY_LIMIT] + (["…"] if len(keys) > SUMMARY_KEY_LIMIT else [])
    lengths: dict[str, int] = {}
    for scope_name, scope in zip(
        ("root", "simulation", "transaction", "transaction_info", "simulation_shared"),
        _search_scopes_named(value),
    ):
        if scope is None:
            continue
        for name, aliases in _SUMMARY_COLLECTIONS:
            arr = _pick(scope, aliases)
            if isinstance(arr, list):
                label = name if scope_name == "root" else f"{scope_name}.{name}"
                lengths[label] = len(arr)
    return {
        "type": "object",
        "keys": preview,
        "has_result": "result" in value,
        "lengths": lengths,
    }


def normalize(raw: Any) -> CanonicalResult | None:
    """
    Normalize an upstream simulation payload into a CanonicalResult.

    Accepts a JSON-RPC envelope, a direct result object, or an existing
    CanonicalResult (returned as is). Returns None when the root
    is not an object (scalar, array, None); callers must surface that as an
    unexpected response.
    """
    if isinstance(raw, CanonicalResult):
        return raw
    if not isinstance(raw, Mapping):
        logger.debug("normalize_rejected_root", payload=summarize_payload(raw))
        return None

    logger.debug("normalize_input", payload=summarize_payload(raw))

    base = _unwrap_envelope(raw)
    scopes = _search_scopes(base)

    found: dict[str, Any] = {}
    consumed: set[str] = set()
    for attr, keys in CanonicalResult.FIELD_ALIASES.items():
        consumed.update(keys)
        convert = _ROOT_CONVERTERS.get(attr)
        for scope in scopes:
            value = _pick(scope, keys)
            if value is not None and convert is not None:
                # A collection of the wrong type does not shadow a usable one further down.
                value = convert(value)
            if value is not None:
                found[attr] = value
                break

    extra = {k: v for k, v in base.items() if k not in consumed}
    result = CanonicalResult(**found, extra=extra)

    logger.debug(
        "normalize_output",
        status=result.outcome.value,
        trace_count=len(result.trace or ()),
        log_count=len(result.logs or ()),
        asset_change_count=len(result.asset_changes or ()),
    )
    return result
