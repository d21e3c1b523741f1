"""
Gas attribution aggregates over a built call tree.

Total gas prefers the simulation's reported gas used and falls back to the sum
of exclusive gas. The difference between total and execution gas is reported as
overhead (intrinsic cost, refunds, calldata). Percentages use integer basis
points so very large gas values stay exact.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

from backend_simlens.analytics.call_tree import CallNode, CallTree
from backend_simlens.core.numeric import is_address, ratio_pct
from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.models import AccessListEntry

logger = get_logger(__name__)

TOP_NODES = 6
CONCENTRATION_TOP_N = 5
GAS_SERIES_MAX_POINTS = 80
TOP_CALLEES = 8


def median(values: Iterable[int]) -> Fraction:
    """Median as an exact Fraction; mean of the two central values for even counts. 0 when empty."""
    ordered = sorted(values)
    if not ordered:
        return Fraction(0)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return Fraction(ordered[mid])
    return Fraction(ordered[mid - 1] + ordered[mid], 2)


def peak_vs_median(values: Iterable[int]) -> float:
    """Largest positive value over the median of positive values, two decimals; 0 without positives."""
    positive = [v for v in values if v > 0]
    p50 = median(positive)
    if p50 <= 0:
        return 0.0
    # floor(max * 100 / p50) in integer arithmetic
    scaled = (max(positive) * 100 * p50.denominator) // p50.numerator
    return scaled / 100


@dataclass(frozen=True)
class GasPoint:
    index: int
    gas: int
    label: str
    to_address: str | None


@dataclass(frozen=True)
class CalleeGas:
    address: str
    gas: int


@dataclass(frozen=True)
class AccessListRow:
    address: str
    keys: int


@dataclass(frozen=True)
class AccessListStats:
    rows: tuple[AccessListRow, ...]
    total_keys: int
    address_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [{"address": r.address, "keys": r.keys} for r in self.rows],
            "total_keys": self.total_keys,
            "address_count": self.address_count,
        }


@dataclass(frozen=True)
class GasSummary:
    total_gas: int
    execution_gas: int
    overhead_gas: int
    overhead_pct: float
    p50: Fraction
    max_exclusive: int
    peak_vs_median: float
    top_nodes: tuple[CallNode, ...]
    top5_share_pct: float
    accounts_touched: int
    series: tuple[GasPoint, ...] = field(default=())
    top_callees: tuple[CalleeGas, ...] = field(default=())
    access_list: AccessListStats | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_gas": self.total_gas,
            "execution_gas": self.execution_gas,
            "overhead_gas": self.overhead_gas,
            "overhead_pct": self.overhead_pct,
            "p50": float(self.p50),
            "max_exclusive": self.max_exclusive,
            "peak_vs_median": self.peak_vs_median,
            "top5_share_pct": self.top5_share_pct,
            "accounts_touched": self.accounts_touched,
            "top_nodes": [n.key for n in self.top_nodes],
            "top_callees": [{"address": c.address, "gas": c.gas} for c in self.top_callees],
            "series": [
                {"index": p.index, "gas": p.gas, "label": p.label, "to": p.to_address}
                for p in self.series
            ],
            "access_list": self.access_list.to_dict() if self.access_list is not None else None,
        }


def resolve_total_gas(tree: CallTree, reported_gas: int | None) -> int:
    """Reported gas when positive, otherwise the sum of exclusive gas."""
    if reported_gas is not None and reported_gas > 0:
        return reported_gas
    return tree.total_exclusive_gas


def gas_by_callee(tree: CallTree, limit: int | None = TOP_CALLEES) -> list[CalleeGas]:
    """Exclusive gas grouped by callee address (case-insensitive), largest first; zero totals dropped."""
    totals: dict[str, CalleeGas] = {}
    for node in tree.nodes():
        if not is_address(node.to_address):
            continue
        key = node.to_address.lower()
        current = totals.get(key)
        first_seen = current.address if current else node.to_address
        totals[key] = CalleeGas(
            address=first_seen,
            gas=(current.gas if current else 0) + node.exclusive_gas,
        )
    rows = sorted((c for c in totals.values() if c.gas > 0), key=lambda c: c.gas, reverse=True)
    return rows[:limit] if limit is not None else rows


def gas_series(tree: CallTree, max_points: int = GAS_SERIES_MAX_POINTS) -> list[GasPoint]:
    """Positive exclusive gas per frame in execution order, truncated to max_points."""
    points: list[GasPoint] = []
    for node in tree.nodes():
        if node.exclusive_gas <= 0:
            continue
        if len(points) >= max_points:
            break
        points.append(
            GasPoint(
                index=len(points),
                gas=node.exclusive_gas,
                label=f"{node.method_label} → {node.to_address or '—'}",
                to_address=node.to_address,
            )
        )
    return points


def access_list_stats(entries: Iterable[AccessListEntry] | None) -> AccessListStats:
    """Distinct addresses and total keys; rows keep addresses with at least one key, ranked by key count."""
    entries = list(entries or ())
    rows = [
        AccessListRow(address=e.address, keys=len(e.storage_keys or ()))
        for e in entries
        if isinstance(e.address, str) and e.storage_keys
    ]
    rows.sort(key=lambda r: r.keys, reverse=True)
    return AccessListStats(
        rows=tuple(rows),
        total_keys=sum(r.keys for r in rows),
        address_count=len({e.address.lower() for e in entries if isinstance(e.address, str)}),
    )


def _accounts_touched(tree: CallTree) -> int:
    seen: set[str] = set()
    for node in tree.nodes_by_key.values():
        for addr in (node.from_address, node.to_address):
            if is_address(addr):
                seen.add(addr.lower())
    return len(seen)


def summarize_gas(
    tree: CallTree,
    reported_gas: int | None = None,
    access_list: Iterable[AccessListEntry] | None = None,
) -> GasSummary:
    """Compute the gas dashboard aggregates for one call tree."""
    nodes = list(tree.nodes_by_key.values())
    execution_gas = tree.total_exclusive_gas
    total_gas = resolve_total_gas(tree, reported_gas)
    overhead_gas = max(0, total_gas - execution_gas)

    exclusive = [n.exclusive_gas for n in nodes if n.exclusive_gas > 0]
    top_nodes = sorted(
        (n for n in nodes if n.exclusive_gas > 0),
        key=lambda n: n.exclusive_gas,
        reverse=True,
    )[:TOP_NODES]
    top_n_gas = sum(n.exclusive_gas for n in top_nodes[:CONCENTRATION_TOP_N])

    summary = GasSummary(
        total_gas=total_gas,
        execution_gas=execution_gas,
        overhead_gas=overhead_gas,
        overhead_pct=ratio_pct(overhead_gas, total_gas),
        p50=median(exclusive),
        max_exclusive=max(exclusive, default=0),
        peak_vs_median=peak_vs_median(exclusive),
        top_nodes=tuple(top_nodes),
        top5_share_pct=ratio_pct(top_n_gas, execution_gas),
        accounts_touched=_accounts_touched(tree),
        series=tuple(gas_series(tree)),
        top_callees=tuple(gas_by_callee(tree)),
        access_list=access_list_stats(access_list) if access_list is not None else None,
    )
    logger.debug(
        "gas_summary_computed",
        total_gas=summary.total_gas,
        execution_gas=summary.execution_gas,
        overhead_pct=summary.overhead_pct,
        node_count=len(nodes),
    )
    return summary
