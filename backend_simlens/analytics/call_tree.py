"""
Call tree builder — flat trace entries to a hierarchical call graph.

Each entry is keyed by its trace address; the parent is the address without
its last index. Nodes carry inclusive gas (as reported) and exclusive gas
(inclusive minus direct children, floored at zero). Upstream services repeat
a revert message on every frame it unwinds through, so an error is attributed
only to frames with no erroring direct child (is_error_origin); ancestors get
subtree_has_error instead, letting viewers expand down to the real failure.

Pure and deterministic. Nodes are frozen once built.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.models import TraceEntry

logger = get_logger(__name__)

DEFAULT_METHOD_LABEL = "CALL"


def path_key(path: Iterable[int]) -> str:
    """Stable textual key for a trace address: [0, 2] -> "[0,2]"."""
    return json.dumps(list(path), separators=(",", ":"))


def _method_label(entry: TraceEntry) -> str:
    if isinstance(entry.method, str) and entry.method.strip():
        return entry.method
    if isinstance(entry.call_type, str) and entry.call_type.strip():
        return entry.call_type
    return DEFAULT_METHOD_LABEL


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class CallNode:
    """One frame of the call tree with derived gas and error attribution."""

    key: str
    parent_key: str | None
    path: tuple[int, ...]
    entry: TraceEntry
    method_label: str
    from_address: str | None
    to_address: str | None
    inclusive_gas: int
    exclusive_gas: int
    error: str | None
    is_error_origin: bool
    subtree_has_error: bool
    children: tuple[CallNode, ...]

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def error_display(self) -> str | None:
        """The error message, only on the frame where it originates."""
        return self.error if self.is_error_origin else None

    @property
    def has_downstream_error(self) -> bool:
        return self.subtree_has_error and not self.is_error_origin

    def touches(self, addresses: set[str]) -> bool:
        """True if from or to is in addresses (lower-cased)."""
        return any(
            addr is not None and addr.lower() in addresses
            for addr in (self.from_address, self.to_address)
        )

    def to_dict(self, highlighted: set[str] | frozenset[str] = frozenset()) -> dict[str, Any]:
        """Nested frame dict; the error message appears only on its origin frame."""
        return {
            "key": self.key,
            "path": list(self.path),
            "method_label": self.method_label,
            "from": self.from_address,
            "to": self.to_address,
            "inclusive_gas": self.inclusive_gas,
            "exclusive_gas": self.exclusive_gas,
            "error": self.error_display,
            "is_error_origin": self.is_error_origin,
            "subtree_has_error": self.subtree_has_error,
            "highlighted": self.key in highlighted,
            "children": [c.to_dict(highlighted) for c in self.children],
        }


@dataclass(frozen=True)
class CallTree:
    roots: tuple[CallNode, ...]
    nodes_by_key: dict[str, CallNode]

    def __len__(self) -> int:
        return len(self.nodes_by_key)

    def nodes(self) -> Iterator[CallNode]:
        """All nodes in execution order (lexicographic on path, parents first)."""
        return iter(sorted(self.nodes_by_key.values(), key=lambda n: n.path))

    def get(self, key: str) -> CallNode | None:
        return self.nodes_by_key.get(key)

    def highlighted(self, addresses: Iterable[str]) -> set[str]:
        """Keys of nodes calling from or to any of addresses (case-insensitive)."""
        wanted = {a.lower() for a in addresses if a}
        if not wanted:
            return set()
        return {n.key for n in self.nodes_by_key.values() if n.touches(wanted)}

    @property
    def total_exclusive_gas(self) -> int:
        return sum(n.exclusive_gas for n in self.nodes_by_key.values())

    def to_dict(self, highlight: Iterable[str] = ()) -> dict[str, Any]:
        """Roots as nested frame dicts, with the keys of frames touching any highlight address."""
        keys = self.highlighted(highlight)
        return {
            "node_count": len(self),
            "highlighted": sorted(keys, key=lambda k: self.nodes_by_key[k].path),
            "roots": [r.to_dict(keys) for r in self.roots],
        }


@dataclass
class _Pending:
    key: str
    parent_key: str | None
    path: tuple[int, ...]
    entry: TraceEntry
    gas: int


def build_call_tree(entries: Iterable[Any] | None) -> CallTree:
    """
    Build the call tree for a sequence of trace entries.

    Non-TraceEntry items are skipped. Entries without a valid trace address
    are treated as roots. When two entries share a trace address the first
    one is kept. Roots are entries whose parent is absent, ordered by depth
    then path.
    """
    pending: dict[str, _Pending] = {}
    skipped = 0
    duplicates = 0
    for entry in entries or ():
        if not isinstance(entry, TraceEntry):
            skipped += 1
            continue
        path = entry.path
        key = path_key(path)
        if key in pending:
            duplicates += 1
            continue
        pending[key] = _Pending(
            key=key,
            parent_key=path_key(path[:-1]) if path else None,
            path=path,
            entry=entry,
            gas=entry.gas_used_int or 0,
        )

    child_keys: defaultdict[str, list[str]] = defaultdict(list)
    for item in pending.values():
        if item.parent_key is not None and item.parent_key in pending:
            child_keys[item.parent_key].append(item.key)
    for keys in child_keys.values():
        keys.sort(key=lambda k: pending[k].path[-1])

    # Deepest first: every child is built before its parent.
    built: dict[str, CallNode] = {}
    for item in sorted(pending.values(), key=lambda p: len(p.path), reverse=True):
        children = tuple(built[k] for k in child_keys.get(item.key, ()))
        children_gas = sum(c.inclusive_gas for c in children)
        error = _text(item.entry.error) or None
        is_error_origin = bool(error) and not any(c.error for c in children)
        built[item.key] = CallNode(
            key=item.key,
            parent_key=item.parent_key,
            path=item.path,
            entry=item.entry,
            method_label=_method_label(item.entry),
            from_address=_text(item.entry.from_address),
            to_address=_text(item.entry.to_address),
            inclusive_gas=item.gas,
            exclusive_gas=max(0, item.gas - children_gas),
            error=error,
            is_error_origin=is_error_origin,
            subtree_has_error=is_error_origin or any(c.subtree_has_error for c in children),
            children=children,
        )

    nodes_by_key = {key: built[key] for key in pending}
    roots = tuple(
        sorted(
            (n for n in nodes_by_key.values() if n.parent_key is None or n.parent_key not in nodes_by_key),
            key=lambda n: (n.depth, n.path),
        )
    )
    logger.debug(
        "call_tree_built",
        node_count=len(nodes_by_key),
        root_count=len(roots),
        skipped=skipped,
        duplicate_paths=duplicates,
    )
    return CallTree(roots=roots, nodes_by_key=nodes_by_key)
