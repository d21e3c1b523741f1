"""
Pytest tests for the call tree builder: hierarchy, exclusive gas, error-origin attribution.
"""

from __future__ import annotations

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40


def _entry(path, gas=0, **kw):
    from backend_simlens.simulation.models import TraceEntry

    return TraceEntry(trace_address=tuple(path) if path is not None else None, gas_used=gas, **kw)


def _walk(nodes):
    for node in nodes:
        yield node
        yield from _walk(node.children)


def test_scenario_a_tree(scenario_a_payload):
    """One root (exclusive 50) with one child (exclusive 50); total exclusive 100."""
    from backend_simlens.analytics.call_tree import build_call_tree
    from backend_simlens.simulation.normalizer import normalize

    tree = build_call_tree(normalize(scenario_a_payload).trace)
    assert len(tree.roots) == 1
    root = tree.roots[0]
    assert root.key == "[]"
    assert (root.inclusive_gas, root.exclusive_gas) == (100, 50)
    assert len(root.children) == 1
    child = root.children[0]
    assert child.key == "[0]"
    assert child.parent_key == "[]"
    assert child.exclusive_gas == 50
    assert tree.total_exclusive_gas == 100
    assert set(tree.nodes_by_key) == {"[]", "[0]"}


def test_scenario_b_error_origin_on_deepest_frame():
    """A revert repeated on the parent is shown only on the child that raised it."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([
        _entry([], 10, error="revert: X"),
        _entry([0], 5, error="revert: X"),
    ])
    root = tree.get("[]")
    child = tree.get("[0]")
    assert child.is_error_origin is True
    assert child.error_display == "revert: X"
    assert root.is_error_origin is False
    assert root.error_display is None
    assert root.subtree_has_error is True
    assert root.has_downstream_error is True


def test_error_flags_deeper_tree():
    """Only the failing branch is flagged; a sibling branch stays clean."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([
        _entry([], 100, error="boom"),
        _entry([0], 40),
        _entry([1], 40, error="boom"),
        _entry([1, 0], 10, error="boom"),
        _entry([1, 1], 10),
    ])
    origins = {n.key for n in tree.nodes() if n.is_error_origin}
    assert origins == {"[1,0]"}
    assert tree.get("[]").subtree_has_error
    assert tree.get("[1]").subtree_has_error
    assert not tree.get("[0]").subtree_has_error
    assert not tree.get("[1,1]").subtree_has_error

    for node in tree.nodes():
        if node.is_error_origin:
            assert not any(c.is_error_origin and c.error == node.error for c in node.children)


def test_exclusive_gas_never_negative():
    """Children reporting more gas than their parent floor the parent's exclusive gas at zero."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([_entry([], 10), _entry([0], 8), _entry([1], 7)])
    root = tree.get("[]")
    assert root.exclusive_gas == 0
    for node in _walk(tree.roots):
        assert node.exclusive_gas >= 0
        assert node.exclusive_gas == max(0, node.inclusive_gas - sum(c.inclusive_gas for c in node.children))


def test_children_sorted_by_call_index():
    """Siblings are ordered by their last path segment, regardless of input order."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([_entry([], 0), _entry([2], 0), _entry([0], 0), _entry([1], 0)])
    assert [c.path for c in tree.roots[0].children] == [(0,), (1,), (2,)]


def test_multiple_roots_and_orphans():
    """Entries whose parent is absent become roots, ordered by depth then path."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([_entry([3, 1], 5), _entry([], 20), _entry([2, 0], 5)])
    assert [r.path for r in tree.roots] == [(), (2, 0), (3, 1)]


def test_missing_or_invalid_path_is_root():
    """No trace address, or one with non-integer parts, is the empty (root) path."""
    from backend_simlens.analytics.call_tree import build_call_tree

    assert _entry(None).path == ()
    assert _entry(["a", 1]).path == ()
    assert _entry([-1]).path == ()
    assert _entry([True]).path == ()

    tree = build_call_tree([_entry(None, 7)])
    assert [r.key for r in tree.roots] == ["[]"]


def test_malformed_entries_skipped_and_empty_input():
    """Non-entries are skipped; duplicate paths keep the first; empty input gives empty roots."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([{"trace_address": []}, None, _entry([], 9), _entry([], 3)])
    assert len(tree) == 1
    assert tree.get("[]").inclusive_gas == 9

    empty = build_call_tree([])
    assert empty.roots == ()
    assert len(empty) == 0
    assert build_call_tree(None).roots == ()


def test_method_label_fallbacks():
    """Method name, else call type, else CALL."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([
        _entry([], 0, method="swap", call_type="CALL"),
        _entry([0], 0, method="  ", call_type="DELEGATECALL"),
        _entry([1], 0),
    ])
    assert tree.get("[]").method_label == "swap"
    assert tree.get("[0]").method_label == "DELEGATECALL"
    assert tree.get("[1]").method_label == "CALL"


def test_nodes_in_execution_order_and_highlighting():
    """nodes() walks parents before children; highlighted() matches addresses case-insensitively."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([
        _entry([1], 0, from_address=ADDR_A, to_address=ADDR_B),
        _entry([0, 0], 0),
        _entry([], 0, from_address=ADDR_A.upper().replace("0X", "0x")),
        _entry([0], 0),
    ])
    assert [n.path for n in tree.nodes()] == [(), (0,), (0, 0), (1,)]
    assert tree.highlighted([ADDR_A]) == {"[]", "[1]"}
    assert tree.highlighted([ADDR_B.upper()]) == {"[1]"}
    assert tree.highlighted([]) == set()


def test_hex_gas_values_parsed():
    """Inclusive gas accepts hex, decimal strings and ints; unparsable gas counts as zero."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([_entry([], "0x64"), _entry([0], "30"), _entry([1], "n/a")])
    assert tree.get("[]").exclusive_gas == 70
    assert tree.get("[1]").inclusive_gas == 0


def test_tree_to_dict_nests_frames():
    """Serialized frames nest under their parent; the error text stays on the origin frame."""
    from backend_simlens.analytics.call_tree import build_call_tree

    tree = build_call_tree([
        _entry([], 100, from_address=ADDR_A, to_address=ADDR_B, error="reverted"),
        _entry([0], 30, from_address=ADDR_B, to_address=ADDR_A, method="transfer", error="reverted"),
    ])
    out = tree.to_dict(highlight=[ADDR_A.upper().replace("0X", "0x")])
    assert out["node_count"] == 2
    assert out["highlighted"] == ["[]", "[0]"]

    (root,) = out["roots"]
    assert root["key"] == "[]"
    assert root["path"] == []
    assert root["method_label"] == "CALL"
    assert (root["from"], root["to"]) == (ADDR_A, ADDR_B)
    assert (root["inclusive_gas"], root["exclusive_gas"]) == (100, 70)
    assert root["error"] is None
    assert not root["is_error_origin"] and root["subtree_has_error"]

    (child,) = root["children"]
    assert child["path"] == [0]
    assert child["method_label"] == "transfer"
    assert child["error"] == "reverted"
    assert child["is_error_origin"] and child["highlighted"]
    assert child["children"] == []

    assert tree.to_dict()["highlighted"] == []
