"""
Pytest tests for the analysis pipeline and the state/event summaries.
"""

from __future__ import annotations

import pytest

ADDR_A = "0x" + "a" * 40
ADDR_C = "0x" + "c" * 40


def test_analyze_simulation_end_to_end(rich_payload):
    """Normalize, build the tree, and aggregate gas, flows, state and events in one call."""
    from backend_simlens.analytics.pipeline import analyze_simulation

    analysis = analyze_simulation(rich_payload, actor=ADDR_A)
    assert len(analysis.call_tree) == 2
    root = analysis.call_tree.roots[0]
    assert root.exclusive_gas == 70
    assert not root.is_error_origin and root.subtree_has_error
    assert root.children[0].is_error_origin

    assert analysis.gas.total_gas == 120
    assert analysis.gas.overhead_gas == 20
    assert analysis.gas.access_list.total_keys == 2

    assert analysis.flows.net_usd == -60
    assert analysis.total_known_usd == 145.5
    assert analysis.events == (("Transfer", 1), ("Unknown", 1))
    assert analysis.state.slot_count == 1

    out = analysis.to_dict()
    assert out["status"] == "revert"
    assert out["call_count"] == 2
    assert out["call_tree"]["highlighted"] == ["[]"]
    assert out["flows"]["series"] == [-100.0, -60.0]
    assert analysis.to_dict(flow_window=1)["flows"]["series"] == [-60.0]


def test_analyze_simulation_rejects_non_object():
    """Scenario D: a bare string is an unexpected response."""
    from backend_simlens.analytics.pipeline import analyze_simulation
    from backend_simlens.core.exceptions import UnexpectedResponseError

    with pytest.raises(UnexpectedResponseError):
        analyze_simulation("not an object")


def test_analyze_empty_result():
    """An object with no collections still analyzes to neutral values."""
    from backend_simlens.analytics.pipeline import analyze_simulation

    analysis = analyze_simulation({})
    assert analysis.call_tree.roots == ()
    assert analysis.gas.total_gas == 0
    assert analysis.flows.transfer_count == 0
    assert analysis.events == ()


def test_summarize_state_changes(rich_payload):
    """Slots, balance and nonce updates, distinct addresses, per-address slot ranking."""
    from backend_simlens.analytics.state_summary import summarize_state_changes
    from backend_simlens.simulation.models import StateChange, StorageChange
    from backend_simlens.simulation.normalizer import normalize

    summary = summarize_state_changes(normalize(rich_payload).state_changes)
    assert summary.slot_count == 1
    assert summary.balance_updates == 1
    assert summary.nonce_updates == 1
    assert summary.address_count == 2
    assert summary.slots_by_address == ((ADDR_C, 1),)

    unknown = summarize_state_changes([StateChange(storage=(StorageChange(slot="0x1"), StorageChange(slot="0x2")))])
    assert unknown.slots_by_address == (("Unknown", 2),)


def test_count_event_names():
    """Blank names count as Unknown; ranked by count."""
    from backend_simlens.analytics.state_summary import count_event_names
    from backend_simlens.simulation.models import LogEntry

    logs = [LogEntry(name="Transfer"), LogEntry(name="Approval"), LogEntry(name="Transfer"), LogEntry(name=" ")]
    assert count_event_names(logs) == [("Transfer", 2), ("Approval", 1), ("Unknown", 1)]
    assert count_event_names(None) == []
