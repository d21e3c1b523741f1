"""
Analysis pipeline: run the full dashboard analysis (normalize -> call tree -> gas -> flows).

Single entrypoint for the dashboard and CLI-style callers; returns the combined
derived aggregates for one simulation result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from backend_simlens.analytics.call_tree import CallTree, build_call_tree
from backend_simlens.analytics.flow_aggregator import (
    FlowStats,
    FlowWindow,
    aggregate_flows,
    total_known_usd,
)
from backend_simlens.analytics.gas_attribution import GasSummary, summarize_gas
from backend_simlens.analytics.state_summary import (
    StateSummary,
    count_event_names,
    summarize_state_changes,
)
from backend_simlens.core.exceptions import UnexpectedResponseError
from backend_simlens.simlens_logging import get_logger
from backend_simlens.simulation.models import CanonicalResult
from backend_simlens.simulation.normalizer import normalize

logger = get_logger(__name__)


@dataclass(frozen=True)
class SimulationAnalysis:
    result: CanonicalResult
    call_tree: CallTree
    gas: GasSummary
    flows: FlowStats
    state: StateSummary
    events: tuple[tuple[str, int], ...]
    total_known_usd: float

    def to_dict(self, flow_window: FlowWindow | int = "30") -> dict[str, Any]:
        """JSON-ready analysis; frames touching the actor are flagged in call_tree."""
        return {
            "simulation_id": self.result.simulation_id,
            "status": self.result.outcome.value,
            "error_message": self.result.error_message,
            "call_count": len(self.call_tree),
            "call_tree": self.call_tree.to_dict(highlight=[self.flows.actor] if self.flows.actor else ()),
            "gas": self.gas.to_dict(),
            "flows": self.flows.to_dict(window=flow_window),
            "state": self.state.to_dict(),
            "events": [{"name": name, "count": n} for name, n in self.events],
            "total_known_usd": self.total_known_usd,
        }


def analyze_simulation(raw: Any, actor: str | None = None) -> SimulationAnalysis:
    """
    Run full analysis for one simulation payload or CanonicalResult.

    Raises UnexpectedResponseError when the payload root is not an object.
    """
    result = normalize(raw)
    if result is None:
        raise UnexpectedResponseError("Unexpected simulation response shape")

    logger.info("analysis_start", simulation_id=result.simulation_id, has_actor=bool(actor))

    tree = build_call_tree(result.trace)
    gas = summarize_gas(tree, result.gas_used_int, result.generated_access_list)
    flows = aggregate_flows(result.asset_changes, actor=actor)
    analysis = SimulationAnalysis(
        result=result,
        call_tree=tree,
        gas=gas,
        flows=flows,
        state=summarize_state_changes(result.state_changes),
        events=tuple(count_event_names(result.logs)),
        total_known_usd=total_known_usd(result.asset_changes, result.exposure_changes),
    )

    logger.info(
        "analysis_done",
        simulation_id=result.simulation_id,
        status=result.outcome.value,
        call_count=len(tree),
        total_gas=gas.total_gas,
        transfer_count=flows.transfer_count,
    )
    return analysis
