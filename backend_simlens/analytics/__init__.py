"""
SimLens analytics: derived views over a canonical simulation result.

Modules: call_tree, gas_attribution, flow_aggregator, state_summary, pipeline.
"""

from backend_simlens.analytics.call_tree import CallNode, CallTree, build_call_tree
from backend_simlens.analytics.flow_aggregator import FlowStats, aggregate_flows, downsample
from backend_simlens.analytics.gas_attribution import GasSummary, summarize_gas
from backend_simlens.analytics.pipeline import SimulationAnalysis, analyze_simulation

__all__ = [
    "CallNode",
    "CallTree",
    "build_call_tree",
    "GasSummary",
    "summarize_gas",
    "FlowStats",
    "aggregate_flows",
    "downsample",
    "SimulationAnalysis",
    "analyze_simulation",
]
