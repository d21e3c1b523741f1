"""
Simulation package.

Canonical result schema, the response normalizer that produces it from any
upstream payload shape, and the HTTP client that fetches those payloads.
"""

from backend_simlens.simulation.models import CanonicalResult, SimulationStatus, TraceEntry
from backend_simlens.simulation.normalizer import normalize

__all__ = [
    "CanonicalResult",
    "SimulationStatus",
    "TraceEntry",
    "normalize",
]
