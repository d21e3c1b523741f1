"""
Application-level exceptions.

Pure components (normalizer, call tree, aggregators, history reconciler)
degrade gracefully on irregular input and do not raise. These exceptions are
raised at the edges: the simulation API client and request builders.
"""

from __future__ import annotations


class SimLensError(Exception):
    """Base class for SimLens errors."""


class UnexpectedResponseError(SimLensError):
    """A fetched payload could not be normalized into a canonical result."""


class SimulationApiError(SimLensError):
    """The simulation API answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidRequestError(SimLensError):
    """A simulation request could not be built from the given inputs."""
