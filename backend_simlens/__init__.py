"""
Backend SimLens — execution forecasts for raw on-chain calls.

Normalizes upstream transaction-simulation responses into one canonical
schema, rebuilds the call hierarchy with gas attribution, aggregates token
flows per participant, and reconciles local executions with saved
simulations into a single activity feed.
"""

__version__ = "0.1.0"
