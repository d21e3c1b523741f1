"""
Structured logging for Backend SimLens.

JSON logs with timestamp, level, and event_type.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_simlens.simlens_logging.logger import get_logger

__all__ = ["get_logger"]
