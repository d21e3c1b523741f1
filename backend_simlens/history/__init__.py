"""
History package: the reconciled activity feed.

Local executions and remotely saved simulations are converted to HistoryItem
and merged into one list, newest first.
"""

from backend_simlens.history.execution_log import ExecutionLog
from backend_simlens.history.models import ExecutionRecord, HistoryItem, HistoryKind, HistoryStatus
from backend_simlens.history.reconciler import merge, remote_to_history_item

__all__ = [
    "ExecutionLog",
    "ExecutionRecord",
    "HistoryItem",
    "HistoryKind",
    "HistoryStatus",
    "merge",
    "remote_to_history_item",
]
