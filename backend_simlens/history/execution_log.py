"""
In-memory log of local executions, most recent first, capped at the configured limit.

Nothing is persisted; the log lives as long as the session that owns it.
"""

from __future__ import annotations

from backend_simlens.config import get_settings
from backend_simlens.history.models import ExecutionRecord, HistoryItem
from backend_simlens.simlens_logging import get_logger

logger = get_logger(__name__)


class ExecutionLog:
    def __init__(self, limit: int | None = None) -> None:
        self._limit = limit if limit is not None and limit > 0 else get_settings().execution_history_limit
        self._records: list[ExecutionRecord] = []

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._records)

    def record(self, record: ExecutionRecord) -> None:
        """Prepend record; the oldest entries beyond the limit are evicted."""
        self._records = [record, *self._records][: self._limit]
        logger.debug(
            "execution_recorded",
            chain_id=record.chain_id,
            kept=len(self._records),
            limit=self._limit,
        )

    def clear(self) -> None:
        logger.info("execution_log_cleared", dropped=len(self._records))
        self._records = []

    def records(self) -> list[ExecutionRecord]:
        return list(self._records)

    def items(self) -> list[HistoryItem]:
        return [r.to_history_item() for r in self._records]
