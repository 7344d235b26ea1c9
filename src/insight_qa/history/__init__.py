"""Run history persistence."""

from __future__ import annotations

from insight_qa.config.models import HistoryConfig
from insight_qa.history.memory import InMemoryHistory
from insight_qa.history.models import (
    ExecutionRecord,
    FailurePattern,
    HistoryBackend,
    ScenarioRecord,
    TrendPoint,
)
from insight_qa.history.sqlite import SqliteHistory


def create_history(config: HistoryConfig) -> HistoryBackend | None:
    """Build the configured backend; None when history is switched off."""
    if config.backend == "none":
        return None
    if config.backend == "memory":
        return InMemoryHistory()
    return SqliteHistory(db_path=config.db_path)


__all__ = [
    "ExecutionRecord",
    "FailurePattern",
    "HistoryBackend",
    "InMemoryHistory",
    "ScenarioRecord",
    "SqliteHistory",
    "TrendPoint",
    "create_history",
]
