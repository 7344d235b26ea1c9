"""Persisted history records and the backend protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from insight_qa.results.models import RunMetadata


@dataclass
class ExecutionRecord:
    """One row per recorded run."""

    id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: float = 0.0
    total_scenarios: int = 0
    passed_scenarios: int = 0
    failed_scenarios: int = 0
    skipped_scenarios: int = 0
    success_rate: float = 0.0
    environment: str = ""
    tags: list[str] = field(default_factory=list)
    metadata: RunMetadata = field(default_factory=RunMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
            "total_scenarios": self.total_scenarios,
            "passed_scenarios": self.passed_scenarios,
            "failed_scenarios": self.failed_scenarios,
            "skipped_scenarios": self.skipped_scenarios,
            "success_rate": self.success_rate,
            "environment": self.environment,
            "tags": list(self.tags),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class ScenarioRecord:
    """One row per scenario per recorded run."""

    execution_id: str
    scenario_name: str
    spec_name: str
    status: str  # "passed", "failed" or "skipped"
    duration_ms: float = 0.0
    error_message: str = ""
    stack_trace: str = ""
    # Run timestamp; filled in from the parent execution when read back.
    timestamp: datetime | None = None


@dataclass
class TrendPoint:
    """Aggregate outcome of one historical run."""

    timestamp: datetime
    success_rate: float
    duration_ms: float
    total: int
    passed: int
    failed: int


@dataclass
class FailurePattern:
    """Durable record of a failure signature seen across runs."""

    signature: str
    kind: str
    first_seen: datetime
    last_seen: datetime
    occurrence_count: int = 1
    analysis: str = ""


@runtime_checkable
class HistoryBackend(Protocol):
    """Protocol for history backends."""

    async def save_execution(self, record: ExecutionRecord) -> None: ...
    async def save_scenario(self, record: ScenarioRecord) -> None: ...
    async def recent_executions(self, limit: int = 10) -> list[ExecutionRecord]: ...
    async def scenario_history(self, name: str, window_days: int = 30) -> list[ScenarioRecord]: ...
    async def trend_points(self, window_days: int = 30) -> list[TrendPoint]: ...
    async def record_failure_pattern(self, signature: str, kind: str, analysis: str = "") -> None: ...
    async def failure_patterns(self, limit: int = 50) -> list[FailurePattern]: ...
    async def cleanup(self, retention_days: int) -> int: ...
    async def close(self) -> None: ...
