"""In-memory history backend."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from insight_qa.history.models import ExecutionRecord, FailurePattern, ScenarioRecord, TrendPoint
from insight_qa.results.models import ensure_aware


def _cutoff(window_days: int) -> datetime:
    return datetime.now(UTC) - timedelta(days=window_days)


class InMemoryHistory:
    """Process-local history. Serialised via asyncio lock."""

    def __init__(self) -> None:
        self._executions: dict[str, ExecutionRecord] = {}
        self._scenarios: list[ScenarioRecord] = []
        self._patterns: dict[str, FailurePattern] = {}
        self._lock = asyncio.Lock()

    async def save_execution(self, record: ExecutionRecord) -> None:
        async with self._lock:
            if record.id in self._executions:
                raise ValueError(f"Execution {record.id!r} already recorded")
            self._executions[record.id] = replace(record, timestamp=ensure_aware(record.timestamp))

    async def save_scenario(self, record: ScenarioRecord) -> None:
        async with self._lock:
            if record.execution_id not in self._executions:
                raise ValueError(f"Unknown execution {record.execution_id!r}")
            self._scenarios.append(record)

    async def recent_executions(self, limit: int = 10) -> list[ExecutionRecord]:
        async with self._lock:
            records = sorted(self._executions.values(), key=lambda r: r.timestamp, reverse=True)
            return records[:limit]

    async def scenario_history(self, name: str, window_days: int = 30) -> list[ScenarioRecord]:
        """Records for *name* inside the window, newest first."""
        cutoff = _cutoff(window_days)
        async with self._lock:
            matches: list[ScenarioRecord] = []
            for rec in self._scenarios:
                if rec.scenario_name != name:
                    continue
                execution = self._executions[rec.execution_id]
                if execution.timestamp < cutoff:
                    continue
                matches.append(replace(rec, timestamp=execution.timestamp))
            matches.sort(key=lambda r: r.timestamp or cutoff, reverse=True)
            return matches

    async def trend_points(self, window_days: int = 30) -> list[TrendPoint]:
        """Per-run aggregates inside the window, oldest first."""
        cutoff = _cutoff(window_days)
        async with self._lock:
            runs = sorted(
                (r for r in self._executions.values() if r.timestamp >= cutoff),
                key=lambda r: r.timestamp,
            )
            return [
                TrendPoint(
                    timestamp=r.timestamp,
                    success_rate=r.success_rate,
                    duration_ms=r.duration_ms,
                    total=r.total_scenarios,
                    passed=r.passed_scenarios,
                    failed=r.failed_scenarios,
                )
                for r in runs
            ]

    async def record_failure_pattern(self, signature: str, kind: str, analysis: str = "") -> None:
        now = datetime.now(UTC)
        async with self._lock:
            pattern = self._patterns.get(signature)
            if pattern is None:
                self._patterns[signature] = FailurePattern(
                    signature=signature,
                    kind=kind,
                    first_seen=now,
                    last_seen=now,
                    analysis=analysis,
                )
                return
            pattern.occurrence_count += 1
            pattern.last_seen = now
            if analysis:
                pattern.analysis = analysis

    async def failure_patterns(self, limit: int = 50) -> list[FailurePattern]:
        async with self._lock:
            patterns = sorted(
                self._patterns.values(),
                key=lambda p: (-p.occurrence_count, p.signature),
            )
            return patterns[:limit]

    async def cleanup(self, retention_days: int) -> int:
        """Drop runs older than the retention window with their scenarios."""
        cutoff = _cutoff(retention_days)
        async with self._lock:
            stale = {rid for rid, r in self._executions.items() if r.timestamp < cutoff}
            for rid in stale:
                del self._executions[rid]
            self._scenarios = [s for s in self._scenarios if s.execution_id not in stale]
            return len(stale)

    async def close(self) -> None:
        pass
