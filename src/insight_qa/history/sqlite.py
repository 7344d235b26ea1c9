"""SQLite-backed history backend."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import aiosqlite

from insight_qa.history.models import ExecutionRecord, FailurePattern, ScenarioRecord, TrendPoint
from insight_qa.results.models import RunMetadata, ensure_aware

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS executions (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    duration_ms REAL NOT NULL DEFAULT 0,
    total_scenarios INTEGER NOT NULL DEFAULT 0,
    passed_scenarios INTEGER NOT NULL DEFAULT 0,
    failed_scenarios INTEGER NOT NULL DEFAULT 0,
    skipped_scenarios INTEGER NOT NULL DEFAULT 0,
    success_rate REAL NOT NULL DEFAULT 0,
    environment TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '[]',
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_execution_timestamp ON executions(timestamp DESC);

CREATE TABLE IF NOT EXISTS scenario_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    execution_id TEXT NOT NULL REFERENCES executions(id) ON DELETE CASCADE,
    scenario_name TEXT NOT NULL,
    spec_name TEXT NOT NULL,
    status TEXT NOT NULL,
    duration_ms REAL NOT NULL DEFAULT 0,
    error_message TEXT NOT NULL DEFAULT '',
    stack_trace TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_scenario_name ON scenario_history(scenario_name);
CREATE INDEX IF NOT EXISTS idx_scenario_execution ON scenario_history(execution_id);

CREATE TABLE IF NOT EXISTS failure_patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    signature TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    occurrence_count INTEGER NOT NULL DEFAULT 1,
    analysis TEXT NOT NULL DEFAULT ''
);
"""

_EXECUTION_COLUMNS = (
    "id, timestamp, duration_ms, total_scenarios, passed_scenarios, failed_scenarios,"
    " skipped_scenarios, success_rate, environment, tags, metadata"
)


def _to_db(dt: datetime) -> str:
    """Fixed-width UTC text, so string order matches time order."""
    return ensure_aware(dt).astimezone(UTC).isoformat(timespec="microseconds")


def _from_db(val: str) -> datetime:
    return ensure_aware(datetime.fromisoformat(val))


def _cutoff(window_days: int) -> str:
    return _to_db(datetime.now(UTC) - timedelta(days=window_days))


class SqliteHistory:
    """SQLite-backed history, one connection per operation.

    An in-memory database lives only as long as its connection, so
    ``":memory:"`` keeps a single connection open until :meth:`close`.
    """

    def __init__(self, db_path: str = ".insight-history/test-history.db") -> None:
        self._db_path = db_path
        self._initialized = False
        self._shared: aiosqlite.Connection | None = None

    async def _init_connection(self, db: aiosqlite.Connection) -> None:
        """Enable foreign keys (must run per-connection) and create tables on first use."""
        await db.execute("PRAGMA foreign_keys = ON")
        if not self._initialized:
            await db.executescript(_CREATE_TABLES)
            self._initialized = True

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._db_path == ":memory:":
            if self._shared is None:
                self._shared = await aiosqlite.connect(self._db_path)
                await self._init_connection(self._shared)
            yield self._shared
            return
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            yield db

    async def close(self) -> None:
        if self._shared is not None:
            await self._shared.close()
            self._shared = None
            self._initialized = False

    async def save_execution(self, record: ExecutionRecord) -> None:
        async with self._connect() as db:
            await db.execute(
                f"INSERT INTO executions ({_EXECUTION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    _to_db(record.timestamp),
                    record.duration_ms,
                    record.total_scenarios,
                    record.passed_scenarios,
                    record.failed_scenarios,
                    record.skipped_scenarios,
                    record.success_rate,
                    record.environment,
                    json.dumps(list(record.tags)),
                    json.dumps(record.metadata.to_dict()),
                ),
            )
            await db.commit()
        logger.info("Saved execution record %s", record.id)

    async def save_scenario(self, record: ScenarioRecord) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO scenario_history"
                " (execution_id, scenario_name, spec_name, status, duration_ms, error_message, stack_trace)"
                " VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.execution_id,
                    record.scenario_name,
                    record.spec_name,
                    record.status,
                    record.duration_ms,
                    record.error_message,
                    record.stack_trace,
                ),
            )
            await db.commit()

    def _row_to_execution(self, r: Any) -> ExecutionRecord:
        return ExecutionRecord(
            id=str(r[0]),
            timestamp=_from_db(str(r[1])),
            duration_ms=float(r[2]),
            total_scenarios=int(r[3]),
            passed_scenarios=int(r[4]),
            failed_scenarios=int(r[5]),
            skipped_scenarios=int(r[6]),
            success_rate=float(r[7]),
            environment=str(r[8]),
            tags=list(json.loads(r[9] or "[]")),
            metadata=RunMetadata.from_dict(json.loads(r[10] or "{}")),
        )

    async def recent_executions(self, limit: int = 10) -> list[ExecutionRecord]:
        async with self._connect() as db:
            rows = list(await db.execute_fetchall(
                f"SELECT {_EXECUTION_COLUMNS} FROM executions ORDER BY timestamp DESC LIMIT ?",
                (limit,),
            ))
            return [self._row_to_execution(r) for r in rows]

    async def scenario_history(self, name: str, window_days: int = 30) -> list[ScenarioRecord]:
        """Records for *name* inside the window, newest first."""
        async with self._connect() as db:
            rows = list(await db.execute_fetchall(
                "SELECT sh.execution_id, sh.scenario_name, sh.spec_name, sh.status, sh.duration_ms,"
                " sh.error_message, sh.stack_trace, e.timestamp"
                " FROM scenario_history sh JOIN executions e ON sh.execution_id = e.id"
                " WHERE sh.scenario_name = ? AND e.timestamp >= ?"
                " ORDER BY e.timestamp DESC, sh.id DESC",
                (name, _cutoff(window_days)),
            ))
            return [
                ScenarioRecord(
                    execution_id=str(r[0]),
                    scenario_name=str(r[1]),
                    spec_name=str(r[2]),
                    status=str(r[3]),
                    duration_ms=float(r[4]),
                    error_message=str(r[5] or ""),
                    stack_trace=str(r[6] or ""),
                    timestamp=_from_db(str(r[7])),
                )
                for r in rows
            ]

    async def trend_points(self, window_days: int = 30) -> list[TrendPoint]:
        """Per-run aggregates inside the window, oldest first."""
        async with self._connect() as db:
            rows = list(await db.execute_fetchall(
                "SELECT timestamp, success_rate, duration_ms, total_scenarios, passed_scenarios, failed_scenarios"
                " FROM executions WHERE timestamp >= ? ORDER BY timestamp ASC",
                (_cutoff(window_days),),
            ))
            return [
                TrendPoint(
                    timestamp=_from_db(str(r[0])),
                    success_rate=float(r[1]),
                    duration_ms=float(r[2]),
                    total=int(r[3]),
                    passed=int(r[4]),
                    failed=int(r[5]),
                )
                for r in rows
            ]

    async def record_failure_pattern(self, signature: str, kind: str, analysis: str = "") -> None:
        now = _to_db(datetime.now(UTC))
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO failure_patterns (signature, kind, first_seen, last_seen, analysis)"
                " VALUES (?, ?, ?, ?, ?)"
                " ON CONFLICT(signature) DO UPDATE SET"
                "  last_seen = excluded.last_seen,"
                "  occurrence_count = occurrence_count + 1,"
                "  analysis = CASE WHEN excluded.analysis != '' THEN excluded.analysis ELSE analysis END",
                (signature, kind, now, now, analysis),
            )
            await db.commit()

    async def failure_patterns(self, limit: int = 50) -> list[FailurePattern]:
        async with self._connect() as db:
            rows = list(await db.execute_fetchall(
                "SELECT signature, kind, first_seen, last_seen, occurrence_count, analysis"
                " FROM failure_patterns ORDER BY occurrence_count DESC, signature ASC LIMIT ?",
                (limit,),
            ))
            return [
                FailurePattern(
                    signature=str(r[0]),
                    kind=str(r[1]),
                    first_seen=_from_db(str(r[2])),
                    last_seen=_from_db(str(r[3])),
                    occurrence_count=int(r[4]),
                    analysis=str(r[5] or ""),
                )
                for r in rows
            ]

    async def cleanup(self, retention_days: int) -> int:
        """Delete runs older than the retention window; scenario rows cascade."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM executions WHERE timestamp < ?",
                (_cutoff(retention_days),),
            )
            deleted = cursor.rowcount
            await db.commit()
        logger.info("Cleaned up %d old execution(s)", deleted)
        return deleted
