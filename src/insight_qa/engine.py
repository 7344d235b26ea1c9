"""Runs one analysis pass over a decoded suite and records it to history."""

from __future__ import annotations

import logging
import uuid

from insight_qa.analysis.flaky import FlakyDetector
from insight_qa.analysis.grouping import FailureGrouper
from insight_qa.analysis.summary import ExecutiveSummarizer
from insight_qa.analysis.trends import TrendEngine
from insight_qa.config.models import InsightConfig
from insight_qa.history.models import ExecutionRecord, HistoryBackend, ScenarioRecord
from insight_qa.llm.base import LLMClient
from insight_qa.llm.factory import create_llm_client
from insight_qa.results.models import SuiteOutcome

logger = logging.getLogger(__name__)


class InsightEngine:
    """Groups failures, detects flaky tests, tracks trends and summarises a run.

    The history backend and LLM client are both optional. Without history,
    flaky detection and trends come back empty; without an LLM client, fix
    suggestions and the narrative use their fixed fallback text.
    """

    def __init__(
        self,
        config: InsightConfig | None = None,
        history: HistoryBackend | None = None,
        llm_client: LLMClient | None = None,
    ) -> None:
        self._config = config or InsightConfig()
        self._history = history
        self._llm = llm_client if llm_client is not None else create_llm_client(self._config.llm)
        analysis = self._config.analysis
        self.grouper = FailureGrouper(self._llm, self._config.llm)
        self.flaky_detector = FlakyDetector(history, analysis)
        self.trend_engine = TrendEngine(history, analysis)
        self.summarizer = ExecutiveSummarizer(self._llm, self._config.llm)

    @property
    def history(self) -> HistoryBackend | None:
        return self._history

    async def run(self, suite: SuiteOutcome) -> SuiteOutcome:
        """Analyse *suite*, attach the results to it, and return it."""
        project = self._config.project
        suite.project_name = suite.project_name or project.name
        suite.environment = suite.environment or project.environment
        logger.info(
            "Analysing run: %d spec(s), %d scenario(s), %d failed",
            suite.total_specs,
            suite.total_scenarios,
            suite.failed_scenarios,
        )

        failure_groups = await self.grouper.group(suite)
        suite.attach(failure_groups=failure_groups)

        logger.info("Computing run analytics")
        suite.attach(analytics=self.trend_engine.analyze(suite))

        logger.info("Detecting flaky tests")
        suite.attach(flaky_tests=await self.flaky_detector.detect(suite))

        logger.info("Loading trend data")
        suite.attach(trends=await self.trend_engine.trends())

        summary = self.summarizer.summarize(suite, failure_groups)
        summary.narrative = await self.summarizer.narrate(suite, summary)
        suite.attach(executive_summary=summary)
        logger.info("Health status: %s (%.1f%%)", summary.health_status, suite.success_rate)

        if self._history is not None and self._config.history.record_runs:
            try:
                await self.record(suite)
            except Exception:
                logger.exception("Failed to record run to history")

        return suite

    async def record(self, suite: SuiteOutcome, execution_id: str | None = None) -> str:
        """Persist the run, its scenarios and its failure signatures."""
        if self._history is None:
            raise RuntimeError("No history backend configured")

        run_id = execution_id or uuid.uuid4().hex
        await self._history.save_execution(
            ExecutionRecord(
                id=run_id,
                timestamp=suite.timestamp,
                duration_ms=suite.duration_ms,
                total_scenarios=suite.total_scenarios,
                passed_scenarios=suite.passed_scenarios,
                failed_scenarios=suite.failed_scenarios,
                skipped_scenarios=suite.skipped_scenarios,
                success_rate=suite.success_rate,
                environment=suite.environment,
                tags=list(suite.tags),
                metadata=suite.metadata,
            )
        )

        for spec, scenario in suite.iter_scenarios():
            step = scenario.first_failed_step if scenario.failed else None
            try:
                await self._history.save_scenario(
                    ScenarioRecord(
                        execution_id=run_id,
                        scenario_name=scenario.heading,
                        spec_name=spec.heading,
                        status=scenario.status,
                        duration_ms=scenario.duration_ms,
                        error_message=step.error_message if step else "",
                        stack_trace=step.stack_trace if step else "",
                    )
                )
            except Exception:
                logger.exception("Failed to save scenario %r", scenario.heading)

        for group in suite.failure_groups or []:
            await self._history.record_failure_pattern(group.signature, str(group.kind), group.suggested_fix)

        retention = self._config.history.retention_days
        if retention > 0:
            await self._history.cleanup(retention)

        logger.info("Recorded run %s", run_id)
        return run_id
