"""Current-run analytics and historical trend analysis."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from insight_qa.analysis.classifier import ErrorKind, classify
from insight_qa.config.models import AnalysisConfig
from insight_qa.history.models import HistoryBackend
from insight_qa.results.models import SuiteOutcome

logger = logging.getLogger(__name__)

# Change in success rate (percentage points) between the last two runs
# needed before the trend is called anything other than stable.
TREND_DELTA = 5.0
# Fixed placeholder. The forecast below is "same as last run", so there is
# no sample-based confidence to derive.
PREDICTION_CONFIDENCE = 0.7


@dataclass(frozen=True)
class SpecPerformance:
    spec_name: str
    duration_ms: float
    scenario_count: int


@dataclass(frozen=True)
class SpecFailureCount:
    spec_name: str
    failure_count: int


@dataclass(frozen=True)
class TimelineEntry:
    timestamp: datetime
    event: str  # "spec_start", "success" or "failure"
    spec_name: str
    duration_ms: float
    status: str


@dataclass
class Analytics:
    """Aggregates computed from the current run alone."""

    total_duration_ms: float = 0.0
    average_spec_ms: float = 0.0
    average_scenario_ms: float = 0.0
    tag_distribution: dict[str, int] = field(default_factory=dict)
    failure_distribution: dict[str, int] = field(default_factory=dict)
    slowest_specs: list[SpecPerformance] = field(default_factory=list)
    most_failed_specs: list[SpecFailureCount] = field(default_factory=list)
    timeline: list[TimelineEntry] = field(default_factory=list)


@dataclass(frozen=True)
class HistoricalRun:
    timestamp: datetime
    success_rate: float
    duration_ms: float
    passed: int
    failed: int
    total: int = 0


@dataclass(frozen=True)
class RunPrediction:
    success_rate: float
    duration_ms: float
    confidence: float


@dataclass(frozen=True)
class TrendPrediction:
    """Naive persistence forecast: next run looks like the last one."""

    quality_trend: str  # "improving", "degrading" or "stable"
    next_run: RunPrediction


@dataclass
class TrendData:
    historical_runs: list[HistoricalRun] = field(default_factory=list)
    success_rate_trend: list[float] = field(default_factory=list)
    duration_trend: list[float] = field(default_factory=list)
    prediction: TrendPrediction | None = None


def quality_trend(previous: float, current: float) -> str:
    delta = current - previous
    if delta > TREND_DELTA:
        return "improving"
    if delta < -TREND_DELTA:
        return "degrading"
    return "stable"


class TrendEngine:
    """Builds current-run analytics and the historical trend series."""

    def __init__(self, history: HistoryBackend | None = None, config: AnalysisConfig | None = None) -> None:
        self._history = history
        self._config = config or AnalysisConfig()

    def analyze(self, suite: SuiteOutcome) -> Analytics:
        scenarios = suite.iter_scenarios()
        spec_time = sum(spec.duration_ms for spec in suite.specs)
        scenario_time = sum(scenario.duration_ms for _, scenario in scenarios)

        return Analytics(
            total_duration_ms=suite.duration_ms,
            average_spec_ms=spec_time / len(suite.specs) if suite.specs else 0.0,
            average_scenario_ms=scenario_time / len(scenarios) if scenarios else 0.0,
            tag_distribution=self._tag_distribution(suite),
            failure_distribution=self._failure_distribution(suite),
            slowest_specs=self._slowest_specs(suite),
            most_failed_specs=self._most_failed_specs(suite),
            timeline=self._timeline(suite),
        )

    def _tag_distribution(self, suite: SuiteOutcome) -> dict[str, int]:
        counts: Counter[str] = Counter()
        for _, scenario in suite.iter_scenarios():
            counts.update(scenario.tags)
        return dict(sorted(counts.items()))

    def _failure_distribution(self, suite: SuiteOutcome) -> dict[str, int]:
        """Failed scenarios by error kind of their first failed step."""
        counts: Counter[str] = Counter()
        for _, scenario in suite.iter_scenarios():
            if not scenario.failed:
                continue
            step = scenario.first_failed_step
            if step is None or not step.error_message:
                counts[ErrorKind.UNKNOWN] += 1
            else:
                counts[classify(step.error_message, step.stack_trace)] += 1
        return {str(kind): n for kind, n in sorted(counts.items())}

    def _slowest_specs(self, suite: SuiteOutcome) -> list[SpecPerformance]:
        specs = [
            SpecPerformance(spec_name=s.heading, duration_ms=s.duration_ms, scenario_count=len(s.scenarios))
            for s in suite.specs
        ]
        specs.sort(key=lambda p: p.duration_ms, reverse=True)
        return specs[: self._config.top_n]

    def _most_failed_specs(self, suite: SuiteOutcome) -> list[SpecFailureCount]:
        failed = [
            SpecFailureCount(spec_name=s.heading, failure_count=s.failed_scenarios_count)
            for s in suite.specs
            if s.failed_scenarios_count > 0
        ]
        failed.sort(key=lambda f: f.failure_count, reverse=True)
        return failed[: self._config.top_n]

    def _timeline(self, suite: SuiteOutcome) -> list[TimelineEntry]:
        """Reconstruct a timeline assuming specs ran back to back."""
        entries: list[TimelineEntry] = []
        current = suite.timestamp
        for spec in suite.specs:
            entries.append(TimelineEntry(current, "spec_start", spec.heading, spec.duration_ms, spec.status))
            current = current + timedelta(milliseconds=spec.duration_ms)
            event = "failure" if spec.failed else "success"
            entries.append(TimelineEntry(current, event, spec.heading, spec.duration_ms, spec.status))
        return entries

    async def trends(self, window_days: int | None = None) -> TrendData:
        """Trend series over the window, oldest point first."""
        if self._history is None:
            return TrendData()
        days = window_days if window_days is not None else self._config.trend_window_days
        try:
            points = await self._history.trend_points(window_days=days)
        except Exception:
            logger.exception("Failed to load trend data")
            return TrendData()

        runs = [
            HistoricalRun(
                timestamp=p.timestamp,
                success_rate=p.success_rate,
                duration_ms=p.duration_ms,
                passed=p.passed,
                failed=p.failed,
                total=p.total,
            )
            for p in points
        ]
        data = TrendData(
            historical_runs=runs,
            success_rate_trend=[r.success_rate for r in runs],
            duration_trend=[r.duration_ms for r in runs],
        )
        if len(runs) >= 2:
            previous, current = runs[-2], runs[-1]
            data.prediction = TrendPrediction(
                quality_trend=quality_trend(previous.success_rate, current.success_rate),
                next_run=RunPrediction(
                    success_rate=current.success_rate,
                    duration_ms=current.duration_ms,
                    confidence=PREDICTION_CONFIDENCE,
                ),
            )
        return data
