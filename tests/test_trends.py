"""Tests for run analytics and historical trends."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import failed_scenario, make_suite, passed_scenario

from insight_qa.analysis.trends import PREDICTION_CONFIDENCE, TrendEngine, quality_trend
from insight_qa.config.models import AnalysisConfig
from insight_qa.history.memory import InMemoryHistory
from insight_qa.history.models import ExecutionRecord
from insight_qa.results.models import ScenarioOutcome, SpecOutcome


async def _record_run(history: InMemoryHistory, run_id: str, days_ago: float, success_rate: float) -> None:
    await history.save_execution(
        ExecutionRecord(
            id=run_id,
            timestamp=datetime.now(UTC) - timedelta(days=days_ago),
            duration_ms=1000.0 * (days_ago + 1),
            total_scenarios=10,
            passed_scenarios=round(success_rate / 10),
            failed_scenarios=10 - round(success_rate / 10),
            success_rate=success_rate,
        )
    )


class TestQualityTrend:
    def test_directions(self):
        assert quality_trend(80.0, 90.0) == "improving"
        assert quality_trend(90.0, 80.0) == "degrading"
        assert quality_trend(80.0, 84.0) == "stable"

    def test_boundary_is_stable(self):
        assert quality_trend(80.0, 85.0) == "stable"
        assert quality_trend(85.0, 80.0) == "stable"


class TestAnalyze:
    def test_ten_scenario_run(self, ten_scenario_suite):
        analytics = TrendEngine().analyze(ten_scenario_suite)

        assert analytics.total_duration_ms == 1300.0
        assert analytics.average_spec_ms == pytest.approx(650.0)
        assert analytics.average_scenario_ms == pytest.approx(100.0)
        assert analytics.tag_distribution == {"smoke": 2}
        assert analytics.failure_distribution == {"Assertion Failure": 1, "Timeout": 1}
        assert [s.spec_name for s in analytics.slowest_specs] == ["Cart", "Login"]
        assert analytics.slowest_specs[0].scenario_count == 5
        assert [(f.spec_name, f.failure_count) for f in analytics.most_failed_specs] == [
            ("Login", 1),
            ("Cart", 1),
        ]

    def test_timeline(self, ten_scenario_suite):
        timeline = TrendEngine().analyze(ten_scenario_suite).timeline
        start = ten_scenario_suite.timestamp

        assert [(e.event, e.spec_name) for e in timeline] == [
            ("spec_start", "Login"),
            ("failure", "Login"),
            ("spec_start", "Cart"),
            ("failure", "Cart"),
        ]
        assert timeline[0].timestamp == start
        assert timeline[1].timestamp == start + timedelta(milliseconds=500)
        assert timeline[2].timestamp == timeline[1].timestamp
        assert timeline[3].timestamp == start + timedelta(milliseconds=1300)

    def test_passing_spec_is_success(self):
        suite = make_suite(SpecOutcome(heading="Ok", duration_ms=50.0, scenarios=(passed_scenario("a"),)))
        timeline = TrendEngine().analyze(suite).timeline
        assert timeline[-1].event == "success"
        assert timeline[-1].status == "passed"

    def test_failure_without_message_counts_as_unknown(self):
        silent = ScenarioOutcome(heading="Silent", failed=True)
        suite = make_suite(SpecOutcome(heading="S", scenarios=(silent,)))
        assert TrendEngine().analyze(suite).failure_distribution == {"Unknown Error": 1}

    def test_top_n_limits_lists(self):
        specs = [
            SpecOutcome(heading=f"Spec {i}", duration_ms=float(i), scenarios=(failed_scenario("x", "boom"),))
            for i in range(8)
        ]
        analytics = TrendEngine(config=AnalysisConfig(top_n=3)).analyze(make_suite(*specs))
        assert [s.spec_name for s in analytics.slowest_specs] == ["Spec 7", "Spec 6", "Spec 5"]
        assert len(analytics.most_failed_specs) == 3

    def test_empty_suite(self):
        analytics = TrendEngine().analyze(make_suite())
        assert analytics.average_spec_ms == 0.0
        assert analytics.average_scenario_ms == 0.0
        assert analytics.timeline == []


class TestTrends:
    @pytest.mark.asyncio
    async def test_no_history(self):
        data = await TrendEngine().trends()
        assert data.historical_runs == []
        assert data.prediction is None

    @pytest.mark.asyncio
    async def test_single_run_has_no_prediction(self):
        history = InMemoryHistory()
        await _record_run(history, "r1", 1, 90.0)
        data = await TrendEngine(history).trends()
        assert len(data.historical_runs) == 1
        assert data.prediction is None

    @pytest.mark.asyncio
    async def test_series_oldest_first_with_prediction(self):
        history = InMemoryHistory()
        await _record_run(history, "r1", 3, 70.0)
        await _record_run(history, "r2", 2, 80.0)
        await _record_run(history, "r3", 1, 90.0)

        data = await TrendEngine(history).trends()

        assert data.success_rate_trend == [70.0, 80.0, 90.0]
        assert data.duration_trend == [4000.0, 3000.0, 2000.0]
        assert data.prediction is not None
        assert data.prediction.quality_trend == "improving"
        assert data.prediction.next_run.success_rate == 90.0
        assert data.prediction.next_run.duration_ms == 2000.0
        assert data.prediction.next_run.confidence == PREDICTION_CONFIDENCE

    @pytest.mark.asyncio
    async def test_window_excludes_old_runs(self):
        history = InMemoryHistory()
        await _record_run(history, "old", 40, 10.0)
        await _record_run(history, "new", 1, 95.0)

        assert (await TrendEngine(history).trends()).success_rate_trend == [95.0]
        assert (await TrendEngine(history).trends(window_days=60)).success_rate_trend == [10.0, 95.0]

    @pytest.mark.asyncio
    async def test_backend_error_returns_empty(self):
        history = MagicMock()
        history.trend_points = AsyncMock(side_effect=RuntimeError("disk full"))
        data = await TrendEngine(history).trends()
        assert data.historical_runs == []
