"""Tests for flaky-test detection."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_suite, passed_scenario, seed_history

from insight_qa.analysis.flaky import FlakyDetector, flaky_score
from insight_qa.config.models import AnalysisConfig
from insight_qa.history.memory import InMemoryHistory
from insight_qa.results.models import SpecOutcome


def _suite(*headings: str, spec: str = "Login"):
    return make_suite(SpecOutcome(heading=spec, scenarios=tuple(passed_scenario(h) for h in headings)))


class TestFlakyScore:
    @pytest.mark.parametrize(
        ("rate", "expected"),
        [(0.0, 0.0), (1.0, 0.0), (0.5, 1.0), (0.25, 0.5), (0.75, 0.5)],
    )
    def test_values(self, rate: float, expected: float):
        assert flaky_score(rate) == pytest.approx(expected)

    def test_symmetric(self):
        for rate in (0.1, 0.2, 0.3, 0.4):
            assert flaky_score(rate) == pytest.approx(flaky_score(1.0 - rate))

    def test_bounded(self):
        for i in range(11):
            assert 0.0 <= flaky_score(i / 10) <= 1.0

    @pytest.mark.parametrize("rate", [3 / 20, 17 / 20])
    def test_threshold_boundary_is_exact(self, rate: float):
        assert flaky_score(rate) == 0.3


class TestFlakyDetector:
    @pytest.mark.asyncio
    async def test_no_history_returns_empty(self):
        assert await FlakyDetector(None).detect(_suite("Valid login")) == []

    @pytest.mark.asyncio
    async def test_alternating_scenario_flagged(self):
        history = InMemoryHistory()
        await seed_history(history, "Valid login", ["passed", "failed", "passed", "failed"])

        flaky = await FlakyDetector(history, AnalysisConfig()).detect(_suite("Valid login"))

        assert len(flaky) == 1
        result = flaky[0]
        assert result.spec_name == "Login"
        assert result.scenario_name == "Valid login"
        assert result.flaky_score == pytest.approx(1.0)
        assert result.failure_rate == pytest.approx(50.0)
        assert result.occurrences == 4
        assert result.last_seen is not None

    @pytest.mark.asyncio
    async def test_below_min_runs_skipped(self):
        history = InMemoryHistory()
        await seed_history(history, "Valid login", ["passed", "failed"])
        assert await FlakyDetector(history).detect(_suite("Valid login")) == []

    @pytest.mark.asyncio
    async def test_stable_scenarios_not_flagged(self):
        history = InMemoryHistory()
        await seed_history(history, "Always green", ["passed"] * 5)
        await seed_history(history, "Always red", ["failed"] * 5)
        assert await FlakyDetector(history).detect(_suite("Always green", "Always red")) == []

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self):
        # 1 of 10 failed: score 0.2, under the default 0.3 threshold.
        history = InMemoryHistory()
        await seed_history(history, "Mostly green", ["failed"] + ["passed"] * 9)
        assert await FlakyDetector(history).detect(_suite("Mostly green")) == []

        lenient = AnalysisConfig(flaky_threshold=0.1)
        flaky = await FlakyDetector(history, lenient).detect(_suite("Mostly green"))
        assert [f.scenario_name for f in flaky] == ["Mostly green"]
        assert flaky[0].flaky_score == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_score_equal_to_threshold_not_flagged(self):
        # 3 of 20 failed: score lands exactly on the default 0.3 threshold.
        history = InMemoryHistory()
        await seed_history(history, "Edge", ["failed"] * 3 + ["passed"] * 17)
        assert await FlakyDetector(history).detect(_suite("Edge")) == []

    @pytest.mark.asyncio
    async def test_sorted_by_score(self):
        history = InMemoryHistory()
        await seed_history(history, "Quarter", ["failed", "passed", "passed", "passed"])
        await seed_history(history, "Half", ["failed", "passed", "failed", "passed"])

        flaky = await FlakyDetector(history).detect(_suite("Quarter", "Half"))
        assert [f.scenario_name for f in flaky] == ["Half", "Quarter"]

    @pytest.mark.asyncio
    async def test_duplicate_scenarios_reported_once(self):
        history = InMemoryHistory()
        await seed_history(history, "Retry", ["failed", "passed", "failed"])
        flaky = await FlakyDetector(history).detect(_suite("Retry", "Retry"))
        assert len(flaky) == 1

    @pytest.mark.asyncio
    async def test_lookup_error_skips_scenario(self):
        history = MagicMock()
        history.scenario_history = AsyncMock(side_effect=RuntimeError("db locked"))
        assert await FlakyDetector(history).detect(_suite("Valid login")) == []
