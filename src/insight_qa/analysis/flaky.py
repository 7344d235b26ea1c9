"""Flaky-test detection from persisted scenario history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from insight_qa.config.models import AnalysisConfig
from insight_qa.history.models import HistoryBackend
from insight_qa.results.models import SuiteOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlakyTest:
    """A scenario whose historical outcomes flip between pass and fail."""

    spec_name: str
    scenario_name: str
    flaky_score: float
    failure_rate: float  # percent, 0-100
    occurrences: int
    last_seen: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "spec_name": self.spec_name,
            "scenario_name": self.scenario_name,
            "flaky_score": self.flaky_score,
            "failure_rate": self.failure_rate,
            "occurrences": self.occurrences,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }


def flaky_score(failure_rate: float) -> float:
    """1.0 at a 50% failure rate, 0.0 when always passing or always failing."""
    # Rounded so rates on the threshold boundary compare exactly.
    return round(1.0 - 2.0 * abs(failure_rate - 0.5), 10)


class FlakyDetector:
    """Scores each scenario of the current run against its history."""

    def __init__(self, history: HistoryBackend | None, config: AnalysisConfig | None = None) -> None:
        self._history = history
        self._config = config or AnalysisConfig()

    async def detect(self, suite: SuiteOutcome) -> list[FlakyTest]:
        if self._history is None:
            return []

        flaky: list[FlakyTest] = []
        seen: set[tuple[str, str]] = set()

        for spec, scenario in suite.iter_scenarios():
            key = (spec.heading, scenario.heading)
            if key in seen:
                continue
            seen.add(key)

            try:
                records = await self._history.scenario_history(
                    scenario.heading, window_days=self._config.flaky_window_days
                )
            except Exception:
                logger.exception("History lookup failed for scenario %r", scenario.heading)
                continue

            total = len(records)
            if total < self._config.flaky_min_runs:
                continue

            failed = sum(1 for r in records if r.status == "failed")
            rate = failed / total
            score = flaky_score(rate)
            if score <= self._config.flaky_threshold:
                continue

            timestamps = [r.timestamp for r in records if r.timestamp is not None]
            flaky.append(
                FlakyTest(
                    spec_name=spec.heading,
                    scenario_name=scenario.heading,
                    flaky_score=score,
                    failure_rate=rate * 100.0,
                    occurrences=total,
                    last_seen=max(timestamps) if timestamps else None,
                )
            )

        flaky.sort(key=lambda f: (-f.flaky_score, f.spec_name, f.scenario_name))
        if flaky:
            logger.info("Detected %d flaky scenario(s)", len(flaky))
        return flaky
