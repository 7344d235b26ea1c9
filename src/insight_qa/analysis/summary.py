"""Executive summary: health verdict, insights and a recommendation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from insight_qa.analysis.grouping import FailureGroup, Severity
from insight_qa.analysis.trends import TrendData, quality_trend
from insight_qa.config.models import LLMConfig
from insight_qa.llm.assist import complete_or_fallback
from insight_qa.llm.base import LLMClient
from insight_qa.llm.prompts import EXECUTIVE_SUMMARY_MAX_TOKENS, executive_summary_prompt, format_duration
from insight_qa.results.models import SuiteOutcome

MAX_FAILED_IN_PROMPT = 20


class HealthStatus(StrEnum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class TrendIndicator(StrEnum):
    IMPROVING = "Improving"
    DECLINING = "Declining"
    STABLE = "Stable"
    BASELINE = "Baseline"


RECOMMENDATIONS = {
    "maintain": "Continue maintaining high quality standards. Monitor for any new flaky tests.",
    "critical": "Address critical failures immediately before proceeding with new deployments.",
    "declining": (
        "Investigate declining success rate. Review recent changes and consider rolling back if necessary."
    ),
    "stabilize": "Focus on stabilizing failing scenarios. Prioritize fixes based on failure frequency.",
}


@dataclass
class ExecutiveSummary:
    health_status: HealthStatus
    key_insights: list[str] = field(default_factory=list)
    critical_issues: list[str] = field(default_factory=list)
    trend_indicator: TrendIndicator = TrendIndicator.BASELINE
    recommendation: str = ""
    narrative: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "health_status": str(self.health_status),
            "key_insights": list(self.key_insights),
            "critical_issues": list(self.critical_issues),
            "trend_indicator": str(self.trend_indicator),
            "recommendation": self.recommendation,
            "narrative": self.narrative,
        }


def health_for(success_rate: float) -> HealthStatus:
    if success_rate >= 95:
        return HealthStatus.EXCELLENT
    if success_rate >= 85:
        return HealthStatus.GOOD
    if success_rate >= 70:
        return HealthStatus.FAIR
    return HealthStatus.POOR


def trend_indicator_for(trends: TrendData | None) -> TrendIndicator:
    runs = trends.historical_runs if trends is not None else []
    if len(runs) < 2:
        return TrendIndicator.BASELINE
    direction = quality_trend(runs[-2].success_rate, runs[-1].success_rate)
    if direction == "improving":
        return TrendIndicator.IMPROVING
    if direction == "degrading":
        return TrendIndicator.DECLINING
    return TrendIndicator.STABLE


def recommendation_for(summary: ExecutiveSummary) -> str:
    if summary.health_status == HealthStatus.EXCELLENT:
        return RECOMMENDATIONS["maintain"]
    if summary.critical_issues:
        return RECOMMENDATIONS["critical"]
    if summary.trend_indicator == TrendIndicator.DECLINING:
        return RECOMMENDATIONS["declining"]
    return RECOMMENDATIONS["stabilize"]


class ExecutiveSummarizer:
    """Combines run statistics and the other analyses into one verdict."""

    def __init__(self, llm_client: LLMClient | None = None, llm_config: LLMConfig | None = None) -> None:
        self._llm = llm_client
        self._timeout = (llm_config or LLMConfig()).timeout

    def summarize(self, suite: SuiteOutcome, failure_groups: list[FailureGroup]) -> ExecutiveSummary:
        summary = ExecutiveSummary(health_status=health_for(suite.success_rate))

        failed = suite.failed_scenarios
        if failed == 0:
            summary.key_insights.append("All tests passed successfully - no failures detected")
        else:
            summary.key_insights.append(f"{failed} scenario(s) failed out of {suite.total_scenarios} total")

        if failure_groups:
            unique = len(failure_groups)
            if unique == 1:
                summary.key_insights.append("Single root cause identified - focused fix possible")
            elif unique < failed:
                summary.key_insights.append(f"{unique} unique failure patterns detected")

        flaky = suite.flaky_tests or []
        if flaky:
            summary.key_insights.append(f"{len(flaky)} flaky test(s) detected - needs stabilization")

        for group in failure_groups:
            if group.severity in (Severity.CRITICAL, Severity.HIGH):
                summary.critical_issues.append(
                    f"{group.kind}: {group.root_cause} (affects {group.count} scenario(s))"
                )

        summary.trend_indicator = trend_indicator_for(suite.trends)
        summary.recommendation = recommendation_for(summary)
        return summary

    def fallback_narrative(self, suite: SuiteOutcome, summary: ExecutiveSummary) -> str:
        parts = [
            f"Overall test health is {summary.health_status} "
            f"with a {suite.success_rate:.1f}% success rate across {suite.total_scenarios} scenario(s)."
        ]
        if summary.key_insights:
            parts.append(summary.key_insights[0] + ".")
        if summary.critical_issues:
            parts.append(f"{len(summary.critical_issues)} issue(s) need attention.")
        parts.append(summary.recommendation)
        return " ".join(parts)

    async def narrate(self, suite: SuiteOutcome, summary: ExecutiveSummary) -> str:
        """Business-level prose for the summary, LLM-written when available."""
        failed_lines: list[str] = []
        for spec, scenario in suite.iter_scenarios():
            if not scenario.failed:
                continue
            line = f"{spec.heading} > {scenario.heading}"
            step = scenario.first_failed_step
            if step is not None and step.error_message:
                line += f": {step.error_message.splitlines()[0]}"
            failed_lines.append(line)

        prompt = executive_summary_prompt(
            total=suite.total_scenarios,
            passed=suite.passed_scenarios,
            failed=suite.failed_scenarios,
            skipped=suite.skipped_scenarios,
            success_rate=suite.success_rate,
            duration=format_duration(suite.duration_ms),
            failed_scenarios=failed_lines[:MAX_FAILED_IN_PROMPT],
        )
        return await complete_or_fallback(
            self._llm,
            prompt,
            EXECUTIVE_SUMMARY_MAX_TOKENS,
            fallback=self.fallback_narrative(suite, summary),
            timeout=self._timeout,
        )
