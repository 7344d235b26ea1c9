"""Tests for failure grouping and fix suggestions."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import failed_scenario, make_suite, passed_scenario

from insight_qa.analysis.classifier import ErrorKind
from insight_qa.analysis.grouping import (
    FALLBACK_SUGGESTIONS,
    FailureGroup,
    FailureGrouper,
    Severity,
    extract_root_cause,
    severity_for,
)
from insight_qa.config.models import LLMConfig
from insight_qa.llm.base import LLMClient, LLMError
from insight_qa.results.models import ScenarioOutcome, SpecOutcome, StepOutcome


def _mock_llm(side_effect=None, return_value: str = "LLM fix") -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.provider = "openai"
    client.complete = AsyncMock(return_value=return_value, side_effect=side_effect)
    return client


# ─── helpers ───


class TestSeverityFor:
    @pytest.mark.parametrize("kind", list(ErrorKind))
    def test_three_or_more_is_critical(self, kind: ErrorKind):
        assert severity_for(kind, 3) == Severity.CRITICAL
        assert severity_for(kind, 7) == Severity.CRITICAL

    def test_database_single_is_critical(self):
        assert severity_for(ErrorKind.DATABASE, 1) == Severity.CRITICAL

    @pytest.mark.parametrize("kind", [ErrorKind.TIMEOUT, ErrorKind.NETWORK, ErrorKind.NULL_REFERENCE])
    def test_high_kinds(self, kind: ErrorKind):
        assert severity_for(kind, 1) == Severity.HIGH

    def test_assertion_depends_on_count(self):
        assert severity_for(ErrorKind.ASSERTION, 1) == Severity.MEDIUM
        assert severity_for(ErrorKind.ASSERTION, 2) == Severity.HIGH

    @pytest.mark.parametrize("kind", [ErrorKind.FILE_SYSTEM, ErrorKind.ENVIRONMENT, ErrorKind.UNKNOWN])
    def test_other_kinds_medium(self, kind: ErrorKind):
        assert severity_for(kind, 1) == Severity.MEDIUM

    def test_low_never_produced(self):
        results = {severity_for(kind, n) for kind in ErrorKind for n in range(1, 5)}
        assert Severity.LOW not in results


class TestExtractRootCause:
    def test_first_line_trimmed(self):
        assert extract_root_cause("  boom  \nat line 2\nat line 3") == "boom"

    def test_long_line_capped(self):
        cause = extract_root_cause("x" * 200)
        assert cause == "x" * 150 + "..."

    def test_exact_limit_not_capped(self):
        assert extract_root_cause("y" * 150) == "y" * 150


# ─── collect ───


class TestCollect:
    def test_similar_assertions_share_a_group(self):
        spec = SpecOutcome(
            heading="Totals",
            scenarios=(
                failed_scenario("Sum", "Expected 5 but got 1"),
                failed_scenario("Product", "Expected 10 but got 2"),
            ),
        )
        groups = FailureGrouper().collect(make_suite(spec))
        assert len(groups) == 1
        group = groups[0]
        assert group.kind == ErrorKind.ASSERTION
        assert group.count == 2
        assert group.affected_scenarios == ["Sum", "Product"]
        assert group.affected_specs == ["Totals"]
        assert group.severity == Severity.HIGH
        assert group.root_cause == "Expected 5 but got 1"

    def test_counts_cover_every_signed_failure(self, ten_scenario_suite):
        groups = FailureGrouper().collect(ten_scenario_suite)
        assert sum(g.count for g in groups) == 2
        assert {g.kind for g in groups} == {ErrorKind.ASSERTION, ErrorKind.TIMEOUT}

    def test_affected_specs_unique(self):
        a = SpecOutcome(heading="A", scenarios=(failed_scenario("s1", "No such file: report-1.csv"),))
        b = SpecOutcome(
            heading="B",
            scenarios=(
                failed_scenario("s2", "No such file: report-2.csv"),
                failed_scenario("s3", "No such file: report-3.csv"),
            ),
        )
        groups = FailureGrouper().collect(make_suite(a, b))
        assert len(groups) == 1
        assert groups[0].count == 3
        assert groups[0].affected_specs == ["A", "B"]
        assert groups[0].severity == Severity.CRITICAL

    def test_first_failed_step_wins(self):
        scenario = ScenarioOutcome(
            heading="Two failures",
            steps=(
                StepOutcome(text="one", failed=True, error_message="Connection refused"),
                StepOutcome(text="two", failed=True, error_message="Expected 1 but got 2"),
            ),
        )
        groups = FailureGrouper().collect(make_suite(SpecOutcome(heading="S", scenarios=(scenario,))))
        assert len(groups) == 1
        assert groups[0].kind == ErrorKind.NETWORK
        assert groups[0].step_text == "one"

    def test_failure_without_message_skipped(self):
        scenario = ScenarioOutcome(heading="Silent", failed=True, steps=(StepOutcome(text="a"),))
        empty = ScenarioOutcome(heading="Blank", steps=(StepOutcome(text="b", failed=True),))
        suite = make_suite(SpecOutcome(heading="S", scenarios=(scenario, empty)))
        assert FailureGrouper().collect(suite) == []

    def test_passing_suite_has_no_groups(self):
        suite = make_suite(SpecOutcome(heading="S", scenarios=(passed_scenario("ok"),)))
        assert FailureGrouper().collect(suite) == []

    def test_order_is_deterministic(self):
        spec = SpecOutcome(
            heading="S",
            scenarios=(
                failed_scenario("a", "Permission denied"),
                failed_scenario("b", "Expected 1 but got 2"),
                failed_scenario("c", "Expected 3 but got 4"),
                failed_scenario("d", "Socket closed"),
            ),
        )
        forward = FailureGrouper().collect(make_suite(spec))
        reversed_spec = SpecOutcome(heading="S", scenarios=tuple(reversed(spec.scenarios)))
        backward = FailureGrouper().collect(make_suite(reversed_spec))

        assert [g.signature for g in forward] == [g.signature for g in backward]
        assert forward[0].count == 2
        assert forward[1].signature < forward[2].signature

    def test_to_dict_hides_context(self):
        group = FailureGroup(signature="abc", kind=ErrorKind.TIMEOUT, root_cause="slow", error_message="slow")
        data = group.to_dict()
        assert data["kind"] == "Timeout"
        assert data["severity"] == "medium"
        assert "error_message" not in data


# ─── group (with suggestions) ───


class TestGroup:
    @pytest.mark.asyncio
    async def test_fallback_without_llm(self, ten_scenario_suite):
        groups = await FailureGrouper().group(ten_scenario_suite)
        by_kind = {g.kind: g for g in groups}
        assert by_kind[ErrorKind.TIMEOUT].suggested_fix == (
            "Increase timeout values or investigate performance degradation. "
            "Check for slow external dependencies or resource constraints."
        )
        assert by_kind[ErrorKind.ASSERTION].suggested_fix == FALLBACK_SUGGESTIONS[ErrorKind.ASSERTION]

    @pytest.mark.asyncio
    async def test_llm_text_used(self, ten_scenario_suite):
        client = _mock_llm(return_value="Restart the auth service")
        groups = await FailureGrouper(client, LLMConfig()).group(ten_scenario_suite)
        assert all(g.suggested_fix == "Restart the auth service" for g in groups)
        assert client.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_prompt_carries_failure_context(self):
        spec = SpecOutcome(
            heading="Payments",
            scenarios=(failed_scenario("Refund", "Connection reset", stack_trace="at pay.go:10"),),
        )
        client = _mock_llm()
        await FailureGrouper(client).group(make_suite(spec))
        prompt, max_tokens = client.complete.await_args.args
        assert "- Specification: Payments" in prompt
        assert "- Step: Refund check" in prompt
        assert "- Error Message: Connection reset" in prompt
        assert "at pay.go:10" in prompt
        assert max_tokens == 500

    @pytest.mark.asyncio
    async def test_one_llm_failure_falls_back_for_that_group_only(self, ten_scenario_suite):
        async def _complete(prompt: str, max_tokens: int) -> str:
            if "timed out" in prompt:
                raise LLMError("provider returned status 500")
            return "Fix the expectation"

        client = _mock_llm(side_effect=_complete)
        groups = await FailureGrouper(client).group(ten_scenario_suite)
        by_kind = {g.kind: g for g in groups}
        assert by_kind[ErrorKind.TIMEOUT].suggested_fix == FALLBACK_SUGGESTIONS[ErrorKind.TIMEOUT]
        assert by_kind[ErrorKind.ASSERTION].suggested_fix == "Fix the expectation"

    @pytest.mark.asyncio
    async def test_blank_llm_text_falls_back(self, ten_scenario_suite):
        client = _mock_llm(return_value="   ")
        groups = await FailureGrouper(client).group(ten_scenario_suite)
        assert all(g.suggested_fix == FALLBACK_SUGGESTIONS[g.kind] for g in groups)

    @pytest.mark.asyncio
    async def test_order_unchanged_by_suggestions(self, ten_scenario_suite):
        expected = [g.signature for g in FailureGrouper().collect(ten_scenario_suite)]
        groups = await FailureGrouper(_mock_llm(), LLMConfig(max_concurrency=1)).group(ten_scenario_suite)
        assert [g.signature for g in groups] == expected

    @pytest.mark.asyncio
    async def test_no_failures_skips_llm(self):
        client = _mock_llm()
        suite = make_suite(SpecOutcome(heading="S", scenarios=(passed_scenario("ok"),)))
        assert await FailureGrouper(client).group(suite) == []
        client.complete.assert_not_awaited()
