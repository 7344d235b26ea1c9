"""Failure grouping: classify, sign and aggregate failed scenarios."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum

from insight_qa.analysis.classifier import ErrorKind, classify
from insight_qa.analysis.signature import sign
from insight_qa.config.models import LLMConfig
from insight_qa.llm.assist import complete_or_fallback
from insight_qa.llm.base import LLMClient
from insight_qa.llm.prompts import FIX_SUGGESTION_MAX_TOKENS, fix_suggestion_prompt
from insight_qa.results.models import SuiteOutcome

logger = logging.getLogger(__name__)

ROOT_CAUSE_MAX_CHARS = 150
CRITICAL_COUNT = 3


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


FALLBACK_SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.ASSERTION: (
        "Review test expectations and verify they match actual behavior. "
        "Check if application logic changed or test data is outdated."
    ),
    ErrorKind.TIMEOUT: (
        "Increase timeout values or investigate performance degradation. "
        "Check for slow external dependencies or resource constraints."
    ),
    ErrorKind.NETWORK: (
        "Verify network connectivity, check service availability, "
        "and ensure proper error handling for network failures."
    ),
    ErrorKind.NULL_REFERENCE: (
        "Add null checks before accessing objects. "
        "Verify object initialization and data flow in the application."
    ),
    ErrorKind.FILE_SYSTEM: (
        "Verify file paths, check file permissions, "
        "and ensure required files exist before test execution."
    ),
    ErrorKind.DATABASE: (
        "Check database connection, verify schema integrity, "
        "and ensure test data is properly set up."
    ),
    ErrorKind.ENVIRONMENT: (
        "Review environment configuration, check required properties are set, "
        "and verify environment setup scripts."
    ),
    ErrorKind.UNKNOWN: (
        "Review error logs and stack trace for more details. "
        "Consider adding more specific error handling."
    ),
}


@dataclass
class FailureGroup:
    """Failures that share one signature within a run."""

    signature: str
    kind: ErrorKind
    root_cause: str
    count: int = 1
    affected_scenarios: list[str] = field(default_factory=list)
    affected_specs: list[str] = field(default_factory=list)
    severity: Severity = Severity.MEDIUM
    suggested_fix: str = ""
    # First occurrence, kept for the fix-suggestion prompt.
    error_message: str = field(default="", repr=False)
    stack_trace: str = field(default="", repr=False)
    step_text: str = field(default="", repr=False)
    spec_name: str = field(default="", repr=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "signature": self.signature,
            "kind": str(self.kind),
            "root_cause": self.root_cause,
            "count": self.count,
            "affected_scenarios": list(self.affected_scenarios),
            "affected_specs": list(self.affected_specs),
            "severity": str(self.severity),
            "suggested_fix": self.suggested_fix,
        }


def severity_for(kind: ErrorKind, count: int) -> Severity:
    """Severity from frequency first, then from the kind of error.

    Database failures are critical even on a single occurrence.
    """
    if count >= CRITICAL_COUNT:
        return Severity.CRITICAL
    if kind == ErrorKind.DATABASE:
        return Severity.CRITICAL
    if kind in (ErrorKind.TIMEOUT, ErrorKind.NETWORK, ErrorKind.NULL_REFERENCE):
        return Severity.HIGH
    if kind == ErrorKind.ASSERTION:
        return Severity.HIGH if count >= 2 else Severity.MEDIUM
    return Severity.MEDIUM


def fallback_suggestion(kind: ErrorKind) -> str:
    return FALLBACK_SUGGESTIONS.get(kind, FALLBACK_SUGGESTIONS[ErrorKind.UNKNOWN])


def extract_root_cause(message: str) -> str:
    """First line of the message, trimmed and capped."""
    first_line = message.split("\n", 1)[0].strip()
    if len(first_line) > ROOT_CAUSE_MAX_CHARS:
        return first_line[:ROOT_CAUSE_MAX_CHARS] + "..."
    return first_line


class FailureGrouper:
    """Groups a suite's failed scenarios by error signature."""

    def __init__(self, llm_client: LLMClient | None = None, llm_config: LLMConfig | None = None) -> None:
        self._llm = llm_client
        config = llm_config or LLMConfig()
        self._timeout = config.timeout
        self._max_concurrency = config.max_concurrency

    def collect(self, suite: SuiteOutcome) -> list[FailureGroup]:
        """Build groups without suggested fixes, in deterministic order."""
        groups: dict[str, FailureGroup] = {}

        for spec, scenario in suite.iter_scenarios():
            if not scenario.failed:
                continue
            step = scenario.first_failed_step
            if step is None or not step.error_message:
                # Nothing to sign; excluded from grouping.
                continue

            kind = classify(step.error_message, step.stack_trace)
            signature = sign(step.error_message, kind)

            group = groups.get(signature)
            if group is not None:
                group.count += 1
                group.affected_scenarios.append(scenario.heading)
                if spec.heading not in group.affected_specs:
                    group.affected_specs.append(spec.heading)
                continue

            groups[signature] = FailureGroup(
                signature=signature,
                kind=kind,
                root_cause=extract_root_cause(step.error_message),
                count=1,
                affected_scenarios=[scenario.heading],
                affected_specs=[spec.heading],
                severity=severity_for(kind, 1),
                error_message=step.error_message,
                stack_trace=step.stack_trace,
                step_text=step.text,
                spec_name=spec.heading,
            )

        result = sorted(groups.values(), key=lambda g: (-g.count, g.signature))
        for group in result:
            group.severity = severity_for(group.kind, group.count)
        return result

    async def suggest_fix(self, group: FailureGroup) -> str:
        prompt = fix_suggestion_prompt(
            spec_name=group.spec_name,
            step_text=group.step_text,
            error_message=group.error_message,
            stack_trace=group.stack_trace,
        )
        return await complete_or_fallback(
            self._llm,
            prompt,
            FIX_SUGGESTION_MAX_TOKENS,
            fallback=fallback_suggestion(group.kind),
            timeout=self._timeout,
        )

    async def group(self, suite: SuiteOutcome) -> list[FailureGroup]:
        """Group failures and attach a suggested fix to every group.

        Fix suggestions run concurrently, bounded by max_concurrency. The
        returned order comes from collect() and does not depend on which
        suggestion finishes first.
        """
        groups = self.collect(suite)
        if not groups:
            return groups

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _fill(group: FailureGroup) -> None:
            async with semaphore:
                group.suggested_fix = await self.suggest_fix(group)

        await asyncio.gather(*(_fill(g) for g in groups))
        logger.info("Grouped failures into %d group(s)", len(groups))
        return groups
