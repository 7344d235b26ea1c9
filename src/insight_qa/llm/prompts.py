"""Prompt templates for fix suggestions and executive summaries."""

from __future__ import annotations

FIX_SUGGESTION_MAX_TOKENS = 500
EXECUTIVE_SUMMARY_MAX_TOKENS = 300

_FIX_SUGGESTION_TEMPLATE = """\
You are an expert test automation engineer analyzing a test failure. Provide a specific, actionable fix suggestion.

Failed Test:
- Specification: {spec_name}
- Step: {step_text}
- Error Message: {error_message}
- Stack Trace:
{stack_trace}

Provide:
1. Root cause analysis (1-2 sentences)
2. Specific fix recommendation (actionable steps)
3. Code example if applicable (keep it concise)

Focus on the most likely cause and provide practical guidance. Be specific and actionable.

Analysis:"""

_EXECUTIVE_SUMMARY_TEMPLATE = """\
You are a QA Manager analyzing test automation results. Generate a concise, actionable executive summary (3-4 sentences maximum) for the following test execution:

Test Results:
- Total Scenarios: {total}
- Passed: {passed}
- Failed: {failed}
- Skipped: {skipped}
- Success Rate: {success_rate:.1f}%
- Execution Time: {duration}

Failed Scenarios:
{failed_scenarios}

Requirements:
1. Start with overall health assessment (Excellent/Good/Fair/Poor)
2. Highlight the most critical issues requiring immediate attention
3. Provide one specific, actionable recommendation
4. Use business-friendly language suitable for executives (avoid technical jargon)
5. Be concise but informative

Executive Summary:"""


def fix_suggestion_prompt(spec_name: str, step_text: str, error_message: str, stack_trace: str) -> str:
    return _FIX_SUGGESTION_TEMPLATE.format(
        spec_name=spec_name,
        step_text=step_text,
        error_message=error_message,
        stack_trace=stack_trace or "(none)",
    )


def executive_summary_prompt(
    total: int,
    passed: int,
    failed: int,
    skipped: int,
    success_rate: float,
    duration: str,
    failed_scenarios: list[str],
) -> str:
    listing = "\n".join(f"- {line}" for line in failed_scenarios) if failed_scenarios else "None"
    return _EXECUTIVE_SUMMARY_TEMPLATE.format(
        total=total,
        passed=passed,
        failed=failed,
        skipped=skipped,
        success_rate=success_rate,
        duration=duration,
        failed_scenarios=listing,
    )


def format_duration(duration_ms: float) -> str:
    """Render milliseconds as 250ms, 4.2s or 3m 5s."""
    if duration_ms < 1000:
        return f"{int(duration_ms)}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    return f"{int(seconds // 60)}m {int(seconds) % 60}s"
