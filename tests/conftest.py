"""Shared fixtures for Insight tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from insight_qa.config.models import InsightConfig
from insight_qa.history.memory import InMemoryHistory
from insight_qa.history.models import ExecutionRecord, ScenarioRecord
from insight_qa.results.models import ScenarioOutcome, SpecOutcome, StepOutcome, SuiteOutcome

SAMPLE_CONFIG: Dict[str, Any] = {
    "project": {"name": "Checkout", "environment": "staging"},
    "llm": {"enabled": False, "provider": "none"},
    "history": {"backend": "memory", "record_runs": False},
    "analysis": {"flaky_window_days": 30, "flaky_min_runs": 3, "flaky_threshold": 0.3},
}


def passed_scenario(heading: str, tags: tuple[str, ...] = (), duration_ms: float = 100.0) -> ScenarioOutcome:
    return ScenarioOutcome(
        heading=heading,
        tags=tags,
        duration_ms=duration_ms,
        steps=(StepOutcome(text=f"{heading} step", duration_ms=duration_ms),),
    )


def failed_scenario(
    heading: str,
    error: str,
    stack_trace: str = "",
    tags: tuple[str, ...] = (),
    duration_ms: float = 100.0,
) -> ScenarioOutcome:
    return ScenarioOutcome(
        heading=heading,
        tags=tags,
        duration_ms=duration_ms,
        steps=(
            StepOutcome(text="Open the page", duration_ms=10.0),
            StepOutcome(
                text=f"{heading} check",
                duration_ms=duration_ms - 10.0,
                failed=True,
                error_message=error,
                stack_trace=stack_trace,
            ),
        ),
    )


def make_suite(*specs: SpecOutcome, duration_ms: float = 0.0) -> SuiteOutcome:
    return SuiteOutcome(
        project_name="Checkout",
        environment="staging",
        timestamp=datetime.now(UTC) - timedelta(hours=1),
        duration_ms=duration_ms or sum(s.duration_ms for s in specs),
        specs=list(specs),
    )


async def seed_history(
    history: InMemoryHistory,
    scenario: str,
    statuses: list[str],
    spec: str = "Login",
) -> None:
    """Record one run per status, oldest first, all inside the last week."""
    start = datetime.now(UTC) - timedelta(days=7)
    for i, status in enumerate(statuses):
        run_id = f"{scenario}-{i}"
        await history.save_execution(
            ExecutionRecord(id=run_id, timestamp=start + timedelta(hours=i), total_scenarios=1)
        )
        await history.save_scenario(
            ScenarioRecord(execution_id=run_id, scenario_name=scenario, spec_name=spec, status=status)
        )


@pytest.fixture()
def ten_scenario_suite() -> SuiteOutcome:
    """10 scenarios: 8 passed, 2 failed with unrelated errors of different kinds."""
    login = SpecOutcome(
        heading="Login",
        file_name="specs/login.spec",
        duration_ms=500.0,
        scenarios=(
            passed_scenario("Valid login", tags=("smoke",)),
            passed_scenario("Remember me"),
            passed_scenario("Logout", tags=("smoke",)),
            passed_scenario("Password reset"),
            failed_scenario("Locked account", "Expected status 403 but got 200"),
        ),
    )
    cart = SpecOutcome(
        heading="Cart",
        file_name="specs/cart.spec",
        duration_ms=800.0,
        scenarios=(
            passed_scenario("Add item"),
            passed_scenario("Remove item"),
            passed_scenario("Update quantity"),
            passed_scenario("Apply coupon"),
            failed_scenario("Checkout", "Request timed out after 30 seconds"),
        ),
    )
    return make_suite(login, cart)


@pytest.fixture()
def sample_config() -> InsightConfig:
    return InsightConfig(**SAMPLE_CONFIG)


@pytest.fixture()
def sample_config_dict() -> Dict[str, Any]:
    return dict(SAMPLE_CONFIG)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write sample config to a temp .insight.yaml and return the path."""
    path = tmp_path / ".insight.yaml"
    with path.open("w") as fh:
        yaml.dump(SAMPLE_CONFIG, fh)
    return path
