"""Data models for decoded test-execution results.

The hierarchy mirrors how the test framework reports a run: a suite holds
specifications, a specification holds scenarios, a scenario holds steps.
Step, scenario and spec outcomes are immutable once decoded. The suite is
the one mutable object: the engine attaches its outputs to it, once each.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from insight_qa.analysis.flaky import FlakyTest
    from insight_qa.analysis.grouping import FailureGroup
    from insight_qa.analysis.summary import ExecutiveSummary
    from insight_qa.analysis.trends import Analytics, TrendData


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; aware ones are returned unchanged."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


@dataclass(frozen=True)
class StepOutcome:
    """Result of a single step."""

    text: str
    duration_ms: float = 0.0
    failed: bool = False
    skipped: bool = False
    error_message: str = ""
    stack_trace: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepOutcome:
        return cls(
            text=str(data.get("text", "")),
            duration_ms=float(data.get("duration_ms", 0.0)),
            failed=bool(data.get("failed", False)),
            skipped=bool(data.get("skipped", False)),
            error_message=data.get("error_message") or "",
            stack_trace=data.get("stack_trace") or "",
        )


@dataclass(frozen=True)
class ScenarioOutcome:
    """Result of a scenario. Failed if flagged failed or any step failed."""

    heading: str
    tags: tuple[str, ...] = ()
    duration_ms: float = 0.0
    failed: bool = False
    skipped: bool = False
    steps: tuple[StepOutcome, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.failed and any(s.failed for s in self.steps):
            object.__setattr__(self, "failed", True)

    @property
    def first_failed_step(self) -> StepOutcome | None:
        for step in self.steps:
            if step.failed:
                return step
        return None

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        if self.skipped:
            return "skipped"
        return "passed"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScenarioOutcome:
        return cls(
            heading=str(data.get("heading", "")),
            tags=tuple(data.get("tags", [])),
            duration_ms=float(data.get("duration_ms", 0.0)),
            failed=bool(data.get("failed", False)),
            skipped=bool(data.get("skipped", False)),
            steps=tuple(StepOutcome.from_dict(s) for s in data.get("steps", [])),
        )


@dataclass(frozen=True)
class SpecOutcome:
    """Result of a specification file."""

    heading: str
    file_name: str = ""
    tags: tuple[str, ...] = ()
    duration_ms: float = 0.0
    failed: bool = False
    skipped: bool = False
    scenarios: tuple[ScenarioOutcome, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "scenarios", tuple(self.scenarios))
        if not self.failed and any(s.failed for s in self.scenarios):
            object.__setattr__(self, "failed", True)

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        if self.skipped:
            return "skipped"
        return "passed"

    @property
    def failed_scenarios_count(self) -> int:
        return sum(1 for s in self.scenarios if s.failed)

    @property
    def passed_scenarios_count(self) -> int:
        return sum(1 for s in self.scenarios if not s.failed and not s.skipped)

    @property
    def skipped_scenarios_count(self) -> int:
        return sum(1 for s in self.scenarios if s.skipped and not s.failed)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpecOutcome:
        return cls(
            heading=str(data.get("heading", "")),
            file_name=str(data.get("file_name", "")),
            tags=tuple(data.get("tags", [])),
            duration_ms=float(data.get("duration_ms", 0.0)),
            failed=bool(data.get("failed", False)),
            skipped=bool(data.get("skipped", False)),
            scenarios=tuple(ScenarioOutcome.from_dict(s) for s in data.get("scenarios", [])),
        )


@dataclass(frozen=True)
class RunMetadata:
    """Known optional facts about where a run came from."""

    build_number: str = ""
    git_commit: str = ""
    branch: str = ""
    ci_url: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "build_number": self.build_number,
            "git_commit": self.git_commit,
            "branch": self.branch,
            "ci_url": self.ci_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RunMetadata:
        data = data or {}
        return cls(
            build_number=str(data.get("build_number", "")),
            git_commit=str(data.get("git_commit", "")),
            branch=str(data.get("branch", "")),
            ci_url=str(data.get("ci_url", "")),
        )


_ENGINE_OUTPUTS = ("failure_groups", "flaky_tests", "analytics", "trends", "executive_summary")


@dataclass
class SuiteOutcome:
    """The full current run, plus the engine's write-once outputs."""

    project_name: str = ""
    environment: str = ""
    tags: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: float = 0.0
    metadata: RunMetadata = field(default_factory=RunMetadata)
    specs: list[SpecOutcome] = field(default_factory=list)

    # Attached by the engine; None until computed.
    failure_groups: list[FailureGroup] | None = None
    flaky_tests: list[FlakyTest] | None = None
    analytics: Analytics | None = None
    trends: TrendData | None = None
    executive_summary: ExecutiveSummary | None = None

    def __post_init__(self) -> None:
        self.timestamp = ensure_aware(self.timestamp)

    def attach(self, **outputs: Any) -> None:
        """Attach engine outputs. Each output may only be set once."""
        for name, value in outputs.items():
            if name not in _ENGINE_OUTPUTS:
                raise ValueError(f"Unknown engine output: {name}")
            if getattr(self, name) is not None:
                raise ValueError(f"Engine output {name!r} is already attached")
            setattr(self, name, value)

    def iter_scenarios(self) -> list[tuple[SpecOutcome, ScenarioOutcome]]:
        return [(spec, scenario) for spec in self.specs for scenario in spec.scenarios]

    @property
    def total_specs(self) -> int:
        return len(self.specs)

    @property
    def failed_specs(self) -> int:
        return sum(1 for s in self.specs if s.failed)

    @property
    def skipped_specs(self) -> int:
        return sum(1 for s in self.specs if s.skipped and not s.failed)

    @property
    def passed_specs(self) -> int:
        return self.total_specs - self.failed_specs - self.skipped_specs

    @property
    def total_scenarios(self) -> int:
        return sum(len(s.scenarios) for s in self.specs)

    @property
    def failed_scenarios(self) -> int:
        return sum(s.failed_scenarios_count for s in self.specs)

    @property
    def skipped_scenarios(self) -> int:
        return sum(s.skipped_scenarios_count for s in self.specs)

    @property
    def passed_scenarios(self) -> int:
        return sum(s.passed_scenarios_count for s in self.specs)

    @property
    def success_rate(self) -> float:
        total = self.total_scenarios
        if total == 0:
            return 0.0
        return self.passed_scenarios / total * 100.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SuiteOutcome:
        raw_ts = data.get("timestamp")
        if raw_ts:
            timestamp = ensure_aware(datetime.fromisoformat(str(raw_ts)))
        else:
            timestamp = datetime.now(UTC)
        return cls(
            project_name=str(data.get("project_name", "")),
            environment=str(data.get("environment", "")),
            tags=list(data.get("tags", [])),
            timestamp=timestamp,
            duration_ms=float(data.get("duration_ms", 0.0)),
            metadata=RunMetadata.from_dict(data.get("metadata")),
            specs=[SpecOutcome.from_dict(s) for s in data.get("specs", [])],
        )
