"""Pydantic models for Insight configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

LLMProvider = Literal["openai", "claude", "gemini", "local", "none"]

CLOUD_PROVIDERS: frozenset[str] = frozenset({"openai", "claude", "gemini"})

# provider -> (endpoint, model)
PROVIDER_DEFAULTS: dict[str, tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1/chat/completions", "gpt-4-turbo-preview"),
    "claude": ("https://api.anthropic.com/v1/messages", "claude-3-sonnet-20240229"),
    "gemini": ("https://generativelanguage.googleapis.com/v1beta", "gemini-2.0-flash"),
    "local": ("http://localhost:11434/api/generate", "llama2"),
}


class LLMConfig(BaseModel):
    """LLM augmentation settings. Disabled unless explicitly enabled."""

    enabled: bool = False
    provider: LLMProvider = "none"
    api_key: str = ""  # supports ${ENV_VAR}
    api_url: str = ""  # empty = provider default
    model: str = ""  # empty = provider default
    timeout: float = 30.0
    max_concurrency: int = Field(default=4, ge=1)

    @model_validator(mode="after")
    def _apply_provider_defaults(self) -> LLMConfig:
        defaults = PROVIDER_DEFAULTS.get(self.provider)
        if defaults is not None:
            if not self.api_url:
                self.api_url = defaults[0]
            if not self.model:
                self.model = defaults[1]
        return self

    @property
    def active(self) -> bool:
        return self.enabled and self.provider != "none"


class HistoryConfig(BaseModel):
    """Where historical runs are persisted."""

    backend: Literal["sqlite", "memory", "none"] = "sqlite"
    db_path: str = ".insight-history/test-history.db"
    retention_days: int = 0  # 0 = keep everything
    record_runs: bool = True


class AnalysisConfig(BaseModel):
    """Tunables for flaky detection and trend analysis."""

    flaky_window_days: int = 30
    flaky_min_runs: int = 3
    flaky_threshold: float = 0.3
    trend_window_days: int = 30
    top_n: int = 5


class ProjectIdentity(BaseModel):
    """Project metadata used when results carry none."""

    name: str = "Insight"
    environment: str = "default"


class InsightConfig(BaseModel):
    """Root configuration model for .insight.yaml."""

    project: ProjectIdentity = Field(default_factory=ProjectIdentity)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
