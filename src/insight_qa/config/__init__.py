"""Insight configuration system."""

from insight_qa.config.loader import ConfigSyntaxError, find_config_file, load_config, load_config_or_default
from insight_qa.config.models import (
    AnalysisConfig,
    HistoryConfig,
    InsightConfig,
    LLMConfig,
    ProjectIdentity,
)

__all__ = [
    "AnalysisConfig",
    "ConfigSyntaxError",
    "HistoryConfig",
    "InsightConfig",
    "LLMConfig",
    "ProjectIdentity",
    "find_config_file",
    "load_config",
    "load_config_or_default",
]
