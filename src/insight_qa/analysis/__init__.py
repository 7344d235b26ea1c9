"""Analyses run over a decoded suite."""

from __future__ import annotations

from insight_qa.analysis.classifier import ErrorKind, classify
from insight_qa.analysis.flaky import FlakyDetector, FlakyTest, flaky_score
from insight_qa.analysis.grouping import FailureGroup, FailureGrouper, Severity, severity_for
from insight_qa.analysis.signature import normalize, sign
from insight_qa.analysis.summary import ExecutiveSummarizer, ExecutiveSummary, HealthStatus, TrendIndicator
from insight_qa.analysis.trends import Analytics, TrendData, TrendEngine

__all__ = [
    "Analytics",
    "ErrorKind",
    "ExecutiveSummarizer",
    "ExecutiveSummary",
    "FailureGroup",
    "FailureGrouper",
    "FlakyDetector",
    "FlakyTest",
    "HealthStatus",
    "Severity",
    "TrendData",
    "TrendEngine",
    "TrendIndicator",
    "classify",
    "flaky_score",
    "normalize",
    "severity_for",
    "sign",
]
