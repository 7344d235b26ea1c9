"""Insight QA - test-result intelligence engine."""

__version__ = "0.1.0"
