"""Decoded test-execution results."""
