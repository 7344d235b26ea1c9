"""Keyword-based error classification."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    ASSERTION = "Assertion Failure"
    TIMEOUT = "Timeout"
    NETWORK = "Network Error"
    NULL_REFERENCE = "Null Reference"
    FILE_SYSTEM = "File System"
    DATABASE = "Database"
    ENVIRONMENT = "Environment"
    UNKNOWN = "Unknown Error"


# First kind with any keyword hit wins, so order matters.
KEYWORD_TABLE: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (
        ErrorKind.ASSERTION,
        ("assertion", "assert", "expected", "actual", "should be", "must be", "equals", "not equal"),
    ),
    (ErrorKind.TIMEOUT, ("timeout", "timed out", "deadline exceeded")),
    (
        ErrorKind.NETWORK,
        ("connection refused", "network", "socket", "http", "connection reset", "connection closed", "dns"),
    ),
    (ErrorKind.NULL_REFERENCE, ("null", "nil", "none")),
    (
        ErrorKind.FILE_SYSTEM,
        ("file not found", "no such file", "permission denied", "directory", "path"),
    ),
    (
        ErrorKind.DATABASE,
        ("database", "sql", "query", "transaction", "duplicate key", "constraint"),
    ),
    (
        ErrorKind.ENVIRONMENT,
        ("environment", "config", "configuration", "property", "variable not set"),
    ),
)


def classify(message: str, stack_trace: str = "") -> ErrorKind:
    """Map an error message and stack trace to an ErrorKind."""
    combined = f"{message} {stack_trace}".lower()
    for kind, keywords in KEYWORD_TABLE:
        if any(keyword in combined for keyword in keywords):
            return kind
    return ErrorKind.UNKNOWN
