"""Stable grouping keys for error messages."""

from __future__ import annotations

import hashlib
import re

_UUID = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_DIGITS = re.compile(r"\d+")
_PATH = re.compile(r"/\S+")


def normalize(message: str) -> str:
    """Erase volatile tokens: UUIDs, digit runs, absolute paths.

    UUIDs are replaced before digits, otherwise the digit pass breaks them
    apart and they never match.
    """
    cleaned = _UUID.sub("UUID", message)
    cleaned = _DIGITS.sub("N", cleaned)
    return _PATH.sub("/PATH", cleaned)


def sign(message: str, kind: str) -> str:
    """Return the md5 hex digest of ``kind:normalize(message)``."""
    payload = f"{kind}:{normalize(message)}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()
