"""Counters and timings that describe how the client has been behaving.

Each component records into its own module level `Diagnostics` instance,
and `get_diagnostics` collects the non-empty ones under a component name.
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Generator

__all__ = [
    "Diagnostics",
    "get_diagnostics",
    "redact_data",
]


class Diagnostics:
    """Event counters for one component."""

    def __init__(self) -> None:
        """Initialize Diagnostics."""
        self._counter: Counter[str] = Counter()

    def increment(self, key: str, count: int = 1) -> None:
        """Increment the counter for an event."""
        self._counter[key] += count

    @contextmanager
    def timer(self, key_prefix: str) -> Generator[None, None, None]:
        """Count an operation and accumulate its duration in milliseconds."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self._counter[f"{key_prefix}_count"] += 1
            self._counter[f"{key_prefix}_sum"] += int(
                (time.perf_counter() - start) * 1000
            )

    def as_dict(self) -> dict[str, int]:
        """Return the counters as a plain dict."""
        return dict(self._counter)

    def reset(self) -> None:
        """Clear all counters, for testing."""
        self._counter.clear()


AUTH_DIAGNOSTICS = Diagnostics()
API_DIAGNOSTICS = Diagnostics()
SESSION_DIAGNOSTICS = Diagnostics()
ACCOUNT_DIAGNOSTICS = Diagnostics()
POLL_DIAGNOSTICS = Diagnostics()

MAP = {
    "auth": AUTH_DIAGNOSTICS,
    "api": API_DIAGNOSTICS,
    "session": SESSION_DIAGNOSTICS,
    "account": ACCOUNT_DIAGNOSTICS,
    "poll": POLL_DIAGNOSTICS,
}


def reset() -> None:
    """Clear all diagnostics, for testing."""
    for diagnostics in MAP.values():
        diagnostics.reset()


def get_diagnostics() -> dict[str, Any]:
    """Return the counters of every component that recorded anything."""
    return {name: data for name, d in MAP.items() if (data := d.as_dict())}


# Credentials and identifiers that tie a payload to an account or a device
REDACT_KEYS = {
    "apiKey",
    "password",
    "username",
    "email",
    "varName",
    "socketId",
    "topic",
}
REDACTED = "**REDACTED**"


def redact_data(data: Any) -> Any:
    """Return a copy of a JSON payload with sensitive values replaced."""
    if isinstance(data, list):
        return [redact_data(item) for item in data]
    if not isinstance(data, Mapping):
        return data
    return {
        key: REDACTED if key in REDACT_KEYS else redact_data(value)
        for key, value in data.items()
    }
