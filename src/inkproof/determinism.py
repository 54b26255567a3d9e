"""Determinism mode for reproducible timestamps.

Event timestamps and manifest generation times come from this module so that
tests can pin them.

Usage in tests:
    with determinism_mode():
        manifest = build_manifest(...)   # generated_at is FIXED_TIMESTAMP
"""

from __future__ import annotations

import contextlib
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

# Thread-local state for determinism mode
_state = threading.local()

FIXED_TIMESTAMP = "2025-01-01T00:00:00.000000Z"
FIXED_TIMESTAMP_DT = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def is_deterministic() -> bool:
    """Check if determinism mode is active."""
    return getattr(_state, "deterministic", False)


@contextlib.contextmanager
def determinism_mode() -> Generator[None, None, None]:
    """Context manager to enable determinism mode.

    Within this context all timestamps return FIXED_TIMESTAMP.
    """
    prev = getattr(_state, "deterministic", False)
    _state.deterministic = True
    try:
        yield
    finally:
        _state.deterministic = prev


def stable_now() -> datetime:
    """Return current UTC time, or the fixed time in determinism mode."""
    if is_deterministic():
        return FIXED_TIMESTAMP_DT
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Format as UTC ISO-8601 with microseconds and a Z suffix.

    Fixed width, so lexical order equals chronological order.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime(TIMESTAMP_FORMAT)


def stable_timestamp() -> str:
    """Return a normalized UTC timestamp, fixed in determinism mode."""
    if is_deterministic():
        return FIXED_TIMESTAMP
    return format_timestamp(datetime.now(timezone.utc))
