"""Limits for reading untrusted artifacts.

The verifier runs on documents from unknown parties, so input size and
event counts are bounded before any parsing happens.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_MAX_ARTIFACT_SIZE = 50 * 1024 * 1024  # 50 MB
DEFAULT_MAX_EVENTS = 1_000_000


class SecurityLimits:
    """Configurable security limits."""

    def __init__(
        self,
        max_artifact_size: int = DEFAULT_MAX_ARTIFACT_SIZE,
        max_events: int = DEFAULT_MAX_EVENTS,
    ) -> None:
        self.max_artifact_size = max_artifact_size
        self.max_events = max_events


class SecurityError(Exception):
    """Security limit exceeded."""
    pass


def safe_read_file(path: Path, limits: SecurityLimits | None = None) -> bytes:
    """Read a file after checking its size.

    Args:
        path: File path
        limits: Security limits

    Returns:
        File contents as bytes

    Raises:
        SecurityError: If the file is too large
        OSError: If the file cannot be read
    """
    if limits is None:
        limits = SecurityLimits()

    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > limits.max_artifact_size:
        raise SecurityError(
            f"File too large: {path} ({size} bytes > {limits.max_artifact_size})"
        )

    return resolved.read_bytes()
