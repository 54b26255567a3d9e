"""Independent verification of exported artifacts.

The verifier is stateless and depends only on the artifact format: it can be
reimplemented by a third party from the block layout and the canonical JSON
rules alone. Each stage short-circuits to a terminal status, and statuses are
returned as values; only I/O failures reading the artifact raise.
"""

from __future__ import annotations

import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from inkproof.canonical import canonical_bytes
from inkproof.provenance.artifact import (
    CATEGORIES,
    KEY_SIZE,
    SIGNATURE_SIZE,
    SIGNED_MANIFEST_SCHEMA,
    ArtifactError,
    b64decode,
    b64encode,
    extract_signed_block,
    verify_signature,
)
from inkproof.security import SecurityLimits, safe_read_file

DEFAULT_TOLERANCE = 1e-6

_validator = Draft7Validator(SIGNED_MANIFEST_SCHEMA)


class VerificationStatus(str, Enum):
    """Terminal verification outcomes."""

    VALID = "VALID"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    KEY_MISMATCH = "KEY_MISMATCH"
    MALFORMED_ARTIFACT = "MALFORMED_ARTIFACT"
    INCONSISTENT_MANIFEST = "INCONSISTENT_MANIFEST"

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self]


EXIT_CODES = {
    VerificationStatus.VALID: 0,
    VerificationStatus.INVALID_SIGNATURE: 6,
    VerificationStatus.KEY_MISMATCH: 3,
    VerificationStatus.MALFORMED_ARTIFACT: 4,
    VerificationStatus.INCONSISTENT_MANIFEST: 5,
}

# Exit code for I/O failures reading the artifact; 2 is left to click usage errors
EXIT_IO_ERROR = 1


@dataclass
class VerificationResult:
    """Result of verifying one artifact."""

    status: VerificationStatus
    message: str = ""
    public_key: str | None = None
    signed_at: str | None = None
    manifest: dict[str, Any] | None = None
    recomputed: dict[str, float] | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def valid(self) -> bool:
        return self.status is VerificationStatus.VALID

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "valid": self.valid,
            "message": self.message,
            "public_key": self.public_key,
            "signed_at": self.signed_at,
            "manifest": self.manifest,
            "recomputed": self.recomputed,
            "timestamp": self.timestamp,
        }

    def write_json(self, path: Path) -> None:
        """Write to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True, ensure_ascii=False)

    def write_markdown(self, path: Path) -> None:
        """Write to Markdown file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self._generate_markdown())

    def _generate_markdown(self) -> str:
        """Generate markdown report."""
        lines = [
            "# Provenance Verification Report",
            "",
            f"**Status:** {'✅' if self.valid else '❌'} {self.status.value}",
            f"**Timestamp:** {self.timestamp}",
            "",
        ]
        if self.message:
            lines.extend([self.message, ""])

        if self.public_key:
            lines.append(f"- **Public Key:** `{self.public_key}`")
        if self.signed_at:
            lines.append(f"- **Signed At:** {self.signed_at}")

        if self.manifest:
            lines.extend([
                "",
                "## Stated Provenance",
                "",
                f"- **Human:** {self.manifest['human_pct']:.2f}%",
                f"- **AI:** {self.manifest['ai_pct']:.2f}%",
                f"- **Cited:** {self.manifest['cited_pct']:.2f}%",
                f"- **Total Characters:** {self.manifest['total_chars']}",
                f"- **Events:** {len(self.manifest['events'])}",
                f"- **Document Hash:** `{self.manifest['document_hash']}`",
            ])

        if self.recomputed:
            lines.extend([
                "",
                "## Recomputed From Events",
                "",
                f"- **Human:** {self.recomputed['human_pct']:.2f}%",
                f"- **AI:** {self.recomputed['ai_pct']:.2f}%",
                f"- **Cited:** {self.recomputed['cited_pct']:.2f}%",
            ])

        lines.append("")
        return "\n".join(lines)


def percentages_from_events(events: list[dict[str, Any]]) -> dict[str, float]:
    """Category percentages implied by an event list.

    An empty or zero-length history is 100% human.
    """
    chars = dict.fromkeys(CATEGORIES, 0)
    for event in events:
        chars[event["category"]] += event["span_length"]
    total = sum(chars.values())
    if total == 0:
        return {"human_pct": 100.0, "ai_pct": 0.0, "cited_pct": 0.0}
    return {f"{category}_pct": 100.0 * count / total for category, count in chars.items()}


class ArtifactVerifier:
    """Verifier for signed provenance artifacts."""

    def __init__(
        self,
        expected_public_key: bytes | str | None = None,
        limits: SecurityLimits | None = None,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        """Initialize verifier.

        Args:
            expected_public_key: Author key obtained out of band, raw bytes or
                base64. When given, the embedded key must match it exactly.
            limits: Input size limits
            tolerance: Allowed absolute drift between stated and recomputed
                percentages

        Raises:
            ValueError: If the expected key is not valid base64
        """
        if isinstance(expected_public_key, str):
            expected_public_key = b64decode(expected_public_key.strip())
        self.expected_public_key = expected_public_key
        self.limits = limits or SecurityLimits()
        self.tolerance = tolerance

    def verify(self, path: Path) -> VerificationResult:
        """Verify an artifact file.

        Raises:
            OSError: If the file cannot be read
            SecurityError: If the file exceeds the size limit
        """
        return self.verify_bytes(safe_read_file(Path(path), self.limits))

    def verify_bytes(self, data: str | bytes) -> VerificationResult:
        """Run parse, key, signature and consistency checks in order."""
        status = VerificationStatus

        # 1. Parse
        size = len(data.encode("utf-8") if isinstance(data, str) else data)
        if size > self.limits.max_artifact_size:
            return VerificationResult(status.MALFORMED_ARTIFACT, f"Artifact too large: {size} bytes")
        try:
            block = extract_signed_block(data)
        except ArtifactError as e:
            return VerificationResult(status.MALFORMED_ARTIFACT, str(e))

        error = best_match(_validator.iter_errors(block))
        if error is not None:
            location = "/".join(str(p) for p in error.path) or "<root>"
            return VerificationResult(status.MALFORMED_ARTIFACT, f"Schema violation at {location}: {error.message}")

        manifest = block["manifest"]
        if len(manifest["events"]) > self.limits.max_events:
            return VerificationResult(status.MALFORMED_ARTIFACT, "Too many events in manifest")

        try:
            signature = b64decode(block["signature"])
            public_key = b64decode(block["public_key"])
        except ValueError as e:
            return VerificationResult(status.MALFORMED_ARTIFACT, str(e))
        if len(public_key) != KEY_SIZE:
            return VerificationResult(status.MALFORMED_ARTIFACT, f"Public key must be {KEY_SIZE} bytes")
        if len(signature) != SIGNATURE_SIZE:
            return VerificationResult(status.MALFORMED_ARTIFACT, f"Signature must be {SIGNATURE_SIZE} bytes")

        try:
            message = canonical_bytes(manifest)
        except (TypeError, ValueError) as e:
            return VerificationResult(status.MALFORMED_ARTIFACT, f"Manifest cannot be canonicalized: {e}")

        def result(state: VerificationStatus, text: str, **extra: Any) -> VerificationResult:
            return VerificationResult(
                state,
                text,
                public_key=b64encode(public_key),
                signed_at=block["signed_at"],
                manifest=manifest,
                **extra,
            )

        # 2. Key check
        if self.expected_public_key is not None:
            if not hmac.compare_digest(self.expected_public_key, public_key):
                return result(status.KEY_MISMATCH, "Embedded public key does not match the expected key")

        # 3. Signature check
        if not verify_signature(message, signature, public_key):
            return result(status.INVALID_SIGNATURE, "Signature does not match the manifest")

        # 4. Consistency check
        recomputed = percentages_from_events(manifest["events"])
        drifted = [
            name for name, value in recomputed.items()
            if abs(manifest[name] - value) > self.tolerance
        ]
        if drifted:
            return result(
                status.INCONSISTENT_MANIFEST,
                f"Stated percentages not supported by event log: {', '.join(drifted)}",
                recomputed=recomputed,
            )

        return result(status.VALID, "Signature valid and manifest consistent", recomputed=recomputed)
