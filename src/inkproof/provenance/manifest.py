"""Provenance manifest builder.

A manifest snapshots the classifier's character counts, the sorted event
history and a hash of the document's canonical text. Its canonical
serialization is what gets signed, so everything here must be
deterministic and reproducible by an unrelated implementation.
"""

from __future__ import annotations

import math
import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from inkproof.attribution import AttributionStats
from inkproof.canonical import canonical_bytes, canonical_json, hash_text
from inkproof.determinism import stable_timestamp
from inkproof.provenance.events import ProvenanceEvent

PCT_TOLERANCE = 1e-6

_trailing_ws = re.compile(r"[ \t\f\v]+$", re.MULTILINE)


def canonical_text(text: str) -> str:
    """Canonical rendering of document text for hashing.

    NFC-normalized, LF newlines, no trailing whitespace on any line and no
    trailing newlines.
    """
    result = unicodedata.normalize("NFC", text)
    result = result.replace("\r\n", "\n").replace("\r", "\n")
    result = _trailing_ws.sub("", result)
    return result.rstrip("\n")


def document_hash(text: str) -> str:
    """SHA-256 hex digest of the canonical text."""
    return hash_text(canonical_text(text))


@dataclass
class ProvenanceManifest:
    """Aggregate provenance report for one document at export time."""

    human_pct: float
    ai_pct: float
    cited_pct: float
    total_chars: int
    events: list[ProvenanceEvent] = field(default_factory=list)
    generated_at: str = field(default_factory=stable_timestamp)
    document_hash: str = ""

    def __post_init__(self) -> None:
        if self.total_chars < 0:
            raise ValueError(f"total_chars must be >= 0, got {self.total_chars}")
        if self.total_chars == 0:
            if (self.human_pct, self.ai_pct, self.cited_pct) != (100.0, 0.0, 0.0):
                raise ValueError("An empty document must be 100% human")
        elif not math.isclose(self.human_pct + self.ai_pct + self.cited_pct, 100.0,
                              rel_tol=0.0, abs_tol=PCT_TOLERANCE):
            raise ValueError("Percentages must sum to 100")

    def to_dict(self) -> dict[str, Any]:
        """Manifest as embedded in an artifact (events without raw text)."""
        return {
            "human_pct": self.human_pct,
            "ai_pct": self.ai_pct,
            "cited_pct": self.cited_pct,
            "total_chars": self.total_chars,
            "events": [e.to_dict() for e in self.events],
            "generated_at": self.generated_at,
            "document_hash": self.document_hash,
        }

    def canonical_json(self) -> str:
        return canonical_json(self.to_dict())

    def canonical_bytes(self) -> bytes:
        """The exact bytes covered by the signature."""
        return canonical_bytes(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvenanceManifest:
        return cls(
            human_pct=float(data["human_pct"]),
            ai_pct=float(data["ai_pct"]),
            cited_pct=float(data["cited_pct"]),
            total_chars=int(data["total_chars"]),
            events=[ProvenanceEvent.from_dict(e) for e in data.get("events", [])],
            generated_at=data["generated_at"],
            document_hash=data["document_hash"],
        )


def build_manifest(
    stats: AttributionStats,
    events: Iterable[ProvenanceEvent],
    document_text: str,
    generated_at: str | None = None,
) -> ProvenanceManifest:
    """Build a manifest from a classifier snapshot and the event history.

    Args:
        stats: Classifier output for the current document
        events: Logged events, in any order
        document_text: Current document text
        generated_at: Override the generation timestamp

    Returns:
        ProvenanceManifest with events sorted by (timestamp, sequence_id)
    """
    return ProvenanceManifest(
        human_pct=stats.human_pct,
        ai_pct=stats.ai_pct,
        cited_pct=stats.cited_pct,
        total_chars=stats.total_chars,
        events=sorted(events, key=lambda e: e.sort_key),
        generated_at=generated_at or stable_timestamp(),
        document_hash=document_hash(document_text),
    )
