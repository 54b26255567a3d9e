"""Tests for the provenance manifest."""

from __future__ import annotations

import pytest

from inkproof.attribution import AttributionStats
from inkproof.canonical import hash_text
from inkproof.determinism import FIXED_TIMESTAMP, determinism_mode
from inkproof.provenance.events import ProvenanceEvent
from inkproof.provenance.manifest import (
    ProvenanceManifest,
    build_manifest,
    canonical_text,
    document_hash,
)


def event(sequence_id: int, timestamp: str = FIXED_TIMESTAMP, category: str = "human", length: int = 1):
    return ProvenanceEvent(sequence_id, timestamp, category, "user", length, hash_text("x"))


class TestCanonicalText:
    """Test canonical text normalization."""

    def test_newlines_normalized(self):
        """CRLF and CR become LF."""
        assert canonical_text("a\r\nb\rc") == "a\nb\nc"

    def test_trailing_whitespace_stripped(self):
        """Trailing spaces per line and trailing newlines are dropped."""
        assert canonical_text("a  \nb\t\n\n") == "a\nb"

    def test_nfc(self):
        """Decomposed characters hash like composed ones."""
        assert document_hash("e\u0301") == document_hash("\u00e9")

    def test_leading_whitespace_kept(self):
        """Indentation is content."""
        assert canonical_text("  a") == "  a"


class TestProvenanceManifest:
    """Test ProvenanceManifest."""

    def test_percentages_must_sum(self):
        """Non-empty manifests must sum to 100."""
        with pytest.raises(ValueError, match="sum to 100"):
            ProvenanceManifest(human_pct=50.0, ai_pct=10.0, cited_pct=10.0, total_chars=10)

    def test_empty_document_human(self):
        """Empty documents must be 100% human."""
        ProvenanceManifest(human_pct=100.0, ai_pct=0.0, cited_pct=0.0, total_chars=0)
        with pytest.raises(ValueError, match="empty document"):
            ProvenanceManifest(human_pct=0.0, ai_pct=100.0, cited_pct=0.0, total_chars=0)

    def test_to_dict_fields(self):
        """The embedded form has exactly the manifest fields."""
        manifest = ProvenanceManifest(100.0, 0.0, 0.0, 3, [event(1, length=3)], FIXED_TIMESTAMP, "abc")
        assert set(manifest.to_dict()) == {
            "human_pct", "ai_pct", "cited_pct", "total_chars", "events", "generated_at", "document_hash",
        }

    def test_canonical_json_stable(self):
        """Serialization is byte-stable and round-trips through from_dict."""
        manifest = ProvenanceManifest(100.0, 0.0, 0.0, 3, [event(1, length=3)], FIXED_TIMESTAMP, "abc")
        restored = ProvenanceManifest.from_dict(manifest.to_dict())
        assert restored.canonical_bytes() == manifest.canonical_bytes()
        assert manifest.canonical_json().startswith('{"ai_pct":0,"cited_pct":0,"document_hash":"abc"')


class TestBuildManifest:
    """Test build_manifest."""

    def test_events_sorted(self):
        """Events are ordered by (timestamp, sequence_id)."""
        events = [
            event(3, "2025-01-01T00:00:01.000000Z"),
            event(1, "2025-01-01T00:00:02.000000Z"),
            event(2, "2025-01-01T00:00:01.000000Z"),
        ]
        manifest = build_manifest(AttributionStats(human_chars=3), events, "abc")
        assert [e.sequence_id for e in manifest.events] == [2, 3, 1]

    def test_fields_from_stats(self):
        """Percentages and totals come from the classifier."""
        stats = AttributionStats(human_chars=11, ai_chars=7, cited_chars=11)
        with determinism_mode():
            manifest = build_manifest(stats, [], "Hello world")

        assert manifest.total_chars == 29
        assert manifest.human_pct == stats.human_pct
        assert manifest.generated_at == FIXED_TIMESTAMP
        assert manifest.document_hash == document_hash("Hello world")

    def test_empty_document(self):
        """An empty document builds a 100% human manifest."""
        manifest = build_manifest(AttributionStats(), [], "")
        assert (manifest.human_pct, manifest.ai_pct, manifest.cited_pct) == (100.0, 0.0, 0.0)
        assert manifest.document_hash == hash_text("")

    def test_generated_at_override(self):
        """generated_at can be pinned."""
        manifest = build_manifest(AttributionStats(), [], "", generated_at="2024-06-01T00:00:00.000000Z")
        assert manifest.generated_at == "2024-06-01T00:00:00.000000Z"
