"""Tests for the attribution classifier."""

from __future__ import annotations

import pytest

from inkproof.attribution import (
    AttributionClassifier,
    AttributionStats,
    Category,
    ClassificationError,
    Span,
    tally,
)
from inkproof.editor import TextBuffer


class TestCategory:
    """Test Category parsing."""

    def test_parse_values(self):
        """Known values parse to members."""
        assert Category.parse("human") is Category.HUMAN
        assert Category.parse("ai") is Category.AI
        assert Category.parse(Category.CITED) is Category.CITED

    def test_untagged_is_human(self):
        """An untagged run counts as human."""
        assert Category.parse(None) is Category.HUMAN

    def test_unknown_raises(self):
        """Unknown categories are a classification error."""
        with pytest.raises(ClassificationError, match="Unknown provenance category"):
            Category.parse("robot")


class TestSpan:
    """Test Span."""

    def test_defaults(self):
        """An untagged span is attributed to the user."""
        span = Span("hello")
        assert span.length == 5
        assert span.effective_category is Category.HUMAN
        assert span.effective_source == "user"

    def test_dict_round_trip(self):
        """to_dict and from_dict preserve the tag."""
        span = Span("foo", Category.AI, "model-x")
        assert span.to_dict() == {"text": "foo", "category": "ai", "source": "model-x"}
        assert Span.from_dict(span.to_dict()) == span


class TestAttributionStats:
    """Test AttributionStats."""

    def test_empty_document_is_human(self):
        """An empty document is 100% human."""
        stats = AttributionStats()
        assert stats.total_chars == 0
        assert (stats.human_pct, stats.ai_pct, stats.cited_pct) == (100.0, 0.0, 0.0)

    def test_percentages_sum_to_100(self):
        """Non-empty percentages sum to 100."""
        stats = AttributionStats(human_chars=11, ai_chars=7, cited_chars=11)
        assert stats.total_chars == 29
        assert stats.human_pct + stats.ai_pct + stats.cited_pct == pytest.approx(100.0, abs=1e-9)
        assert stats.ai_pct == pytest.approx(24.137931, abs=1e-6)

    def test_full_precision_until_summary(self):
        """Percentages are not rounded; summary is."""
        stats = AttributionStats(human_chars=1, ai_chars=2)
        assert stats.human_pct == 100.0 / 3
        assert "human 33.33%" in stats.summary()
        assert "(3 chars)" in stats.summary()

    def test_to_dict(self):
        """to_dict carries counts and percentages."""
        data = AttributionStats(human_chars=3, ai_chars=1).to_dict()
        assert data["total_chars"] == 4
        assert data["ai_pct"] == 25.0


class TestTally:
    """Test tally."""

    def test_sums_by_category(self):
        """Pairs are summed per category."""
        stats = tally([("human", 2), (Category.AI, 3), (None, 1), ("cited", 4)])
        assert (stats.human_chars, stats.ai_chars, stats.cited_chars) == (3, 3, 4)

    def test_negative_length(self):
        """Negative lengths are rejected."""
        with pytest.raises(ClassificationError, match="Negative"):
            tally([("human", -1)])


class TestAttributionClassifier:
    """Test AttributionClassifier."""

    def test_classify_spans(self):
        """Explicit spans are classified."""
        stats = AttributionClassifier().classify([
            Span("Hello world"),
            Span("foo bar", Category.AI, "model-x"),
            ("quoted text", "cited", "https://example.com"),
        ])
        assert (stats.human_chars, stats.ai_chars, stats.cited_chars) == (11, 7, 11)

    def test_classify_editor(self):
        """Without spans the attached editor is classified."""
        buffer = TextBuffer([Span("abc"), Span("de", Category.AI, "m")])
        stats = AttributionClassifier(buffer).classify()
        assert stats.human_chars == 3
        assert stats.ai_chars == 2

    def test_classify_empty(self):
        """No spans means an empty, fully human document."""
        assert AttributionClassifier().classify([]).human_pct == 100.0

    def test_no_editor(self):
        """Classifying with nothing to classify is an error."""
        with pytest.raises(ClassificationError):
            AttributionClassifier().classify()

    def test_unknown_category_fails_pass(self):
        """An unknown tag fails the whole pass."""
        with pytest.raises(ClassificationError):
            AttributionClassifier().classify([("x", "robot", "?")])

    def test_mark_span(self):
        """mark_span retags the editor range."""
        buffer = TextBuffer([Span("Hello world")])
        classifier = AttributionClassifier(buffer)
        classifier.mark_span(6, 11, "ai", "model-x")
        stats = classifier.classify()
        assert stats.human_chars == 6
        assert stats.ai_chars == 5

    def test_mark_span_without_editor(self):
        """mark_span needs an editor."""
        with pytest.raises(ClassificationError):
            AttributionClassifier().mark_span(0, 1, "ai", "m")
