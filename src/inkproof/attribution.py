"""Attribution classifier.

Partitions document text into category-tagged spans and aggregates character
counts per category. The classifier only sees an ordered sequence of
``(text, category, source)`` spans supplied by the editor adapter, never the
editor's internal document tree.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from inkproof.editor import EditorAdapter

HUMAN_SOURCE = "user"


class Category(str, Enum):
    """Origin category of a span of document text."""

    HUMAN = "human"
    AI = "ai"
    CITED = "cited"

    @classmethod
    def parse(cls, value: Category | str | None) -> Category:
        """Parse a category; ``None`` means an untagged run and counts as human.

        Raises:
            ClassificationError: If the value is not a known category
        """
        if value is None:
            return cls.HUMAN
        if isinstance(value, Category):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ClassificationError(f"Unknown provenance category: {value!r}") from None


class ClassificationError(Exception):
    """A classification pass could not be completed. Editing continues."""
    pass


@dataclass(frozen=True)
class Span:
    """A contiguous run of document text with one provenance tag.

    ``category=None`` marks an untagged run, attributed to the human author.
    """

    text: str
    category: Category | None = None
    source: str | None = None

    @property
    def length(self) -> int:
        return len(self.text)

    @property
    def effective_category(self) -> Category:
        return Category.parse(self.category)

    @property
    def effective_source(self) -> str:
        if self.source:
            return self.source
        return HUMAN_SOURCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "category": self.effective_category.value,
            "source": self.effective_source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Span:
        category = data.get("category")
        return cls(
            text=data["text"],
            category=Category.parse(category) if category is not None else None,
            source=data.get("source"),
        )


@dataclass(frozen=True)
class AttributionStats:
    """Character counts per category.

    Percentages keep full float precision; only ``summary()`` rounds.
    """

    human_chars: int = 0
    ai_chars: int = 0
    cited_chars: int = 0

    @property
    def total_chars(self) -> int:
        return self.human_chars + self.ai_chars + self.cited_chars

    def chars(self, category: Category) -> int:
        if category is Category.HUMAN:
            return self.human_chars
        if category is Category.AI:
            return self.ai_chars
        return self.cited_chars

    def pct(self, category: Category) -> float:
        """Share of the document in ``category``, 0-100.

        An empty document is 100% human.
        """
        total = self.total_chars
        if total == 0:
            return 100.0 if category is Category.HUMAN else 0.0
        return 100.0 * self.chars(category) / total

    @property
    def human_pct(self) -> float:
        return self.pct(Category.HUMAN)

    @property
    def ai_pct(self) -> float:
        return self.pct(Category.AI)

    @property
    def cited_pct(self) -> float:
        return self.pct(Category.CITED)

    def summary(self, digits: int = 2) -> str:
        """Rounded one-line presentation."""
        return (
            f"human {self.human_pct:.{digits}f}% | "
            f"ai {self.ai_pct:.{digits}f}% | "
            f"cited {self.cited_pct:.{digits}f}% "
            f"({self.total_chars} chars)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "human_chars": self.human_chars,
            "ai_chars": self.ai_chars,
            "cited_chars": self.cited_chars,
            "total_chars": self.total_chars,
            "human_pct": self.human_pct,
            "ai_pct": self.ai_pct,
            "cited_pct": self.cited_pct,
        }


def tally(lengths: Iterable[tuple[Category | str | None, int]]) -> AttributionStats:
    """Sum ``(category, length)`` pairs into stats.

    Shared by the classifier (spans) and the verifier (event lists).

    Raises:
        ClassificationError: On an unknown category or negative length
    """
    counts = {Category.HUMAN: 0, Category.AI: 0, Category.CITED: 0}
    for category, length in lengths:
        if length < 0:
            raise ClassificationError(f"Negative span length: {length}")
        counts[Category.parse(category)] += length
    return AttributionStats(
        human_chars=counts[Category.HUMAN],
        ai_chars=counts[Category.AI],
        cited_chars=counts[Category.CITED],
    )


class AttributionClassifier:
    """Classifies the spans exposed by an editor adapter."""

    def __init__(self, editor: EditorAdapter | None = None) -> None:
        self.editor = editor

    def classify(self, spans: Iterable[Span | tuple[str, Any, Any]] | None = None) -> AttributionStats:
        """Aggregate character counts per category.

        Args:
            spans: Ordered spans or ``(text, category, source)`` tuples.
                Defaults to the attached editor's current spans.

        Raises:
            ClassificationError: On an unknown category, or when no spans and
                no editor are available
        """
        if spans is None:
            if self.editor is None:
                raise ClassificationError("No spans given and no editor attached")
            spans = self.editor.spans()

        def lengths() -> Iterable[tuple[Any, int]]:
            for span in spans:
                if isinstance(span, Span):
                    yield span.category, span.length
                else:
                    text, category, _source = span
                    yield category, len(text)

        return tally(lengths())

    def mark_span(self, start: int, end: int, category: Category | str, source: str) -> None:
        """Tag ``[start, end)`` of the document with a category and source.

        Used by programmatic insertions (AI text, cited pastes) so the range
        is never attributed to the human author.

        Raises:
            ClassificationError: On an unknown category or no attached editor
        """
        if self.editor is None:
            raise ClassificationError("Cannot mark a span without an editor")
        self.editor.mark_span(start, end, Category.parse(category), source)
