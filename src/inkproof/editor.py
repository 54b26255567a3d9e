"""Editor-surface adapter.

The rich-text editor is an external collaborator. The core only needs it to
report ``(previous_text, current_text)`` on every mutation, expose its text as
ordered tagged spans, and accept ``mark_span`` calls. ``TextBuffer`` is a
plain-text reference adapter used by the CLI and the tests.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from inkproof.attribution import Category, Span

UpdateListener = Callable[[str, str], None]


class EditorAdapter(Protocol):
    """What the provenance core needs from an editing surface."""

    def get_text(self) -> str: ...

    def spans(self) -> Sequence[Span]: ...

    def insert(self, position: int, text: str) -> None: ...

    def mark_span(self, start: int, end: int, category: Category, source: str) -> None: ...

    def subscribe(self, listener: UpdateListener) -> None: ...


class TextBuffer:
    """In-memory document held as an ordered list of tagged spans.

    Every mutation notifies subscribers synchronously with the text before
    and after the change, the way an editor delivers update events.
    """

    def __init__(self, spans: Sequence[Span] | None = None) -> None:
        self._spans: list[Span] = [s for s in (spans or []) if s.text]
        self._listeners: list[UpdateListener] = []

    def get_text(self) -> str:
        return "".join(s.text for s in self._spans)

    def __len__(self) -> int:
        return sum(s.length for s in self._spans)

    def spans(self) -> list[Span]:
        return list(self._spans)

    def subscribe(self, listener: UpdateListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: UpdateListener) -> None:
        self._listeners.remove(listener)

    def _notify(self, previous: str) -> None:
        current = self.get_text()
        for listener in list(self._listeners):
            listener(previous, current)

    def _check_range(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self):
            raise IndexError(f"Range [{start}, {end}) outside document of length {len(self)}")

    def _split_at(self, position: int) -> int:
        """Split so a span boundary falls at ``position``; return its span index."""
        offset = 0
        for index, span in enumerate(self._spans):
            if position == offset:
                return index
            if position < offset + span.length:
                cut = position - offset
                self._spans[index:index + 1] = [
                    Span(span.text[:cut], span.category, span.source),
                    Span(span.text[cut:], span.category, span.source),
                ]
                return index + 1
            offset += span.length
        return len(self._spans)

    def _coalesce(self) -> None:
        merged: list[Span] = []
        for span in self._spans:
            if not span.text:
                continue
            if merged and (merged[-1].category, merged[-1].source) == (span.category, span.source):
                prev = merged.pop()
                span = Span(prev.text + span.text, span.category, span.source)
            merged.append(span)
        self._spans = merged

    def insert(self, position: int, text: str) -> None:
        """Insert untagged text at ``position`` and notify subscribers."""
        self._check_range(position, position)
        if not text:
            return
        previous = self.get_text()
        index = self._split_at(position)
        self._spans.insert(index, Span(text))
        self._coalesce()
        self._notify(previous)

    def append(self, text: str) -> None:
        self.insert(len(self), text)

    def delete(self, start: int, end: int) -> None:
        """Remove ``[start, end)`` and notify subscribers."""
        self._check_range(start, end)
        if start == end:
            return
        previous = self.get_text()
        first = self._split_at(start)
        last = self._split_at(end)
        del self._spans[first:last]
        self._coalesce()
        self._notify(previous)

    def mark_span(self, start: int, end: int, category: Category, source: str) -> None:
        """Retag ``[start, end)``. Text is unchanged, so no notification."""
        self._check_range(start, end)
        first = self._split_at(start)
        last = self._split_at(end)
        for index in range(first, last):
            self._spans[index] = Span(self._spans[index].text, category, source)
        self._coalesce()
