"""Inserted-text extraction between two document snapshots."""

from __future__ import annotations


def inserted_text(old_text: str, new_text: str) -> str:
    """Return the text inserted to turn ``old_text`` into ``new_text``.

    Strips the longest common prefix, then the longest common suffix that does
    not overlap it; what remains of ``new_text`` is the insertion. Deletions
    and no-ops return an empty string.

    Example:
        >>> inserted_text("hello", "heXXllo")
        'XX'
    """
    if len(new_text) <= len(old_text):
        return ""

    start = 0
    limit = len(old_text)
    while start < limit and old_text[start] == new_text[start]:
        start += 1

    old_end = len(old_text)
    new_end = len(new_text)
    while old_end > start and old_text[old_end - 1] == new_text[new_end - 1]:
        old_end -= 1
        new_end -= 1

    return new_text[start:new_end]


def is_meaningful(text: str) -> bool:
    """Whitespace-only insertions are not attributed on their own."""
    return bool(text.strip())
