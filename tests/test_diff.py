"""Tests for inserted-text extraction."""

from __future__ import annotations

from inkproof.diff import inserted_text, is_meaningful


class TestInsertedText:
    """Test inserted_text."""

    def test_append(self):
        """Text added at the end is the insertion."""
        assert inserted_text("Hello", "Hello world") == " world"

    def test_prepend(self):
        """Text added at the start is the insertion."""
        assert inserted_text("world", "Hello world") == "Hello "

    def test_middle(self):
        """Text added in the middle is the insertion."""
        assert inserted_text("hello", "heXXllo") == "XX"

    def test_empty_old(self):
        """Everything is inserted into an empty document."""
        assert inserted_text("", "abc") == "abc"

    def test_repeated_characters(self):
        """Prefix and suffix never overlap on repeated characters."""
        assert inserted_text("aa", "aaa") == "a"
        assert inserted_text("abab", "ababab") == "ab"

    def test_deletion_returns_empty(self):
        """Deletions are not insertions."""
        assert inserted_text("Hello world", "Hello") == ""

    def test_no_change(self):
        """Identical snapshots insert nothing."""
        assert inserted_text("same", "same") == ""

    def test_replacement_growing(self):
        """A replacement that grows the text reports the new middle."""
        assert inserted_text("the cat sat", "the dog and cat sat") == "dog and "

    def test_documented_cases(self):
        """Shrinking, appending and mid-word insertion."""
        assert inserted_text("ab", "a") == ""
        assert inserted_text("ab", "abc") == "c"
        assert inserted_text("hello", "heXXllo") == "XX"


class TestIsMeaningful:
    """Test is_meaningful."""

    def test_whitespace_not_meaningful(self):
        """Whitespace-only text is not meaningful."""
        assert not is_meaningful("")
        assert not is_meaningful(" ")
        assert not is_meaningful("\n\t  ")

    def test_text_meaningful(self):
        """Any non-whitespace character is meaningful."""
        assert is_meaningful("a")
        assert is_meaningful("  x  ")
