"""inkproof - signed provenance accounting for written documents.

Tracks which characters of a document were typed by a human, generated by an
AI assistant, or pasted from a cited source, and produces a signed manifest
that an independent verifier can check.
"""

from __future__ import annotations

__version__ = "0.3.0"

__all__ = ["__version__"]
