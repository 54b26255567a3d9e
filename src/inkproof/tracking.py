"""Authoring-side provenance tracking.

Connects an editor adapter to the classifier and the event log:

- Natural edits are diffed against the last snapshot and logged as human.
- Programmatic insertions (AI completions, confirmed citations) bump a skip
  counter immediately before mutating the document. Each editor update
  notification consumes one unit of the counter instead of being diffed, so
  any number of in-flight programmatic insertions stay correctly attributed.
- Cancelled requests never touch the document and so never log anything.
"""

from __future__ import annotations

import logging

from inkproof.assistant import Completion, CompletionProvider
from inkproof.attribution import (
    HUMAN_SOURCE,
    AttributionClassifier,
    AttributionStats,
    Category,
    ClassificationError,
)
from inkproof.diff import inserted_text, is_meaningful
from inkproof.editor import EditorAdapter
from inkproof.provenance.artifact import render_artifact
from inkproof.provenance.events import EventLog
from inkproof.provenance.manifest import ProvenanceManifest, build_manifest
from inkproof.provenance.signing import SignedManifest, Signer

logger = logging.getLogger(__name__)


class ProvenanceTracker:
    """Classifies and logs every mutation of one document."""

    def __init__(self, editor: EditorAdapter, event_log: EventLog | None = None) -> None:
        self.editor = editor
        self.classifier = AttributionClassifier(editor)
        self.event_log = event_log or EventLog()
        self.skipped_updates = 0
        self._pending_programmatic = 0
        self._baseline = editor.get_text()
        self._stats = AttributionStats()
        self._refresh_stats()
        editor.subscribe(self.on_editor_update)

    @property
    def pending_programmatic(self) -> int:
        return self._pending_programmatic

    @property
    def stats(self) -> AttributionStats:
        """Most recent classification of the document."""
        return self._stats

    def expect_programmatic_insertion(self) -> None:
        """Call immediately before a programmatic mutation of the document."""
        self._pending_programmatic += 1

    def on_editor_update(self, previous: str, current: str) -> None:
        """Handle an editor update notification."""
        if self._pending_programmatic > 0:
            self._pending_programmatic -= 1
            self.skipped_updates += 1
            self._flush_held(previous)
            self._baseline = current
            self._refresh_stats()
            return

        inserted = inserted_text(self._baseline, current)
        if inserted and not is_meaningful(inserted):
            # Hold the baseline; the whitespace is attributed with the next
            # meaningful insertion.
            self._refresh_stats()
            return

        if inserted:
            self.event_log.append(Category.HUMAN, HUMAN_SOURCE, inserted)
        self._baseline = current
        self._refresh_stats()

    def _flush_held(self, text: str) -> None:
        """Log held whitespace that is still present in ``text`` as human."""
        held = inserted_text(self._baseline, text)
        if held:
            self.event_log.append(Category.HUMAN, HUMAN_SOURCE, held)
        self._baseline = text

    def _refresh_stats(self) -> None:
        try:
            self._stats = self.classifier.classify()
        except ClassificationError as e:
            logger.warning("classification pass skipped: %s", e)
            self.event_log.diagnostics.record("classification_error", str(e))

    def insert_programmatic(
        self,
        text: str,
        category: Category | str,
        source: str,
        position: int | None = None,
    ) -> int | None:
        """Insert tagged text and log it.

        Args:
            text: Text to insert; nothing happens when empty
            category: ``ai`` or ``cited``
            source: Model identifier or citation
            position: Insert offset, defaults to the end of the document

        Returns:
            The event's sequence id, or None if nothing was inserted
        """
        category = Category(category)
        if not text:
            return None
        if position is None:
            position = len(self.editor.get_text())

        self.expect_programmatic_insertion()
        try:
            self.editor.insert(position, text)
        except Exception:
            self._pending_programmatic -= 1
            raise

        self.classifier.mark_span(position, position + len(text), category, source)
        self._refresh_stats()
        return self.event_log.append(category, source, text)

    def insert_completion(
        self,
        provider: CompletionProvider,
        prompt: str,
        position: int | None = None,
    ) -> Completion:
        """Ask the provider and insert its text attributed to the model.

        Raises:
            ProviderError: If the provider fails; the document is untouched
        """
        completion = provider.complete(prompt)
        self.insert_programmatic(completion.text, Category.AI, completion.model, position)
        return completion

    def cite(self, text: str, position: int | None = None) -> CitationRequest:
        """Start a citation for pasted text; nothing changes until confirmed."""
        return CitationRequest(self, text, position)

    def build_manifest(self) -> ProvenanceManifest:
        """Manifest from the current document and the full event history.

        Raises:
            ClassificationError: If the document cannot be classified
            PersistenceError: If the event log cannot be read
        """
        self._flush_held(self.editor.get_text())
        return build_manifest(
            self.classifier.classify(),
            self.event_log.list(),
            self.editor.get_text(),
        )

    def export(self, signer: Signer, title: str = "Untitled document") -> tuple[str, SignedManifest]:
        """Build, sign and render the artifact.

        Raises:
            SigningError: If signing fails; nothing is exported
        """
        signed = signer.sign(self.build_manifest())
        spans = [
            (span.text, span.effective_category.value, span.effective_source)
            for span in self.editor.spans()
        ]
        return render_artifact(spans, signed.to_dict(), title=title), signed


class CitationRequest:
    """A pending citation dialog for pasted text.

    ``confirm`` inserts the text tagged as cited; ``cancel`` has no effect on
    the document or the log.
    """

    def __init__(self, tracker: ProvenanceTracker, text: str, position: int | None = None) -> None:
        self.tracker = tracker
        self.text = text
        self.position = position
        self.is_open = True

    def confirm(self, citation: str) -> int | None:
        """Insert the pasted text attributed to ``citation``.

        Raises:
            ValueError: If the citation is empty
            RuntimeError: If the request was already closed
        """
        if not self.is_open:
            raise RuntimeError("Citation request already closed")
        citation = citation.strip()
        if not citation:
            raise ValueError("Citation source is required")
        self.is_open = False
        return self.tracker.insert_programmatic(self.text, Category.CITED, citation, self.position)

    def cancel(self) -> None:
        self.is_open = False
