"""Append-only provenance event log.

Every realized insertion produces exactly one immutable ``ProvenanceEvent``.
Appends are best-effort relative to the live editing session: a failing store
is reported to diagnostics and never interrupts editing. Once an event is
durably stored it is never mutated or deleted.
"""

from __future__ import annotations

import json
import logging
import os
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from inkproof.attribution import Category
from inkproof.canonical import hash_text
from inkproof.determinism import format_timestamp, stable_timestamp

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The event store could not durably record an event."""
    pass


@dataclass(frozen=True)
class ProvenanceEvent:
    """One classified insertion.

    ``content_reference`` is the SHA-256 of the inserted text. The raw text is
    only carried when the local log retains it and is never part of
    ``to_dict()``, which is the form embedded in shared artifacts.
    """

    sequence_id: int
    timestamp: str
    category: Category
    source: str
    span_length: int
    content_reference: str
    text: str | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.span_length < 0:
            raise ValueError(f"span_length must be >= 0, got {self.span_length}")
        object.__setattr__(self, "category", Category(self.category))

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.timestamp, self.sequence_id)

    def to_dict(self) -> dict[str, Any]:
        """Shareable form (no raw text)."""
        return {
            "sequence_id": self.sequence_id,
            "timestamp": self.timestamp,
            "category": self.category.value,
            "source": self.source,
            "span_length": self.span_length,
            "content_reference": self.content_reference,
        }

    def to_record(self, retain_text: bool = False) -> dict[str, Any]:
        """Local log form, optionally with the raw text."""
        record = self.to_dict()
        if retain_text and self.text is not None:
            record["text"] = self.text
        return record

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProvenanceEvent:
        return cls(
            sequence_id=int(data["sequence_id"]),
            timestamp=data["timestamp"],
            category=Category(data["category"]),
            source=data["source"],
            span_length=int(data["span_length"]),
            content_reference=data["content_reference"],
            text=data.get("text"),
        )


class EventStore(Protocol):
    """Durable backing store for the event log."""

    def append(self, event: ProvenanceEvent) -> None: ...

    def list(self) -> list[ProvenanceEvent]: ...


class MemoryEventStore:
    """Volatile store, for tests and sessions without a log file."""

    def __init__(self) -> None:
        self._events: list[ProvenanceEvent] = []
        self._lock = threading.Lock()

    def append(self, event: ProvenanceEvent) -> None:
        with self._lock:
            self._events.append(event)

    def list(self) -> list[ProvenanceEvent]:
        with self._lock:
            return list(self._events)


class JsonlEventStore:
    """Append-only JSON-lines file, one event per line."""

    def __init__(self, path: Path, retain_text: bool = False) -> None:
        self.path = Path(path)
        self.retain_text = retain_text
        self._lock = threading.Lock()

    def append(self, event: ProvenanceEvent) -> None:
        line = json.dumps(event.to_record(self.retain_text), sort_keys=True, ensure_ascii=False)
        try:
            with self._lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.write("\n")
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            raise PersistenceError(f"Cannot append to {self.path}: {e}") from e

    def list(self) -> list[ProvenanceEvent]:
        if not self.path.exists():
            return []
        events = []
        try:
            with open(self.path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        events.append(ProvenanceEvent.from_dict(json.loads(line)))
                    except (ValueError, KeyError, TypeError) as e:
                        raise PersistenceError(f"{self.path}:{lineno}: corrupt event: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        return events


class Diagnostics:
    """Bounded record of non-fatal failures surfaced to the user."""

    def __init__(self, max_entries: int = 1000) -> None:
        self.max_entries = max_entries
        self._entries: list[dict[str, str]] = []
        self._lock = threading.Lock()

    def record(self, kind: str, message: str) -> None:
        with self._lock:
            self._entries.append({
                "kind": kind,
                "message": message,
                "timestamp": stable_timestamp(),
            })
            if len(self._entries) > self.max_entries:
                self._entries = self._entries[-(self.max_entries // 2):]

    def entries(self) -> list[dict[str, str]]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class _BackgroundWriter:
    """Drains a bounded queue of events into the store on a daemon thread."""

    def __init__(
        self,
        store: EventStore,
        on_error: Callable[[ProvenanceEvent, Exception], None],
        maxsize: int,
    ) -> None:
        self._store = store
        self._on_error = on_error
        self._queue: queue.Queue[ProvenanceEvent] = queue.Queue(maxsize=maxsize)
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="inkproof-event-writer")
        self._thread.start()

    def try_put(self, event: ProvenanceEvent) -> bool:
        try:
            self._queue.put(event, block=False)
            return True
        except queue.Full:
            return False

    def _run(self) -> None:
        while self._running or not self._queue.empty():
            try:
                event = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._store.append(event)
            except (PersistenceError, OSError) as e:
                self._on_error(event, e)
            finally:
                self._queue.task_done()

    def flush(self) -> None:
        self._queue.join()

    def stop(self) -> None:
        self._running = False
        self._thread.join(timeout=5.0)


class EventLog:
    """Sequenced, append-only log of provenance events.

    Sequence ids are assigned here, continuing from the highest id already in
    the store, so ``append`` can return immediately even when the write
    itself is dispatched to a background thread.
    """

    def __init__(
        self,
        store: EventStore | None = None,
        diagnostics: Diagnostics | None = None,
        background: bool = False,
        queue_size: int = 1000,
        clock: Callable[[], str] = stable_timestamp,
    ) -> None:
        self.store: EventStore = store if store is not None else MemoryEventStore()
        self.diagnostics = diagnostics or Diagnostics()
        self._clock = clock
        self._lock = threading.Lock()

        try:
            existing = self.store.list()
        except PersistenceError as e:
            self._report_failure(None, e)
            existing = []
        self._next_id = max((e.sequence_id for e in existing), default=0) + 1

        self._writer = _BackgroundWriter(self.store, self._report_failure, queue_size) if background else None

    def _report_failure(self, event: ProvenanceEvent | None, error: Exception) -> None:
        if event is None:
            message = f"event store unavailable: {error}"
        else:
            message = f"event {event.sequence_id} ({event.category.value}) not persisted: {error}"
        logger.warning("provenance log failure: %s", message)
        self.diagnostics.record("persistence_error", message)

    def append(self, category: Category | str, source: str, text: str) -> int:
        """Record a realized insertion.

        Never raises on storage failure; the failure goes to diagnostics and
        editing continues.

        Args:
            category: Provenance category of the inserted text
            source: ``"user"``, a model identifier, or a citation
            text: The inserted text (hashed; raw text only kept locally)

        Returns:
            The event's sequence id
        """
        category = Category(category)
        with self._lock:
            sequence_id = self._next_id
            self._next_id += 1
            event = ProvenanceEvent(
                sequence_id=sequence_id,
                timestamp=self._clock(),
                category=category,
                source=source,
                span_length=len(text),
                content_reference=hash_text(text),
                text=text,
            )

        logger.debug(
            "provenance event %d: %s from %s (%d chars)",
            sequence_id, category.value, source, event.span_length,
        )

        if self._writer is not None:
            if not self._writer.try_put(event):
                self._report_failure(event, PersistenceError("write queue full"))
            return sequence_id

        try:
            self.store.append(event)
        except (PersistenceError, OSError) as e:
            self._report_failure(event, e)
        return sequence_id

    def list(
        self,
        since: str | datetime | None = None,
        category: Category | str | None = None,
        limit: int | None = None,
    ) -> list[ProvenanceEvent]:
        """Events ascending by ``(timestamp, sequence_id)``.

        Args:
            since: Only events strictly after this timestamp
            category: Only events of this category
            limit: At most this many events (oldest first)

        Raises:
            PersistenceError: If the store cannot be read
        """
        self.flush()
        events = sorted(self.store.list(), key=lambda e: e.sort_key)

        if since is not None:
            cutoff = format_timestamp(since) if isinstance(since, datetime) else since
            events = [e for e in events if e.timestamp > cutoff]
        if category is not None:
            wanted = Category(category)
            events = [e for e in events if e.category is wanted]
        if limit is not None:
            events = events[:limit]
        return events

    def counts(self) -> dict[str, int]:
        """Number of events per category (categories with no events omitted)."""
        counts: dict[str, int] = {}
        for event in self.list():
            counts[event.category.value] = counts.get(event.category.value, 0) + 1
        return counts

    def flush(self) -> None:
        """Wait for pending background writes."""
        if self._writer is not None:
            self._writer.flush()

    def close(self) -> None:
        if self._writer is not None:
            self._writer.flush()
            self._writer.stop()
            self._writer = None
