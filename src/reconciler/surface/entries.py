"""Reconciliation entries: input shapes, normalization and resolution output.

Entries arrive from a less-trusted upstream feed (the host adapter that
turned a detector trigger into two competing text bodies). Normalization
never raises: an entry that cannot be rendered is dropped so that one bad
entry does not block the others.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from reconciler.config import DEFAULT_KEEP_BOTH_SEPARATOR
from reconciler.surface.mapping import clamp_position

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class ReconciliationChoice(StrEnum):
    """The three terminal decisions a user can make on a pending entry."""

    KEEP_A = "keep-a"
    KEEP_B = "keep-b"
    KEEP_BOTH = "keep-both"


@dataclass(frozen=True)
class ReconciliationVersion:
    """One competing text body as supplied by the host."""

    author_id: str
    content: str
    author_name: str | None = None


@dataclass(frozen=True)
class ReconciliationEntry:
    """A pending conflict as supplied by the host.

    ``start``/``end`` are offsets in the host document; they may be out of
    range or reversed and are fixed up during normalization.
    """

    id: str
    section_id: str
    start: int
    end: int
    version_a: ReconciliationVersion
    version_b: ReconciliationVersion
    triggered_at_ms: float | None = None


@dataclass(frozen=True)
class NormalizedVersion:
    """A version with a guaranteed author id and display name."""

    author_id: str
    author_name: str
    content: str


@dataclass(frozen=True)
class PendingEntry:
    """A normalized entry living in the surface's state.

    Invariant: ``0 <= start <= end <= len(document)`` at the time the
    entry was last normalized or remapped.
    """

    id: str
    section_id: str
    start: int
    end: int
    version_a: NormalizedVersion
    version_b: NormalizedVersion
    triggered_at_ms: float | None = None


@dataclass(frozen=True)
class ReconciliationResolution:
    """Report of one applied resolution, handed to ``on_resolve``."""

    id: str
    section_id: str
    choice: ReconciliationChoice
    replacement: str
    start: int
    end: int
    triggered_at_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the wire field names."""
        return {
            "id": self.id,
            "sectionId": self.section_id,
            "choice": str(self.choice),
            "replacement": self.replacement,
            "from": self.start,
            "to": self.end,
            "triggeredAtMs": self.triggered_at_ms,
        }


# Field aliases accepted from dict payloads (wire names first).
_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "section_id": ("sectionId", "section_id"),
    "start": ("from", "start"),
    "end": ("to", "end"),
    "version_a": ("versionA", "version_a"),
    "version_b": ("versionB", "version_b"),
    "triggered_at_ms": ("triggeredAtMs", "triggered_at_ms"),
    "author_id": ("authorId", "author_id"),
    "author_name": ("authorName", "author_name", "displayName", "display_name"),
    "content": ("content", "textContent", "text_content"),
}


def _field(raw: Any, name: str) -> Any:
    """Read a field from either a dataclass-like object or a mapping."""
    if isinstance(raw, Mapping):
        for alias in _ALIASES.get(name, (name,)):
            if alias in raw:
                return raw[alias]
        return None
    return getattr(raw, name, None)


def _normalize_non_empty(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


def normalize_version(raw: Any) -> NormalizedVersion | None:
    """Normalize one version payload, or return None if it is unusable.

    The author id is required; the display name falls back to it. The
    content may be empty but must be present, and is stringified.
    """
    if raw is None:
        return None
    author_id = _normalize_non_empty(_field(raw, "author_id"))
    if author_id is None:
        return None
    content = _field(raw, "content")
    if content is None:
        return None

    author_name = _normalize_non_empty(_field(raw, "author_name")) or author_id
    return NormalizedVersion(
        author_id=author_id, author_name=author_name, content=str(content)
    )


def normalize_entry(raw: Any, max_position: int) -> PendingEntry | None:
    """Normalize one raw entry against a document of length ``max_position``.

    Returns None for entries without an id, with an unusable version, or
    whose non-empty range collapses to nothing once clamped into the
    document.
    """
    entry_id = _normalize_non_empty(_field(raw, "id"))
    if entry_id is None:
        return None

    version_a = normalize_version(_field(raw, "version_a"))
    version_b = normalize_version(_field(raw, "version_b"))
    if version_a is None or version_b is None:
        return None

    raw_start = _field(raw, "start")
    raw_end = _field(raw, "end")
    start = clamp_position(raw_start, max_position)
    end = clamp_position(raw_end, max_position)
    # Spans that collapse only through clamping are dropped; explicit
    # insertion points (from == to) are kept.
    if start == end and clamp_position(raw_start, sys.maxsize) != clamp_position(
        raw_end, sys.maxsize
    ):
        return None

    triggered_at_ms = _field(raw, "triggered_at_ms")
    return PendingEntry(
        id=entry_id,
        section_id=_normalize_non_empty(_field(raw, "section_id")) or entry_id,
        start=min(start, end),
        end=max(start, end),
        version_a=version_a,
        version_b=version_b,
        triggered_at_ms=_optional_number(triggered_at_ms),
    )


def normalize_entries(
    raw_entries: Iterable[Any], max_position: int
) -> tuple[PendingEntry, ...]:
    """Normalize, deduplicate by id (last wins) and sort a raw entry set."""
    by_id: dict[str, PendingEntry] = {}
    dropped = 0
    for raw in raw_entries:
        entry = normalize_entry(raw, max_position)
        if entry is None:
            dropped += 1
            continue
        by_id[entry.id] = entry

    if dropped:
        logger.debug("Dropped %d malformed reconciliation entries", dropped)
    return sort_entries(by_id.values())


def sort_entries(entries: Iterable[PendingEntry]) -> tuple[PendingEntry, ...]:
    """Order entries by ``(start, id)`` for deterministic rendering."""
    return tuple(sorted(entries, key=lambda e: (e.start, e.id)))


def normalize_keep_both_separator(separator: str | None) -> str:
    """Fall back to the default divider for a missing or empty separator."""
    if not separator:
        return DEFAULT_KEEP_BOTH_SEPARATOR
    return separator


def build_replacement(
    entry: PendingEntry,
    choice: ReconciliationChoice | str,
    keep_both_separator: str = DEFAULT_KEEP_BOTH_SEPARATOR,
) -> str:
    """Compute the text that replaces the entry's anchor range.

    Keep-both joins the non-empty bodies with the separator, A first.

    Raises:
        ValueError: If ``choice`` is not a known reconciliation choice.
    """
    choice = ReconciliationChoice(choice)
    if choice is ReconciliationChoice.KEEP_A:
        return entry.version_a.content
    if choice is ReconciliationChoice.KEEP_B:
        return entry.version_b.content

    segments = [
        content
        for content in (entry.version_a.content, entry.version_b.content)
        if content
    ]
    return keep_both_separator.join(segments)
