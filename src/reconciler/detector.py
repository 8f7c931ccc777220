"""Multi-author collision detection for document sections.

Consumes a stream of per-section edit events and decides, edit by edit,
whether a section has just crossed into "several authors rewrote most of
it within a short window". Such sections have likely been merged
byte-for-byte by the CRDT while the authors' intents collided, so the
host should offer the user an explicit reconciliation.

Detection is edge-triggered: a trigger is emitted only on the edit that
moves a section's window from below the threshold to above it. Edits that
keep the window above the threshold stay silent until it cools down again.

History is kept per section and pruned to the detection window, so memory
stays bounded by the edit rate rather than document age. Events may arrive
out of timestamp order (network jitter between replicas); history is
re-sorted on every insert.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reconciler.config import DEFAULT_THRESHOLD_RATIO, DEFAULT_WINDOW_MS

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reconciler.config import ReconciliationConfig

logger = logging.getLogger(__name__)


class ReconciliationInputError(ValueError):
    """An edit event or detector option failed validation."""


@dataclass(frozen=True)
class SectionEditEvent:
    """One observed mutation of a section, as reported by the editing layer."""

    section_id: str
    author_id: str
    timestamp_ms: float
    changed_chars: int
    section_length: int


@dataclass(frozen=True)
class SectionEditHistoryEntry:
    """Normalized copy of an edit event retained in a section's history."""

    author_id: str
    timestamp_ms: float
    changed_chars: int
    section_length: int


@dataclass(frozen=True)
class ReconciliationWindowStats:
    """Aggregate view of a section's edits inside one detection window.

    Attributes:
        section_id: Section the stats describe.
        edit_count: Number of edits in the window.
        distinct_author_count: Number of different authors in the window.
        total_changed_chars: Sum of characters touched by those edits.
        section_length: Largest section length observed in the window.
        change_ratio: ``total_changed_chars / section_length`` (0 when the
            section is empty).
        oldest_edit_timestamp_ms: Earliest edit in the window, if any.
        newest_edit_timestamp_ms: Latest edit in the window, if any.
    """

    section_id: str
    edit_count: int
    distinct_author_count: int
    total_changed_chars: int
    section_length: int
    change_ratio: float
    oldest_edit_timestamp_ms: float | None
    newest_edit_timestamp_ms: float | None


@dataclass(frozen=True)
class ReconciliationTrigger:
    """Emitted once when a section crosses the collision threshold."""

    section_id: str
    triggered_at_ms: float
    stats: ReconciliationWindowStats


def should_trigger_reconciliation(
    stats: ReconciliationWindowStats,
    threshold_ratio: float = DEFAULT_THRESHOLD_RATIO,
) -> bool:
    """Return True when the window looks like a multi-author collision.

    The ratio comparison is strict: a window exactly at the threshold does
    not qualify.
    """
    return (
        stats.section_length > 0
        and stats.distinct_author_count >= 2
        and stats.change_ratio > threshold_ratio
    )


class ReconciliationDetector:
    """Edge-triggered collision detector keyed by section id.

    Attributes:
        window_ms: Width of the sliding detection window in milliseconds.
        threshold_ratio: Change ratio that must be exceeded to trigger.
    """

    def __init__(
        self,
        window_ms: float | None = None,
        threshold_ratio: float | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            window_ms: Detection window; must be positive. Fractional values
                are truncated. Defaults to 30 seconds.
            threshold_ratio: Change ratio threshold; must be non-negative.
                Defaults to 0.5.

        Raises:
            ReconciliationInputError: If either option is out of range.
        """
        self.window_ms = _normalize_window_ms(window_ms)
        self.threshold_ratio = _normalize_threshold_ratio(threshold_ratio)
        self._entries_by_section: dict[str, list[SectionEditHistoryEntry]] = {}

    @classmethod
    def from_config(cls, config: ReconciliationConfig) -> ReconciliationDetector:
        """Build a detector from the ``reconciliation`` settings block."""
        return cls(window_ms=config.window_ms, threshold_ratio=config.threshold_ratio)

    def record_edit(self, edit: SectionEditEvent) -> ReconciliationTrigger | None:
        """Record one edit and report whether it crossed the threshold.

        Args:
            edit: The edit event to record.

        Returns:
            A trigger carrying the post-edit window stats if this edit moved
            the section from not-colliding to colliding, otherwise None.

        Raises:
            ReconciliationInputError: If the event has an empty id or a
                non-finite numeric field.
        """
        section_id = _normalize_non_empty(edit.section_id, "section_id")
        normalized = SectionEditHistoryEntry(
            author_id=_normalize_non_empty(edit.author_id, "author_id"),
            timestamp_ms=_normalize_timestamp(edit.timestamp_ms),
            changed_chars=_normalize_count(edit.changed_chars, "changed_chars"),
            section_length=_normalize_count(edit.section_length, "section_length"),
        )

        existing = self._entries_by_section.get(section_id, [])
        merged = sorted([*existing, normalized], key=lambda e: e.timestamp_ms)

        # Retention follows the newest edit seen, which may not be this one.
        min_kept_ms = merged[-1].timestamp_ms - self.window_ms
        persisted = [e for e in merged if e.timestamp_ms >= min_kept_ms]
        if persisted:
            self._entries_by_section[section_id] = persisted
        else:
            self._entries_by_section.pop(section_id, None)

        eval_start_ms = normalized.timestamp_ms - self.window_ms
        relevant_after = [
            e
            for e in persisted
            if eval_start_ms <= e.timestamp_ms <= normalized.timestamp_ms
        ]
        relevant_before = [e for e in relevant_after if e is not normalized]

        before = _build_stats(section_id, relevant_before)
        after = _build_stats(section_id, relevant_after)
        crossed = not should_trigger_reconciliation(
            before, self.threshold_ratio
        ) and should_trigger_reconciliation(after, self.threshold_ratio)
        if not crossed:
            return None

        logger.debug(
            "Section %s crossed reconciliation threshold: ratio=%.3f authors=%d",
            section_id,
            after.change_ratio,
            after.distinct_author_count,
        )
        return ReconciliationTrigger(
            section_id=section_id,
            triggered_at_ms=normalized.timestamp_ms,
            stats=after,
        )

    def get_section_history(
        self, section_id: str, now_ms: float | None = None
    ) -> list[SectionEditHistoryEntry]:
        """Return the section's edits still inside the window ending at ``now_ms``.

        Entries older than the window are pruned from the detector as a side
        effect. ``now_ms`` defaults to the current wall-clock time.
        """
        key = _normalize_non_empty(section_id, "section_id")
        return list(self._prune_section(key, _resolve_now(now_ms)))

    def get_section_stats(
        self, section_id: str, now_ms: float | None = None
    ) -> ReconciliationWindowStats:
        """Return window stats for the section as of ``now_ms``."""
        key = _normalize_non_empty(section_id, "section_id")
        return _build_stats(key, self._prune_section(key, _resolve_now(now_ms)))

    def clear_section(self, section_id: str) -> None:
        """Drop all history for one section."""
        key = _normalize_non_empty(section_id, "section_id")
        self._entries_by_section.pop(key, None)

    def clear(self) -> None:
        """Drop all history for every section."""
        self._entries_by_section.clear()

    def tracked_sections(self) -> list[str]:
        """List section ids that currently hold history."""
        return list(self._entries_by_section)

    def _prune_section(
        self, section_id: str, now_ms: float
    ) -> list[SectionEditHistoryEntry]:
        entries = self._entries_by_section.get(section_id)
        if not entries:
            return []

        min_kept_ms = now_ms - self.window_ms
        pruned = [e for e in entries if e.timestamp_ms >= min_kept_ms]
        if not pruned:
            del self._entries_by_section[section_id]
            return []

        self._entries_by_section[section_id] = pruned
        return pruned


def _build_stats(
    section_id: str, entries: Iterable[SectionEditHistoryEntry]
) -> ReconciliationWindowStats:
    entries = list(entries)
    if not entries:
        return ReconciliationWindowStats(
            section_id=section_id,
            edit_count=0,
            distinct_author_count=0,
            total_changed_chars=0,
            section_length=0,
            change_ratio=0.0,
            oldest_edit_timestamp_ms=None,
            newest_edit_timestamp_ms=None,
        )

    total_changed = sum(e.changed_chars for e in entries)
    section_length = max(e.section_length for e in entries)
    return ReconciliationWindowStats(
        section_id=section_id,
        edit_count=len(entries),
        distinct_author_count=len({e.author_id for e in entries}),
        total_changed_chars=total_changed,
        section_length=section_length,
        change_ratio=total_changed / section_length if section_length > 0 else 0.0,
        oldest_edit_timestamp_ms=min(e.timestamp_ms for e in entries),
        newest_edit_timestamp_ms=max(e.timestamp_ms for e in entries),
    )


def _resolve_now(now_ms: float | None) -> float:
    if now_ms is None:
        return time.time() * 1000
    return _normalize_timestamp(now_ms)


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _normalize_non_empty(value: object, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        msg = f"{field} must not be empty"
        raise ReconciliationInputError(msg)
    return value.strip()


def _normalize_timestamp(value: object) -> float:
    if not _is_number(value) or not math.isfinite(value):  # type: ignore[arg-type]
        msg = "timestamp_ms must be a finite number"
        raise ReconciliationInputError(msg)
    return value  # type: ignore[return-value]


def _normalize_count(value: object, field: str) -> int:
    if not _is_number(value) or not math.isfinite(value):  # type: ignore[arg-type]
        msg = f"{field} must be a finite number"
        raise ReconciliationInputError(msg)
    return max(0, math.floor(value))  # type: ignore[call-overload]


def _normalize_window_ms(value: float | None) -> int:
    if value is None:
        return DEFAULT_WINDOW_MS
    if not _is_number(value) or not math.isfinite(value) or value <= 0:
        msg = "window_ms must be a positive number"
        raise ReconciliationInputError(msg)
    return math.floor(value)


def _normalize_threshold_ratio(value: float | None) -> float:
    if value is None:
        return DEFAULT_THRESHOLD_RATIO
    if not _is_number(value) or not math.isfinite(value) or value < 0:
        msg = "threshold_ratio must be a non-negative number"
        raise ReconciliationInputError(msg)
    return value
