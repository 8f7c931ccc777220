"""Section edit events derived from collaborative document changes.

Bridges a ``CollaborativeDocument`` to the collision detector: every
attributed change is split per markdown section and recorded as one
``SectionEditEvent`` per touched section.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from reconciler.detector import SectionEditEvent
from reconciler.sections import parse_sections, section_at
from reconciler.surface.mapping import Bias, ChangeSet

if TYPE_CHECKING:
    from collections.abc import Callable

    from reconciler.crdt.document import CollaborativeDocument
    from reconciler.detector import ReconciliationDetector, ReconciliationTrigger

logger = logging.getLogger(__name__)


def changed_chars_by_offset(changes: ChangeSet) -> list[tuple[int, int]]:
    """Locate each operation of a change in the final document.

    Returns:
        ``(offset, changed_chars)`` pairs, where ``offset`` is the start of
        the operation mapped through the operations that follow it and
        ``changed_chars`` counts both inserted and deleted characters.
    """
    located: list[tuple[int, int]] = []
    ops = changes.ops
    for index, op in enumerate(ops):
        offset = ChangeSet(ops[index + 1 :]).map_pos(op.start, Bias.BACKWARD)
        located.append((offset, op.inserted + op.deleted))
    return located


class SectionEditFeed:
    """Feeds per-section edit events from a document into a detector."""

    def __init__(
        self,
        document: CollaborativeDocument,
        detector: ReconciliationDetector,
        clock: Callable[[], float] = time.time,
        on_trigger: Callable[[ReconciliationTrigger], None] | None = None,
    ) -> None:
        """Start observing ``document``.

        Args:
            document: The shared document to watch.
            detector: Detector receiving the derived events.
            clock: Returns the current time in seconds.
            on_trigger: Called with every trigger the detector emits.
        """
        self._document = document
        self._detector = detector
        self._clock = clock
        self._on_trigger = on_trigger
        self._unobserve = document.observe(self._on_change)

    def close(self) -> None:
        """Stop observing the document."""
        self._unobserve()

    def events_for_change(
        self, changes: ChangeSet, author_id: str, timestamp_ms: float
    ) -> list[SectionEditEvent]:
        """Split a committed change into one event per touched section."""
        sections = parse_sections(self._document.get_content())
        if not sections:
            return []

        touched: dict[str, int] = {}
        lengths: dict[str, int] = {}
        for offset, changed in changed_chars_by_offset(changes):
            section = section_at(sections, offset)
            if section is None:
                continue
            touched[section.id] = touched.get(section.id, 0) + changed
            lengths[section.id] = section.length

        return [
            SectionEditEvent(
                section_id=section_id,
                author_id=author_id,
                timestamp_ms=timestamp_ms,
                changed_chars=changed,
                section_length=lengths[section_id],
            )
            for section_id, changed in touched.items()
        ]

    def _on_change(self, changes: ChangeSet, origin: str | None) -> None:
        if not origin:
            return

        timestamp_ms = self._clock() * 1000
        for event in self.events_for_change(changes, origin, timestamp_ms):
            trigger = self._detector.record_edit(event)
            if trigger is None:
                continue
            logger.info(
                "Reconciliation triggered for %s in %s",
                trigger.section_id,
                self._document.doc_id,
            )
            if self._on_trigger is not None:
                self._on_trigger(trigger)
