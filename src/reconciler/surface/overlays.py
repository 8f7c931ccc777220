"""Visual overlays derived from pending entries.

An overlay is the presentational description of one pending conflict:
two attributed version blocks and the three actions. Hosts render these
however they like; ``reconciler.pages.reconciliation_cards`` renders them
with NiceGUI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reconciler.surface.entries import ReconciliationChoice

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reconciler.surface.entries import NormalizedVersion, PendingEntry

ACTION_LABELS: dict[ReconciliationChoice, str] = {
    ReconciliationChoice.KEEP_A: "Keep A",
    ReconciliationChoice.KEEP_B: "Keep B",
    ReconciliationChoice.KEEP_BOTH: "Keep Both",
}


@dataclass(frozen=True)
class VersionBlock:
    """One attributed version inside an overlay."""

    slot: str
    header: str
    author_id: str
    body: str


@dataclass(frozen=True)
class OverlayAction:
    """A button that resolves the overlay's entry with ``choice``."""

    choice: ReconciliationChoice
    label: str


@dataclass(frozen=True)
class ReconciliationOverlay:
    """Block overlay placed after the end of an entry's anchor range."""

    entry_id: str
    section_id: str
    position: int
    versions: tuple[VersionBlock, VersionBlock]
    actions: tuple[OverlayAction, ...]


def _version_block(slot: str, version: NormalizedVersion) -> VersionBlock:
    return VersionBlock(
        slot=slot,
        header=f"Version {slot} by {version.author_name}",
        author_id=version.author_id,
        body=version.content,
    )


def build_overlay(entry: PendingEntry) -> ReconciliationOverlay:
    """Describe the overlay for one pending entry."""
    return ReconciliationOverlay(
        entry_id=entry.id,
        section_id=entry.section_id,
        position=entry.end,
        versions=(
            _version_block("A", entry.version_a),
            _version_block("B", entry.version_b),
        ),
        actions=tuple(
            OverlayAction(choice=choice, label=label)
            for choice, label in ACTION_LABELS.items()
        ),
    )


def build_overlays(
    entries: Iterable[PendingEntry],
) -> tuple[ReconciliationOverlay, ...]:
    """Describe overlays for every entry, preserving entry order."""
    return tuple(build_overlay(entry) for entry in entries)
