"""Reconciliation surface: pending conflicts anchored in a live document.

The surface holds the ordered set of pending entries and the overlays
derived from them. State moves forward only through transactions, each of
which may carry a document change and entry effects:

- ``SetEntries`` replaces the whole entry set (normalized against the
  current document);
- ``RemoveEntry`` drops one entry by id;
- a document change without ``SetEntries`` remaps every remaining anchor,
  ``start`` with forward bias and ``end`` with backward bias.

Listeners registered with ``subscribe`` are called once per committed
state change, never with an intermediate state.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from reconciler.surface.entries import (
    PendingEntry,
    ReconciliationChoice,
    ReconciliationResolution,
    build_replacement,
    normalize_entries,
    normalize_keep_both_separator,
    sort_entries,
)
from reconciler.surface.mapping import Bias, ChangeSet, clamp_position
from reconciler.surface.overlays import ReconciliationOverlay, build_overlays

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from reconciler.config import ReconciliationConfig
    from reconciler.surface.document import HostDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetEntries:
    """Replace the pending entry set with a freshly normalized one."""

    entries: tuple[Any, ...]


@dataclass(frozen=True)
class RemoveEntry:
    """Drop a pending entry by id."""

    entry_id: str


type Effect = SetEntries | RemoveEntry


@dataclass(frozen=True)
class Transaction:
    """A document change and the entry effects committed with it."""

    changes: ChangeSet = field(default_factory=ChangeSet)
    effects: tuple[Effect, ...] = ()


@dataclass(frozen=True)
class SurfaceState:
    """Committed surface state: entries plus their derived overlays."""

    entries: tuple[PendingEntry, ...] = ()
    overlays: tuple[ReconciliationOverlay, ...] = ()


def map_entries(
    entries: tuple[PendingEntry, ...], changes: ChangeSet, max_position: int
) -> tuple[PendingEntry, ...]:
    """Carry entry anchors through a document change.

    Returns the input tuple unchanged when no anchor moved.
    """
    if not entries or not changes:
        return entries

    moved = False
    mapped: list[PendingEntry] = []
    for entry in entries:
        start = clamp_position(
            changes.map_pos(entry.start, Bias.FORWARD), max_position
        )
        end = clamp_position(changes.map_pos(entry.end, Bias.BACKWARD), max_position)
        start, end = min(start, end), max(start, end)
        if start != entry.start or end != entry.end:
            moved = True
            entry = replace(entry, start=start, end=end)
        mapped.append(entry)

    return sort_entries(mapped) if moved else entries


class ReconciliationSurface:
    """Pending reconciliations bound to one host document.

    Attributes:
        keep_both_separator: Divider placed between A and B for keep-both.
    """

    def __init__(
        self,
        document: HostDocument,
        keep_both_separator: str | None = None,
        on_resolve: Callable[[ReconciliationResolution], None] | None = None,
    ) -> None:
        """Bind a surface to a document.

        Args:
            document: Host document the anchors live in.
            keep_both_separator: Divider for keep-both; an empty or missing
                value uses a horizontal-rule marker.
            on_resolve: Called with the report of every applied resolution.
        """
        self.keep_both_separator = normalize_keep_both_separator(keep_both_separator)
        self._document = document
        self._on_resolve = on_resolve
        self._state = SurfaceState()
        self._listeners: list[Callable[[SurfaceState], None]] = []
        self._batch_depth = 0
        self._dirty = False
        self._saw_document_change = False
        self._unobserve = document.observe(self._on_document_change)

    @classmethod
    def from_config(
        cls,
        document: HostDocument,
        config: ReconciliationConfig,
        on_resolve: Callable[[ReconciliationResolution], None] | None = None,
    ) -> ReconciliationSurface:
        """Build a surface using the ``reconciliation`` settings block."""
        return cls(
            document,
            keep_both_separator=config.keep_both_separator,
            on_resolve=on_resolve,
        )

    @property
    def state(self) -> SurfaceState:
        """The last committed state."""
        return self._state

    @property
    def entries(self) -> tuple[PendingEntry, ...]:
        """Pending entries in ``(start, id)`` order."""
        return self._state.entries

    @property
    def overlays(self) -> tuple[ReconciliationOverlay, ...]:
        """Overlays for the pending entries, in the same order."""
        return self._state.overlays

    def get_entry(self, entry_id: str) -> PendingEntry | None:
        """Look up a pending entry by id."""
        return next((e for e in self._state.entries if e.id == entry_id), None)

    def subscribe(
        self, listener: Callable[[SurfaceState], None]
    ) -> Callable[[], None]:
        """Call ``listener`` after every committed state change.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop tracking the document and drop all listeners."""
        self._unobserve()
        self._listeners.clear()

    # --- Transactions ---

    def dispatch(self, transaction: Transaction) -> SurfaceState:
        """Apply a transaction and commit the resulting state.

        The document change in ``transaction`` must already be applied to
        the host document.
        """
        current = self._state.entries
        entries = current
        replaced = False
        max_position = len(self._document)

        for effect in transaction.effects:
            if isinstance(effect, SetEntries):
                entries = normalize_entries(effect.entries, max_position)
                replaced = True
            elif isinstance(effect, RemoveEntry):
                entries = tuple(e for e in entries if e.id != effect.entry_id)

        if not replaced:
            entries = map_entries(entries, transaction.changes, max_position)

        if entries == current:
            return self._state

        self._commit(SurfaceState(entries=entries, overlays=build_overlays(entries)))
        return self._state

    def set_entries(self, entries: Iterable[Any]) -> tuple[PendingEntry, ...]:
        """Replace the pending set; malformed entries are silently dropped."""
        self.dispatch(Transaction(effects=(SetEntries(tuple(entries)),)))
        return self._state.entries

    def remove_entry(self, entry_id: str) -> bool:
        """Drop a pending entry. Returns False if it was already gone."""
        if self.get_entry(entry_id) is None:
            return False
        self.dispatch(Transaction(effects=(RemoveEntry(entry_id),)))
        return True

    def resolve(
        self,
        entry_id: str,
        choice: ReconciliationChoice | str,
        origin_client_id: str | None = None,
    ) -> ReconciliationResolution | None:
        """Apply the user's choice to a pending entry.

        Replaces the entry's current anchor range with the chosen text and
        removes the entry in a single commit, then reports the resolution
        to ``on_resolve``.

        Args:
            entry_id: Entry to resolve.
            choice: ``keep-a``, ``keep-b`` or ``keep-both``.
            origin_client_id: Author of the edit, forwarded to the document.

        Returns:
            The resolution report, or None if the entry no longer exists.

        Raises:
            ValueError: If ``choice`` is not a reconciliation choice.
        """
        entry = self.get_entry(entry_id)
        if entry is None:
            return None

        replacement = build_replacement(entry, choice, self.keep_both_separator)
        before = self._state

        with self._batched():
            self.dispatch(Transaction(effects=(RemoveEntry(entry.id),)))
            self._saw_document_change = False
            try:
                self._document.replace_range(
                    entry.start, entry.end, replacement, origin_client_id
                )
            except Exception:
                self._state = before
                self._dirty = False
                raise
            if not self._saw_document_change:
                self.dispatch(
                    Transaction(
                        changes=ChangeSet.replace(entry.start, entry.end, replacement)
                    )
                )

        resolution = ReconciliationResolution(
            id=entry.id,
            section_id=entry.section_id,
            choice=ReconciliationChoice(choice),
            replacement=replacement,
            start=entry.start,
            end=entry.end,
            triggered_at_ms=entry.triggered_at_ms,
        )
        logger.info(
            "Resolved reconciliation %s in section %s with %s",
            entry.id,
            entry.section_id,
            resolution.choice,
        )
        if self._on_resolve is not None:
            self._on_resolve(resolution)
        return resolution

    # --- Internals ---

    def _on_document_change(self, changes: ChangeSet, origin: str | None) -> None:
        self._saw_document_change = True
        self.dispatch(Transaction(changes=changes))

    def _commit(self, state: SurfaceState) -> None:
        self._state = state
        if self._batch_depth:
            self._dirty = True
            return
        self._notify()

    @contextmanager
    def _batched(self) -> Iterator[None]:
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
        if self._batch_depth == 0 and self._dirty:
            self._dirty = False
            self._notify()

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            listener(state)
