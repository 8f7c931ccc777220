"""Host document interface used by the reconciliation surface.

The surface never edits text itself: it asks the host document to replace
a range and listens for every committed change so it can remap anchors.
``CollaborativeDocument`` in ``reconciler.crdt`` implements this on top of
pycrdt; ``TextDocument`` is a plain in-memory implementation for hosts that
keep their own text buffer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from reconciler.surface.mapping import ChangeSet

if TYPE_CHECKING:
    from collections.abc import Callable

type ChangeListener = Callable[[ChangeSet, str | None], None]


class HostDocument(Protocol):
    """Minimal document surface the reconciliation core depends on."""

    def __len__(self) -> int:
        """Current document length in characters."""
        ...

    def replace_range(
        self, start: int, end: int, text: str, origin_client_id: str | None = None
    ) -> None:
        """Replace ``[start, end)`` with ``text`` as one atomic change."""
        ...

    def observe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        ...


class TextDocument:
    """In-memory text buffer that reports changes like a shared document."""

    def __init__(self, content: str = "") -> None:
        self._content = content
        self._listeners: list[ChangeListener] = []

    def __len__(self) -> int:
        return len(self._content)

    def get_content(self) -> str:
        """Get the current text content."""
        return self._content

    def replace_range(
        self, start: int, end: int, text: str, origin_client_id: str | None = None
    ) -> None:
        """Replace ``[start, end)`` with ``text`` and notify listeners once."""
        start = max(0, min(start, len(self._content)))
        end = max(start, min(end, len(self._content)))
        changes = ChangeSet.replace(start, end, text)
        if not changes:
            return

        self._content = self._content[:start] + text + self._content[end:]
        self._emit(changes, origin_client_id)

    def insert_at(
        self, position: int, content: str, origin_client_id: str | None = None
    ) -> None:
        """Insert text at a specific position."""
        self.replace_range(position, position, content, origin_client_id)

    def delete_range(
        self, start: int, end: int, origin_client_id: str | None = None
    ) -> None:
        """Delete text in ``[start, end)``."""
        self.replace_range(start, end, "", origin_client_id)

    def observe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, changes: ChangeSet, origin: str | None) -> None:
        for listener in list(self._listeners):
            listener(changes, origin)
