"""Shared document backed by a pycrdt Text.

This module provides the server-side document state used by the
reconciliation surface: a single collaborative text, origin tracking for
echo prevention and attribution, and change notifications expressed as
``ChangeSet``s so that pending anchors follow remote edits.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from pycrdt import Doc, Text, TextEvent, TransactionEvent

from reconciler.surface.mapping import ChangeSet

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from reconciler.surface.document import ChangeListener

logger = logging.getLogger(__name__)

# Async-safe storage for the origin client ID during updates.
# Using ContextVar ensures concurrent async operations don't interfere.
_origin_var: ContextVar[str | None] = ContextVar("document_origin", default=None)


def _text_index(content: str, position: int) -> int:
    """Convert a character offset into a pycrdt (UTF-8 byte) index."""
    return len(content[:position].encode("utf-8"))


def _advance(content: str, start: int, byte_count: int) -> int:
    """Return the character offset ``byte_count`` UTF-8 bytes past ``start``."""
    end = start
    consumed = 0
    while consumed < byte_count and end < len(content):
        consumed += len(content[end].encode("utf-8"))
        end += 1
    return end


def _char_delta(
    delta: Sequence[dict[str, Any]], before: str
) -> tuple[list[dict[str, Any]], str]:
    """Re-express a pycrdt text delta in characters.

    Retain and delete counts in a pycrdt delta are UTF-8 byte lengths of
    the text before the change.

    Returns:
        The delta counted in characters and the text after the change.
    """
    items: list[dict[str, Any]] = []
    parts: list[str] = []
    cursor = 0
    for item in delta:
        if "insert" in item:
            inserted = item["insert"]
            items.append({"insert": inserted})
            if isinstance(inserted, str):
                parts.append(inserted)
        elif "retain" in item:
            end = _advance(before, cursor, int(item["retain"]))
            items.append({"retain": end - cursor})
            parts.append(before[cursor:end])
            cursor = end
        elif "delete" in item:
            end = _advance(before, cursor, int(item["delete"]))
            items.append({"delete": end - cursor})
            cursor = end
    parts.append(before[cursor:])
    return items, "".join(parts)


class CollaborativeDocument:
    """Manages a shared pycrdt document with a single text root.

    Attributes:
        doc_id: Unique identifier for this document.
        doc: The pycrdt Doc instance.
    """

    def __init__(self, doc_id: str, content: str = "") -> None:
        """Initialize a new shared document.

        Args:
            doc_id: Unique identifier for this document.
            content: Initial text, inserted without an origin.
        """
        self.doc_id = doc_id
        self.doc = Doc()
        self.doc["content"] = Text()
        self._listeners: list[ChangeListener] = []
        self._broadcast_callback: Callable[[bytes, str | None], None] | None = None
        # Text as of the last observed event, used to decode byte-counted deltas
        self._content = ""

        self.doc.observe(self._on_update)
        self.text.observe(self._on_text_event)

        if content:
            self.insert_at(0, content)

    @property
    def text(self) -> Text:
        """Get the shared text object."""
        return self.doc["content"]

    def __len__(self) -> int:
        return len(self.get_content())

    def get_content(self) -> str:
        """Get the current text content as a string."""
        return str(self.text)

    def insert_at(
        self, position: int, content: str, origin_client_id: str | None = None
    ) -> None:
        """Insert text at a specific position.

        Args:
            position: Character index to insert at
            content: Text to insert
            origin_client_id: ID of the client making the change
        """
        token = _origin_var.set(origin_client_id)
        try:
            self.text.insert(_text_index(self.get_content(), position), content)
        finally:
            _origin_var.reset(token)

    def delete_range(
        self, start: int, end: int, origin_client_id: str | None = None
    ) -> None:
        """Delete text in a range.

        Args:
            start: Start index (inclusive)
            end: End index (exclusive)
            origin_client_id: ID of the client making the change
        """
        current = self.get_content()
        token = _origin_var.set(origin_client_id)
        try:
            del self.text[_text_index(current, start) : _text_index(current, end)]
        finally:
            _origin_var.reset(token)

    def replace_range(
        self, start: int, end: int, text: str, origin_client_id: str | None = None
    ) -> None:
        """Replace ``[start, end)`` with ``text`` in one CRDT transaction.

        Observers see a single change combining the deletion and insertion.

        Args:
            start: Start index (inclusive)
            end: End index (exclusive)
            text: Replacement text
            origin_client_id: ID of the client making the change
        """
        current = self.get_content()
        start = max(0, min(start, len(current)))
        end = max(start, min(end, len(current)))
        index = _text_index(current, start)
        token = _origin_var.set(origin_client_id)
        try:
            with self.doc.transaction(origin=origin_client_id):
                if end > start:
                    del self.text[index : _text_index(current, end)]
                if text:
                    self.text.insert(index, text)
        finally:
            _origin_var.reset(token)

    def get_full_state(self) -> bytes:
        """Get the full document state for syncing to new clients."""
        return self.doc.get_update()

    def apply_update(self, update: bytes, origin_client_id: str | None = None) -> None:
        """Apply an update from another replica.

        Args:
            update: Binary update from a client
            origin_client_id: ID of the client that sent the update
                (for echo prevention and edit attribution)
        """
        token = _origin_var.set(origin_client_id)
        try:
            self.doc.apply_update(update)
        finally:
            _origin_var.reset(token)
        logger.debug(
            "Applied %d-byte update to %s from %s",
            len(update),
            self.doc_id,
            origin_client_id,
        )

    def observe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener for ``(ChangeSet, origin_client_id)`` notifications.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_broadcast_callback(
        self, callback: Callable[[bytes, str | None], None] | None
    ) -> None:
        """Set the callback for broadcasting updates to clients.

        Args:
            callback: Function that takes (update_bytes, origin_client_id)
                     and broadcasts to all clients except the origin
        """
        self._broadcast_callback = callback

    def _on_update(self, event: TransactionEvent) -> None:
        """Handle document updates and broadcast to clients."""
        if self._broadcast_callback is not None:
            origin = _origin_var.get()
            self._broadcast_callback(event.update, origin)

    def _on_text_event(self, event: TextEvent) -> None:
        """Translate a text delta into a change set for listeners."""
        delta, self._content = _char_delta(event.delta, self._content)
        changes = ChangeSet.from_delta(delta)
        if not changes:
            return
        origin = _origin_var.get()
        for listener in list(self._listeners):
            listener(changes, origin)
