"""Position mapping through document edits.

A pending reconciliation is anchored to a ``[start, end)`` span of the
live document. While it waits for a decision, other authors keep editing,
so the anchor has to be carried through every change. This module is the
framework-agnostic primitive for that: an edit is a list of replace
operations, and ``map_position`` moves one offset through one operation
with an explicit bias deciding which side of an insertion it sticks to.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class Bias(IntEnum):
    """Which side of an insertion at the same offset a position stays on."""

    BACKWARD = -1
    FORWARD = 1


@dataclass(frozen=True)
class EditOp:
    """Replace ``deleted`` characters at ``start`` with ``inserted`` new ones.

    Offsets are expressed in the document as it stands immediately before
    this operation is applied.
    """

    start: int
    deleted: int = 0
    inserted: int = 0

    @property
    def end(self) -> int:
        """Exclusive end of the replaced span in pre-operation coordinates."""
        return self.start + self.deleted


def map_position(pos: int, bias: Bias, op: EditOp) -> int:
    """Map an offset through a single edit operation.

    Positions before the operation are untouched and positions after it
    shift by the net length change. A position inside the replaced span
    collapses to the start of the replacement, except that the end of the
    span maps to the end of the replacement. For a pure insertion exactly
    at ``pos``, ``Bias.FORWARD`` moves past the inserted text and
    ``Bias.BACKWARD`` stays before it.
    """
    if pos < op.start:
        return pos
    if op.end > pos or (op.end == pos and op.deleted == 0 and bias < 0):
        if pos == op.start or bias < 0:
            return op.start
        return op.start + op.inserted
    return pos + op.inserted - op.deleted


class ChangeSet:
    """An ordered sequence of edit operations forming one document mutation.

    Each operation is expressed in the coordinates left by the previous
    one, so mapping simply walks them in order.
    """

    __slots__ = ("ops",)

    def __init__(self, ops: Iterable[EditOp] = ()) -> None:
        self.ops: tuple[EditOp, ...] = tuple(
            op for op in ops if op.deleted or op.inserted
        )

    def __bool__(self) -> bool:
        return bool(self.ops)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ChangeSet) and self.ops == other.ops

    def __hash__(self) -> int:
        return hash(self.ops)

    def __repr__(self) -> str:
        return f"ChangeSet({list(self.ops)!r})"

    @classmethod
    def replace(cls, start: int, end: int, text: str) -> ChangeSet:
        """Build the change for replacing ``[start, end)`` with ``text``."""
        return cls([EditOp(start, max(0, end - start), len(text))])

    @classmethod
    def insert(cls, pos: int, text: str) -> ChangeSet:
        """Build the change for inserting ``text`` at ``pos``."""
        return cls([EditOp(pos, 0, len(text))])

    @classmethod
    def delete(cls, start: int, end: int) -> ChangeSet:
        """Build the change for deleting ``[start, end)``."""
        return cls([EditOp(start, max(0, end - start), 0)])

    @classmethod
    def from_delta(cls, delta: Sequence[dict[str, Any]]) -> ChangeSet:
        """Convert a Yjs-style text delta into a change set.

        Deltas are ``{"retain": n}``, ``{"insert": str}`` and
        ``{"delete": n}`` items, with counts in characters. Adjacent
        insert/delete items with no retain between them describe one
        replacement and are merged, so that positions inside the replaced
        span collapse the same way a direct replace would.
        """
        ops: list[EditOp] = []
        cursor = 0
        pending: EditOp | None = None

        for item in delta:
            if "retain" in item:
                if pending is not None:
                    ops.append(pending)
                    cursor = pending.start + pending.inserted
                    pending = None
                cursor += int(item["retain"])
                continue

            if pending is None:
                pending = EditOp(cursor)
            if "insert" in item:
                inserted = item["insert"]
                length = len(inserted) if isinstance(inserted, str) else 1
                pending = EditOp(
                    pending.start, pending.deleted, pending.inserted + length
                )
            elif "delete" in item:
                deleted = pending.deleted + int(item["delete"])
                pending = EditOp(pending.start, deleted, pending.inserted)

        if pending is not None:
            ops.append(pending)
        return cls(ops)

    def map_pos(self, pos: int, bias: Bias = Bias.BACKWARD) -> int:
        """Map an offset through every operation in order."""
        for op in self.ops:
            pos = map_position(pos, bias, op)
        return pos


def clamp_position(pos: object, max_position: int) -> int:
    """Clamp an offset into ``[0, max_position]``, truncating fractions.

    Non-numeric and non-finite input maps to 0.
    """
    if isinstance(pos, bool) or not isinstance(pos, int | float):
        return 0
    if not math.isfinite(pos):
        return 0
    rounded = math.floor(pos)
    if rounded < 0:
        return 0
    return min(rounded, max_position)
