"""Inline reconciliation surface for pending multi-author conflicts."""

from reconciler.surface.document import HostDocument, TextDocument
from reconciler.surface.entries import (
    PendingEntry,
    ReconciliationChoice,
    ReconciliationEntry,
    ReconciliationResolution,
    ReconciliationVersion,
)
from reconciler.surface.mapping import Bias, ChangeSet, EditOp, map_position
from reconciler.surface.overlays import ReconciliationOverlay
from reconciler.surface.state import (
    ReconciliationSurface,
    RemoveEntry,
    SetEntries,
    SurfaceState,
    Transaction,
)

__all__ = [
    "Bias",
    "ChangeSet",
    "EditOp",
    "HostDocument",
    "PendingEntry",
    "ReconciliationChoice",
    "ReconciliationEntry",
    "ReconciliationOverlay",
    "ReconciliationResolution",
    "ReconciliationSurface",
    "ReconciliationVersion",
    "RemoveEntry",
    "SetEntries",
    "SurfaceState",
    "TextDocument",
    "Transaction",
    "map_position",
]
