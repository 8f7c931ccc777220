"""CRDT-backed host document and section edit feed."""

from reconciler.crdt.document import CollaborativeDocument
from reconciler.crdt.edit_feed import SectionEditFeed

__all__ = ["CollaborativeDocument", "SectionEditFeed"]
