"""NiceGUI components for the reconciliation surface."""

from reconciler.pages.reconciliation_cards import (
    make_resolve_handler,
    render_reconciliation_cards,
)

__all__ = ["make_resolve_handler", "render_reconciliation_cards"]
