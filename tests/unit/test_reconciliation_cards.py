"""Tests for the NiceGUI reconciliation cards.

Note: Rendering requires a running NiceGUI client and is covered by
browser testing. These unit tests verify the module structure and the
click handlers, which do not touch the UI.
"""

from __future__ import annotations

import inspect

from reconciler.surface import ReconciliationChoice, ReconciliationSurface, TextDocument
from tests.helpers.factories import make_entry


class TestRenderReconciliationCards:
    """Tests for render_reconciliation_cards module structure."""

    def test_import_from_pages(self) -> None:
        """Function can be imported from the pages package."""
        from reconciler.pages import render_reconciliation_cards

        assert callable(render_reconciliation_cards)

    def test_accepts_surface_and_origin(self) -> None:
        """Signature takes the surface and an optional origin client id."""
        from reconciler.pages import render_reconciliation_cards

        sig = inspect.signature(render_reconciliation_cards)

        assert list(sig.parameters) == ["surface", "origin_client_id"]
        assert sig.parameters["origin_client_id"].default is None

    def test_is_synchronous(self) -> None:
        """Cards are built synchronously inside the caller's UI context."""
        from reconciler.pages import render_reconciliation_cards

        assert not inspect.iscoroutinefunction(render_reconciliation_cards)


class TestMakeResolveHandler:
    """Tests for the card button handlers."""

    def test_handler_resolves_entry(self) -> None:
        """Clicking applies the choice to the document."""
        from reconciler.pages import make_resolve_handler

        document = TextDocument("hello world")
        surface = ReconciliationSurface(document)
        surface.set_entries([make_entry("r1", start=0, end=5)])

        make_resolve_handler(surface, "r1", ReconciliationChoice.KEEP_B, "amy")()

        assert document.get_content() == "from bob world"
        assert surface.entries == ()

    def test_stale_handler_is_a_no_op(self) -> None:
        """A second click on an already resolved card changes nothing."""
        from reconciler.pages import make_resolve_handler

        document = TextDocument("hello world")
        surface = ReconciliationSurface(document)
        surface.set_entries([make_entry("r1", start=0, end=5)])
        handler = make_resolve_handler(surface, "r1", ReconciliationChoice.KEEP_A)

        handler()
        handler()

        assert document.get_content() == "from alice world"


class TestCardAttributes:
    """Tests for the data attributes placed on each card."""

    def test_entry_id_is_kept_verbatim(self) -> None:
        """Ids with quotes and spaces are not mangled."""
        from reconciler.pages.reconciliation_cards import card_attributes

        surface = ReconciliationSurface(TextDocument("hello world"))
        surface.set_entries([make_entry('r1" data-x="y z', start=0, end=5)])

        attributes = card_attributes(surface.overlays[0])

        assert attributes == {
            "data-testid": "reconciliation-card",
            "data-entry-id": 'r1" data-x="y z',
            "data-position": "5",
        }
