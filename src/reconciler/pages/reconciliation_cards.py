"""Reconciliation cards for pending section conflicts.

Renders one card per pending entry, positioned after the entry's range,
with both versions and the Keep A / Keep B / Keep Both actions. Cards
are rebuilt whenever the surface commits a new state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nicegui import ui

if TYPE_CHECKING:
    from collections.abc import Callable

    from reconciler.surface.entries import ReconciliationChoice
    from reconciler.surface.overlays import ReconciliationOverlay
    from reconciler.surface.state import ReconciliationSurface, SurfaceState

logger = logging.getLogger(__name__)

_VERSION_COLORS = {"A": "#1976d2", "B": "#c2185b"}


def make_resolve_handler(
    surface: ReconciliationSurface,
    entry_id: str,
    choice: ReconciliationChoice,
    origin_client_id: str | None = None,
) -> Callable[[], None]:
    """Build a click handler that resolves ``entry_id`` with ``choice``.

    A handler for an entry that has already been resolved elsewhere is a
    no-op.
    """

    def handle() -> None:
        resolution = surface.resolve(entry_id, choice, origin_client_id)
        if resolution is None:
            logger.debug("Entry %s already resolved", entry_id)

    return handle


def card_attributes(overlay: ReconciliationOverlay) -> dict[str, str]:
    """Data attributes identifying a card, set verbatim on the element."""
    return {
        "data-testid": "reconciliation-card",
        "data-entry-id": overlay.entry_id,
        "data-position": str(overlay.position),
    }


def _build_card(
    surface: ReconciliationSurface,
    overlay: ReconciliationOverlay,
    origin_client_id: str | None,
) -> ui.card:
    card = ui.card().classes("w-full")
    card._props.update(card_attributes(overlay))
    with card:
        ui.label(f"Section {overlay.section_id}").classes("text-xs text-gray-500")
        for index, block in enumerate(overlay.versions):
            if index:
                ui.separator()
            color = _VERSION_COLORS.get(block.slot, "#666")
            ui.label(block.header).classes("text-sm font-bold").style(
                f"color: {color};"
            )
            ui.label(block.body).classes("font-mono text-sm").style(
                "white-space: pre-wrap;"
            )
        with ui.row().classes("gap-2"):
            for action in overlay.actions:
                ui.button(
                    action.label,
                    on_click=make_resolve_handler(
                        surface, overlay.entry_id, action.choice, origin_client_id
                    ),
                ).props(f'flat dense data-choice="{action.choice.value}"')
    return card


def render_reconciliation_cards(
    surface: ReconciliationSurface, origin_client_id: str | None = None
) -> ui.column:
    """Render live reconciliation cards for ``surface``.

    Args:
        surface: The surface whose pending entries are shown.
        origin_client_id: Attribution for resolutions made from these cards.

    Returns:
        The container holding the cards.
    """
    container = ui.column().classes("w-full gap-2")

    def refresh(state: SurfaceState | None = None) -> None:
        overlays = state.overlays if state is not None else surface.overlays
        container.clear()
        with container:
            for overlay in overlays:
                _build_card(surface, overlay, origin_client_id)
        logger.debug("Rendered %d reconciliation cards", len(overlays))

    unsubscribe = surface.subscribe(refresh)
    ui.context.client.on_disconnect(unsubscribe)
    refresh()
    return container
