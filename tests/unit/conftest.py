"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from reconciler.surface import ReconciliationSurface, TextDocument
from tests.helpers.factories import SAMPLE_TEXT


@pytest.fixture
def document() -> TextDocument:
    """In-memory document holding SAMPLE_TEXT."""
    return TextDocument(SAMPLE_TEXT)


@pytest.fixture
def surface(document: TextDocument) -> ReconciliationSurface:
    """Surface bound to the sample document."""
    return ReconciliationSurface(document)
