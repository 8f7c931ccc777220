"""Shared pytest fixtures for reconciler tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from reconciler.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Keep cached settings and nested config env vars out of each test."""
    for key in list(os.environ):
        if key.startswith(("RECONCILIATION__", "APP__")):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
