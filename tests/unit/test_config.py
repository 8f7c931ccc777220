"""Tests for pydantic-settings configuration."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from reconciler.config import ReconciliationConfig, Settings, get_settings

if TYPE_CHECKING:
    from collections.abc import Callable


class TestReconciliationConfig:
    """ReconciliationConfig sub-model tests."""

    def test_defaults(self) -> None:
        """Defaults are a 30 second window, ratio 0.5 and a rule separator."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.reconciliation.window_ms == 30_000
        assert s.reconciliation.threshold_ratio == 0.5
        assert s.reconciliation.keep_both_separator == "\n\n---\n\n"

    def test_override_via_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """RECONCILIATION__* env vars override the defaults."""
        monkeypatch.setenv("RECONCILIATION__WINDOW_MS", "10000")
        monkeypatch.setenv("RECONCILIATION__THRESHOLD_RATIO", "0.25")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.reconciliation.window_ms == 10_000
        assert s.reconciliation.threshold_ratio == 0.25

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: ReconciliationConfig(window_ms=0),
            lambda: ReconciliationConfig(threshold_ratio=-0.1),
        ],
    )
    def test_out_of_range_values_rejected(
        self, factory: Callable[[], ReconciliationConfig]
    ) -> None:
        """Non-positive windows and negative thresholds fail validation."""
        with pytest.raises(ValidationError):
            factory()

    def test_empty_separator_uses_default(self) -> None:
        """An empty separator falls back to the horizontal rule."""
        cfg = ReconciliationConfig(keep_both_separator="")
        assert cfg.keep_both_separator == "\n\n---\n\n"


class TestAppConfig:
    """AppConfig sub-model tests."""

    def test_defaults(self) -> None:
        """Logs go to ./logs and no resolution log is written by default."""
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.log_dir == Path("logs")
        assert s.app.resolution_log is None

    def test_resolution_log_via_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """APP__RESOLUTION_LOG sets the resolution log path."""
        monkeypatch.setenv("APP__RESOLUTION_LOG", "/tmp/resolutions.jsonl")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.resolution_log == Path("/tmp/resolutions.jsonl")


class TestGetSettings:
    """get_settings caching tests."""

    def test_cached(self) -> None:
        """Repeated calls return the same instance until the cache is cleared."""
        first = get_settings()
        assert get_settings() is first

        get_settings.cache_clear()
        assert get_settings() is not first
