"""Tests for the JSONL resolution log."""

from __future__ import annotations

import json
from datetime import datetime
from io import StringIO
from typing import TYPE_CHECKING

from reconciler.resolution_log import ResolutionLog, open_resolution_log
from reconciler.surface import (
    ReconciliationChoice,
    ReconciliationResolution,
    ReconciliationSurface,
    TextDocument,
)
from tests.helpers.factories import make_entry

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


def _resolution() -> ReconciliationResolution:
    return ReconciliationResolution(
        id="r1",
        section_id="intro",
        choice=ReconciliationChoice.KEEP_A,
        replacement="from alice",
        start=0,
        end=5,
        triggered_at_ms=1000,
    )


class TestResolutionLog:
    """Tests for ResolutionLog output."""

    def test_writes_one_line_per_resolution(self) -> None:
        """Each resolution is one JSON object with a UTC timestamp."""
        output = StringIO()
        log = ResolutionLog(output)

        log(_resolution())
        log.write(_resolution())

        lines = output.getvalue().splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert record["id"] == "r1"
        assert record["choice"] == "keep-a"
        assert record["from"] == 0
        assert record["to"] == 5
        assert datetime.fromisoformat(record["resolvedAt"]).utcoffset() is not None

    def test_as_on_resolve_callback(self) -> None:
        """The log plugs straight into a surface."""
        output = StringIO()
        surface = ReconciliationSurface(
            TextDocument("hello world"), on_resolve=ResolutionLog(output)
        )
        surface.set_entries([make_entry("r1", start=0, end=5)])

        surface.resolve("r1", "keep-both")

        record = json.loads(output.getvalue())
        assert record["replacement"] == "from alice\n\n---\n\nfrom bob"
        assert record["sectionId"] == "intro"


class TestOpenResolutionLog:
    """Tests for opening a log file."""

    def test_creates_parent_directories_and_appends(self, tmp_path: Path) -> None:
        """Missing directories are created and existing content is kept."""
        path = tmp_path / "nested" / "resolutions.jsonl"
        for _ in range(2):
            opened = open_resolution_log(path)
            assert opened is not None
            log, stream = opened
            with stream:
                log(_resolution())

        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    def test_path_from_settings(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """APP__RESOLUTION_LOG is used when no path is given."""
        path = tmp_path / "configured.jsonl"
        monkeypatch.setenv("APP__RESOLUTION_LOG", str(path))

        opened = open_resolution_log()

        assert opened is not None
        opened[1].close()
        assert path.exists()

    def test_unconfigured_returns_none(self) -> None:
        """Without a path or a setting there is no log."""
        assert open_resolution_log() is None
