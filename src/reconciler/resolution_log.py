"""JSONL log of applied reconciliation resolutions."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

from reconciler.config import get_settings

if TYPE_CHECKING:
    from pathlib import Path

    from reconciler.surface.entries import ReconciliationResolution


class ResolutionLog:
    """Writes one JSON line per resolution; usable as ``on_resolve``."""

    def __init__(self, output: TextIO) -> None:
        """Initialize log with output stream.

        Args:
            output: A text stream to write JSONL lines to.
        """
        self._output = output

    def __call__(self, resolution: ReconciliationResolution) -> None:
        self.write(resolution)

    def write(self, resolution: ReconciliationResolution) -> None:
        """Write a single resolution as a JSONL line.

        Args:
            resolution: The resolution report to record.
        """
        record = resolution.to_dict()
        record["resolvedAt"] = datetime.now(UTC).isoformat()
        self._output.write(json.dumps(record) + "\n")
        self._output.flush()


def open_resolution_log(
    path: Path | None = None,
) -> tuple[ResolutionLog, TextIO] | None:
    """Open a resolution log for appending, creating parent directories.

    Args:
        path: Log file. Defaults to ``app.resolution_log`` from settings.

    Returns:
        The log and the underlying stream (the caller closes the stream),
        or None when no path is given or configured.
    """
    if path is None:
        path = get_settings().app.resolution_log
    if path is None:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    stream = path.open("a", encoding="utf-8")
    return ResolutionLog(stream), stream
