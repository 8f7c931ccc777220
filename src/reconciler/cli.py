"""Replay recorded section edit events through the collision detector.

Reads one ``SectionEditEvent`` per JSONL line (camelCase or snake_case
keys) and reports every reconciliation trigger.

Usage:
    uv run reconciler-replay events.jsonl
    uv run reconciler-replay events.jsonl --window-ms 10000 --threshold 0.4
    uv run reconciler-replay events.jsonl --json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reconciler import setup_logging
from reconciler.config import get_settings
from reconciler.detector import (
    ReconciliationDetector,
    ReconciliationInputError,
    SectionEditEvent,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from reconciler.detector import ReconciliationTrigger

console = Console()

_EVENT_FIELDS: dict[str, tuple[str, str]] = {
    "section_id": ("sectionId", "section_id"),
    "author_id": ("authorId", "author_id"),
    "timestamp_ms": ("timestampMs", "timestamp_ms"),
    "changed_chars": ("changedChars", "changed_chars"),
    "section_length": ("sectionLength", "section_length"),
}


class ReplayInputError(Exception):
    """A JSONL line could not be turned into an edit event."""

    def __init__(self, line_number: int, reason: str) -> None:
        self.line_number = line_number
        super().__init__(f"line {line_number}: {reason}")


def _event_from_record(record: dict[str, Any]) -> SectionEditEvent:
    values: dict[str, Any] = {}
    for name, aliases in _EVENT_FIELDS.items():
        key = next((alias for alias in aliases if alias in record), None)
        if key is None:
            msg = f"missing field {aliases[0]}"
            raise ValueError(msg)
        values[name] = record[key]
    return SectionEditEvent(**values)


def read_events(lines: Iterable[str]) -> Iterator[tuple[int, SectionEditEvent]]:
    """Parse JSONL lines into ``(line_number, event)`` pairs.

    Blank lines are skipped.

    Raises:
        ReplayInputError: On invalid JSON or a missing field.
    """
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
            if not isinstance(record, dict):
                msg = "expected a JSON object"
                raise TypeError(msg)
            event = _event_from_record(record)
        except (ValueError, TypeError) as exc:
            raise ReplayInputError(line_number, str(exc)) from exc
        yield line_number, event


def replay_events(
    events: Iterable[tuple[int, SectionEditEvent]],
    detector: ReconciliationDetector,
) -> list[ReconciliationTrigger]:
    """Feed numbered events through ``detector`` in order and collect triggers.

    Raises:
        ReplayInputError: If the detector rejects an event.
    """
    triggers: list[ReconciliationTrigger] = []
    for line_number, event in events:
        try:
            trigger = detector.record_edit(event)
        except ReconciliationInputError as exc:
            raise ReplayInputError(line_number, str(exc)) from exc
        if trigger is not None:
            triggers.append(trigger)
    return triggers


def trigger_to_dict(trigger: ReconciliationTrigger) -> dict[str, Any]:
    """Serialise a trigger using the wire field names."""
    stats = trigger.stats
    return {
        "sectionId": trigger.section_id,
        "triggeredAtMs": trigger.triggered_at_ms,
        "stats": {
            "editCount": stats.edit_count,
            "distinctAuthorCount": stats.distinct_author_count,
            "totalChangedChars": stats.total_changed_chars,
            "sectionLength": stats.section_length,
            "changeRatio": stats.change_ratio,
            "oldestEditTimestampMs": stats.oldest_edit_timestamp_ms,
            "newestEditTimestampMs": stats.newest_edit_timestamp_ms,
        },
    }


def _render_table(triggers: list[ReconciliationTrigger]) -> Table:
    table = Table(title="Reconciliation triggers")
    table.add_column("Section", style="cyan")
    table.add_column("Triggered at (ms)", justify="right")
    table.add_column("Edits", justify="right")
    table.add_column("Authors", justify="right")
    table.add_column("Change ratio", justify="right")
    for trigger in triggers:
        table.add_row(
            trigger.section_id,
            f"{trigger.triggered_at_ms:g}",
            str(trigger.stats.edit_count),
            str(trigger.stats.distinct_author_count),
            f"{trigger.stats.change_ratio:.2f}",
        )
    return table


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reconciler-replay",
        description="Replay edit events and report reconciliation triggers.",
    )
    parser.add_argument("events", type=Path, help="JSONL file of edit events")
    parser.add_argument("--window-ms", type=float, default=None)
    parser.add_argument("--threshold", type=float, default=None)
    parser.add_argument(
        "--json", action="store_true", help="print triggers as JSON lines"
    )
    return parser


def replay(argv: list[str] | None = None) -> None:
    """Entry point for ``reconciler-replay``."""
    args = _build_parser().parse_args(argv)
    setup_logging()
    config = get_settings().reconciliation
    window_ms = config.window_ms if args.window_ms is None else args.window_ms
    threshold = config.threshold_ratio if args.threshold is None else args.threshold

    try:
        detector = ReconciliationDetector(
            window_ms=window_ms, threshold_ratio=threshold
        )
        with args.events.open(encoding="utf-8") as handle:
            triggers = replay_events(read_events(handle), detector)
    except (ReplayInputError, ReconciliationInputError, OSError) as exc:
        console.print(f"[red]Replay failed:[/] {escape(str(exc))}")
        sys.exit(1)

    if args.json:
        for trigger in triggers:
            print(json.dumps(trigger_to_dict(trigger)))
        return

    if not triggers:
        console.print("[green]No reconciliation triggers.[/]")
        return
    console.print(_render_table(triggers))
