"""CSV adapter for execution events."""

from __future__ import annotations

import csv
from datetime import datetime

from execution_engine.schema import EVENT_TYPES, ExecutionEvent
from execution_engine.timewindow import ensure_utc

_REQUIRED_FIELDS = ("task_id", "event_type", "timestamp")


def _parse_row(row: dict, row_number: int) -> ExecutionEvent:
    missing = [field for field in _REQUIRED_FIELDS if not row.get(field)]
    if missing:
        raise ValueError(f"Row {row_number}: missing required fields {missing}")

    try:
        timestamp = ensure_utc(datetime.fromisoformat(row["timestamp"].strip()))
    except ValueError as exc:
        raise ValueError(f"Row {row_number}: malformed timestamp") from exc

    event_type = row["event_type"].strip()
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Row {row_number}: invalid event_type '{event_type}'")

    reason_raw = row.get("failure_reason")
    failure_reason = reason_raw.strip() if reason_raw and reason_raw.strip() else None

    return ExecutionEvent(
        task_id=row["task_id"].strip(),
        event_type=event_type,
        timestamp=timestamp,
        failure_reason=failure_reason,
    )


def parse(file_path: str) -> list[ExecutionEvent]:
    """Parse a CSV file into execution events, in file order."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        events: list[ExecutionEvent] = []
        for row_number, row in enumerate(reader, start=2):
            events.append(_parse_row(row, row_number))
        return events
