"""Append-only strategic decision log writes."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any, Optional

from execution_engine.schema import DECISION_SIGNALS, StrategicDecisionEvent
from execution_engine.store import RecordStore
from execution_engine.timewindow import ensure_utc, round_half_up, utcnow


def normalize_impact_score(value: Optional[float]) -> int:
    if value is None or not math.isfinite(value):
        return 0
    return max(-100, min(100, round_half_up(value)))


def record_decision_event(
    store: RecordStore,
    *,
    event_code: str,
    signal: str,
    title: str,
    source: str = "system",
    rationale: Optional[str] = None,
    impact_score: Optional[float] = None,
    payload: Optional[dict[str, Any]] = None,
    workspace_id: Optional[str] = None,
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> StrategicDecisionEvent:
    """Validate, normalize and append one decision event."""

    if signal not in DECISION_SIGNALS:
        raise ValueError(f"Invalid decision signal '{signal}'")
    if not event_code or not event_code.strip():
        raise ValueError("Decision event code must not be empty")
    if not title or not title.strip():
        raise ValueError("Decision event title must not be empty")

    event = StrategicDecisionEvent(
        id=str(uuid.uuid4()),
        event_code=event_code.strip(),
        signal=signal,
        title=title.strip(),
        created_at=ensure_utc(created_at) if created_at else utcnow(),
        source=source,
        workspace_id=workspace_id,
        project_id=project_id,
        task_id=task_id,
        rationale=(rationale or "").strip() or None,
        impact_score=normalize_impact_score(impact_score),
        payload=dict(payload or {}),
    )
    store.append_decision_event(event)
    return event
