"""Decision journal: runtime decision events merged with review-journal decisions."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from execution_engine.config import EngineConfig
from execution_engine.metrics import clamp_percent
from execution_engine.schema import DECISION_SIGNALS, StrategicDecisionEvent, StrategicReview
from execution_engine.text_signals import classify_decision
from execution_engine.timewindow import ensure_utc

_REVIEW_IMPACT = {"executiva": 2, "risco": -2, "neutra": 0}
_COMMITMENT_VALUES = {"alto": 3, "medio": 2, "baixo": 1}
_REVIEW_JOURNAL_LIMIT = 8


def _event_entry(event: StrategicDecisionEvent) -> dict:
    return {
        "id": event.id,
        "kind": "event",
        "period_type": None,
        "period_start": None,
        "updated_at": ensure_utc(event.created_at).isoformat(),
        "decision": (event.rationale or "").strip() or event.title,
        "commitment_level": None,
        "signal": event.signal if event.signal in DECISION_SIGNALS else "neutra",
        "source": event.source,
        "event_code": event.event_code,
        "impact_score": event.impact_score,
    }


def _review_entry(review: StrategicReview, config: EngineConfig) -> dict:
    decision = (review.strategic_decision or "").strip() or (review.next_priority or "").strip()
    signal = classify_decision(
        f"{review.strategic_decision or ''} {review.reflection or ''}",
        config.decision_focus_tokens,
        config.decision_risk_tokens,
    )
    return {
        "id": review.id,
        "kind": "review",
        "period_type": review.period_type,
        "period_start": review.period_start.isoformat(),
        "updated_at": ensure_utc(review.updated_at).isoformat(),
        "decision": decision,
        "commitment_level": review.commitment_level,
        "signal": signal,
        "source": "review_journal",
        "event_code": "review_journal_updated",
        "impact_score": _REVIEW_IMPACT[signal],
    }


def decision_quality_score(entries: Iterable[dict]) -> int:
    counts = {signal: 0 for signal in DECISION_SIGNALS}
    for entry in entries:
        counts[entry["signal"]] += 1
    base = max(1, sum(counts.values()))
    weighted = counts["executiva"] * 1.2 - counts["risco"] * 1.4 + counts["neutra"] * 0.2
    return clamp_percent(50 + weighted / base * 40)


def build_decision_journal(
    events: Iterable[StrategicDecisionEvent],
    reviews: Iterable[StrategicReview],
    config: Optional[EngineConfig] = None,
) -> dict:
    """Merge and classify decisions.

    ``events`` are expected newest first; ``reviews`` ordered by period start
    then update time, newest first.
    """

    config = config or EngineConfig()
    runtime_entries = [_event_entry(event) for event in events]
    review_entries = [
        _review_entry(review, config)
        for review in reviews
        if (review.strategic_decision or "").strip() or (review.next_priority or "").strip()
    ][:_REVIEW_JOURNAL_LIMIT]

    merged = sorted(
        runtime_entries + review_entries,
        key=lambda entry: datetime.fromisoformat(entry["updated_at"]),
        reverse=True,
    )

    return {
        "entries": merged[: config.journal_limit],
        "decision_quality_score": decision_quality_score(runtime_entries),
        "decisions_last_90_days": len(runtime_entries) + len(review_entries),
    }


def commitment_signal(reviews: Iterable[StrategicReview]) -> str:
    """alto / medio / baixo from the mean declared commitment; sem_dados without any."""

    values = [_COMMITMENT_VALUES[r.commitment_level] for r in reviews if r.commitment_level in _COMMITMENT_VALUES]
    if not values:
        return "sem_dados"
    average = sum(values) / len(values)
    if average >= 2.6:
        return "alto"
    if average >= 1.8:
        return "medio"
    return "baixo"
