from datetime import date, datetime, timedelta, timezone

import pytest

from execution_engine.decisions import normalize_impact_score, record_decision_event
from execution_engine.journal import build_decision_journal, commitment_signal, decision_quality_score
from execution_engine.schema import StrategicDecisionEvent, StrategicReview
from execution_engine.store import InMemoryStore
from execution_engine.text_signals import classify_decision, normalize_text, perceived_level

NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def _event(event_id: str, signal: str, hours_ago: int, rationale=None) -> StrategicDecisionEvent:
    return StrategicDecisionEvent(
        id=event_id,
        event_code="project_paused",
        signal=signal,
        title=f"Decision {event_id}",
        created_at=NOW - timedelta(hours=hours_ago),
        rationale=rationale,
        impact_score=3,
    )


def _review(review_id: str, decision: str, reflection: str = "", level=None, hours_ago: int = 0) -> StrategicReview:
    return StrategicReview(
        id=review_id,
        period_type="weekly",
        period_start=date(2026, 2, 23),
        updated_at=NOW - timedelta(hours=hours_ago),
        strategic_decision=decision,
        reflection=reflection,
        commitment_level=level,
    )


def test_normalize_text_strips_diacritics():
    assert normalize_text("Decisão: PRIORIZAR Ação") == "decisao: priorizar acao"
    assert normalize_text(None) == ""


def test_classifiers():
    assert classify_decision("Vou cortar reuniões e priorizar o curso", ("cortar", "prioriz"), ("adiar",)) == "executiva"
    assert classify_decision("Melhor adiar", ("cortar",), ("adiar",)) == "risco"
    assert classify_decision("", ("cortar",), ("adiar",)) == "neutra"
    assert perceived_level("   ", ("forte",), ("fraco",)) == "medio"
    assert perceived_level("", ("forte",), ("fraco",)) == "sem_dados"


def test_decision_quality_score():
    entries = [{"signal": "executiva"}, {"signal": "executiva"}, {"signal": "risco"}]
    assert decision_quality_score(entries) == 63
    assert decision_quality_score([]) == 50


def test_journal_merges_events_and_reviews():
    events = [_event("e1", "executiva", 1, rationale="  Foco no curso "), _event("e2", "desconhecido", 30)]
    reviews = [
        _review("r1", "Cortar a frente de eventos e priorizar o curso", hours_ago=5),
        _review("r2", "Adiar a migração", reflection="Semana travada", hours_ago=40),
        _review("r3", "", hours_ago=2),
    ]
    journal = build_decision_journal(events, reviews)

    entries = journal["entries"]
    assert [entry["id"] for entry in entries] == ["e1", "r1", "e2", "r2"]
    assert entries[0]["decision"] == "Foco no curso"
    assert entries[1]["signal"] == "executiva"
    assert entries[1]["impact_score"] == 2
    assert entries[1]["source"] == "review_journal"
    assert entries[2]["signal"] == "neutra"
    assert entries[2]["decision"] == "Decision e2"
    assert entries[3]["signal"] == "risco"
    assert entries[3]["impact_score"] == -2
    assert journal["decisions_last_90_days"] == 4
    assert journal["decision_quality_score"] == 78


def test_journal_caps_entries():
    events = [_event(f"e{i}", "neutra", i) for i in range(20)]
    assert len(build_decision_journal(events, [])["entries"]) == 12


def test_commitment_signal():
    assert commitment_signal([_review("a", "x", level="alto"), _review("b", "x", level="alto"),
                              _review("c", "x", level="medio")]) == "alto"
    assert commitment_signal([_review("a", "x", level="medio"), _review("b", "x", level="baixo")]) == "baixo"
    assert commitment_signal([_review("a", "x", level="medio")]) == "medio"
    assert commitment_signal([_review("a", "x")]) == "sem_dados"


def test_record_decision_event_normalizes_and_appends():
    store = InMemoryStore()
    event = record_decision_event(
        store,
        event_code=" focus_shift ",
        signal="risco",
        title="  Adiar lançamento ",
        rationale="   ",
        impact_score=250.4,
        created_at=NOW,
    )
    assert store.decisions == [event]
    assert event.event_code == "focus_shift"
    assert event.title == "Adiar lançamento"
    assert event.rationale is None
    assert event.impact_score == 100
    assert event.created_at == NOW


def test_record_decision_event_rejects_invalid_input():
    with pytest.raises(ValueError):
        record_decision_event(InMemoryStore(), event_code="x", signal="positiva", title="t")
    with pytest.raises(ValueError):
        record_decision_event(InMemoryStore(), event_code="x", signal="neutra", title="  ")


def test_normalize_impact_score():
    assert normalize_impact_score(None) == 0
    assert normalize_impact_score(-2.5) == -2
    assert normalize_impact_score(-300) == -100
