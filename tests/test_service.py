from datetime import datetime, timezone
from pathlib import Path

import pytest

from execution_engine.adapters.json_adapter import parse
from execution_engine.service import ExecutionInsightsService
from execution_engine.top_focus import CommitmentValidationError

DATASET = Path(__file__).resolve().parents[1] / "examples" / "sample_dataset.json"
NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    return ExecutionInsightsService(parse(str(DATASET)))


def test_briefing_over_sample_dataset(service):
    briefing = service.get_briefing("2026-03-02", workspace_id="ws-empresa", now=NOW)
    assert briefing["date"] == "2026-03-02"
    assert briefing["top3"]
    assert "t-contrato" not in [task["id"] for task in briefing["top3"]]
    assert {"top3_meta", "pending_a", "capacity", "alerts", "actionables"} <= set(briefing)


def test_commit_and_clear_top3(service):
    committed = service.commit_top3("2026-03-02", ["t-landing", "t-roteiro"], note="foco", workspace_id="ws-empresa", now=NOW)
    assert committed["locked"] is True
    assert set(committed["task_ids"]) == {"t-landing", "t-roteiro"}

    view = service.get_top3_commitment("2026-03-02", workspace_id="ws-empresa")
    assert view["locked"] is True
    assert view["note"] == "foco"
    # another scope keeps its own lock state
    assert service.get_top3_commitment("2026-03-02")["locked"] is False

    cleared = service.clear_top3_commitment("2026-03-02", workspace_id="ws-empresa", now=NOW)
    assert cleared["locked"] is False


def test_commit_rejects_blocked_task(service):
    with pytest.raises(CommitmentValidationError):
        service.commit_top3("2026-03-02", ["t-contrato"], workspace_id="ws-empresa", now=NOW)


def test_score_evolution_and_pulse(service):
    score = service.get_execution_score("2026-03-02", now=NOW)
    assert 0 <= score["score"] <= 100
    assert set(score["components"]) == {"a_completion", "deep_work", "punctuality", "non_reschedule", "project_connection"}

    report = service.get_evolution_engine(workspace_id="ws-empresa", window_days=30, now=NOW)
    assert report["window_days"] == 30
    assert 0 <= report["index"] <= 100
    assert report["explainable_rules"]

    pulse = service.get_weekly_pulse(week_start="2026-03-02", now=NOW)
    assert pulse["week_start"] == "2026-03-02"
    assert len(pulse["days"]) == 7
