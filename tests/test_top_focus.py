from datetime import datetime, timedelta, timezone

import pytest

from execution_engine.schema import Project, Task, Workspace
from execution_engine.store import InMemoryStore
from execution_engine.top_focus import (
    TOP3_COMMIT_EVENT_CODE,
    CommitmentValidationError,
    clear_top3,
    commit_top3,
    commitment_view,
    load_task_scope,
    ranking_key,
)

DAY = "2026-03-02"
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _store() -> InMemoryStore:
    return InMemoryStore(
        workspaces=[Workspace("w1", "Empresa"), Workspace("w2", "Arquivo", mode="standby")],
        projects=[Project("p1", "Curso", "w1")],
        tasks=[
            Task("t1", "Escrever roteiro", "w1", _ts("2026-02-20T09:00:00"), project_id="p1", task_type="a", priority=3),
            Task("t2", "Responder emails", "w1", _ts("2026-02-20T09:00:00"), task_type="b", priority=9),
            Task("t3", "Fechar proposta", "w1", _ts("2026-02-21T09:00:00"), task_type="a", priority=5),
            Task("t4", "Aguardar contrato", "w1", _ts("2026-02-21T09:00:00"), task_type="a", priority=8,
                 waiting_on_person="Ana"),
            Task("t5", "Gravar podcast", "w2", _ts("2026-02-21T09:00:00"), task_type="a", priority=8),
        ],
    )


def test_commit_rejects_ineligible_task_by_title():
    store = _store()
    with pytest.raises(CommitmentValidationError, match="Responder emails"):
        commit_top3(store, DAY, ["t1", "t2", "t3"], now=NOW)
    assert store.decisions == []


@pytest.mark.parametrize(
    "task_ids, message",
    [
        ([], "at least 1"),
        (["  ", ""], "at least 1"),
        (["t1", "t3", "t4", "t5"], "at most 3"),
        (["t1", "missing"], "missing"),
        (["t4"], "Aguardar contrato"),
        (["t5"], "Gravar podcast"),
    ],
)
def test_commit_validation_errors(task_ids, message):
    with pytest.raises(CommitmentValidationError, match=message):
        commit_top3(_store(), DAY, task_ids, now=NOW)


def test_commit_locks_and_appends_decision_event():
    store = _store()
    view = commit_top3(store, DAY, [" t3 ", "t1", "t3"], note=" manhã ", now=NOW)
    assert view["locked"] and view["manual"]
    assert view["task_ids"] == ["t3", "t1"]
    assert view["note"] == "manhã"
    assert not view["guided_swap_needed"]

    (event,) = store.decisions
    assert event.event_code == TOP3_COMMIT_EVENT_CODE
    assert event.signal == "executiva"
    assert event.impact_score == 5
    assert event.source == "execution_insights_service"
    assert event.payload == {"date": DAY, "workspaceScope": "__all__", "taskIds": ["t3", "t1"], "note": "manhã"}


def test_dropped_task_triggers_guided_swap():
    store = _store()
    commit_top3(store, DAY, ["t1", "t3"], now=NOW)
    store.projects[0].status = "pausado"

    view = commitment_view(store, DAY)
    assert view["locked"]
    assert view["dropped_task_ids"] == ["t1"]
    assert view["task_ids"] == ["t3"]
    assert view["guided_swap_needed"]
    assert view["missing_slots"] == 1
    assert view["swap_task_ids"] == ["t3"]
    assert "1 item" in view["swap_reason"]


def test_swap_fills_with_ranked_candidates():
    store = _store()
    store.tasks.append(Task("t6", "Revisar aula", "w1", _ts("2026-02-22T09:00:00"), task_type="a", priority=1))
    commit_top3(store, DAY, ["t1", "t3"], now=NOW)
    store.tasks = [task for task in store.tasks if task.id != "t3"]

    view = commitment_view(store, DAY)
    assert view["dropped_task_ids"] == ["t3"]
    assert view["swap_task_ids"] == ["t1", "t6"]


def test_read_is_idempotent():
    store = _store()
    commit_top3(store, DAY, ["t3"], now=NOW)
    assert commitment_view(store, DAY) == commitment_view(store, DAY)


def test_unlock_returns_to_suggestions():
    store = _store()
    commit_top3(store, DAY, ["t1"], now=NOW)
    view = clear_top3(store, DAY, now=NOW + timedelta(minutes=5))
    assert not view["locked"]
    assert view["task_ids"] == ["t3", "t1"]
    assert store.decisions[-1].signal == "neutra"
    assert store.decisions[-1].impact_score == 0


def test_latest_event_wins_and_ties_follow_append_order():
    store = _store()
    commit_top3(store, DAY, ["t1"], now=NOW)
    commit_top3(store, DAY, ["t3"], now=NOW)
    assert commitment_view(store, DAY)["task_ids"] == ["t3"]

    commit_top3(store, DAY, ["t1"], now=NOW - timedelta(hours=1))
    assert commitment_view(store, DAY)["task_ids"] == ["t3"]


def test_lock_is_scoped_by_day_and_workspace():
    store = _store()
    commit_top3(store, DAY, ["t1"], now=NOW)
    assert not commitment_view(store, "2026-03-03")["locked"]
    assert not commitment_view(store, DAY, workspace_id="w1")["locked"]

    commit_top3(store, DAY, ["t3"], workspace_id="w1", now=NOW)
    assert commitment_view(store, DAY, workspace_id="w1")["task_ids"] == ["t3"]
    assert commitment_view(store, DAY)["task_ids"] == ["t1"]


def test_candidates_ranking():
    store = _store()
    store.tasks.extend(
        [
            Task("t7", "Due soon", "w1", _ts("2026-02-25T09:00:00"), task_type="a", priority=5,
                 due_date=_ts("2026-03-03T09:00:00")),
            Task("t8", "Older no due", "w1", _ts("2026-02-01T09:00:00"), task_type="a", priority=5),
        ]
    )
    candidates = load_task_scope(store).candidates()
    assert [task.id for task in candidates] == ["t7", "t8", "t3", "t1"]
    assert ranking_key(candidates[0]) < ranking_key(candidates[1])
