from datetime import date, datetime, timezone

from execution_engine.briefing import build_briefing, is_executable_task
from execution_engine.config import EngineConfig
from execution_engine.schema import DayPlanBlock, ExecutionEvent, Project, Task, Workspace
from execution_engine.store import InMemoryStore

DAY = "2026-03-02"
NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _store() -> InMemoryStore:
    created = _ts("2026-02-01T09:00:00")
    return InMemoryStore(
        workspaces=[Workspace("w1", "Empresa", created_at=_ts("2026-01-01T09:00:00"))],
        projects=[
            Project("p1", "Curso", "w1", last_strategic_at=_ts("2026-02-28T10:00:00")),
            Project("p2", "CRM", "w1", last_strategic_at=_ts("2026-01-05T10:00:00"),
                    updated_at=_ts("2026-01-05T10:00:00")),
        ],
        tasks=[
            Task("t1", "Escrever roteiro do curso", "w1", created, project_id="p1", task_type="a", status="hoje",
                 priority=5, updated_at=_ts("2026-03-01T09:00:00"), definition_of_done="Roteiro no drive",
                 estimated_minutes=60),
            Task("t2", "Revisar contrato", "w1", created, task_type="a", priority=2,
                 due_date=_ts("2026-03-02T20:00:00"), updated_at=created),
            Task("t3", "Emails", "w1", created, task_type="c"),
            Task("t4", "Ligar fornecedor", "w1", created, task_type="a", priority=7, waiting_on_person="Ana",
                 waiting_priority="alta", waiting_due_date=_ts("2026-02-28T12:00:00")),
            Task("t5", "Pagar boleto", "w1", created, waiting_on_person="Banco",
                 waiting_due_date=_ts("2026-03-02T15:00:00")),
        ],
        events=[
            ExecutionEvent("t2", "delayed", _ts("2026-02-20T18:00:00")),
            ExecutionEvent("t2", "delayed", _ts("2026-02-24T18:00:00")),
            ExecutionEvent("t2", "delayed", _ts("2026-02-28T18:00:00")),
            ExecutionEvent("t1", "delayed", _ts("2026-01-10T18:00:00")),
        ],
        blocks=[
            DayPlanBlock(date(2026, 3, 2), _ts("2026-03-02T12:00:00"), _ts("2026-03-02T14:00:00"), "fixed"),
            DayPlanBlock(date(2026, 3, 2), _ts("2026-03-02T08:00:00"), _ts("2026-03-02T10:00:00"), "task", "t1"),
            DayPlanBlock(date(2026, 3, 1), _ts("2026-03-01T08:00:00"), _ts("2026-03-01T18:00:00"), "task", "t2"),
        ],
    )


def test_executable_task_needs_two_words_definition_and_estimate():
    store = _store()
    assert is_executable_task(store.tasks[0])
    assert not is_executable_task(store.tasks[1])
    assert not is_executable_task(store.tasks[2])


def test_briefing_top_focus_and_pending_a():
    briefing = build_briefing(_store(), DAY, strict_mode=True, now=NOW)
    assert [task["id"] for task in briefing["top3"]] == ["t1", "t2"]
    assert not briefing["top3_meta"]["locked"]
    assert briefing["pending_a"] == 2
    assert briefing["strict_mode_blocked"]
    assert briefing["open_counts"] == {"a": 3, "b": 1, "c": 1}


def test_strict_mode_off_never_blocks():
    assert not build_briefing(_store(), DAY, now=NOW)["strict_mode_blocked"]


def test_capacity():
    capacity = build_briefing(_store(), DAY, now=NOW)["capacity"]
    assert capacity == {
        "base_minutes": 1020,
        "fixed_minutes": 120,
        "available_minutes": 900,
        "planned_task_minutes": 120,
        "overload_minutes": 0,
        "is_unrealistic": False,
    }

    tight = build_briefing(_store(), DAY, now=NOW, config=EngineConfig(day_capacity_minutes=200))["capacity"]
    assert tight["available_minutes"] == 80
    assert tight["overload_minutes"] == 40
    assert tight["is_unrealistic"]


def test_alerts():
    alerts = build_briefing(_store(), DAY, now=NOW)["alerts"]
    assert alerts["excessive_reschedule_a"] == 1
    assert alerts["vague_tasks"] == 4
    assert alerts["fragmentation_count"] == 1
    assert not alerts["fragmentation_risk"]
    assert not alerts["expansion_needs_a"]
    assert not alerts["maintenance_construction_risk"]
    assert not alerts["standby_execution_risk"]


def test_ghost_refresh_and_actionables():
    store = _store()
    actionables = build_briefing(store, DAY, now=NOW)["actionables"]

    assert store.projects[0].status == "ativo"
    assert store.projects[1].status == "fantasma"
    (ghost,) = actionables["ghost_projects"]
    assert ghost["project_id"] == "p2"
    assert ghost["idle_days"] == 56
    assert ghost["stale_since_days"] == 42

    assert [entry["project_id"] for entry in actionables["fragmentation_projects"]] == ["p1"]
    (risky,) = actionables["reschedule_risk_tasks"]
    assert risky["task_id"] == "t2"
    assert risky["delayed_count"] == 3

    disconnected = actionables["disconnected_tasks"]
    assert [entry["task_id"] for entry in disconnected] == ["t4", "t2", "t3", "t5"]
    assert {entry["suggested_project_id"] for entry in disconnected} == {"p1"}

    followups = actionables["waiting_followups"]
    assert [entry["task_id"] for entry in followups] == ["t4", "t5"]
    assert followups[0]["overdue_days"] == 2
    assert followups[1]["due_today"]
    assert followups[1]["waiting_priority"] == "media"


def test_expansion_alert_after_grace_period():
    store = _store()
    store.workspaces[0].mode = "expansao"
    alerts = build_briefing(store, DAY, workspace_id="w1", now=NOW)["alerts"]
    assert alerts["expansion_needs_a"]
    assert alerts["expansion_needs_deep_work"]

    store.workspaces[0].created_at = _ts("2026-03-01T09:00:00")
    alerts = build_briefing(store, DAY, workspace_id="w1", now=NOW)["alerts"]
    assert not alerts["expansion_needs_a"]


def test_workspace_modes_raise_alerts():
    store = _store()
    store.workspaces.append(Workspace("w2", "Casa", mode="manutencao"))
    store.workspaces.append(Workspace("w3", "Podcast", mode="standby"))
    created = _ts("2026-02-01T09:00:00")
    store.tasks.append(Task("t6", "Trocar piso", "w2", created, execution_kind="construcao"))
    store.tasks.append(Task("t7", "Editar episódio", "w3", created, status="andamento"))
    alerts = build_briefing(store, DAY, now=NOW)["alerts"]
    assert alerts["maintenance_construction_count"] == 1
    assert alerts["standby_execution_count"] == 1
