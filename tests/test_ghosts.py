from datetime import datetime, timezone

from execution_engine.config import EngineConfig
from execution_engine.ghosts import count_ghost_fronts, refresh_ghost_projects
from execution_engine.schema import DeepWorkSession, Project, Task, Workspace
from execution_engine.store import InMemoryStore

NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _store() -> InMemoryStore:
    created = _ts("2026-01-10T09:00:00")
    return InMemoryStore(
        workspaces=[
            Workspace("w1", "Empresa"),
            Workspace("w2", "Autoridade", type="autoridade", mode="standby"),
            Workspace("w3", "Pessoal", type="pessoal"),
            Workspace("w4", "Estudos", type="pessoal"),
            Workspace("w5", "Geral", type="geral"),
        ],
        projects=[
            Project("p-stale", "CRM", "w1", last_strategic_at=_ts("2026-01-12T10:00:00")),
            Project("p-task", "Curso", "w1", last_strategic_at=_ts("2026-01-12T10:00:00")),
            Project("p-session", "Casa", "w3", last_strategic_at=_ts("2026-02-27T10:00:00")),
            Project("p-back", "Podcast", "w4", status="fantasma", last_strategic_at=_ts("2026-01-02T10:00:00")),
        ],
        tasks=[
            Task("t1", "Gravar aula", "w1", created, project_id="p-task", task_type="a",
                 updated_at=_ts("2026-02-25T09:00:00")),
            Task("t2", "Revisar podcast", "w4", created, project_id="p-back", task_type="b",
                 updated_at=_ts("2026-03-01T09:00:00")),
        ],
        sessions=[
            DeepWorkSession("s1", "w3", _ts("2026-02-28T08:00:00"), project_id="p-session", actual_minutes=40),
            DeepWorkSession("s2", "w4", _ts("2026-02-26T08:00:00"), project_id="p-back", actual_minutes=30),
        ],
    )


def test_refresh_ghosts_and_reactivates():
    store = _store()
    result = refresh_ghost_projects(store, NOW)
    assert result == {"checked": 4, "ghosted": 1, "reactivated": 1}
    statuses = {p.id: p.status for p in store.list_projects()}
    assert statuses["p-stale"] == "fantasma"
    assert statuses["p-task"] == "ativo"
    assert statuses["p-session"] == "ativo"
    assert statuses["p-back"] == "ativo"


def test_refresh_respects_traction_window():
    store = _store()
    refresh_ghost_projects(store, NOW, config=EngineConfig(traction_days=1))
    statuses = {p.id: p.status for p in store.list_projects()}
    assert statuses["p-task"] == "fantasma"
    assert statuses["p-session"] == "fantasma"


def test_refresh_scoped_to_workspace():
    store = _store()
    result = refresh_ghost_projects(store, NOW, workspace_id="w3")
    assert result == {"checked": 1, "ghosted": 0, "reactivated": 0}
    assert {p.id: p.status for p in store.list_projects()}["p-stale"] == "ativo"


def test_count_ghost_fronts():
    store = _store()
    start = _ts("2026-02-01T00:00:00")
    # w1 keeps an open A task, w2 is in standby, w3 has a project in traction, w5 is excluded
    assert count_ghost_fronts(store, start, NOW) == 1
    assert count_ghost_fronts(store, start, NOW, workspace_id="w4") == 1
    assert count_ghost_fronts(store, start, NOW, workspace_id="w1") == 0


def test_count_ghost_fronts_with_completed_a_task_in_window():
    store = _store()
    store.tasks.append(
        Task("t3", "Entregar roteiro", "w4", _ts("2026-01-10T09:00:00"), task_type="a", status="feito",
             completed_at=_ts("2026-02-10T09:00:00"))
    )
    assert count_ghost_fronts(store, _ts("2026-02-01T00:00:00"), NOW, workspace_id="w4") == 0
    assert count_ghost_fronts(store, _ts("2026-02-15T00:00:00"), NOW, workspace_id="w4") == 1
