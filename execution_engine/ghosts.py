"""Ghost-project detection: strategic fronts without recent traction."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from execution_engine.config import EngineConfig
from execution_engine.store import RecordStore
from execution_engine.timewindow import ensure_utc, within

logger = logging.getLogger(__name__)


def count_ghost_fronts(
    store: RecordStore,
    start: datetime,
    end: datetime,
    workspace_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> int:
    """Count workspaces out of standby with neither a project in traction nor an A task in the window."""

    config = config or EngineConfig()
    threshold = end - timedelta(days=config.traction_days)

    workspaces = [w for w in store.list_workspaces(workspace_id) if w.type != "geral"]
    traction_by_workspace: dict[str, int] = {}
    for project in store.list_projects(workspace_id, statuses=("ativo",)):
        if project.last_strategic_at is None or ensure_utc(project.last_strategic_at) < threshold:
            continue
        traction_by_workspace[project.workspace_id] = traction_by_workspace.get(project.workspace_id, 0) + 1

    task_signals = {
        task.workspace_id
        for task in store.list_tasks(workspace_id)
        if task.task_type == "a"
        and (task.is_open or (task.status == "feito" and within(task.completed_at, start, end)))
    }

    return sum(
        1
        for workspace in workspaces
        if workspace.mode != "standby"
        and traction_by_workspace.get(workspace.id, 0) == 0
        and workspace.id not in task_signals
    )


def refresh_ghost_projects(
    store: RecordStore,
    now: datetime,
    workspace_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    """Flag stale active projects as ``fantasma`` and revive ghosts that regained traction."""

    config = config or EngineConfig()
    threshold = ensure_utc(now) - timedelta(days=config.traction_days)

    projects = store.list_projects(workspace_id, statuses=("ativo", "fantasma"))
    recent_task_projects = {
        task.project_id
        for task in store.list_tasks()
        if task.project_id
        and task.task_type == "a"
        and task.updated_at is not None
        and ensure_utc(task.updated_at) >= threshold
    }
    recent_session_projects = {
        session.project_id for session in store.deep_work_sessions(threshold) if session.project_id
    }

    def has_traction(project_id: str) -> bool:
        return project_id in recent_task_projects or project_id in recent_session_projects

    to_ghost = [p.id for p in projects if p.status == "ativo" and not has_traction(p.id)]
    to_reactivate = [p.id for p in projects if p.status == "fantasma" and has_traction(p.id)]

    if to_ghost:
        store.set_project_status(to_ghost, "fantasma")
    if to_reactivate:
        store.set_project_status(to_reactivate, "ativo")

    result = {"checked": len(projects), "ghosted": len(to_ghost), "reactivated": len(to_reactivate)}
    if to_ghost or to_reactivate:
        logger.info(
            "Ghost refresh: %d ghosted, %d reactivated of %d projects",
            result["ghosted"],
            result["reactivated"],
            result["checked"],
            extra={"engine_workspace_id": workspace_id},
        )
    return result
