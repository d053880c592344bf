"""Daily briefing: top focus, pending A work, capacity, alerts and actionable lists."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from execution_engine.config import EngineConfig
from execution_engine.ghosts import refresh_ghost_projects
from execution_engine.metrics import delayed_counts_by_task
from execution_engine.schema import DayPlanBlock, Project, Task
from execution_engine.store import RecordStore
from execution_engine.timewindow import DAY, end_of_day, ensure_utc, minutes_between, parse_date, start_of_day, utcnow
from execution_engine.top_focus import (
    TOP3_COMMIT_EVENT_CODE,
    TOP3_UNLOCK_EVENT_CODE,
    TaskScope,
    guided_swap,
    load_task_scope,
    resolve_commitment,
    task_summary,
)

logger = logging.getLogger(__name__)

FRAGMENTATION_PROJECT_LIMIT = 5
FOCUS_OVERLOAD_PROJECT_LIMIT = 3
EXCESSIVE_RESCHEDULE_COUNT = 3
WAITING_PRIORITY_WEIGHTS = {"alta": 3, "media": 2}


def is_executable_task(task: Task) -> bool:
    """A task is executable when its title has a verb and an object, a definition of done and an estimate."""

    has_verb_object = len(task.title.split()) >= 2
    has_definition = bool((task.definition_of_done or "").strip())
    has_estimate = bool(task.estimated_minutes and task.estimated_minutes > 0)
    return has_verb_object and has_definition and has_estimate


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_utc(value).isoformat() if value else None


def _due_ts(task: Task) -> float:
    return ensure_utc(task.due_date).timestamp() if task.due_date else float("inf")


def expansion_alert(
    store: RecordStore, workspace_id: Optional[str], now: datetime, config: EngineConfig
) -> dict:
    """Weekly A-task / deep-work expectations of an expansion workspace past its grace period."""

    disabled = {"enabled": False, "missing_weekly_a": False, "missing_weekly_deep_work": False}
    if not workspace_id:
        return disabled
    workspaces = store.list_workspaces(workspace_id)
    workspace = workspaces[0] if workspaces else None
    if workspace is None or workspace.mode != "expansao" or workspace.created_at is None:
        return disabled
    if now - ensure_utc(workspace.created_at) < timedelta(hours=config.expansion_alert_grace_hours):
        return disabled

    week_ago = now - 7 * DAY
    weekly_a = sum(
        1
        for task in store.list_tasks(workspace_id)
        if task.task_type == "a" and ensure_utc(task.created_at) >= week_ago
    )
    weekly_sessions = len(store.deep_work_sessions(week_ago, workspace_id=workspace_id))
    return {"enabled": True, "missing_weekly_a": weekly_a < 1, "missing_weekly_deep_work": weekly_sessions < 1}


def capacity_report(
    blocks: list[DayPlanBlock], tasks_by_id: dict[str, Task], workspace_id: Optional[str], config: EngineConfig
) -> dict:
    fixed = sum(minutes_between(b.start_time, b.end_time) for b in blocks if b.block_type == "fixed")
    planned = 0
    for block in blocks:
        if block.block_type != "task":
            continue
        task = tasks_by_id.get(block.task_id) if block.task_id else None
        if workspace_id and task is not None and task.workspace_id != workspace_id:
            continue
        planned += minutes_between(block.start_time, block.end_time)

    available = max(0, config.day_capacity_minutes - fixed)
    overload = max(0, planned - available)
    return {
        "base_minutes": config.day_capacity_minutes,
        "fixed_minutes": fixed,
        "available_minutes": available,
        "planned_task_minutes": planned,
        "overload_minutes": overload,
        "is_unrealistic": overload > 0,
    }


def count_pending_a(scope: TaskScope, day_end: datetime) -> int:
    pending = 0
    for task in scope.tasks:
        if not scope.is_eligible(task):
            continue
        if task.status in ("hoje", "andamento") or (task.due_date and ensure_utc(task.due_date) <= day_end):
            pending += 1
    return pending


def fragmentation_projects(scope: TaskScope, week_ago: datetime, limit: int) -> list[dict]:
    """Active projects with open A tasks touched during the last week, busiest first."""

    by_project: dict[str, dict] = {}
    for task in scope.tasks:
        project = scope.project_of(task)
        if project is None or project.status != "ativo" or task.task_type != "a":
            continue
        if task.updated_at is None or ensure_utc(task.updated_at) < week_ago:
            continue
        workspace = scope.workspaces.get(task.workspace_id)
        entry = by_project.setdefault(
            project.id,
            {
                "project_id": project.id,
                "title": project.title,
                "workspace_id": task.workspace_id,
                "workspace_name": workspace.name if workspace else "Frente",
                "open_a_tasks": 0,
                "highest_priority": 0,
            },
        )
        entry["open_a_tasks"] += 1
        entry["highest_priority"] = max(entry["highest_priority"], task.priority)

    ranked = sorted(by_project.values(), key=lambda e: (-e["open_a_tasks"], -e["highest_priority"]))
    return ranked[:limit]


def _strategic_recency(project: Project) -> tuple[float, float]:
    last = ensure_utc(project.last_strategic_at).timestamp() if project.last_strategic_at else 0.0
    created = ensure_utc(project.created_at).timestamp() if project.created_at else 0.0
    return (-last, -created)


def disconnected_tasks(scope: TaskScope, active_projects: list[Project], limit: int) -> list[dict]:
    """Open tasks without a project, each with the workspace's most recently strategic project as suggestion."""

    suggestions: dict[str, Project] = {}
    for project in sorted(active_projects, key=_strategic_recency):
        suggestions.setdefault(project.workspace_id, project)

    loose = sorted(
        (task for task in scope.tasks if not task.project_id),
        key=lambda task: (-task.priority, _due_ts(task)),
    )[:limit]

    result = []
    for task in loose:
        workspace = scope.workspaces.get(task.workspace_id)
        suggested = suggestions.get(task.workspace_id)
        result.append(
            {
                "task_id": task.id,
                "title": task.title,
                "workspace_id": task.workspace_id,
                "workspace_name": workspace.name if workspace else "Frente",
                "priority": task.priority,
                "status": task.status,
                "due_date": _iso(task.due_date),
                "suggested_project_id": suggested.id if suggested else None,
                "suggested_project_title": suggested.title if suggested else None,
            }
        )
    return result


def reschedule_risk_tasks(scope: TaskScope, delayed_by_task: dict[str, int], limit: int) -> list[dict]:
    tasks_by_id = scope.by_id()
    result = []
    for task_id, count in delayed_by_task.items():
        task = tasks_by_id.get(task_id)
        if task is None or count < EXCESSIVE_RESCHEDULE_COUNT:
            continue
        workspace = scope.workspaces.get(task.workspace_id)
        project = scope.project_of(task)
        result.append(
            {
                "task_id": task.id,
                "title": task.title,
                "workspace_id": task.workspace_id,
                "workspace_name": workspace.name if workspace else "Frente",
                "project_id": task.project_id,
                "project_title": project.title if project else None,
                "priority": task.priority,
                "status": task.status,
                "due_date": _iso(task.due_date),
                "delayed_count": count,
            }
        )
    result.sort(key=lambda e: (-e["delayed_count"], -e["priority"]))
    return result[:limit]


def ghost_project_actionables(
    store: RecordStore, workspace_id: Optional[str], day_end: datetime, config: EngineConfig
) -> list[dict]:
    ghosts = store.list_projects(workspace_id, statuses=("fantasma",))
    ghosts.sort(key=lambda p: ensure_utc(p.last_strategic_at).timestamp() if p.last_strategic_at else 0.0)
    ghosts.sort(key=lambda p: ensure_utc(p.updated_at).timestamp() if p.updated_at else 0.0, reverse=True)
    workspaces = {w.id: w for w in store.list_workspaces()}

    result = []
    for project in ghosts[: config.actionable_limit]:
        anchor = project.last_strategic_at or project.created_at
        idle_days = max(0, math.floor((day_end - ensure_utc(anchor)) / DAY)) if anchor else 0
        workspace = workspaces.get(project.workspace_id)
        result.append(
            {
                "project_id": project.id,
                "title": project.title,
                "workspace_id": project.workspace_id,
                "workspace_name": workspace.name if workspace else "Frente",
                "status": project.status,
                "idle_days": idle_days,
                "stale_since_days": max(0, idle_days - config.traction_days),
                "suggested_action": "reativar",
            }
        )
    return result


def waiting_followups(scope: TaskScope, day_start: datetime, day_end: datetime, limit: int) -> list[dict]:
    """Tasks waiting on someone, ranked by overdue days, due-today and waiting priority."""

    ranked = []
    for task in scope.tasks:
        if not (task.waiting_on_person or "").strip():
            continue
        due = ensure_utc(task.waiting_due_date) if task.waiting_due_date else None
        overdue_days = max(1, math.ceil((day_start - due) / DAY)) if due and due < day_start else 0
        due_today = bool(due and day_start <= due <= day_end)
        urgency = overdue_days * 100 + (50 if due_today else 0) + WAITING_PRIORITY_WEIGHTS.get(task.waiting_priority, 1)
        workspace = scope.workspaces.get(task.workspace_id)
        ranked.append(
            (
                urgency,
                {
                    "task_id": task.id,
                    "title": task.title,
                    "workspace_id": task.workspace_id,
                    "workspace_name": workspace.name if workspace else "Frente",
                    "waiting_on_person": task.waiting_on_person,
                    "waiting_type": task.waiting_type or "resposta",
                    "waiting_priority": task.waiting_priority or "media",
                    "waiting_due_date": _iso(due),
                    "overdue_days": overdue_days,
                    "due_today": due_today,
                },
            )
        )
    ranked.sort(key=lambda pair: pair[0], reverse=True)
    return [entry for _, entry in ranked[:limit]]


def build_briefing(
    store: RecordStore,
    day: str,
    workspace_id: Optional[str] = None,
    strict_mode: bool = False,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    config = config or EngineConfig()
    now = ensure_utc(now) if now else utcnow()
    plan_date = parse_date(day)
    day_start, day_end = start_of_day(plan_date), end_of_day(plan_date)
    week_ago = day_start - 7 * DAY
    thirty_days_ago = day_start - 30 * DAY

    refresh_ghost_projects(store, now, workspace_id=workspace_id, config=config)

    scope = load_task_scope(store, workspace_id)
    candidates = scope.candidates()
    events = store.decision_events(
        workspace_id=workspace_id,
        exact_workspace=True,
        event_codes=(TOP3_COMMIT_EVENT_CODE, TOP3_UNLOCK_EVENT_CODE),
    )
    snapshot = resolve_commitment(events, plan_date.isoformat(), workspace_id, scope, config.top_focus_size)
    swap = guided_swap(snapshot, candidates, config.top_focus_size)
    if snapshot.locked and snapshot.tasks:
        top3 = snapshot.tasks[: swap["target_size"]]
    else:
        top3 = candidates[: swap["target_size"]]

    pending_a = count_pending_a(scope, day_end)

    active_projects = store.list_projects(workspace_id, statuses=("ativo",))
    active_ids = {project.id for project in active_projects}
    all_open_tasks = store.list_tasks(open_only=True)
    strategic_load = len(
        {
            task.project_id
            for task in all_open_tasks
            if task.project_id in active_ids
            and task.task_type == "a"
            and task.updated_at is not None
            and ensure_utc(task.updated_at) >= week_ago
        }
    )
    focus_load = len(
        {session.project_id for session in store.deep_work_sessions(week_ago) if session.project_id in active_ids}
    )

    delayed_events = []
    for event in store.execution_events(thirty_days_ago, event_types=("delayed",)):
        task = store.get_task(event.task_id)
        if task is None or task.task_type != "a" or not task.is_open:
            continue
        if workspace_id and task.workspace_id != workspace_id:
            continue
        delayed_events.append(event)
    delayed_by_task = delayed_counts_by_task(delayed_events)

    tasks_by_id = {task.id: task for task in store.list_tasks(include_archived=True)}
    blocks = store.day_plan_blocks(plan_date, plan_date)

    maintenance_construction = sum(
        1
        for task in scope.tasks
        if scope.workspace_mode(task) == "manutencao" and task.execution_kind == "construcao"
    )
    standby_execution = sum(
        1
        for task in scope.tasks
        if scope.workspace_mode(task) == "standby" and task.status in ("hoje", "andamento")
    )
    expansion = expansion_alert(store, workspace_id, now, config)
    limit = config.actionable_limit

    logger.debug(
        "Briefing %s: %d open tasks, %d focus candidates",
        plan_date.isoformat(),
        len(scope.tasks),
        len(candidates),
        extra={"engine_workspace_id": workspace_id},
    )

    return {
        "date": plan_date.isoformat(),
        "workspace_id": workspace_id,
        "top3": [task_summary(task) for task in top3],
        "top3_meta": {
            "locked": snapshot.locked,
            "manual": snapshot.locked,
            "committed_at": snapshot.committed_at,
            "note": snapshot.note,
            "task_ids": [task.id for task in top3],
            "guided_swap_needed": swap["guided_swap_needed"],
            "missing_slots": swap["missing_slots"],
            "dropped_task_ids": snapshot.dropped_task_ids,
            "swap_task_ids": swap["swap_task_ids"],
            "swap_reason": swap["swap_reason"],
        },
        "pending_a": pending_a,
        "strict_mode_blocked": bool(strict_mode and pending_a > 0),
        "open_counts": {
            task_type: sum(1 for task in scope.tasks if task.task_type == task_type) for task_type in ("a", "b", "c")
        },
        "capacity": capacity_report(blocks, tasks_by_id, workspace_id, config),
        "alerts": {
            "expansion_needs_a": expansion["enabled"] and expansion["missing_weekly_a"],
            "expansion_needs_deep_work": expansion["enabled"] and expansion["missing_weekly_deep_work"],
            "fragmentation_risk": strategic_load > FRAGMENTATION_PROJECT_LIMIT,
            "fragmentation_count": strategic_load,
            "focus_overload_risk": focus_load > FOCUS_OVERLOAD_PROJECT_LIMIT,
            "focus_overload_count": focus_load,
            "excessive_reschedule_a": sum(
                1 for count in delayed_by_task.values() if count >= EXCESSIVE_RESCHEDULE_COUNT
            ),
            "vague_tasks": sum(1 for task in scope.tasks if not is_executable_task(task)),
            "maintenance_construction_risk": maintenance_construction > 0,
            "maintenance_construction_count": maintenance_construction,
            "standby_execution_risk": standby_execution > 0,
            "standby_execution_count": standby_execution,
        },
        "actionables": {
            "fragmentation_projects": fragmentation_projects(scope, week_ago, limit),
            "disconnected_tasks": disconnected_tasks(scope, active_projects, limit),
            "reschedule_risk_tasks": reschedule_risk_tasks(scope, delayed_by_task, limit),
            "ghost_projects": ghost_project_actionables(store, workspace_id, day_end, config),
            "waiting_followups": waiting_followups(scope, day_start, day_end, limit),
        },
    }
