"""Top-focus (Top 3) commitment: an event-sourced lock over the day's highest-priority A tasks.

The lock state for a (date, workspace scope) is never stored. It is the fold of
the decision log: the latest ``top3_committed`` / ``top3_unlocked`` event of the
day decides between locked and suggestion mode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from execution_engine.config import EngineConfig
from execution_engine.decisions import record_decision_event
from execution_engine.schema import ALL_WORKSPACES_SCOPE, Project, StrategicDecisionEvent, Task, Workspace
from execution_engine.store import RecordStore
from execution_engine.timewindow import date_key, ensure_utc, parse_date

logger = logging.getLogger(__name__)

TOP3_COMMIT_EVENT_CODE = "top3_committed"
TOP3_UNLOCK_EVENT_CODE = "top3_unlocked"


class CommitmentValidationError(ValueError):
    """Raised when a top-focus commitment request cannot be accepted."""


def workspace_scope(workspace_id: Optional[str]) -> str:
    return workspace_id or ALL_WORKSPACES_SCOPE


def is_blocked_for_execution(task: Task) -> bool:
    if task.waiting_on_person and task.waiting_on_person.strip():
        return True
    return task.open_restrictions > 0


def ranking_key(task: Task) -> tuple:
    """Priority desc, due date asc (missing last), creation asc."""

    due = ensure_utc(task.due_date).timestamp() if task.due_date else float("inf")
    return (-task.priority, due, ensure_utc(task.created_at).timestamp())


@dataclass
class TaskScope:
    """Open tasks of a workspace scope plus the workspace/project state eligibility depends on."""

    tasks: list[Task]
    workspaces: dict[str, Workspace] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)

    def workspace_mode(self, task: Task) -> Optional[str]:
        workspace = self.workspaces.get(task.workspace_id)
        return workspace.mode if workspace else None

    def project_of(self, task: Task) -> Optional[Project]:
        return self.projects.get(task.project_id) if task.project_id else None

    def ineligibility_reason(self, task: Task) -> Optional[str]:
        if task.task_type != "a":
            return "not a type A task"
        if self.workspace_mode(task) == "standby":
            return "workspace is in standby"
        project = self.project_of(task)
        if task.project_id and (project is None or project.status != "ativo"):
            return "project is not active"
        if is_blocked_for_execution(task):
            return "blocked by an open restriction or waiting dependency"
        return None

    def is_eligible(self, task: Task) -> bool:
        return self.ineligibility_reason(task) is None

    def candidates(self) -> list[Task]:
        return sorted((task for task in self.tasks if self.is_eligible(task)), key=ranking_key)

    def by_id(self) -> dict[str, Task]:
        return {task.id: task for task in self.tasks}


def load_task_scope(store: RecordStore, workspace_id: Optional[str] = None) -> TaskScope:
    return TaskScope(
        tasks=store.list_tasks(workspace_id, open_only=True),
        workspaces={w.id: w for w in store.list_workspaces()},
        projects={p.id: p for p in store.list_projects(include_archived=True)},
    )


def _payload_task_ids(payload: dict) -> list[str]:
    raw = payload.get("taskIds") if isinstance(payload, dict) else None
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, str)]


def _payload_note(payload: dict) -> Optional[str]:
    note = payload.get("note") if isinstance(payload, dict) else None
    if isinstance(note, str) and note.strip():
        return note.strip()
    return None


def _event_day(event: StrategicDecisionEvent) -> str:
    payload_date = event.payload.get("date") if isinstance(event.payload, dict) else None
    if isinstance(payload_date, str) and payload_date:
        return payload_date
    return date_key(event.created_at)


def latest_commitment_event(
    events: Iterable[StrategicDecisionEvent], day: str, workspace_id: Optional[str]
) -> Optional[StrategicDecisionEvent]:
    """Latest commit/unlock event of ``day`` for the workspace; later appends win ties."""

    latest = None
    for event in events:
        if event.event_code not in (TOP3_COMMIT_EVENT_CODE, TOP3_UNLOCK_EVENT_CODE):
            continue
        if event.workspace_id != workspace_id or _event_day(event) != day:
            continue
        if latest is None or ensure_utc(event.created_at) >= ensure_utc(latest.created_at):
            latest = event
    return latest


@dataclass
class CommitmentSnapshot:
    locked: bool = False
    committed_at: Optional[str] = None
    note: Optional[str] = None
    requested_task_ids: list[str] = field(default_factory=list)
    dropped_task_ids: list[str] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)

    @property
    def task_ids(self) -> list[str]:
        return [task.id for task in self.tasks]


def resolve_commitment(
    events: Iterable[StrategicDecisionEvent],
    day: str,
    workspace_id: Optional[str],
    scope: TaskScope,
    size: int = 3,
) -> CommitmentSnapshot:
    """Fold the decision log into the lock state, re-validating committed tasks."""

    latest = latest_commitment_event(events, day, workspace_id)
    if latest is None or latest.event_code == TOP3_UNLOCK_EVENT_CODE:
        return CommitmentSnapshot()

    payload = latest.payload if isinstance(latest.payload, dict) else {}
    latest_scope = payload.get("workspaceScope")
    if isinstance(latest_scope, str) and latest_scope != workspace_scope(workspace_id):
        return CommitmentSnapshot()

    requested = _payload_task_ids(payload)[:size]
    tasks_by_id = scope.by_id()
    kept = [tasks_by_id[task_id] for task_id in requested if task_id in tasks_by_id]
    kept = [task for task in kept if scope.is_eligible(task)]
    kept_ids = {task.id for task in kept}

    return CommitmentSnapshot(
        locked=True,
        committed_at=ensure_utc(latest.created_at).isoformat(),
        note=_payload_note(payload),
        requested_task_ids=requested,
        dropped_task_ids=[task_id for task_id in requested if task_id not in kept_ids],
        tasks=kept,
    )


def guided_swap(snapshot: CommitmentSnapshot, candidates: list[Task], size: int = 3) -> dict:
    """Propose a replacement list when a lock lost tasks or is short of its requested size."""

    target = max(1, min(size, len(snapshot.requested_task_ids) or size))
    locked_ids = snapshot.task_ids[:target]
    swap_ids = list(locked_ids)
    for candidate in candidates:
        if len(swap_ids) >= target:
            break
        if candidate.id not in swap_ids:
            swap_ids.append(candidate.id)

    missing_slots = max(0, target - len(locked_ids))
    needed = snapshot.locked and (bool(snapshot.dropped_task_ids) or missing_slots > 0)
    if not needed:
        reason = None
    elif snapshot.dropped_task_ids:
        reason = f"{len(snapshot.dropped_task_ids)} item(ns) do compromisso original não estão mais elegíveis."
    else:
        reason = "Faltam tarefas elegíveis para completar o compromisso de foco."

    return {
        "target_size": target,
        "guided_swap_needed": needed,
        "missing_slots": missing_slots,
        "swap_task_ids": swap_ids[:target],
        "swap_reason": reason,
    }


def task_summary(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "workspace_id": task.workspace_id,
        "project_id": task.project_id,
        "task_type": task.task_type,
        "status": task.status,
        "priority": task.priority,
        "due_date": ensure_utc(task.due_date).isoformat() if task.due_date else None,
    }


def commitment_view(
    store: RecordStore,
    day: str,
    workspace_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
    scope: Optional[TaskScope] = None,
) -> dict:
    """Read side of the lock: locked tasks or ranked suggestions, plus the swap proposal."""

    config = config or EngineConfig()
    day = parse_date(day).isoformat()
    scope = scope or load_task_scope(store, workspace_id)
    candidates = scope.candidates()
    events = store.decision_events(
        workspace_id=workspace_id,
        exact_workspace=True,
        event_codes=(TOP3_COMMIT_EVENT_CODE, TOP3_UNLOCK_EVENT_CODE),
    )
    snapshot = resolve_commitment(events, day, workspace_id, scope, config.top_focus_size)
    swap = guided_swap(snapshot, candidates, config.top_focus_size)

    tasks = snapshot.tasks if snapshot.locked else candidates
    tasks = tasks[: config.top_focus_size]

    return {
        "date": day,
        "workspace_id": workspace_id,
        "locked": snapshot.locked,
        "manual": snapshot.locked,
        "committed_at": snapshot.committed_at,
        "note": snapshot.note,
        "task_ids": [task.id for task in tasks],
        "tasks": [task_summary(task) for task in tasks],
        "requested_task_ids": snapshot.requested_task_ids,
        "dropped_task_ids": snapshot.dropped_task_ids,
        "guided_swap_needed": swap["guided_swap_needed"],
        "missing_slots": swap["missing_slots"],
        "swap_task_ids": swap["swap_task_ids"],
        "swap_reason": swap["swap_reason"],
    }


def validate_commit_request(task_ids: Iterable[str], scope: TaskScope, size: int = 3) -> list[Task]:
    """Return the requested tasks in request order or raise :class:`CommitmentValidationError`."""

    unique_ids: list[str] = []
    for raw in task_ids:
        task_id = (raw or "").strip()
        if task_id and task_id not in unique_ids:
            unique_ids.append(task_id)

    if not unique_ids:
        raise CommitmentValidationError("Select at least 1 task to commit the top focus.")
    if len(unique_ids) > size:
        raise CommitmentValidationError(f"Top focus accepts at most {size} tasks, got {len(unique_ids)}.")

    tasks_by_id = scope.by_id()
    missing = [task_id for task_id in unique_ids if task_id not in tasks_by_id]
    if missing:
        raise CommitmentValidationError(
            f"Task(s) not found among open tasks of the current scope: {', '.join(missing)}."
        )

    selected = [tasks_by_id[task_id] for task_id in unique_ids]
    for task in selected:
        reason = scope.ineligibility_reason(task)
        if reason is not None:
            raise CommitmentValidationError(f'Task "{task.title}" is not eligible for the top focus: {reason}.')
    return selected


def commit_top3(
    store: RecordStore,
    day: str,
    task_ids: Iterable[str],
    note: Optional[str] = None,
    workspace_id: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    config = config or EngineConfig()
    day = parse_date(day).isoformat()
    scope = load_task_scope(store, workspace_id)
    selected = validate_commit_request(task_ids, scope, config.top_focus_size)

    record_decision_event(
        store,
        workspace_id=workspace_id,
        source="execution_insights_service",
        event_code=TOP3_COMMIT_EVENT_CODE,
        signal="executiva",
        impact_score=5,
        title=f"Top 3 confirmado ({day})",
        rationale="Compromisso explícito do foco executivo do dia.",
        payload={
            "date": day,
            "workspaceScope": workspace_scope(workspace_id),
            "taskIds": [task.id for task in selected],
            "note": (note or "").strip() or None,
        },
        created_at=now,
    )
    logger.info(
        "Top focus committed for %s (%d tasks)",
        day,
        len(selected),
        extra={"engine_workspace_scope": workspace_scope(workspace_id)},
    )
    return commitment_view(store, day, workspace_id, config, scope)


def clear_top3(
    store: RecordStore,
    day: str,
    workspace_id: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    day = parse_date(day).isoformat()
    record_decision_event(
        store,
        workspace_id=workspace_id,
        source="execution_insights_service",
        event_code=TOP3_UNLOCK_EVENT_CODE,
        signal="neutra",
        impact_score=0,
        title=f"Top 3 destravado ({day})",
        rationale="Top 3 voltou para o modo de sugestão automática.",
        payload={"date": day, "workspaceScope": workspace_scope(workspace_id)},
        created_at=now,
    )
    logger.info(
        "Top focus unlocked for %s", day, extra={"engine_workspace_scope": workspace_scope(workspace_id)}
    )
    return commitment_view(store, day, workspace_id, config)
