"""JSON adapter: a whole execution dataset loaded into an in-memory store."""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Callable, Optional

from execution_engine.schema import (
    BLOCK_TYPES,
    DECISION_SIGNALS,
    EVENT_TYPES,
    SESSION_STATES,
    DayPlanBlock,
    DeepWorkSession,
    ExecutionEvent,
    Project,
    StrategicDecisionEvent,
    StrategicReview,
    Task,
    Workspace,
)
from execution_engine.store import InMemoryStore
from execution_engine.timewindow import ensure_utc

_SECTIONS = ("workspaces", "projects", "tasks", "events", "sessions", "plan_blocks", "reviews", "decisions")


def _require(item: dict, fields: tuple[str, ...], where: str) -> None:
    missing = [field for field in fields if item.get(field) in (None, "")]
    if missing:
        raise ValueError(f"{where}: missing required fields {missing}")


def _datetime(value: Any, field: str, where: str) -> datetime:
    try:
        return ensure_utc(datetime.fromisoformat(str(value)))
    except ValueError as exc:
        raise ValueError(f"{where}: malformed {field}") from exc


def _optional_datetime(item: dict, field: str, where: str) -> Optional[datetime]:
    value = item.get(field)
    if value in (None, ""):
        return None
    return _datetime(value, field, where)


def _date(value: Any, field: str, where: str) -> date:
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValueError(f"{where}: malformed {field}") from exc


def _int(item: dict, field: str, where: str, default: Optional[int] = 0) -> Optional[int]:
    value = item.get(field)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{where}: invalid {field}") from exc


def _choice(value: str, allowed: tuple[str, ...], field: str, where: str) -> str:
    if value not in allowed:
        raise ValueError(f"{where}: invalid {field} '{value}'")
    return value


def _text(item: dict, field: str) -> Optional[str]:
    value = item.get(field)
    return str(value).strip() if value not in (None, "") else None


def _workspace(item: dict, where: str) -> Workspace:
    _require(item, ("id", "name"), where)
    return Workspace(
        id=str(item["id"]),
        name=str(item["name"]),
        type=str(item.get("type") or "empresa"),
        mode=_text(item, "mode"),
        created_at=_optional_datetime(item, "created_at", where),
    )


def _project(item: dict, where: str) -> Project:
    _require(item, ("id", "title", "workspace_id"), where)
    return Project(
        id=str(item["id"]),
        title=str(item["title"]),
        workspace_id=str(item["workspace_id"]),
        status=str(item.get("status") or "ativo"),
        last_strategic_at=_optional_datetime(item, "last_strategic_at", where),
        created_at=_optional_datetime(item, "created_at", where),
        updated_at=_optional_datetime(item, "updated_at", where),
        archived_at=_optional_datetime(item, "archived_at", where),
    )


def _task(item: dict, where: str) -> Task:
    _require(item, ("id", "title", "workspace_id", "created_at"), where)
    return Task(
        id=str(item["id"]),
        title=str(item["title"]),
        workspace_id=str(item["workspace_id"]),
        created_at=_datetime(item["created_at"], "created_at", where),
        project_id=_text(item, "project_id"),
        task_type=_choice(str(item.get("task_type") or "b"), ("a", "b", "c"), "task_type", where),
        status=str(item.get("status") or "backlog"),
        priority=_int(item, "priority", where),
        due_date=_optional_datetime(item, "due_date", where),
        updated_at=_optional_datetime(item, "updated_at", where),
        completed_at=_optional_datetime(item, "completed_at", where),
        definition_of_done=_text(item, "definition_of_done"),
        estimated_minutes=_int(item, "estimated_minutes", where, default=None),
        execution_kind=_choice(
            str(item.get("execution_kind") or "operacao"), ("construcao", "operacao"), "execution_kind", where
        ),
        waiting_on_person=_text(item, "waiting_on_person"),
        waiting_type=_text(item, "waiting_type"),
        waiting_priority=_text(item, "waiting_priority"),
        waiting_due_date=_optional_datetime(item, "waiting_due_date", where),
        open_restrictions=_int(item, "open_restrictions", where),
        archived_at=_optional_datetime(item, "archived_at", where),
    )


def _event(item: dict, where: str) -> ExecutionEvent:
    _require(item, ("task_id", "event_type", "timestamp"), where)
    return ExecutionEvent(
        task_id=str(item["task_id"]),
        event_type=_choice(str(item["event_type"]).strip(), EVENT_TYPES, "event_type", where),
        timestamp=_datetime(item["timestamp"], "timestamp", where),
        failure_reason=_text(item, "failure_reason"),
    )


def _session(item: dict, where: str) -> DeepWorkSession:
    _require(item, ("id", "workspace_id", "started_at"), where)
    return DeepWorkSession(
        id=str(item["id"]),
        workspace_id=str(item["workspace_id"]),
        started_at=_datetime(item["started_at"], "started_at", where),
        state=_choice(str(item.get("state") or "completed"), SESSION_STATES, "state", where),
        task_id=_text(item, "task_id"),
        project_id=_text(item, "project_id"),
        ended_at=_optional_datetime(item, "ended_at", where),
        target_minutes=_int(item, "target_minutes", where, default=45),
        actual_minutes=_int(item, "actual_minutes", where),
    )


def _block(item: dict, where: str) -> DayPlanBlock:
    _require(item, ("plan_date", "start_time", "end_time"), where)
    return DayPlanBlock(
        plan_date=_date(item["plan_date"], "plan_date", where),
        start_time=_datetime(item["start_time"], "start_time", where),
        end_time=_datetime(item["end_time"], "end_time", where),
        block_type=_choice(str(item.get("block_type") or "task"), BLOCK_TYPES, "block_type", where),
        task_id=_text(item, "task_id"),
    )


def _review(item: dict, where: str) -> StrategicReview:
    _require(item, ("id", "period_type", "period_start", "updated_at"), where)
    action_items = item.get("action_items") or []
    if not isinstance(action_items, list):
        raise ValueError(f"{where}: action_items must be a list")
    return StrategicReview(
        id=str(item["id"]),
        period_type=_choice(str(item["period_type"]), ("weekly", "monthly"), "period_type", where),
        period_start=_date(item["period_start"], "period_start", where),
        updated_at=_datetime(item["updated_at"], "updated_at", where),
        workspace_id=_text(item, "workspace_id"),
        next_priority=str(item.get("next_priority") or ""),
        strategic_decision=str(item.get("strategic_decision") or ""),
        commitment_level=_text(item, "commitment_level"),
        reflection=str(item.get("reflection") or ""),
        action_items=[str(entry) for entry in action_items],
    )


def _decision(item: dict, where: str) -> StrategicDecisionEvent:
    _require(item, ("id", "event_code", "signal", "title", "created_at"), where)
    payload = item.get("payload") or {}
    if not isinstance(payload, dict):
        raise ValueError(f"{where}: payload must be an object")
    return StrategicDecisionEvent(
        id=str(item["id"]),
        event_code=str(item["event_code"]),
        signal=_choice(str(item["signal"]), DECISION_SIGNALS, "signal", where),
        title=str(item["title"]),
        created_at=_datetime(item["created_at"], "created_at", where),
        source=str(item.get("source") or "system"),
        workspace_id=_text(item, "workspace_id"),
        project_id=_text(item, "project_id"),
        task_id=_text(item, "task_id"),
        rationale=_text(item, "rationale"),
        impact_score=_int(item, "impact_score", where),
        payload=payload,
    )


_BUILDERS: dict[str, Callable[[dict, str], Any]] = {
    "workspaces": _workspace,
    "projects": _project,
    "tasks": _task,
    "events": _event,
    "sessions": _session,
    "plan_blocks": _block,
    "reviews": _review,
    "decisions": _decision,
}


def load(payload: dict) -> InMemoryStore:
    """Build a store from an already decoded dataset object."""

    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object keyed by section")
    unknown = sorted(set(payload) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown dataset sections {unknown}")

    sections: dict[str, list] = {}
    for section in _SECTIONS:
        items = payload.get(section, [])
        if not isinstance(items, list):
            raise ValueError(f"Section '{section}' must be a list of objects")
        parsed = []
        for index, item in enumerate(items, start=1):
            where = f"{section} item {index}"
            if not isinstance(item, dict):
                raise ValueError(f"{where}: expected an object")
            parsed.append(_BUILDERS[section](item, where))
        sections[section] = parsed

    return InMemoryStore(
        workspaces=sections["workspaces"],
        projects=sections["projects"],
        tasks=sections["tasks"],
        events=sections["events"],
        sessions=sections["sessions"],
        blocks=sections["plan_blocks"],
        reviews=sections["reviews"],
        decisions=sections["decisions"],
    )


def parse(file_path: str) -> InMemoryStore:
    """Parse a JSON dataset file into an :class:`InMemoryStore`."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)
    return load(payload)
