"""Daily execution score: one weighted 0-100 number per day with its component breakdown."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from execution_engine.config import EngineConfig
from execution_engine.metrics import clamp_percent
from execution_engine.store import RecordStore
from execution_engine.timewindow import end_of_day, ensure_utc, minutes_between, parse_date, start_of_day, utcnow, within

COMPONENT_WEIGHTS = {
    "a_completion": 40,
    "deep_work": 20,
    "punctuality": 15,
    "non_reschedule": 15,
    "project_connection": 10,
}


def build_execution_score(
    store: RecordStore,
    day: str,
    workspace_id: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    config = config or EngineConfig()
    now = ensure_utc(now) if now else utcnow()
    plan_date = parse_date(day)
    day_start, day_end = start_of_day(plan_date), end_of_day(plan_date)
    target_per_task = config.daily_deep_work_target_minutes

    tasks_by_id = {task.id: task for task in store.list_tasks(include_archived=True)}

    planned_blocks = []
    for block in store.day_plan_blocks(plan_date, plan_date):
        task = tasks_by_id.get(block.task_id) if block.task_id else None
        if block.block_type != "task" or task is None:
            continue
        if workspace_id and task.workspace_id != workspace_id:
            continue
        planned_blocks.append((block, task))
    planned_a = {task.id for _, task in planned_blocks if task.task_type == "a"}

    events = []
    for event in store.execution_events(day_start, day_end):
        task = tasks_by_id.get(event.task_id)
        if workspace_id and (task is None or task.workspace_id != workspace_id):
            continue
        events.append((event, task))
    completed = [(e, t) for e, t in events if e.event_type == "completed"]
    delayed = [(e, t) for e, t in events if e.event_type == "delayed"]
    failed = [(e, t) for e, t in events if e.event_type == "failed"]

    if planned_a:
        completed_a = sum(1 for e, t in completed if t is not None and e.task_id in planned_a)
    else:
        completed_a = sum(1 for _, t in completed if t is not None and t.task_type == "a")
    a_base = max(1, len(planned_a) or completed_a)
    a_rate = completed_a / a_base

    deep_minutes = 0
    for session in store.deep_work_sessions(day_start, day_end, workspace_id=workspace_id):
        if session.state == "active":
            deep_minutes += minutes_between(session.started_at, now)
        else:
            deep_minutes += int(session.actual_minutes or 0)
    deep_target = max(target_per_task, len(planned_a) * target_per_task)
    deep_rate = min(1.0, deep_minutes / deep_target)

    finished_blocks = [(b, t) for b, t in planned_blocks if within(t.completed_at, day_start, day_end)]
    on_time = sum(1 for b, t in finished_blocks if ensure_utc(t.completed_at) <= ensure_utc(b.end_time))
    punctuality_rate = on_time / len(finished_blocks) if finished_blocks else 0.0

    total_confirmations = len(completed) + len(delayed) + len(failed)
    non_reschedule_rate = 1 - len(delayed) / total_confirmations if total_confirmations else 1.0

    connected = sum(1 for _, t in completed if t is not None and t.project_id)
    connection_rate = connected / len(completed) if completed else 0.0

    rates = {
        "a_completion": a_rate,
        "deep_work": deep_rate,
        "punctuality": punctuality_rate,
        "non_reschedule": non_reschedule_rate,
        "project_connection": connection_rate,
    }
    score = clamp_percent(sum(rates[name] * weight for name, weight in COMPONENT_WEIGHTS.items()))

    return {
        "date": plan_date.isoformat(),
        "workspace_id": workspace_id,
        "score": score,
        "components": {
            "a_completion": {
                "weight": COMPONENT_WEIGHTS["a_completion"],
                "value": clamp_percent(a_rate * 100),
                "completed": completed_a,
                "total": a_base,
            },
            "deep_work": {
                "weight": COMPONENT_WEIGHTS["deep_work"],
                "value": clamp_percent(deep_rate * 100),
                "minutes": deep_minutes,
                "target_minutes": deep_target,
            },
            "punctuality": {
                "weight": COMPONENT_WEIGHTS["punctuality"],
                "value": clamp_percent(punctuality_rate * 100),
                "on_time": on_time,
                "total": len(finished_blocks),
            },
            "non_reschedule": {
                "weight": COMPONENT_WEIGHTS["non_reschedule"],
                "value": clamp_percent(non_reschedule_rate * 100),
                "delayed": len(delayed),
                "total": total_confirmations,
            },
            "project_connection": {
                "weight": COMPONENT_WEIGHTS["project_connection"],
                "value": clamp_percent(connection_rate * 100),
                "connected": connected,
                "total": len(completed),
            },
        },
    }
