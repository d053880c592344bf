"""Weekly pulse: how planned and deep-work minutes spread over the days and workspaces of a week."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from execution_engine.metrics import clamp_percent, round_tenth
from execution_engine.store import RecordStore
from execution_engine.timewindow import DAY, MILLISECOND, date_key, ensure_utc, minutes_between, start_of_week, utcnow

_DAY_FIELDS = (
    "planned_minutes",
    "fixed_minutes",
    "deep_work_minutes",
    "construction_minutes",
    "operation_minutes",
    "disconnected_minutes",
)


def build_weekly_pulse(
    store: RecordStore,
    week_start: Optional[str] = None,
    workspace_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    now = ensure_utc(now) if now else utcnow()
    start = start_of_week(week_start or now)
    end = start + 7 * DAY - MILLISECOND

    days = {}
    for offset in range(7):
        key = date_key(start + offset * DAY)
        days[key] = dict({"date": key}, **{name: 0 for name in _DAY_FIELDS})

    workspace_names = {w.id: w.name for w in store.list_workspaces()}
    tasks_by_id = {task.id: task for task in store.list_tasks(include_archived=True)}
    workspace_minutes: dict[str, int] = {}
    heatmap: dict[str, dict[str, int]] = {}

    for block in store.day_plan_blocks(start.date(), end.date()):
        bucket = days.get(date_key(block.plan_date))
        if bucket is None:
            continue
        duration = minutes_between(block.start_time, block.end_time)
        if block.block_type == "fixed":
            bucket["fixed_minutes"] += duration
            continue
        task = tasks_by_id.get(block.task_id) if block.task_id else None
        if task is None or (workspace_id and task.workspace_id != workspace_id):
            continue

        bucket["planned_minutes"] += duration
        if task.execution_kind == "construcao":
            bucket["construction_minutes"] += duration
        else:
            bucket["operation_minutes"] += duration
        if not task.project_id:
            bucket["disconnected_minutes"] += duration

        workspace_minutes[task.workspace_id] = workspace_minutes.get(task.workspace_id, 0) + duration
        by_day = heatmap.setdefault(task.workspace_id, {})
        by_day[bucket["date"]] = by_day.get(bucket["date"], 0) + duration

    for session in store.deep_work_sessions(start, end, workspace_id=workspace_id):
        bucket = days.get(date_key(session.started_at))
        if bucket is None:
            continue
        if session.state == "active":
            bucket["deep_work_minutes"] += minutes_between(session.started_at, now)
        else:
            bucket["deep_work_minutes"] += int(session.actual_minutes or 0)

    day_list = list(days.values())
    totals = {name: sum(day[name] for day in day_list) for name in _DAY_FIELDS}
    construction_base = max(1, totals["construction_minutes"] + totals["operation_minutes"])
    disconnected_base = max(1, totals["planned_minutes"])

    workspace_hours = sorted(
        (
            {
                "workspace_id": ws_id,
                "name": workspace_names.get(ws_id, "Workspace"),
                "minutes": minutes,
                "hours": round_tenth(minutes / 60),
            }
            for ws_id, minutes in workspace_minutes.items()
        ),
        key=lambda entry: entry["minutes"],
        reverse=True,
    )

    workspace_heatmap = []
    for ws_id, by_day in heatmap.items():
        cells = [
            {"date": day["date"], "minutes": by_day.get(day["date"], 0), "hours": round_tenth(by_day.get(day["date"], 0) / 60)}
            for day in day_list
        ]
        total = sum(cell["minutes"] for cell in cells)
        workspace_heatmap.append(
            {
                "workspace_id": ws_id,
                "name": workspace_names.get(ws_id, "Workspace"),
                "total_minutes": total,
                "total_hours": round_tenth(total / 60),
                "days": cells,
            }
        )
    workspace_heatmap.sort(key=lambda entry: entry["total_minutes"], reverse=True)

    return {
        "week_start": date_key(start),
        "week_end": date_key(end),
        "days": day_list,
        "workspace_hours": workspace_hours,
        "workspace_heatmap": workspace_heatmap,
        "composition": {
            "construction_percent": clamp_percent(totals["construction_minutes"] / construction_base * 100),
            "operation_percent": clamp_percent(totals["operation_minutes"] / construction_base * 100),
            "disconnected_percent": clamp_percent(totals["disconnected_minutes"] / disconnected_base * 100),
        },
    }
