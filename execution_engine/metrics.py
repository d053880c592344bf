"""Window metrics: rates, deep work, plan composition and the daily composite score."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

import numpy as np

from execution_engine.config import EngineConfig
from execution_engine.ghosts import count_ghost_fronts
from execution_engine.schema import (
    ACTIONABLE_EVENT_TYPES,
    DayPlanBlock,
    DeepWorkSession,
    ExecutionEvent,
    Task,
    WindowMetrics,
)
from execution_engine.store import RecordStore
from execution_engine.timewindow import date_key, ensure_utc, minutes_between, round_half_up

logger = logging.getLogger(__name__)


def clamp_percent(value: float) -> int:
    """Round half-up and clamp into 0..100; non-finite values become 0."""

    if value is None or not math.isfinite(value):
        return 0
    return max(0, min(100, round_half_up(value)))


def clamp_unit(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def round_tenth(value: float) -> float:
    return round_half_up(value * 10) / 10


def session_minutes(session: DeepWorkSession, end: datetime, now: datetime) -> int:
    """Minutes a session contributes; active sessions count elapsed time up to min(end, now)."""

    if session.state == "active":
        bounded_end = end if end < now else now
        return minutes_between(session.started_at, bounded_end)
    return int(session.actual_minutes or 0)


@dataclass
class _DaySignal:
    completed: int = 0
    delayed: int = 0
    failed: int = 0
    completed_a: int = 0
    actionable_a: int = 0
    completed_with_project: int = 0
    deep_minutes: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.delayed + self.failed


def daily_score(signal: _DaySignal, deep_work_target_minutes: int = 45) -> int:
    """Composite 0-100 score of one day; 0 when the day has no activity at all."""

    if signal.total == 0 and signal.deep_minutes == 0:
        return 0

    completion_rate = signal.completed / max(1, signal.total)
    a_rate = signal.completed_a / signal.actionable_a if signal.actionable_a > 0 else completion_rate
    deep_rate = min(1.0, signal.deep_minutes / max(1, deep_work_target_minutes))
    project_rate = signal.completed_with_project / signal.completed if signal.completed > 0 else 0.0

    return clamp_percent((completion_rate * 0.5 + a_rate * 0.2 + deep_rate * 0.2 + project_rate * 0.1) * 100)


def plan_composition(
    blocks: Iterable[DayPlanBlock], tasks_by_id: dict[str, Task], workspace_id: Optional[str] = None
) -> dict:
    """Split planned task minutes into construction/operation and disconnected minutes."""

    construction = operation = disconnected = planned = 0
    for block in blocks:
        if block.block_type != "task" or not block.task_id:
            continue
        task = tasks_by_id.get(block.task_id)
        if task is None:
            continue
        if workspace_id and task.workspace_id != workspace_id:
            continue

        minutes = minutes_between(block.start_time, block.end_time)
        planned += minutes
        if task.execution_kind == "construcao":
            construction += minutes
        else:
            operation += minutes
        if not task.project_id:
            disconnected += minutes

    return {
        "planned_minutes": planned,
        "construction_minutes": construction,
        "operation_minutes": operation,
        "disconnected_minutes": disconnected,
    }


def _scoped_events(
    events: Iterable[ExecutionEvent], tasks_by_id: dict[str, Task], workspace_id: Optional[str]
) -> list[tuple[ExecutionEvent, Optional[Task]]]:
    scoped = []
    for event in events:
        task = tasks_by_id.get(event.task_id)
        if workspace_id and (task is None or task.workspace_id != workspace_id):
            continue
        scoped.append((event, task))
    return scoped


def collect_window_metrics(
    store: RecordStore,
    start: datetime,
    end: datetime,
    *,
    now: datetime,
    window_days: int,
    workspace_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> WindowMetrics:
    """Aggregate the raw facts of ``[start, end]`` into a :class:`WindowMetrics` vector."""

    config = config or EngineConfig()
    start, end, now = ensure_utc(start), ensure_utc(end), ensure_utc(now)

    tasks_by_id = {task.id: task for task in store.list_tasks(include_archived=True)}
    events = _scoped_events(
        store.execution_events(start, end, event_types=ACTIONABLE_EVENT_TYPES), tasks_by_id, workspace_id
    )
    sessions = store.deep_work_sessions(start, end, workspace_id=workspace_id)
    blocks = store.day_plan_blocks(start.date(), end.date())
    ghost_projects = count_ghost_fronts(store, start, end, workspace_id=workspace_id, config=config)

    completed = [(e, t) for e, t in events if e.event_type == "completed"]
    delayed = [(e, t) for e, t in events if e.event_type == "delayed"]

    completed_a = sum(1 for _, task in completed if task is not None and task.task_type == "a")
    actionable_a = sum(1 for _, task in events if task is not None and task.task_type == "a")
    completed_with_project = sum(1 for _, task in completed if task is not None and task.project_id)

    a_completion_rate = completed_a / actionable_a * 100 if actionable_a else 0.0
    reschedule_rate = len(delayed) / len(events) * 100 if events else 0.0
    project_connection_rate = completed_with_project / len(completed) * 100 if completed else 0.0

    deep_work_minutes = sum(session_minutes(session, end, now) for session in sessions)
    deep_work_hours_per_week = deep_work_minutes / max(1, window_days) * 7 / 60

    composition = plan_composition(blocks, tasks_by_id, workspace_id)
    construction_base = max(1, composition["construction_minutes"] + composition["operation_minutes"])
    disconnected_base = max(1, composition["planned_minutes"])

    days: dict[str, _DaySignal] = {}
    for offset in range(window_days):
        days[date_key(start + timedelta(days=offset))] = _DaySignal()

    for event, task in events:
        entry = days.get(date_key(event.timestamp))
        if entry is None:
            continue
        is_a = task is not None and task.task_type == "a"
        if event.event_type == "completed":
            entry.completed += 1
            if is_a:
                entry.completed_a += 1
            if task is not None and task.project_id:
                entry.completed_with_project += 1
        elif event.event_type == "delayed":
            entry.delayed += 1
        elif event.event_type == "failed":
            entry.failed += 1
        if is_a:
            entry.actionable_a += 1

    for session in sessions:
        entry = days.get(date_key(session.started_at))
        if entry is not None:
            entry.deep_minutes += session_minutes(session, end, now)

    daily_scores = [daily_score(entry, config.daily_deep_work_target_minutes) for entry in days.values()]
    consistency = float(np.mean(daily_scores)) if daily_scores else 0.0

    logger.debug(
        "Window %s..%s: %d events, %d sessions, %d plan blocks",
        date_key(start),
        date_key(end),
        len(events),
        len(sessions),
        len(blocks),
    )

    return WindowMetrics(
        a_completion_rate=clamp_percent(a_completion_rate),
        deep_work_hours_per_week=round_tenth(deep_work_hours_per_week),
        reschedule_rate=clamp_percent(reschedule_rate),
        project_connection_rate=clamp_percent(project_connection_rate),
        construction_percent=clamp_percent(composition["construction_minutes"] / construction_base * 100),
        disconnected_percent=clamp_percent(composition["disconnected_minutes"] / disconnected_base * 100),
        ghost_projects=ghost_projects,
        consistency_percent=clamp_percent(consistency),
        daily_scores=daily_scores,
    )


def delayed_counts_by_task(events: Iterable[ExecutionEvent]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for event in events:
        if event.event_type == "delayed":
            counts[event.task_id] += 1
    return dict(counts)
