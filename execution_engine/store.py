"""Record store contract and the in-memory store used by the CLI, demos and tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from execution_engine.schema import (
    DayPlanBlock,
    DeepWorkSession,
    ExecutionEvent,
    Project,
    StrategicDecisionEvent,
    StrategicReview,
    Task,
    Workspace,
)
from execution_engine.timewindow import ensure_utc


class RecordStore(Protocol):
    """Read, append and upsert capabilities the engine needs from persistence."""

    def list_workspaces(self, workspace_id: Optional[str] = None) -> list[Workspace]: ...

    def list_projects(
        self,
        workspace_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        include_archived: bool = False,
    ) -> list[Project]: ...

    def list_tasks(
        self,
        workspace_id: Optional[str] = None,
        open_only: bool = False,
        include_archived: bool = False,
    ) -> list[Task]: ...

    def get_task(self, task_id: str) -> Optional[Task]: ...

    def execution_events(
        self, start: datetime, end: Optional[datetime] = None, event_types: Optional[Iterable[str]] = None
    ) -> list[ExecutionEvent]: ...

    def deep_work_sessions(
        self, start: datetime, end: Optional[datetime] = None, workspace_id: Optional[str] = None
    ) -> list[DeepWorkSession]: ...

    def day_plan_blocks(self, start: date, end: date) -> list[DayPlanBlock]: ...

    def strategic_reviews(
        self, workspace_id: Optional[str] = None, period_type: Optional[str] = None
    ) -> list[StrategicReview]: ...

    def decision_events(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        workspace_id: Optional[str] = None,
        exact_workspace: bool = False,
        event_codes: Optional[Iterable[str]] = None,
    ) -> list[StrategicDecisionEvent]: ...

    def append_execution_event(self, event: ExecutionEvent) -> None: ...

    def append_decision_event(self, event: StrategicDecisionEvent) -> None: ...

    def upsert_review(self, review: StrategicReview) -> StrategicReview: ...

    def set_project_status(self, project_ids: Iterable[str], status: str) -> int: ...


@dataclass
class InMemoryStore:
    """List-backed store. Append order is preserved; queries return new lists."""

    workspaces: list[Workspace] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    events: list[ExecutionEvent] = field(default_factory=list)
    sessions: list[DeepWorkSession] = field(default_factory=list)
    blocks: list[DayPlanBlock] = field(default_factory=list)
    reviews: list[StrategicReview] = field(default_factory=list)
    decisions: list[StrategicDecisionEvent] = field(default_factory=list)

    def list_workspaces(self, workspace_id: Optional[str] = None) -> list[Workspace]:
        return [w for w in self.workspaces if workspace_id is None or w.id == workspace_id]

    def list_projects(self, workspace_id=None, statuses=None, include_archived=False) -> list[Project]:
        wanted = set(statuses) if statuses is not None else None
        result = []
        for project in self.projects:
            if workspace_id is not None and project.workspace_id != workspace_id:
                continue
            if not include_archived and project.archived_at is not None:
                continue
            if wanted is not None and project.status not in wanted:
                continue
            result.append(project)
        return result

    def list_tasks(self, workspace_id=None, open_only=False, include_archived=False) -> list[Task]:
        result = []
        for task in self.tasks:
            if workspace_id is not None and task.workspace_id != workspace_id:
                continue
            if open_only and not task.is_open:
                continue
            if not include_archived and task.archived_at is not None:
                continue
            result.append(task)
        return result

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def execution_events(self, start, end=None, event_types=None) -> list[ExecutionEvent]:
        wanted = set(event_types) if event_types is not None else None
        return [
            event
            for event in self.events
            if (wanted is None or event.event_type in wanted)
            and ensure_utc(event.timestamp) >= start
            and (end is None or ensure_utc(event.timestamp) <= end)
        ]

    def deep_work_sessions(self, start, end=None, workspace_id=None) -> list[DeepWorkSession]:
        return [
            session
            for session in self.sessions
            if (workspace_id is None or session.workspace_id == workspace_id)
            and ensure_utc(session.started_at) >= start
            and (end is None or ensure_utc(session.started_at) <= end)
        ]

    def day_plan_blocks(self, start: date, end: date) -> list[DayPlanBlock]:
        return [block for block in self.blocks if start <= block.plan_date <= end]

    def strategic_reviews(self, workspace_id=None, period_type=None) -> list[StrategicReview]:
        scope = workspace_id or "__all__"
        return [
            review
            for review in self.reviews
            if review.workspace_scope == scope and (period_type is None or review.period_type == period_type)
        ]

    def decision_events(
        self, start=None, end=None, workspace_id=None, exact_workspace=False, event_codes=None
    ) -> list[StrategicDecisionEvent]:
        codes = set(event_codes) if event_codes is not None else None
        result = []
        for event in self.decisions:
            if exact_workspace or workspace_id is not None:
                if event.workspace_id != workspace_id:
                    continue
            if codes is not None and event.event_code not in codes:
                continue
            created_at = ensure_utc(event.created_at)
            if start is not None and created_at < start:
                continue
            if end is not None and created_at > end:
                continue
            result.append(event)
        return sorted(result, key=lambda e: ensure_utc(e.created_at))

    def append_execution_event(self, event: ExecutionEvent) -> None:
        self.events.append(event)

    def append_decision_event(self, event: StrategicDecisionEvent) -> None:
        self.decisions.append(event)

    def upsert_review(self, review: StrategicReview) -> StrategicReview:
        for index, existing in enumerate(self.reviews):
            if existing.key == review.key:
                merged = replace(review, id=existing.id)
                self.reviews[index] = merged
                return merged
        self.reviews.append(review)
        return review

    def set_project_status(self, project_ids, status: str) -> int:
        ids = set(project_ids)
        changed = 0
        for project in self.projects:
            if project.id in ids and project.status != status:
                project.status = status
                changed += 1
        return changed
