"""Core data schema for execution facts and derived metrics."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

OPEN_TASK_STATUSES = ("backlog", "hoje", "andamento")
ACTIONABLE_EVENT_TYPES = ("completed", "delayed", "failed")
EVENT_TYPES = ("completed", "delayed", "failed", "confirmed")
SESSION_STATES = ("active", "completed", "broken")
BLOCK_TYPES = ("task", "fixed")
DECISION_SIGNALS = ("executiva", "risco", "neutra")
ALL_WORKSPACES_SCOPE = "__all__"


@dataclass
class Workspace:
    id: str
    name: str
    type: str = "empresa"
    mode: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Project:
    id: str
    title: str
    workspace_id: str
    status: str = "ativo"
    last_strategic_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None


@dataclass
class Task:
    """Task record as read from the store; ``open_restrictions`` counts restrictions still open."""

    id: str
    title: str
    workspace_id: str
    created_at: datetime
    project_id: Optional[str] = None
    task_type: str = "b"
    status: str = "backlog"
    priority: int = 0
    due_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    definition_of_done: Optional[str] = None
    estimated_minutes: Optional[int] = None
    execution_kind: str = "operacao"
    waiting_on_person: Optional[str] = None
    waiting_type: Optional[str] = None
    waiting_priority: Optional[str] = None
    waiting_due_date: Optional[datetime] = None
    open_restrictions: int = 0
    archived_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.archived_at is None and self.status in OPEN_TASK_STATUSES


@dataclass
class ExecutionEvent:
    """Immutable task lifecycle fact."""

    task_id: str
    event_type: str
    timestamp: datetime
    failure_reason: Optional[str] = None


@dataclass
class DeepWorkSession:
    id: str
    workspace_id: str
    started_at: datetime
    state: str = "completed"
    task_id: Optional[str] = None
    project_id: Optional[str] = None
    ended_at: Optional[datetime] = None
    target_minutes: int = 45
    actual_minutes: int = 0


@dataclass
class DayPlanBlock:
    plan_date: date
    start_time: datetime
    end_time: datetime
    block_type: str = "task"
    task_id: Optional[str] = None


@dataclass
class StrategicDecisionEvent:
    """Append-only decision log entry; also backs the top-focus commitment."""

    id: str
    event_code: str
    signal: str
    title: str
    created_at: datetime
    source: str = "system"
    workspace_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    rationale: Optional[str] = None
    impact_score: int = 0
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class StrategicReview:
    """Weekly or monthly journal entry, unique per (period_type, period_start, workspace_scope)."""

    id: str
    period_type: str
    period_start: date
    updated_at: datetime
    workspace_id: Optional[str] = None
    next_priority: str = ""
    strategic_decision: str = ""
    commitment_level: Optional[str] = None
    reflection: str = ""
    action_items: list[str] = field(default_factory=list)

    @property
    def workspace_scope(self) -> str:
        return self.workspace_id or ALL_WORKSPACES_SCOPE

    @property
    def key(self) -> tuple[str, date, str]:
        return (self.period_type, self.period_start, self.workspace_scope)


@dataclass
class WindowMetrics:
    """Metric vector of one time window; percentages are clamped 0-100 and rounded."""

    a_completion_rate: int = 0
    deep_work_hours_per_week: float = 0.0
    reschedule_rate: int = 0
    project_connection_rate: int = 0
    construction_percent: int = 0
    disconnected_percent: int = 0
    ghost_projects: int = 0
    consistency_percent: int = 0
    daily_scores: list[int] = field(default_factory=list)


@dataclass
class EvolutionRule:
    id: str
    title: str
    description: str
    metric: str
    current: float
    target: float
    operator: str
    unit: str
    weight: int
    data_used: str
    recommendation: str
    status: str
    contribution: int
    impact: int
