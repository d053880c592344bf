"""Engine configuration: capacity, windows, rule table, stage gates and token lists."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class RuleSpec:
    """One weighted target rule of the evolution index."""

    id: str
    title: str
    description: str
    metric: str
    target: float
    operator: str
    unit: str
    weight: int
    data_used: str
    recommendation: str


@dataclass(frozen=True)
class StageGate:
    """Minimum index plus metric thresholds required to hold a stage."""

    code: str
    label: str
    min_index: int
    thresholds: tuple[tuple[str, str, float], ...] = ()


DEFAULT_RULES: tuple[RuleSpec, ...] = (
    RuleSpec(
        id="a_completion",
        title="Conclusão de tarefas A",
        description="Percentual de tarefas A concluídas frente aos sinais reais de execução e falha.",
        metric="a_completion_rate",
        target=60,
        operator="gte",
        unit="%",
        weight=22,
        data_used="execution_events (completed/delayed/failed) dos últimos {window_days} dias",
        recommendation="Reduza o escopo do dia e proteja as tarefas A antes de qualquer tarefa B/C.",
    ),
    RuleSpec(
        id="deep_work",
        title="Deep Work semanal",
        description="Horas médias de Deep Work por semana no período.",
        metric="deep_work_hours_per_week",
        target=4,
        operator="gte",
        unit="h/sem",
        weight=16,
        data_used="deep_work_sessions dos últimos {window_days} dias",
        recommendation="Reserve ao menos 4 sessões de 45 minutos por semana para tarefas A.",
    ),
    RuleSpec(
        id="reschedule",
        title="Controle de reagendamento",
        description="Taxa de adiamentos sobre os eventos executivos do período.",
        metric="reschedule_rate",
        target=20,
        operator="lte",
        unit="%",
        weight=14,
        data_used="execution_events delayed / total dos últimos {window_days} dias",
        recommendation="Tarefa A reagendada 3 vezes vira uma ação mínima de 15 minutos hoje.",
    ),
    RuleSpec(
        id="project_connection",
        title="Conexão com projeto",
        description="Percentual de conclusões ligadas a um projeto estratégico.",
        metric="project_connection_rate",
        target=65,
        operator="gte",
        unit="%",
        weight=14,
        data_used="execution_events completed com projeto dos últimos {window_days} dias",
        recommendation="Conecte tarefas soltas a projetos ativos ou elimine o que não gera resultado.",
    ),
    RuleSpec(
        id="construction",
        title="Construção de futuro",
        description="Proporção de minutos planejados em construção frente a operação.",
        metric="construction_percent",
        target=40,
        operator="gte",
        unit="%",
        weight=12,
        data_used="blocos de tarefa do plano do dia (execution_kind) dos últimos {window_days} dias",
        recommendation="Coloque blocos de construção no início do dia, antes de abrir a operação.",
    ),
    RuleSpec(
        id="disconnected",
        title="Execução desconexa",
        description="Percentual de minutos planejados sem vínculo com projeto.",
        metric="disconnected_percent",
        target=30,
        operator="lte",
        unit="%",
        weight=8,
        data_used="blocos de tarefa sem projeto dos últimos {window_days} dias",
        recommendation="Limite tarefas desconexas e amarre ao menos 70% da execução a projetos.",
    ),
    RuleSpec(
        id="consistency",
        title="Consistência de execução",
        description="Média do score diário de conclusão, Deep Work e conexão estratégica.",
        metric="consistency_percent",
        target=60,
        operator="gte",
        unit="%",
        weight=8,
        data_used="score diário composto em {window_days} dias",
        recommendation="Proteja o ritual de manhã e de noite para estabilizar a execução mínima diária.",
    ),
    RuleSpec(
        id="ghost_projects",
        title="Frentes fantasma",
        description="Frentes ativas sem tração estratégica suficiente.",
        metric="ghost_projects",
        target=1,
        operator="lte",
        unit="frentes",
        weight=6,
        data_used="frentes sem projeto com tração e sem tarefa A na janela",
        recommendation="Reative a frente com uma tarefa A e Deep Work, ou declare a frente em standby.",
    ),
)

DEFAULT_STAGES: tuple[StageGate, ...] = (
    StageGate(code="reativo", label="Reativo", min_index=0),
    StageGate(
        code="executor",
        label="Executor",
        min_index=55,
        thresholds=(
            ("a_completion_rate", "gte", 45),
            ("deep_work_hours_per_week", "gte", 2),
            ("reschedule_rate", "lte", 35),
            ("consistency_percent", "gte", 40),
        ),
    ),
    StageGate(
        code="construtor",
        label="Construtor",
        min_index=70,
        thresholds=(
            ("a_completion_rate", "gte", 60),
            ("deep_work_hours_per_week", "gte", 4),
            ("reschedule_rate", "lte", 22),
            ("project_connection_rate", "gte", 60),
            ("construction_percent", "gte", 40),
            ("ghost_projects", "lte", 2),
            ("consistency_percent", "gte", 55),
        ),
    ),
    StageGate(
        code="estrategista",
        label="Estrategista",
        min_index=84,
        thresholds=(
            ("a_completion_rate", "gte", 75),
            ("deep_work_hours_per_week", "gte", 6),
            ("reschedule_rate", "lte", 12),
            ("project_connection_rate", "gte", 75),
            ("construction_percent", "gte", 50),
            ("disconnected_percent", "lte", 20),
            ("ghost_projects", "lte", 0),
            ("consistency_percent", "gte", 70),
        ),
    ),
)

HIGH_PERCEPTION_TOKENS = ("avancei", "forte", "excelente", "controle", "consistente", "otimo", "progresso")
LOW_PERCEPTION_TOKENS = ("dispers", "trav", "caos", "atras", "evita", "fraco", "sem foco", "desorganiz")
DECISION_FOCUS_TOKENS = ("encerrar", "cortar", "prioriz", "foco", "deleg", "elimin", "reativ")
DECISION_RISK_TOKENS = ("adiar", "depois", "trav", "medo", "dispers", "sem foco", "atras")


def ensure_weights_sum(rules: tuple[RuleSpec, ...], expected: int = 100) -> None:
    """Raise when the rule table weights do not add up to ``expected``."""

    total = sum(rule.weight for rule in rules)
    if total != expected:
        raise ValueError(f"Rule weights must sum to {expected}, got {total}")


@dataclass(frozen=True)
class EngineConfig:
    day_capacity_minutes: int = 17 * 60
    expansion_alert_grace_hours: int = 72
    default_window_days: int = 30
    min_window_days: int = 21
    max_window_days: int = 60
    daily_deep_work_target_minutes: int = 45
    traction_days: int = 14
    journal_lookback_days: int = 90
    journal_limit: int = 12
    actionable_limit: int = 12
    top_focus_size: int = 3
    log_format: str = "json"
    rules: tuple[RuleSpec, ...] = DEFAULT_RULES
    stages: tuple[StageGate, ...] = DEFAULT_STAGES
    high_perception_tokens: tuple[str, ...] = HIGH_PERCEPTION_TOKENS
    low_perception_tokens: tuple[str, ...] = LOW_PERCEPTION_TOKENS
    decision_focus_tokens: tuple[str, ...] = DECISION_FOCUS_TOKENS
    decision_risk_tokens: tuple[str, ...] = DECISION_RISK_TOKENS

    def __post_init__(self) -> None:
        ensure_weights_sum(self.rules)
        if not 1 <= self.min_window_days <= self.max_window_days:
            raise ValueError("min_window_days must be >= 1 and <= max_window_days")
        if not self.min_window_days <= self.default_window_days <= self.max_window_days:
            raise ValueError("default_window_days must lie within the window bounds")
        for name in ("day_capacity_minutes", "daily_deep_work_target_minutes", "traction_days", "top_focus_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be a positive integer")
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Unsupported log format '{self.log_format}'")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw in (None, ""):
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ValueError(f"{name} must be an integer, got '{raw}'") from exc

        return cls(
            day_capacity_minutes=_int("EXECUTION_ENGINE_DAY_CAPACITY_MINUTES", 17 * 60),
            default_window_days=_int("EXECUTION_ENGINE_WINDOW_DAYS", 30),
            daily_deep_work_target_minutes=_int("EXECUTION_ENGINE_DEEP_WORK_TARGET_MINUTES", 45),
            traction_days=_int("EXECUTION_ENGINE_TRACTION_DAYS", 14),
            log_format=os.environ.get("EXECUTION_ENGINE_LOG_FORMAT", "json"),
        )

    def gate(self, stage: str) -> StageGate:
        for gate in self.stages:
            if gate.code == stage:
                return gate
        raise KeyError(stage)

    def clamp_window(self, days: float | None) -> int:
        """Clamp a requested window length into the configured bounds."""

        value = self.default_window_days if days is None or not math.isfinite(days) else days
        return max(self.min_window_days, min(self.max_window_days, int(round(value))))

    @property
    def stage_order(self) -> tuple[str, ...]:
        return tuple(gate.code for gate in sorted(self.stages, key=lambda gate: gate.min_index))
