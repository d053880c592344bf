"""Trend, promotion and regression analysis plus the full evolution report."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

import numpy as np

from execution_engine.config import EngineConfig
from execution_engine.evaluator import compute_index, count_status, evaluate_rules, rank_by_impact
from execution_engine.journal import build_decision_journal, commitment_signal
from execution_engine.metrics import clamp_percent, collect_window_metrics
from execution_engine.schema import EvolutionRule, StrategicReview, WindowMetrics
from execution_engine.stages import classify_stage, next_stage, stage_label, stage_min_index, stage_summary
from execution_engine.store import RecordStore
from execution_engine.text_signals import normalize_text, perceived_level, tally
from execution_engine.timewindow import DAY, MILLISECOND, date_key, ensure_utc, start_of_day, utcnow

logger = logging.getLogger(__name__)

TREND_THRESHOLD = 6
PROMOTION_GATE_SLACK = 4
PROMOTION_CONSISTENCY_SHARE = 0.65
REGRESSION_LOOKBACK_DAYS = 21
REGRESSION_LOW_SCORE = 45
REGRESSION_MIN_LOW_DAYS = 12
_REVIEW_HISTORY_LIMIT = 16
_DECISION_EVENT_LIMIT = 80

SYSTEM_MODES = {
    "reativo": {
        "focus_limit": 2,
        "deep_work_target_minutes": 45,
        "max_new_tasks_per_day": 4,
        "strict_mode_default": True,
        "allow_bc_execution_while_a_pending": False,
        "review_rhythm": "weekly",
        "enforcement": "Disciplina mínima: simplificar e eliminar excesso de promessas.",
        "workload_guard": "Bloquear criação excessiva e exigir executabilidade antes de agendar.",
    },
    "executor": {
        "focus_limit": 3,
        "deep_work_target_minutes": 60,
        "max_new_tasks_per_day": 6,
        "strict_mode_default": True,
        "allow_bc_execution_while_a_pending": False,
        "review_rhythm": "weekly",
        "enforcement": "Execução consistente: manter o Top 3 e reduzir reagendamento.",
        "workload_guard": "Aumentar a exigência de tarefa A e reservar blocos fixos de foco.",
    },
    "construtor": {
        "focus_limit": 3,
        "deep_work_target_minutes": 90,
        "max_new_tasks_per_day": 8,
        "strict_mode_default": False,
        "allow_bc_execution_while_a_pending": True,
        "review_rhythm": "weekly",
        "enforcement": "Entrega estratégica: cobrar avanço de projeto, não apenas tarefa.",
        "workload_guard": "Meta semanal de construção e marcos por projeto ativo.",
    },
    "estrategista": {
        "focus_limit": 3,
        "deep_work_target_minutes": 120,
        "max_new_tasks_per_day": 10,
        "strict_mode_default": False,
        "allow_bc_execution_while_a_pending": True,
        "review_rhythm": "monthly",
        "enforcement": "Alocação executiva: gerir energia como portfólio estratégico.",
        "workload_guard": "Comparar ciclos e rebalancear construção e operação mensalmente.",
    },
}

STAGE_CHALLENGES = {
    "reativo": {
        "title": "Ritual mínimo de consistência",
        "metric": "consistency_percent",
        "target": 55,
        "unit": "%",
        "reason": "Sem consistência diária não existe evolução estratégica.",
    },
    "executor": {
        "title": "Top 3 sob controle",
        "metric": "a_completion_rate",
        "target": 60,
        "unit": "%",
        "reason": "Executar tarefas A com regularidade consolida a identidade de executor.",
    },
    "construtor": {
        "title": "Construção acima de operação",
        "metric": "construction_percent",
        "target": 45,
        "unit": "%",
        "reason": "Agora o jogo é avanço de projeto e construção de ativo futuro.",
    },
    "estrategista": {
        "title": "Portfólio em equilíbrio",
        "metric": "disconnected_percent",
        "target": 20,
        "unit": "%",
        "reason": "O nível estrategista exige alocação limpa e baixa dispersão operacional.",
    },
}

STAGE_NARRATIVES = {
    "reativo": "Você está em fase de estabilização comportamental. Menos promessa, mais execução básica.",
    "executor": "Você já tem tração. Agora precisa proteger o foco para não voltar ao caos operacional.",
    "construtor": "A execução já existe. O próximo salto vem de entregas estratégicas e marcos de projeto.",
    "estrategista": "Seu sistema está maduro. O ganho agora é alocação inteligente e decisão de portfólio.",
}

ALIGNMENT_NOTES = {
    "sem_dados": "Sem autoavaliação mensal recente para cruzar percepção com realidade.",
    "alinhado": "Percepção e dados objetivos estão alinhados.",
    "superestimado": "Percepção alta com dados baixos. Existe desalinhamento entre narrativa e execução.",
    "subestimado": "Percepção baixa com dados altos. Há subestimação da própria consistência.",
}


def trend_for(delta_index: int) -> str:
    if delta_index >= TREND_THRESHOLD:
        return "subindo"
    if delta_index <= -TREND_THRESHOLD:
        return "caindo"
    return "estavel"


def count_better_days(current_scores: list[int], previous_scores: list[int], previous_index: int) -> int:
    """Days whose score beats the previous window's score at the same offset."""

    better = 0
    for offset, score in enumerate(current_scores):
        baseline = previous_scores[offset] if offset < len(previous_scores) else previous_index
        if score > baseline:
            better += 1
    return better


def count_low_days(scores: list[int]) -> int:
    return sum(1 for score in scores[-REGRESSION_LOOKBACK_DAYS:] if score < REGRESSION_LOW_SCORE)


def objective_level(index: int) -> str:
    if index >= 70:
        return "alto"
    if index <= 45:
        return "baixo"
    return "medio"


def perception_alignment(perceived: str, objective: str) -> str:
    if perceived == "sem_dados":
        return "sem_dados"
    if perceived == "alto" and objective == "baixo":
        return "superestimado"
    if perceived == "baixo" and objective == "alto":
        return "subestimado"
    return "alinhado"


def self_assessment_text(review: Optional[StrategicReview]) -> str:
    """Normalized text of a monthly review: priority, decision, reflection and action items."""

    if review is None:
        return ""
    parts = [review.next_priority, review.strategic_decision, review.reflection, " ".join(review.action_items or [])]
    return normalize_text(" ".join(part for part in parts if part))


def weekly_trajectory(daily_scores: list[int]) -> list[dict]:
    """Trailing 7-day buckets (at most 4), oldest first, labelled S-n ... S-0."""

    buckets = max(1, min(4, math.ceil(len(daily_scores) / 7)))
    trajectory = []
    for position in range(buckets):
        weeks_back = buckets - position - 1
        end = len(daily_scores) - weeks_back * 7
        chunk = daily_scores[max(0, end - 7) : max(0, end)]
        average = float(np.mean(chunk)) if chunk else 0.0
        trajectory.append({"label": f"S-{weeks_back}", "index": clamp_percent(average)})
    return trajectory


def stage_stability(daily_scores: list[int], critical: int, warning: int) -> int:
    spread = float(np.std(daily_scores)) if daily_scores else 0.0
    return clamp_percent(100 - spread * 2 - critical * 6 - warning * 3)


@dataclass
class EvolutionAnalysis:
    """Pure comparison of two window snapshots."""

    rules: list[EvolutionRule]
    index: int
    previous_index: int
    delta_index: int
    trend: str
    stage: str
    next_stage: Optional[str]
    better_days: int
    low_days: int
    critical_count: int
    warning_count: int
    next_stage_gate_met: bool
    promotion_candidate: bool
    promotion_blocked_by_self_assessment: bool
    promotion_recommended: bool
    regression_risk: bool
    perceived_level: str
    objective_level: str
    alignment: str
    confidence: int
    stage_stability: int
    next_actions: list[str] = field(default_factory=list)

    @property
    def top_pressure_rule(self) -> Optional[EvolutionRule]:
        pending = [rule for rule in rank_by_impact(self.rules) if rule.status != "ok"]
        return pending[0] if pending else None


def next_actions_for(rules: list[EvolutionRule], limit: int = 4) -> list[str]:
    actions: list[str] = []
    for rule in rank_by_impact(rules):
        if rule.status == "ok" or rule.recommendation in actions:
            continue
        actions.append(rule.recommendation)
    return actions[:limit]


def analyze_evolution(
    current: WindowMetrics,
    previous: WindowMetrics,
    *,
    window_days: int,
    review_text: str = "",
    config: Optional[EngineConfig] = None,
) -> EvolutionAnalysis:
    config = config or EngineConfig()

    rules = evaluate_rules(current, window_days, config)
    index = compute_index(rules)
    previous_index = compute_index(evaluate_rules(previous, window_days, config))
    delta_index = index - previous_index
    trend = trend_for(delta_index)

    stage = classify_stage(current, index, config)
    upcoming = next_stage(stage, config)
    critical = count_status(rules, "critical")
    warning = count_status(rules, "warning")

    better_days = count_better_days(current.daily_scores, previous.daily_scores, previous_index)
    low_days = count_low_days(current.daily_scores)

    gate_met = bool(upcoming) and index >= stage_min_index(upcoming, config) - PROMOTION_GATE_SLACK and critical <= 1
    candidate = (
        gate_met
        and better_days >= math.ceil(window_days * PROMOTION_CONSISTENCY_SHARE)
        and trend != "caindo"
    )

    text = normalize_text(review_text)
    signals = tally(text, config.high_perception_tokens, config.low_perception_tokens)
    blocked = bool(text) and signals.negative >= max(2, signals.positive + 1)

    perceived = perceived_level(review_text, config.high_perception_tokens, config.low_perception_tokens)
    objective = objective_level(index)

    trend_bonus = {"subindo": 6, "caindo": -6}.get(trend, 0)

    return EvolutionAnalysis(
        rules=rules,
        index=index,
        previous_index=previous_index,
        delta_index=delta_index,
        trend=trend,
        stage=stage,
        next_stage=upcoming,
        better_days=better_days,
        low_days=low_days,
        critical_count=critical,
        warning_count=warning,
        next_stage_gate_met=gate_met,
        promotion_candidate=candidate,
        promotion_blocked_by_self_assessment=blocked,
        promotion_recommended=candidate and not blocked,
        regression_risk=stage != config.stage_order[0]
        and trend == "caindo"
        and low_days >= REGRESSION_MIN_LOW_DAYS,
        perceived_level=perceived,
        objective_level=objective,
        alignment=perception_alignment(perceived, objective),
        confidence=clamp_percent(100 - critical * 16 - warning * 8 + trend_bonus),
        stage_stability=stage_stability(current.daily_scores, critical, warning),
        next_actions=next_actions_for(rules),
    )


def evolution_windows(now: datetime, window_days: int) -> tuple[tuple[datetime, datetime], tuple[datetime, datetime]]:
    """Inclusive current and previous windows; the previous one ends 1 ms before the current starts."""

    current_end = ensure_utc(now)
    current_start = start_of_day(current_end) - (window_days - 1) * DAY
    previous_end = current_start - MILLISECOND
    previous_start = start_of_day(previous_end) - (window_days - 1) * DAY
    return (current_start, current_end), (previous_start, previous_end)


def latest_monthly_review(reviews: Iterable[StrategicReview]) -> Optional[StrategicReview]:
    monthly = [review for review in reviews if review.period_type == "monthly"]
    if not monthly:
        return None
    return max(monthly, key=lambda review: ensure_utc(review.updated_at))


def _promotion_reason(analysis: EvolutionAnalysis, window_days: int, config: EngineConfig) -> str:
    if analysis.promotion_recommended:
        target = analysis.next_stage or analysis.stage
        return (
            f"Sinais consistentes em {analysis.better_days}/{window_days} dias. "
            f"Pronto para evoluir ao nível {stage_label(target, config)}."
        )
    if analysis.next_stage is None:
        return "Você já está no nível máximo de exigência do sistema."
    label = stage_label(analysis.next_stage, config)
    if analysis.promotion_blocked_by_self_assessment:
        return f"Subida ao nível {label} bloqueada por autoavaliação desalinhada."
    return f"Ainda não estabilizou a evolução por {window_days} dias para subir ao nível {label}."


def _regression_reason(analysis: EvolutionAnalysis) -> str:
    if analysis.regression_risk:
        return (
            f"Queda sustentada em {analysis.low_days}/{REGRESSION_LOOKBACK_DAYS} dias. "
            "Recomendado reduzir o escopo e reforçar o ritual básico."
        )
    return "Sem risco forte de regressão no ciclo atual."


def _rule_view(rule: EvolutionRule) -> dict:
    return {
        "id": rule.id,
        "title": rule.title,
        "description": rule.description,
        "metric": rule.metric,
        "operator": rule.operator,
        "current": rule.current,
        "target": rule.target,
        "unit": rule.unit,
        "weight": rule.weight,
        "status": rule.status,
        "contribution": rule.contribution,
        "impact": rule.impact,
        "data_used": rule.data_used,
        "recommendation": rule.recommendation,
    }


def _narrative(analysis: EvolutionAnalysis, mode: dict) -> dict:
    pressure = analysis.top_pressure_rule
    return {
        "summary": f"{STAGE_NARRATIVES.get(analysis.stage, '')} Índice atual {analysis.index} ({analysis.trend}).".strip(),
        "pressure_message": (
            f"Pressão principal: {pressure.title}. Se ignorar, você perde até {pressure.impact} pontos de índice."
            if pressure
            else "Sem pressão crítica dominante no momento."
        ),
        "risk_if_ignored": (
            "Há risco real de regressão de estágio em menos de 3 semanas."
            if analysis.regression_risk
            else "Sem risco imediato de regressão, mas mantenha o protocolo para consolidar a evolução."
        ),
        "next_7_days_plan": analysis.next_actions[:3] + [mode["workload_guard"]],
    }


def build_evolution_report(
    store: RecordStore,
    *,
    workspace_id: Optional[str] = None,
    window_days: Optional[int] = None,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    """Collect both windows, analyze them and assemble the explainable evolution report."""

    config = config or EngineConfig()
    now = ensure_utc(now) if now else utcnow()
    window_days = config.clamp_window(window_days)
    (current_start, current_end), (previous_start, previous_end) = evolution_windows(now, window_days)

    current = collect_window_metrics(
        store, current_start, current_end, now=now, window_days=window_days, workspace_id=workspace_id, config=config
    )
    previous = collect_window_metrics(
        store,
        previous_start,
        previous_end,
        now=previous_end,
        window_days=window_days,
        workspace_id=workspace_id,
        config=config,
    )

    reviews = store.strategic_reviews(workspace_id)
    monthly = latest_monthly_review(reviews)
    analysis = analyze_evolution(
        current, previous, window_days=window_days, review_text=self_assessment_text(monthly), config=config
    )

    lookback_start = start_of_day(now) - (config.journal_lookback_days - 1) * DAY
    recent_reviews = sorted(
        (review for review in reviews if review.period_start >= lookback_start.date()),
        key=lambda review: (review.period_start, ensure_utc(review.updated_at)),
        reverse=True,
    )[:_REVIEW_HISTORY_LIMIT]
    recent_events = list(
        reversed(store.decision_events(start=lookback_start, workspace_id=workspace_id))
    )[:_DECISION_EVENT_LIMIT]
    journal = build_decision_journal(recent_events, recent_reviews, config)

    mode = dict(SYSTEM_MODES[analysis.stage])
    challenge = dict(STAGE_CHALLENGES[analysis.stage])
    challenge["current"] = getattr(current, challenge["metric"])
    challenge["due_date"] = date_key(now + timedelta(days=7))

    logger.info(
        "Evolution report: stage=%s index=%d trend=%s",
        analysis.stage,
        analysis.index,
        analysis.trend,
        extra={"engine_workspace_id": workspace_id, "engine_window_days": window_days},
    )

    stage_view = stage_summary(analysis.stage, config)
    stage_view["next"] = stage_summary(analysis.next_stage, config)

    return {
        "generated_at": now.isoformat(),
        "workspace_id": workspace_id,
        "window_days": window_days,
        "index": analysis.index,
        "previous_index": analysis.previous_index,
        "delta_index": analysis.delta_index,
        "trend": analysis.trend,
        "stage": stage_view,
        "confidence": analysis.confidence,
        "system_mode": mode,
        "challenge": challenge,
        "narrative": _narrative(analysis, mode),
        "metrics": {
            "a_completion_rate": current.a_completion_rate,
            "deep_work_hours_per_week": current.deep_work_hours_per_week,
            "reschedule_rate": current.reschedule_rate,
            "project_connection_rate": current.project_connection_rate,
            "construction_percent": current.construction_percent,
            "disconnected_percent": current.disconnected_percent,
            "consistency_percent": current.consistency_percent,
            "ghost_projects": current.ghost_projects,
        },
        "promotion": {
            "candidate": analysis.promotion_candidate,
            "gate_met": analysis.next_stage_gate_met,
            "recommended": analysis.promotion_recommended,
            "blocked_by_self_assessment": analysis.promotion_blocked_by_self_assessment,
            "block_reason": (
                "Autoavaliação recente sinaliza dispersão ou evitação. Subida de nível bloqueada até estabilizar."
                if analysis.promotion_blocked_by_self_assessment
                else None
            ),
            "days_consistent": analysis.better_days,
            "reason": _promotion_reason(analysis, window_days, config),
        },
        "regression": {
            "risk": analysis.regression_risk,
            "days_decline": analysis.low_days,
            "reason": _regression_reason(analysis),
        },
        "perception_alignment": {
            "status": analysis.alignment,
            "perceived_level": analysis.perceived_level,
            "objective_level": analysis.objective_level,
            "note": ALIGNMENT_NOTES[analysis.alignment],
            "source_period_start": monthly.period_start.isoformat() if monthly else None,
        },
        "learning_loop": {
            "stage_stability": analysis.stage_stability,
            "decision_quality_score": journal["decision_quality_score"],
            "commitment_signal": commitment_signal(recent_reviews),
            "decisions_last_90_days": journal["decisions_last_90_days"],
            "self_assessment_block": analysis.promotion_blocked_by_self_assessment,
            "weekly_trajectory": weekly_trajectory(current.daily_scores),
        },
        "decision_journal": journal["entries"],
        "explainable_rules": [_rule_view(rule) for rule in rank_by_impact(analysis.rules)],
        "next_actions": analysis.next_actions,
    }
