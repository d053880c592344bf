"""Weighted target rules that turn a metric vector into the 0-100 evolution index."""

from __future__ import annotations

from typing import Optional

from execution_engine.config import EngineConfig, RuleSpec
from execution_engine.metrics import clamp_percent, clamp_unit
from execution_engine.schema import EvolutionRule, WindowMetrics


def evaluate_rule(spec: RuleSpec, current: float, window_days: int) -> EvolutionRule:
    """Score one rule.

    ``gte`` rules earn ``current / target`` of their weight (full weight when the
    target is not positive). ``lte`` rules earn full weight when met, otherwise
    ``target / max(1, current)``. A failed rule is a warning from a 0.75 ratio up
    and critical below it.
    """

    if spec.operator == "gte":
        passed = current >= spec.target
        ratio = 1.0 if spec.target <= 0 else clamp_unit(current / spec.target)
    elif spec.operator == "lte":
        passed = current <= spec.target
        ratio = 1.0 if passed else clamp_unit(spec.target / max(1, current))
    else:
        raise ValueError(f"Rule '{spec.id}': unsupported operator '{spec.operator}'")

    if passed:
        status = "ok"
    elif ratio >= 0.75:
        status = "warning"
    else:
        status = "critical"

    contribution = clamp_percent(spec.weight * ratio)
    impact = max(0, spec.weight - contribution)

    return EvolutionRule(
        id=spec.id,
        title=spec.title,
        description=spec.description,
        metric=spec.metric,
        current=current,
        target=spec.target,
        operator=spec.operator,
        unit=spec.unit,
        weight=spec.weight,
        data_used=spec.data_used.format(window_days=window_days),
        recommendation=spec.recommendation,
        status=status,
        contribution=contribution,
        impact=impact,
    )


def evaluate_rules(
    metrics: WindowMetrics, window_days: int, config: Optional[EngineConfig] = None
) -> list[EvolutionRule]:
    """Evaluate every configured rule against ``metrics`` in table order."""

    config = config or EngineConfig()
    return [evaluate_rule(spec, getattr(metrics, spec.metric), window_days) for spec in config.rules]


def compute_index(rules: list[EvolutionRule]) -> int:
    return clamp_percent(sum(rule.contribution for rule in rules))


def count_status(rules: list[EvolutionRule], status: str) -> int:
    return sum(1 for rule in rules if rule.status == status)


def rank_by_impact(rules: list[EvolutionRule]) -> list[EvolutionRule]:
    """Rules sorted by lost points, largest first; table order breaks ties."""

    return sorted(rules, key=lambda rule: rule.impact, reverse=True)
