"""Behavioral stage classification."""

from __future__ import annotations

from typing import Optional

from execution_engine.config import EngineConfig, StageGate
from execution_engine.schema import WindowMetrics


def _threshold_met(value: float, operator: str, limit: float) -> bool:
    if operator == "gte":
        return value >= limit
    if operator == "lte":
        return value <= limit
    raise ValueError(f"Unsupported threshold operator '{operator}'")


def gate_satisfied(gate: StageGate, metrics: WindowMetrics, index: int) -> bool:
    if index < gate.min_index:
        return False
    return all(_threshold_met(getattr(metrics, metric), op, limit) for metric, op, limit in gate.thresholds)


def classify_stage(metrics: WindowMetrics, index: int, config: Optional[EngineConfig] = None) -> str:
    """Highest stage whose gate is satisfied; the lowest stage is the fallback."""

    config = config or EngineConfig()
    ordered = sorted(config.stages, key=lambda gate: gate.min_index, reverse=True)
    for gate in ordered:
        if gate_satisfied(gate, metrics, index):
            return gate.code
    return ordered[-1].code


def next_stage(stage: str, config: Optional[EngineConfig] = None) -> Optional[str]:
    config = config or EngineConfig()
    order = config.stage_order
    if stage not in order:
        return None
    position = order.index(stage)
    return order[position + 1] if position + 1 < len(order) else None


def stage_label(stage: str, config: Optional[EngineConfig] = None) -> str:
    return (config or EngineConfig()).gate(stage).label


def stage_min_index(stage: str, config: Optional[EngineConfig] = None) -> int:
    return (config or EngineConfig()).gate(stage).min_index


def stage_summary(stage: Optional[str], config: Optional[EngineConfig] = None) -> Optional[dict]:
    if stage is None:
        return None
    gate = (config or EngineConfig()).gate(stage)
    return {"code": gate.code, "label": gate.label, "min_index": gate.min_index}
