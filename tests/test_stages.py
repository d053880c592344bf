from dataclasses import replace

from execution_engine.evaluator import compute_index, evaluate_rules
from execution_engine.schema import WindowMetrics
from execution_engine.stages import classify_stage, next_stage, stage_summary

STRATEGIST = WindowMetrics(
    a_completion_rate=80,
    deep_work_hours_per_week=8,
    reschedule_rate=5,
    project_connection_rate=80,
    construction_percent=55,
    disconnected_percent=10,
    ghost_projects=0,
    consistency_percent=75,
)

BUILDER = WindowMetrics(
    a_completion_rate=70,
    deep_work_hours_per_week=5,
    reschedule_rate=15,
    project_connection_rate=70,
    construction_percent=45,
    disconnected_percent=25,
    ghost_projects=1,
    consistency_percent=65,
)


def test_strategist_metrics_at_high_index():
    assert classify_stage(STRATEGIST, 90) == "estrategista"


def test_empty_window_is_reactive():
    metrics = WindowMetrics()
    assert classify_stage(metrics, compute_index(evaluate_rules(metrics, 30))) == "reativo"


def test_index_below_gate_falls_back():
    assert classify_stage(STRATEGIST, 83) == "construtor"
    assert classify_stage(STRATEGIST, 54) == "reativo"


def test_builder_gate():
    assert classify_stage(BUILDER, 100) == "construtor"
    assert classify_stage(replace(BUILDER, ghost_projects=3), 100) == "executor"


def test_stage_is_monotonic_in_favorable_metric_moves():
    order = ("reativo", "executor", "construtor", "estrategista")
    base = classify_stage(BUILDER, 100)
    improved = [
        replace(BUILDER, a_completion_rate=90),
        replace(BUILDER, reschedule_rate=0),
        replace(BUILDER, deep_work_hours_per_week=12),
        replace(BUILDER, ghost_projects=0),
    ]
    for metrics in improved:
        assert order.index(classify_stage(metrics, 100)) >= order.index(base)


def test_next_stage_and_summary():
    assert next_stage("reativo") == "executor"
    assert next_stage("estrategista") is None
    assert stage_summary("executor") == {"code": "executor", "label": "Executor", "min_index": 55}
    assert stage_summary(None) is None


def test_raising_index_alone_never_lowers_stage():
    order = ("reativo", "executor", "construtor", "estrategista")
    stages = [order.index(classify_stage(STRATEGIST, index)) for index in range(50, 91)]
    assert stages == sorted(stages)
    assert order[stages[0]] == "reativo"
    assert order[stages[-1]] == "estrategista"
