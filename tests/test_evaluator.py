from execution_engine.config import DEFAULT_RULES, RuleSpec
from execution_engine.evaluator import compute_index, count_status, evaluate_rule, evaluate_rules, rank_by_impact
from execution_engine.schema import WindowMetrics


def _rule(metric="a_completion_rate", target=60, operator="gte", weight=22):
    return RuleSpec("r", "Rule", "desc", metric, target, operator, "%", weight, "events of {window_days} days", "do it")


def test_gte_rule_partial_credit_is_warning_or_critical():
    warning = evaluate_rule(_rule(), 50, 30)
    assert warning.status == "warning"
    assert warning.contribution == 18
    assert warning.impact == 4

    critical = evaluate_rule(_rule(), 30, 30)
    assert critical.status == "critical"
    assert critical.contribution == 11


def test_gte_rule_with_non_positive_target_earns_full_weight():
    result = evaluate_rule(_rule(target=0), 0, 30)
    assert result.status == "ok"
    assert result.contribution == 22


def test_lte_rule_ratio_only_applies_when_failed():
    met = evaluate_rule(_rule(metric="reschedule_rate", target=20, operator="lte", weight=14), 20, 30)
    assert met.status == "ok"
    assert met.contribution == 14

    failed = evaluate_rule(_rule(metric="reschedule_rate", target=20, operator="lte", weight=14), 40, 30)
    assert failed.status == "critical"
    assert failed.contribution == 7

    zero_target = evaluate_rule(_rule(metric="ghost_projects", target=0, operator="lte", weight=6), 0, 30)
    assert zero_target.status == "ok"


def test_data_used_mentions_window():
    assert evaluate_rule(_rule(), 10, 45).data_used == "events of 45 days"


def test_contribution_plus_impact_is_weight():
    for spec in DEFAULT_RULES:
        for current in (0, 1, 5, 19, 20, 21, 44, 60, 99, 100, 250):
            result = evaluate_rule(spec, current, 30)
            assert result.contribution + result.impact == spec.weight
            assert 0 <= result.contribution <= spec.weight


def test_index_bounds_and_ranking():
    perfect = WindowMetrics(
        a_completion_rate=80,
        deep_work_hours_per_week=8,
        reschedule_rate=5,
        project_connection_rate=80,
        construction_percent=55,
        disconnected_percent=10,
        ghost_projects=0,
        consistency_percent=75,
    )
    assert compute_index(evaluate_rules(perfect, 30)) == 100

    empty_rules = evaluate_rules(WindowMetrics(), 30)
    assert compute_index(empty_rules) == 28
    assert count_status(empty_rules, "critical") == 5

    ranked = rank_by_impact(empty_rules)
    assert [rule.id for rule in ranked[:2]] == ["a_completion", "deep_work"]
    assert ranked[-1].impact == 0
