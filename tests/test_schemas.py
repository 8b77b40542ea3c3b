from datetime import timedelta

import pytest
from pydantic import ValidationError

from errors import InvalidDecisionTree, SessionCompleted
from sample_trees import complaint_delay_tree, module4_escalation_tree
from schemas import (
    INVALID_OPTION_FEEDBACK,
    ConsequenceType,
    DecisionOption,
    DecisionPoint,
    DecisionTree,
    DecisionTreeProgress,
    Impact,
    utcnow,
)


def _point(**overrides):
    data = {
        "id": "dp",
        "title": "Point",
        "options": [
            {"id": "a", "text": "A", "points": 10, "feedback": "Good choice!", "isOptimal": True,
             "nextDecisionId": "next",
             "consequences": [{"type": "positive", "description": "Fast", "impact": "high", "delay": 1000}]},
            {"id": "b", "text": "B", "points": 20, "feedback": "Greedy"},
        ],
    }
    data.update(overrides)
    return DecisionPoint.model_validate(data)


def test_option_defaults():
    option = DecisionOption(id="test-option", text="Test Option", points=10)
    assert option.isOptimal is False
    assert option.category == "neutral"
    assert option.nextDecisionId is None
    assert option.consequences == []


def test_blank_next_decision_is_terminal():
    assert DecisionOption(id="x", nextDecisionId="").nextDecisionId is None


def test_missing_ids_are_generated():
    first, second = DecisionOption(), DecisionOption()
    assert first.id and second.id and first.id != second.id


def test_authored_models_are_frozen():
    option = DecisionOption(id="x", points=1)
    with pytest.raises(ValidationError):
        option.points = 5


def test_evaluate_decision_copies_option_fields():
    point = _point()
    result = point.evaluate_decision("a")
    assert result.points == 10
    assert result.feedback == "Good choice!"
    assert result.nextDecisionId == "next"
    assert result.isOptimal is True
    assert result.option.id == "a"
    assert result.consequences[0].type == ConsequenceType.POSITIVE
    assert result.consequences[0].impact == Impact.HIGH
    assert result.is_valid


def test_evaluate_unknown_option_returns_zero_point_result():
    result = _point().evaluate_decision("nonexistent")
    assert result.points == 0
    assert result.feedback == INVALID_OPTION_FEEDBACK
    assert result.nextDecisionId is None
    assert result.consequences == []
    assert result.isOptimal is False
    assert result.option is None
    assert not result.is_valid


def test_best_option_prefers_flag_over_points():
    assert _point().best_option().id == "a"


def test_best_option_falls_back_to_highest_points():
    point = _point(options=[{"id": "x", "points": 3}, {"id": "y", "points": 7}, {"id": "z", "points": 7}])
    assert point.best_option().id == "y"
    assert _point(options=[]).best_option() is None


def test_tree_defaults_start_to_first_point():
    tree = DecisionTree.model_validate({"decisionPoints": [{"title": "no id"}, {"id": "second"}]})
    assert tree.startDecisionId == tree.decisionPoints[0].id
    assert tree.get_start_decision().title == "no id"


def test_max_score_sums_per_point_maxima():
    tree = DecisionTree.model_validate({
        "decisionPoints": [
            {"id": "d1", "options": [{"id": "a", "points": 10}, {"id": "b", "points": 5}]},
            {"id": "d2", "options": [{"id": "c", "points": 25}]},
            {"id": "d3", "options": [{"id": "e", "points": -4}]},
        ],
    })
    assert tree.calculate_max_score() == 35
    assert tree.maxScore == 35
    assert tree.model_dump()["maxScore"] == 35


def test_max_score_ignores_supplied_value():
    tree = DecisionTree.model_validate({"maxScore": 999, "decisionPoints": [{"id": "d", "options": [{"points": 3}]}]})
    assert tree.maxScore == 3


def test_reachable_max_score_follows_paths():
    tree = module4_escalation_tree()
    # every point counted regardless of reachability
    assert tree.maxScore == 80
    # NCRP -> escalate -> IPC 420/66C -> high priority: 8 + 12 + 20 + 15
    assert tree.calculate_reachable_max_score() == 55


def test_reachable_max_score_for_terminal_start():
    assert complaint_delay_tree().calculate_reachable_max_score() == 10


def test_reachable_max_score_rejects_cycle():
    tree = DecisionTree.model_validate({
        "decisionPoints": [
            {"id": "a", "options": [{"id": "x", "nextDecisionId": "b"}]},
            {"id": "b", "options": [{"id": "y", "nextDecisionId": "a"}]},
        ],
    })
    with pytest.raises(InvalidDecisionTree):
        tree.calculate_reachable_max_score()


def test_sample_trees_are_valid():
    for tree in (complaint_delay_tree(), module4_escalation_tree()):
        result = tree.validate()
        assert result.isValid, result.errors


def test_validate_reports_dangling_reference():
    tree = DecisionTree.model_validate({
        "decisionPoints": [{"id": "d1", "options": [{"id": "a", "text": "Go", "nextDecisionId": "ghost"}]}],
    })
    result = tree.validate()
    assert not result.isValid
    assert result.errors == ['Decision option "Go" references non-existent decision "ghost"']


def test_validate_reports_missing_start():
    tree = DecisionTree.model_validate({"startDecisionId": "missing", "decisionPoints": [{"id": "d1"}]})
    result = tree.validate()
    assert not result.isValid
    assert 'Start decision ID "missing" not found in decision points' in result.errors


def test_validate_reports_cycle_path():
    tree = DecisionTree.model_validate({
        "decisionPoints": [
            {"id": "a", "options": [{"id": "x", "nextDecisionId": "b"}]},
            {"id": "b", "options": [{"id": "y", "nextDecisionId": "a"}]},
        ],
    })
    result = tree.validate()
    assert result.errors == ["Circular reference detected in path: a -> b -> a"]


def test_validate_reports_duplicates_and_empty_tree():
    tree = DecisionTree.model_validate({
        "decisionPoints": [
            {"id": "a", "options": [{"id": "x"}, {"id": "x"}]},
            {"id": "a"},
        ],
    })
    errors = tree.validate().errors
    assert 'Duplicate decision point ID "a"' in errors
    assert 'Duplicate option ID "x" in decision "a"' in errors

    assert DecisionTree().validate().errors == ["Decision tree has no decision points"]


def test_validate_does_not_mutate_tree():
    tree = module4_escalation_tree()
    before = tree.model_dump()
    tree.validate()
    assert tree.model_dump() == before


def test_progress_records_decisions_and_score():
    point = _point()
    progress = DecisionTreeProgress(userId="user123", decisionTreeId="tree123", currentDecisionId="dp")
    assert progress.totalScore == 0 and not progress.isCompleted

    progress.record_decision("dp", "a", point.evaluate_decision("a"))
    assert progress.totalScore == 10
    assert progress.currentDecisionId == "next"
    assert progress.decisions[0].points == 10
    assert progress.decisions[0].isOptimal is True
    assert not progress.isCompleted
    assert progress.endTime is None


def test_progress_completes_on_terminal_option():
    point = _point()
    progress = DecisionTreeProgress(currentDecisionId="dp")
    progress.record_decision("dp", "b", point.evaluate_decision("b"))
    assert progress.isCompleted
    assert progress.currentDecisionId is None
    end_time = progress.endTime
    assert end_time is not None

    with pytest.raises(SessionCompleted):
        progress.record_decision("dp", "b", point.evaluate_decision("b"))
    progress.mark_completed()
    assert progress.endTime == end_time
    assert len(progress.decisions) == 1


def test_progress_score_matches_replay():
    point = _point()
    progress = DecisionTreeProgress()
    progress.record_decision("dp", "a", point.evaluate_decision("a"))
    assert progress.replayed_score() == 10
    assert progress.is_consistent()
    progress.totalScore = 99
    assert not progress.is_consistent()


def test_performance_metrics():
    point = _point()
    start = utcnow() - timedelta(seconds=30)
    progress = DecisionTreeProgress(startTime=start)
    progress.record_decision("dp", "a", point.evaluate_decision("a"))
    progress.record_decision("dp", "b", point.evaluate_decision("b"))

    metrics = progress.performance_metrics()
    assert metrics.totalDecisions == 2
    assert metrics.optimalDecisions == 1
    assert metrics.optimalDecisionRate == 0.5
    assert metrics.totalScore == 30
    assert metrics.isCompleted
    assert metrics.timeSpent >= 30_000
    assert metrics.averageTimePerDecision == metrics.timeSpent / 2


def test_performance_metrics_without_decisions():
    metrics = DecisionTreeProgress().performance_metrics()
    assert metrics.totalDecisions == 0
    assert metrics.optimalDecisionRate == 0.0
    assert metrics.averageTimePerDecision == 0.0
