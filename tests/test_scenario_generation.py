from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from scenario_generation import GENERATORS, CaseType, ScenarioOptions, generate_scenario
from schemas import ComplaintDelayScenario, InteractionType, ScenarioInteraction, TimelineEventType

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


def test_defaults():
    options = ScenarioOptions()
    assert options.complexity.value == "medium"
    assert options.caseType == CaseType.FINANCIAL
    assert options.timeSpan == 14
    assert options.decisionPoints == 3


def test_every_case_type_has_a_generator():
    assert set(GENERATORS) == set(CaseType)


def test_financial_scenario_content():
    scenario = generate_scenario(now=NOW)
    assert scenario.title == "UPI Fraud Escalation Scenario"
    assert scenario.scenario.title == "UPI Fraud Case #CYB-2023-0142"
    assert [c.name for c in scenario.scenario.characters] == ["Rajesh Kumar", "Inspector Sharma"]
    assert scenario.startTimelineEventId == scenario.timelineEvents[0].id
    assert scenario.get_start_timeline_event().title == "Initial Complaint Filed"


def test_timeline_offsets_from_time_span():
    scenario = generate_scenario({"timeSpan": 14}, now=NOW)
    events = scenario.timelineEvents
    assert len(events) == 8

    start = NOW - timedelta(days=14)
    offsets = [(e.timestamp - start).days for e in events]
    assert offsets == [0, 1, 2, 4, 6, 9, 11, 13]

    types = [e.type for e in events]
    assert types.count(TimelineEventType.STANDARD) == 5
    assert types.count(TimelineEventType.CRITICAL) == 2
    assert types[-1] == TimelineEventType.DECISION


def test_long_delay_selects_follow_up_review():
    scenario = generate_scenario({"timeSpan": 15}, now=NOW)
    assert len(scenario.decisionPoints) == 1
    point = scenario.decisionPoints[0]
    assert point.title == "Follow-up Review (15 Days)"
    assert point.metadata["sourceDecisionId"] == "decision-2"
    assert [o.id for o in point.options] == ["option-2-1", "option-2-2", "option-2-3"]
    assert scenario.maxScore == 15


def test_short_delay_selects_initial_review():
    point = generate_scenario({"timeSpan": 7}, now=NOW).decisionPoints[0]
    assert point.title == "Initial Complaint Review"
    correct = [o for o in point.options if o.isCorrect]
    assert [o.id for o in correct] == ["option-1-1"]
    assert correct[0].value == "wait"
    assert correct[0].points == 10


def test_decision_point_linked_to_decision_event():
    scenario = generate_scenario(now=NOW)
    decision_event = scenario.timelineEvents[-1]
    point = scenario.get_decision_point_by_timeline_event(decision_event.id)
    assert point is not None
    assert scenario.get_decision_point(point.id) is point


def test_other_case_types_reuse_financial_case():
    for case_type in ("identity", "harassment"):
        scenario = generate_scenario({"caseType": case_type}, now=NOW)
        assert scenario.title == "UPI Fraud Escalation Scenario"
        assert scenario.metadata["caseType"] == case_type


def test_decision_points_option_does_not_change_output():
    one = generate_scenario({"decisionPoints": 1}, now=NOW)
    five = generate_scenario({"decisionPoints": 5}, now=NOW)
    assert len(one.decisionPoints) == len(five.decisionPoints) == 1


def test_unknown_case_type_is_rejected():
    with pytest.raises(ValidationError):
        generate_scenario({"caseType": "ransomware"})


def test_time_span_must_be_positive():
    with pytest.raises(ValidationError):
        generate_scenario({"timeSpan": 0})


def test_generated_scenario_has_no_interactions():
    scenario = generate_scenario(now=NOW)
    assert scenario.interactions == []
    assert scenario.model_dump()["interactions"] == []


def test_max_score_counts_interactions():
    scenario = generate_scenario(now=NOW)
    quiz = ScenarioInteraction(
        id="quiz-1",
        type=InteractionType.MULTIPLE_CHOICE,
        prompt="Which portal records the complaint?",
        options=[
            {"id": "ncrp", "text": "NCRP", "value": "ncrp", "points": 6, "isCorrect": True},
            {"id": "cctns", "text": "CCTNS", "value": "cctns", "points": -2},
        ],
    )
    form = ScenarioInteraction(id="form-1", type="form_fill", prompt="Fill the FIR", points=4)
    penalty_only = ScenarioInteraction(
        type=InteractionType.MULTIPLE_CHOICE,
        options=[{"id": "x", "text": "X", "value": "x", "points": -3}],
    )

    with_interactions = scenario.model_copy(update={"interactions": [quiz, form, penalty_only]})
    assert scenario.maxScore == 10
    assert with_interactions.maxScore == 10 + 6 + 4
    assert with_interactions.get_interaction("form-1") is form
    assert with_interactions.get_interaction("missing") is None


def test_scenario_documents_accept_interactions():
    data = generate_scenario(now=NOW).model_dump(mode="json")
    data["interactions"] = [{"id": "map-1", "type": "map_selection", "points": 5}]
    data.pop("maxScore")

    scenario = ComplaintDelayScenario.model_validate(data)
    assert scenario.interactions[0].type == InteractionType.MAP_SELECTION
    assert scenario.maxScore == 15
