"""
Complaint delay scenario generation.

"Generation" here is selection: the case content is fixed and the only
variation is which review point of the complaint-delay tree is presented,
picked by how long the complaint has been pending.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from sample_trees import complaint_delay_tree
from schemas import (
    Character,
    ComplaintDelayScenario,
    ScenarioDecisionPoint,
    ScenarioOption,
    ScenarioSummary,
    TimelineEvent,
    TimelineEventType,
    utcnow,
)

logger = logging.getLogger(__name__)

# Complaints pending this many days or fewer get the first review point
SHORT_DELAY_DAYS = 7


class Complexity(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class CaseType(str, Enum):
    FINANCIAL = "financial"
    IDENTITY = "identity"
    HARASSMENT = "harassment"


class ScenarioOptions(BaseModel):
    complexity: Complexity = Complexity.MEDIUM
    caseType: CaseType = CaseType.FINANCIAL
    timeSpan: int = Field(14, ge=1, description="Days since the complaint was filed")
    decisionPoints: int = Field(3, ge=1, description="Accepted for compatibility; does not change output")


# (title, description, days after previous event, type, icon)
FINANCIAL_TIMELINE = [
    ("Initial Complaint Filed",
     "Victim reported fraudulent UPI transactions totaling ₹75,000 to the cybercrime portal",
     0, TimelineEventType.STANDARD, "file-text"),
    ("Complaint Registered",
     "Complaint assigned reference number CYB-2023-0142 and routed to local cybercrime cell",
     1, TimelineEventType.STANDARD, "check-circle"),
    ("Initial Investigation",
     "Officer contacted victim for additional details about the fraudulent transactions",
     1, TimelineEventType.STANDARD, "search"),
    ("Bank Contacted",
     "Request sent to bank for transaction details and recipient account information",
     2, TimelineEventType.STANDARD, "building"),
    ("Bank Response Received",
     "Bank provided transaction details showing funds transferred to accounts in another state",
     2, TimelineEventType.STANDARD, "mail"),
    ("No Progress Update",
     "Victim called to inquire about case status, no significant progress to report",
     3, TimelineEventType.CRITICAL, "alert-circle"),
    ("Victim Filed Complaint About Delay",
     "Victim submitted formal complaint about lack of progress in the investigation",
     2, TimelineEventType.CRITICAL, "alert-triangle"),
    ("Case Review Required",
     "Senior officer requested case review due to delay and victim complaint",
     2, TimelineEventType.DECISION, "help-circle"),
]


def financial_fraud_timeline(options: ScenarioOptions, now: datetime) -> List[TimelineEvent]:
    events = []
    timestamp = now - timedelta(days=options.timeSpan)
    for title, description, delta, kind, icon in FINANCIAL_TIMELINE:
        timestamp = timestamp + timedelta(days=delta)
        events.append(TimelineEvent(
            title=title,
            description=description,
            timestamp=timestamp,
            type=kind,
            icon=icon,
        ))
    return events


def financial_fraud_decision_points(events: List[TimelineEvent], options: ScenarioOptions) -> List[ScenarioDecisionPoint]:
    decision_event = next((e for e in events if e.type == TimelineEventType.DECISION), None)
    if decision_event is None:
        return []

    decision_id = "decision-1" if options.timeSpan <= SHORT_DELAY_DAYS else "decision-2"
    point = complaint_delay_tree().get_decision_point(decision_id)

    return [ScenarioDecisionPoint(
        title=point.title,
        description=point.description,
        timelineEventId=decision_event.id,
        contextInfo=point.context,
        options=[
            ScenarioOption(
                id=opt.id,
                text=opt.text,
                value=opt.category or opt.id,
                points=opt.points,
                feedback=opt.feedback,
                isCorrect=opt.isOptimal,
                category=opt.category,
            )
            for opt in point.options
        ],
        metadata={"sourceDecisionId": point.id},
    )]


def generate_financial_fraud_scenario(options: ScenarioOptions, now: datetime) -> ComplaintDelayScenario:
    victim = Character(
        name="Rajesh Kumar",
        role="Victim",
        description="A 45-year-old bank employee who was defrauded of ₹75,000 through an online scam",
        avatarUrl="/assets/avatars/victim-male-1.png",
        emotionalState="anxious",
        traits=["impatient", "detail-oriented"],
    )
    officer = Character(
        name="Inspector Sharma",
        role="Investigating Officer",
        description="Senior cybercrime officer handling the case",
        avatarUrl="/assets/avatars/officer-male-1.png",
        emotionalState="neutral",
        traits=["professional", "experienced"],
    )
    summary = ScenarioSummary(
        title="UPI Fraud Case #CYB-2023-0142",
        description="A case of financial fraud where the victim was tricked into making multiple UPI payments",
        context="The victim received a call from someone claiming to be from his bank, saying his account would be blocked unless he verified his details through a UPI transaction.",
        characters=[victim, officer],
    )

    events = financial_fraud_timeline(options, now)
    return ComplaintDelayScenario(
        title="UPI Fraud Escalation Scenario",
        description="Handle a UPI fraud case that has been delayed in processing",
        scenario=summary,
        timelineEvents=events,
        decisionPoints=financial_fraud_decision_points(events, options),
        startTimelineEventId=events[0].id,
        metadata={"caseType": options.caseType.value, "complexity": options.complexity.value, "timeSpan": options.timeSpan},
    )


# TODO: author identity theft and cyber harassment case content; both reuse the financial case until then.
GENERATORS: Dict[CaseType, Callable[[ScenarioOptions, datetime], ComplaintDelayScenario]] = {
    CaseType.FINANCIAL: generate_financial_fraud_scenario,
    CaseType.IDENTITY: generate_financial_fraud_scenario,
    CaseType.HARASSMENT: generate_financial_fraud_scenario,
}

_missing = set(CaseType) - set(GENERATORS)
if _missing:
    raise RuntimeError(f"No scenario generator for case types: {sorted(c.value for c in _missing)}")


def generate_scenario(options: Optional[dict] = None, now: Optional[datetime] = None) -> ComplaintDelayScenario:
    if isinstance(options, ScenarioOptions):
        merged = options
    else:
        merged = ScenarioOptions(**(options or {}))

    scenario = GENERATORS[merged.caseType](merged, now or utcnow())
    logger.info("Generated %s scenario %s (timeSpan=%d days)", merged.caseType.value, scenario.id, merged.timeSpan)
    return scenario
