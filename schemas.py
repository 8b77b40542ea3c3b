"""
Document Schemas for the Decision Scenario Engine

Each top-level Pydantic model maps to a document shape stored or served by the API:
- DecisionTree -> authored content, served from sample_trees or posted inline
- DecisionTreeProgress -> "decision_tree_progress" collection (snapshots)
- ComplaintDelayScenario -> "scenario" collection
- DecisionOption / DecisionPoint / DecisionConsequence -> embedded in DecisionTree

Authored content (trees, points, options, consequences) is frozen once built.
DecisionTreeProgress is the only mutable document and is owned by a single session.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from errors import InvalidDecisionTree, SessionCompleted

INVALID_OPTION_FEEDBACK = "Invalid decision option selected."


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Decision model
# -----------------------------

class ConsequenceType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DecisionConsequence(BaseModel):
    """Narrative side effect shown after an option is chosen. Has no effect on scoring."""
    model_config = ConfigDict(frozen=True)

    type: ConsequenceType = ConsequenceType.NEUTRAL
    description: str = ""
    impact: Impact = Impact.LOW
    delay: int = Field(0, ge=0, description="Milliseconds to wait before displaying")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DecisionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    text: str = ""
    description: str = ""
    points: int = 0
    feedback: str = ""
    consequences: List[DecisionConsequence] = Field(default_factory=list)
    nextDecisionId: Optional[str] = Field(None, description="None marks a terminal option")
    isOptimal: bool = False
    category: str = Field("neutral", description="escalate | wait | file_fir | investigate | ...")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("nextDecisionId", mode="before")
    @classmethod
    def blank_next_is_terminal(cls, value):
        return value or None


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    points: int = 0
    feedback: str = ""
    nextDecisionId: Optional[str] = None
    consequences: List[DecisionConsequence] = Field(default_factory=list)
    isOptimal: bool = False
    option: Optional[DecisionOption] = None

    @property
    def is_valid(self) -> bool:
        return self.option is not None


class DecisionPoint(BaseModel):
    """A node of the decision graph: a scenario and the options offered at it"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    title: str = ""
    description: str = ""
    context: str = ""
    scenario: str = ""
    timeLimit: Optional[int] = Field(None, ge=1, description="Seconds; display only, never enforced")
    options: List[DecisionOption] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def get_option(self, option_id: str) -> Optional[DecisionOption]:
        return next((opt for opt in self.options if opt.id == option_id), None)

    def evaluate_decision(self, option_id: str) -> EvaluationResult:
        """
        Score a choice at this point.

        An unknown option id yields a zero-point result with no next decision
        and ``option`` set to None rather than raising.
        """
        option = self.get_option(option_id)
        if option is None:
            return EvaluationResult(feedback=INVALID_OPTION_FEEDBACK)

        return EvaluationResult(
            points=option.points,
            feedback=option.feedback,
            nextDecisionId=option.nextDecisionId,
            consequences=option.consequences,
            isOptimal=option.isOptimal,
            option=option,
        )

    def best_option(self) -> Optional[DecisionOption]:
        flagged = next((opt for opt in self.options if opt.isOptimal), None)
        if flagged is not None:
            return flagged
        if not self.options:
            return None
        return max(self.options, key=lambda opt: opt.points)


class ValidationResult(BaseModel):
    isValid: bool
    errors: List[str] = Field(default_factory=list)


class DecisionTree(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    title: str = ""
    description: str = ""
    context: str = ""
    decisionPoints: List[DecisionPoint] = Field(default_factory=list)
    startDecisionId: Optional[str] = Field(None, description="Defaults to the first decision point")
    minScore: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def default_start_decision(cls, data):
        if not isinstance(data, dict) or data.get("startDecisionId"):
            return data
        points = data.get("decisionPoints")
        if not isinstance(points, list) or not points:
            return data
        points = list(points)
        first = points[0]
        if isinstance(first, dict):
            first = {**first, "id": first.get("id") or new_id()}
            points[0] = first
            start_id = first["id"]
        elif isinstance(first, DecisionPoint):
            start_id = first.id
        else:
            return data
        return {**data, "decisionPoints": points, "startDecisionId": start_id}

    @computed_field
    @property
    def maxScore(self) -> int:
        return self.calculate_max_score()

    def get_decision_point(self, decision_id: Optional[str]) -> Optional[DecisionPoint]:
        if not decision_id:
            return None
        return next((dp for dp in self.decisionPoints if dp.id == decision_id), None)

    def get_start_decision(self) -> Optional[DecisionPoint]:
        if self.startDecisionId:
            return self.get_decision_point(self.startDecisionId)
        return self.decisionPoints[0] if self.decisionPoints else None

    def calculate_max_score(self) -> int:
        """
        Sum of the best option at every decision point, floored at zero per point.

        Reachability is ignored, so for a branching tree this over-estimates
        what a single walk can earn. Use calculate_reachable_max_score for the
        exact figure.
        """
        return sum(max([0] + [opt.points for opt in dp.options]) for dp in self.decisionPoints)

    def calculate_reachable_max_score(self) -> int:
        """Best point total over every path from the start point to a terminal option."""
        best: Dict[str, int] = {}
        on_path: Set[str] = set()

        def walk(decision_id: str) -> int:
            if decision_id in best:
                return best[decision_id]
            if decision_id in on_path:
                raise InvalidDecisionTree([f'Circular reference detected at decision "{decision_id}"'])
            point = self.get_decision_point(decision_id)
            if point is None or not point.options:
                return 0

            on_path.add(decision_id)
            score = max(
                opt.points + (walk(opt.nextDecisionId) if opt.nextDecisionId else 0)
                for opt in point.options
            )
            on_path.discard(decision_id)
            best[decision_id] = score
            return score

        start = self.get_start_decision()
        return walk(start.id) if start else 0

    def validate_structure(self) -> ValidationResult:
        errors: List[str] = []
        ids = [dp.id for dp in self.decisionPoints]
        decision_ids = set(ids)

        if not self.decisionPoints:
            errors.append("Decision tree has no decision points")

        for dup in sorted({i for i in ids if ids.count(i) > 1}):
            errors.append(f'Duplicate decision point ID "{dup}"')

        if self.startDecisionId and self.startDecisionId not in decision_ids:
            errors.append(f'Start decision ID "{self.startDecisionId}" not found in decision points')

        for dp in self.decisionPoints:
            option_ids = [opt.id for opt in dp.options]
            for dup in sorted({i for i in option_ids if option_ids.count(i) > 1}):
                errors.append(f'Duplicate option ID "{dup}" in decision "{dp.id}"')
            for opt in dp.options:
                if opt.nextDecisionId and opt.nextDecisionId not in decision_ids:
                    errors.append(
                        f'Decision option "{opt.text}" references non-existent decision "{opt.nextDecisionId}"'
                    )

        visited: Set[str] = set()

        def check_circular(decision_id: str, path: List[str]) -> None:
            if decision_id in path:
                errors.append(f"Circular reference detected in path: {' -> '.join(path + [decision_id])}")
                return
            if decision_id in visited:
                return
            visited.add(decision_id)

            decision = self.get_decision_point(decision_id)
            if decision:
                for opt in decision.options:
                    if opt.nextDecisionId:
                        check_circular(opt.nextDecisionId, path + [decision_id])

        if self.startDecisionId:
            check_circular(self.startDecisionId, [])

        return ValidationResult(isValid=not errors, errors=errors)

    # BaseModel.validate is a deprecated classmethod in pydantic v2; shadow it on instances.
    def validate(self) -> ValidationResult:  # type: ignore[override]
        return self.validate_structure()


# -----------------------------
# Progress
# -----------------------------

class DecisionRecord(BaseModel):
    decisionId: str
    optionId: str
    timestamp: datetime = Field(default_factory=utcnow)
    points: int = 0
    feedback: str = ""
    consequences: List[DecisionConsequence] = Field(default_factory=list)
    isOptimal: bool = False
    nextDecisionId: Optional[str] = None


class PerformanceMetrics(BaseModel):
    totalDecisions: int
    optimalDecisions: int
    optimalDecisionRate: float
    totalScore: int
    timeSpent: int = Field(..., description="Milliseconds")
    averageTimePerDecision: float = Field(..., description="Milliseconds")
    isCompleted: bool


class DecisionTreeProgress(BaseModel):
    """One user's walk through one decision tree"""
    id: str = Field(default_factory=new_id)
    userId: str = ""
    decisionTreeId: str = ""
    currentDecisionId: Optional[str] = None
    decisions: List[DecisionRecord] = Field(default_factory=list)
    totalScore: int = 0
    startTime: datetime = Field(default_factory=utcnow)
    endTime: Optional[datetime] = None
    isCompleted: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def record_decision(self, decision_id: str, option_id: str, evaluation: EvaluationResult) -> DecisionRecord:
        if self.isCompleted:
            raise SessionCompleted()

        record = DecisionRecord(
            decisionId=decision_id,
            optionId=option_id,
            points=evaluation.points,
            feedback=evaluation.feedback,
            consequences=evaluation.consequences,
            isOptimal=evaluation.isOptimal,
            nextDecisionId=evaluation.nextDecisionId,
        )
        self.decisions.append(record)
        self.totalScore += evaluation.points
        self.currentDecisionId = evaluation.nextDecisionId

        if not evaluation.nextDecisionId:
            self.mark_completed()
        return record

    def mark_completed(self) -> None:
        self.isCompleted = True
        if self.endTime is None:
            self.endTime = utcnow()

    def time_spent(self, now: Optional[datetime] = None) -> int:
        end = self.endTime or now or utcnow()
        return int((end - self.startTime).total_seconds() * 1000)

    def replayed_score(self) -> int:
        return sum(d.points for d in self.decisions)

    def is_consistent(self) -> bool:
        return self.replayed_score() == self.totalScore

    def performance_metrics(self, now: Optional[datetime] = None) -> PerformanceMetrics:
        total = len(self.decisions)
        optimal = len([d for d in self.decisions if d.isOptimal])
        spent = self.time_spent(now)
        return PerformanceMetrics(
            totalDecisions=total,
            optimalDecisions=optimal,
            optimalDecisionRate=optimal / total if total else 0.0,
            totalScore=self.totalScore,
            timeSpent=spent,
            averageTimePerDecision=spent / total if total else 0.0,
            isCompleted=self.isCompleted,
        )


# -----------------------------
# Complaint delay scenarios
# -----------------------------

class TimelineEventType(str, Enum):
    STANDARD = "standard"
    CRITICAL = "critical"
    DECISION = "decision"


class InteractionType(str, Enum):
    TEXT_RESPONSE = "text_response"
    MULTIPLE_CHOICE = "multiple_choice"
    DRAG_DROP = "drag_drop"
    FORM_FILL = "form_fill"
    MAP_SELECTION = "map_selection"
    TIMER_CHALLENGE = "timer_challenge"
    DECISION_POINT = "decision_point"
    CLICK_INTERACTION = "click_interaction"
    DECISION_TREE = "decision_tree"


class Character(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    role: str
    description: str = ""
    avatarUrl: str = ""
    emotionalState: str = "neutral"
    traits: List[str] = Field(default_factory=list)


class ScenarioSummary(BaseModel):
    """Embedded case summary inside a ComplaintDelayScenario"""
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    context: str = ""
    characters: List[Character] = Field(default_factory=list)


class TimelineEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    type: TimelineEventType = TimelineEventType.STANDARD
    icon: str = "clock"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScenarioOption(BaseModel):
    id: str
    text: str
    value: str
    points: int = 0
    feedback: str = ""
    isCorrect: bool = False
    category: str = "neutral"
    nextInteractionId: Optional[str] = None


class ScenarioDecisionPoint(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    timelineEventId: Optional[str] = None
    contextInfo: str = ""
    options: List[ScenarioOption] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScenarioInteraction(BaseModel):
    """A scored prompt that sits outside the scenario decision points"""
    id: str = Field(default_factory=new_id)
    type: InteractionType = InteractionType.TEXT_RESPONSE
    prompt: str = ""
    options: List[ScenarioOption] = Field(default_factory=list)
    correctResponse: Optional[Any] = None
    timeLimit: Optional[int] = None
    points: int = 0
    nextInteractionId: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def max_points(self) -> int:
        if self.type == InteractionType.MULTIPLE_CHOICE:
            return max([0] + [opt.points for opt in self.options])
        return self.points


class ComplaintDelayScenario(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    scenario: ScenarioSummary
    timelineEvents: List[TimelineEvent] = Field(default_factory=list)
    decisionPoints: List[ScenarioDecisionPoint] = Field(default_factory=list)
    interactions: List[ScenarioInteraction] = Field(default_factory=list)
    startTimelineEventId: Optional[str] = None
    minScore: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    createdAt: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def maxScore(self) -> int:
        """Best option of every decision point plus what each interaction can award"""
        decisions = sum(max([0] + [opt.points for opt in dp.options]) for dp in self.decisionPoints)
        return decisions + sum(interaction.max_points() for interaction in self.interactions)

    def get_interaction(self, interaction_id: str) -> Optional[ScenarioInteraction]:
        return next((i for i in self.interactions if i.id == interaction_id), None)

    def get_timeline_event(self, event_id: str) -> Optional[TimelineEvent]:
        return next((e for e in self.timelineEvents if e.id == event_id), None)

    def get_decision_point(self, decision_point_id: str) -> Optional[ScenarioDecisionPoint]:
        return next((dp for dp in self.decisionPoints if dp.id == decision_point_id), None)

    def get_decision_point_by_timeline_event(self, timeline_event_id: str) -> Optional[ScenarioDecisionPoint]:
        return next((dp for dp in self.decisionPoints if dp.timelineEventId == timeline_event_id), None)

    def get_start_timeline_event(self) -> Optional[TimelineEvent]:
        if self.startTimelineEventId:
            return self.get_timeline_event(self.startTimelineEventId)
        return self.timelineEvents[0] if self.timelineEvents else None
