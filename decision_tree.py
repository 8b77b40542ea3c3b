"""
Decision tree sessions

A DecisionTreeSession owns one validated DecisionTree and the progress of one
user walking it. Sessions are created per use; nothing here is shared across
sessions except an EventEmitter the caller chooses to pass in.
"""

import copy
import logging
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field, ValidationError

from errors import InvalidDecisionTree, NoActiveSession, NoCurrentDecision, OptionNotFound, ProgressMismatch
from schemas import (
    DecisionConsequence,
    DecisionPoint,
    DecisionRecord,
    DecisionTree,
    DecisionTreeProgress,
    EvaluationResult,
    PerformanceMetrics,
)

logger = logging.getLogger(__name__)

# Coaching thresholds
OPTIMAL_RATE_THRESHOLD = 0.7
SLOW_DECISION_MS = 60_000


# -----------------------------
# Events
# -----------------------------

class SessionEvent(str, Enum):
    TREE_INITIALIZED = "treeInitialized"
    DECISION_MADE = "decisionMade"
    TREE_COMPLETED = "treeCompleted"
    TREE_RESET = "treeReset"
    PROGRESS_SAVED = "progressSaved"
    PROGRESS_LOADED = "progressLoaded"


Listener = Callable[[Any], None]


class EventEmitter:
    """Synchronous in-process pub/sub. Listeners run in registration order."""

    def __init__(self):
        self._listeners: Dict[SessionEvent, List[Listener]] = defaultdict(list)

    def add_listener(self, event: Union[SessionEvent, str], callback: Listener) -> None:
        self._listeners[SessionEvent(event)].append(callback)

    def remove_listener(self, event: Union[SessionEvent, str], callback: Listener) -> None:
        listeners = self._listeners.get(SessionEvent(event), [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: Union[SessionEvent, str], data: Any = None) -> None:
        event = SessionEvent(event)
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(data)
            except Exception:
                logger.exception("Error in event listener for %s", event.value)


# -----------------------------
# Results
# -----------------------------

class DecisionOutcome(BaseModel):
    evaluation: EvaluationResult
    nextDecision: Optional[DecisionPoint] = None
    isCompleted: bool
    progress: DecisionTreeProgress


class DecisionPathEntry(BaseModel):
    decisionPoint: str
    option: str
    points: int
    isOptimal: bool
    timestamp: datetime
    consequences: List[DecisionConsequence] = Field(default_factory=list)


class OptimalPathStep(BaseModel):
    decisionId: str
    decisionTitle: str
    optionId: str
    optionText: str
    points: int


class SuggestionType(str, Enum):
    SUBOPTIMAL_CHOICE = "suboptimal_choice"
    GENERAL_PERFORMANCE = "general_performance"
    DECISION_SPEED = "decision_speed"


class ImprovementSuggestion(BaseModel):
    type: SuggestionType
    suggestion: str
    decisionPoint: Optional[str] = None
    userChoice: Optional[str] = None
    optimalChoice: Optional[str] = None
    pointsLost: Optional[int] = None


# -----------------------------
# Progress stores
# -----------------------------

def progress_key(tree_id: str, user_id: str) -> str:
    return f"decision_tree_progress_{tree_id}_{user_id}"


class ProgressStore(Protocol):
    """Key-value snapshot store used by save_progress / load_progress"""

    def save(self, key: str, data: Dict[str, Any]) -> None:
        ...

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        ...


class InMemoryProgressStore:
    """Process-local snapshot store. database.MongoProgressStore has the same interface."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def save(self, key: str, data: Dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(data)

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        data = self._data.get(key)
        return copy.deepcopy(data) if data is not None else None


# -----------------------------
# Session
# -----------------------------

def build_tree(tree_data: Union[DecisionTree, Dict[str, Any]]) -> DecisionTree:
    if isinstance(tree_data, DecisionTree):
        return tree_data
    try:
        return DecisionTree.model_validate(tree_data)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or 'tree'}: {err['msg']}" for err in e.errors()]
        raise InvalidDecisionTree(errors) from e


def initialize_tree(
    tree_data: Union[DecisionTree, Dict[str, Any]],
    user_id: str,
    events: Optional[EventEmitter] = None,
) -> "DecisionTreeSession":
    """Build, validate and start a session. Raises InvalidDecisionTree on a malformed tree."""
    return DecisionTreeSession(build_tree(tree_data), user_id, events=events)


class DecisionTreeSession:
    def __init__(self, tree: DecisionTree, user_id: str, events: Optional[EventEmitter] = None):
        validation = tree.validate()
        if not validation.isValid:
            logger.warning("Rejected decision tree %s: %s", tree.id, "; ".join(validation.errors))
            raise InvalidDecisionTree(validation.errors)

        self.events = events or EventEmitter()
        self.user_id = user_id
        self.tree: Optional[DecisionTree] = tree
        self.progress: Optional[DecisionTreeProgress] = DecisionTreeProgress(
            userId=user_id,
            decisionTreeId=tree.id,
            currentDecisionId=tree.startDecisionId,
        )
        logger.info("Initialized decision tree %s for user %s", tree.id, user_id)
        self.events.emit(SessionEvent.TREE_INITIALIZED, {"tree": self.tree, "progress": self.progress})

    def current_decision(self) -> Optional[DecisionPoint]:
        if self.tree is None or self.progress is None:
            return None
        return self.tree.get_decision_point(self.progress.currentDecisionId)

    def make_decision(self, option_id: str) -> DecisionOutcome:
        if self.tree is None or self.progress is None:
            raise NoActiveSession()

        current = self.current_decision()
        if current is None:
            raise NoCurrentDecision()

        if current.get_option(option_id) is None:
            raise OptionNotFound(current.id, option_id)

        evaluation = current.evaluate_decision(option_id)
        self.progress.record_decision(current.id, option_id, evaluation)

        next_decision = self.current_decision()
        if next_decision is None and not self.progress.isCompleted:
            # cursor points outside the tree; only reachable with unvalidated or restored progress
            self.progress.mark_completed()

        self.events.emit(SessionEvent.DECISION_MADE, {
            "decisionId": current.id,
            "optionId": option_id,
            "evaluation": evaluation,
            "progress": self.progress,
        })

        if self.progress.isCompleted:
            metrics = self.progress.performance_metrics()
            logger.info(
                "Completed decision tree %s for user %s with score %d",
                self.tree.id, self.user_id, self.progress.totalScore,
            )
            self.events.emit(SessionEvent.TREE_COMPLETED, {"progress": self.progress, "metrics": metrics})

        return DecisionOutcome(
            evaluation=evaluation,
            nextDecision=next_decision,
            isCompleted=self.progress.isCompleted,
            progress=self.progress,
        )

    def decision_history(self) -> List[DecisionRecord]:
        return list(self.progress.decisions) if self.progress else []

    def performance_metrics(self) -> Optional[PerformanceMetrics]:
        return self.progress.performance_metrics() if self.progress else None

    def reset(self) -> None:
        self.tree = None
        self.progress = None
        self.events.emit(SessionEvent.TREE_RESET)

    def decision_path(self) -> List[DecisionPathEntry]:
        if self.tree is None or self.progress is None:
            return []

        path = []
        for record in self.progress.decisions:
            point = self.tree.get_decision_point(record.decisionId)
            option = point.get_option(record.optionId) if point else None
            path.append(DecisionPathEntry(
                decisionPoint=point.title if point else "Unknown Decision",
                option=option.text if option else "Unknown Option",
                points=record.points,
                isOptimal=record.isOptimal,
                timestamp=record.timestamp,
                consequences=record.consequences,
            ))
        return path

    def calculate_optimal_path(self) -> List[OptimalPathStep]:
        """Greedy walk from the start: at each point take the flagged optimal option, else the highest scoring."""
        if self.tree is None:
            return []

        steps: List[OptimalPathStep] = []
        seen = set()
        decision_id = self.tree.startDecisionId
        while decision_id and decision_id not in seen:
            seen.add(decision_id)
            point = self.tree.get_decision_point(decision_id)
            if point is None:
                break
            option = point.best_option()
            if option is None:
                break
            steps.append(OptimalPathStep(
                decisionId=point.id,
                decisionTitle=point.title,
                optionId=option.id,
                optionText=option.text,
                points=option.points,
            ))
            decision_id = option.nextDecisionId
        return steps

    def improvement_suggestions(self) -> List[ImprovementSuggestion]:
        """
        Coaching notes for the session so far.

        Each recorded choice is compared with the best option of the decision
        point it was made at, so choices after a branch away from the greedy
        path are judged against their own point.
        """
        if self.tree is None or self.progress is None:
            return []

        suggestions: List[ImprovementSuggestion] = []
        metrics = self.progress.performance_metrics()

        for record in self.progress.decisions:
            point = self.tree.get_decision_point(record.decisionId)
            best = point.best_option() if point else None
            if best is not None and record.optionId != best.id:
                suggestions.append(ImprovementSuggestion(
                    type=SuggestionType.SUBOPTIMAL_CHOICE,
                    decisionPoint=point.title,
                    userChoice=record.optionId,
                    optimalChoice=best.text,
                    pointsLost=best.points - record.points,
                    suggestion=f'Consider choosing "{best.text}" for better outcomes.',
                ))

        if metrics.optimalDecisionRate < OPTIMAL_RATE_THRESHOLD:
            suggestions.append(ImprovementSuggestion(
                type=SuggestionType.GENERAL_PERFORMANCE,
                suggestion="Focus on understanding the context and consequences of each decision option.",
            ))

        if metrics.averageTimePerDecision > SLOW_DECISION_MS:
            suggestions.append(ImprovementSuggestion(
                type=SuggestionType.DECISION_SPEED,
                suggestion="Try to make decisions more quickly while maintaining accuracy.",
            ))

        return suggestions

    def save_progress(self, store: ProgressStore) -> Optional[str]:
        """Snapshot progress into ``store``. Returns the key, or None when there is nothing to save."""
        if self.progress is None:
            return None

        key = progress_key(self.progress.decisionTreeId, self.progress.userId)
        try:
            store.save(key, self.progress.model_dump(mode="json"))
        except Exception:
            logger.exception("Error saving decision tree progress %s", key)
            raise

        self.events.emit(SessionEvent.PROGRESS_SAVED, {"progress": self.progress})
        return key

    def load_progress(self, store: ProgressStore, user_id: Optional[str] = None) -> Optional[DecisionTreeProgress]:
        """
        Replace progress with the snapshot saved for this session's tree.

        Raises ProgressMismatch when the snapshot belongs to another tree or its
        cursor is not a decision point of this tree; progress is left untouched.
        """
        if self.tree is None:
            raise NoActiveSession()
        key = progress_key(self.tree.id, user_id or self.user_id)

        data = store.load(key)
        if data is None:
            return None

        progress = DecisionTreeProgress.model_validate(data)
        if progress.decisionTreeId != self.tree.id:
            raise ProgressMismatch(
                f'Saved progress belongs to tree "{progress.decisionTreeId}", not "{self.tree.id}"'
            )
        if progress.currentDecisionId and self.tree.get_decision_point(progress.currentDecisionId) is None:
            raise ProgressMismatch(
                f'Saved progress points at decision "{progress.currentDecisionId}" which is not in tree "{self.tree.id}"'
            )

        self.progress = progress
        self.events.emit(SessionEvent.PROGRESS_LOADED, {"progress": self.progress})
        return self.progress
