"""
Exceptions raised by the decision tree engine.

The HTTP layer in main.py translates these into HTTPException responses.
"""

from typing import List


class DecisionTreeError(Exception):
    """Base class for decision tree engine errors"""


class InvalidDecisionTree(DecisionTreeError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid decision tree: {', '.join(self.errors)}")


class NoActiveSession(DecisionTreeError):
    def __init__(self, message: str = "No active decision tree session"):
        super().__init__(message)


class NoCurrentDecision(DecisionTreeError):
    def __init__(self, message: str = "No current decision point found"):
        super().__init__(message)


class OptionNotFound(DecisionTreeError):
    def __init__(self, decision_id: str, option_id: str):
        self.decision_id = decision_id
        self.option_id = option_id
        super().__init__(f'Option "{option_id}" not found in decision "{decision_id}"')


class ProgressMismatch(DecisionTreeError):
    """A saved snapshot does not belong to the session's tree"""


class SessionCompleted(DecisionTreeError):
    def __init__(self, message: str = "Decision tree session is already completed"):
        super().__init__(message)
