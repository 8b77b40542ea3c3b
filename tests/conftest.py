import sys
from pathlib import Path

import pytest

# Ensure the top-level modules are importable for tests
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def two_node_tree():
    return {
        "id": "two-node",
        "title": "Two Node Tree",
        "decisionPoints": [
            {
                "id": "decision-1",
                "title": "First",
                "scenario": "Pick one",
                "options": [
                    {"id": "good", "text": "Good", "points": 10, "isOptimal": True,
                     "feedback": "Nice", "nextDecisionId": "decision-2", "category": "escalate"},
                    {"id": "bad", "text": "Bad", "points": -5,
                     "feedback": "Poor", "nextDecisionId": "decision-2", "category": "wait"},
                ],
            },
            {
                "id": "decision-2",
                "title": "Second",
                "scenario": "Finish",
                "options": [
                    {"id": "finish", "text": "Finish", "points": 15, "feedback": "Done"},
                ],
            },
        ],
    }
