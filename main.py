import logging
import os
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from bson import ObjectId

from database import PROGRESS_COLLECTION, MongoProgressStore, create_document, db, get_documents
from decision_tree import (
    DecisionOutcome,
    DecisionPathEntry,
    DecisionTreeSession,
    ImprovementSuggestion,
    InMemoryProgressStore,
    OptimalPathStep,
    build_tree,
    initialize_tree,
    progress_key,
)
from errors import (
    DecisionTreeError,
    InvalidDecisionTree,
    NoActiveSession,
    NoCurrentDecision,
    OptionNotFound,
    ProgressMismatch,
    SessionCompleted,
)
from sample_trees import SAMPLE_TREES, get_sample_tree
from scenario_generation import ScenarioOptions, generate_scenario
from schemas import DecisionPoint, DecisionTree, DecisionTreeProgress, PerformanceMetrics, ValidationResult

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cybercrime Decision Scenario API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Active sessions, keyed by session id, oldest first. Process-local; a restart
# drops them, saved snapshots survive in the progress store.
SESSIONS: Dict[str, DecisionTreeSession] = {}
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", 1000))

progress_store = MongoProgressStore(db[PROGRESS_COLLECTION]) if db is not None else InMemoryProgressStore()

ERROR_STATUS = {
    InvalidDecisionTree: 422,
    OptionNotFound: 400,
    NoCurrentDecision: 409,
    NoActiveSession: 409,
    ProgressMismatch: 409,
    SessionCompleted: 409,
}

# -----------------------------
# Utility helpers
# -----------------------------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid ID format")


def get_session(session_id: str) -> DecisionTreeSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def evict_session(session_id: str) -> None:
    session = SESSIONS.pop(session_id)
    try:
        session.save_progress(progress_store)
    except Exception:
        logger.exception("Could not save progress of evicted session %s", session_id)
    logger.info("Evicted session %s", session_id)


def register_session(session: DecisionTreeSession) -> str:
    """
    Add a session to the registry and return its id.

    The registry holds at most MAX_SESSIONS entries. When full, the oldest
    completed session is evicted first, else the oldest session. Evicted
    progress is saved to the progress store so it can be loaded again.
    """
    while SESSIONS and len(SESSIONS) >= MAX_SESSIONS:
        completed = [sid for sid, s in SESSIONS.items() if s.progress is None or s.progress.isCompleted]
        evict_session(completed[0] if completed else next(iter(SESSIONS)))

    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    return session_id


def require_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")


@app.exception_handler(DecisionTreeError)
def decision_tree_error_handler(request: Request, exc: DecisionTreeError):
    status = ERROR_STATUS.get(type(exc), 400)
    body: Dict[str, Any] = {"detail": str(exc)}
    if isinstance(exc, InvalidDecisionTree):
        body["errors"] = exc.errors
    return JSONResponse(status_code=status, content=body)

# -----------------------------
# Pydantic Models
# -----------------------------

class TreeSummary(BaseModel):
    id: str
    title: str
    description: str
    decisionPoints: int
    maxScore: int


class TreeValidationOut(ValidationResult):
    maxScore: Optional[int] = None
    reachableMaxScore: Optional[int] = None


class StartSessionIn(BaseModel):
    userId: str
    treeId: Optional[str] = None
    tree: Optional[Dict[str, Any]] = None


class SessionOut(BaseModel):
    sessionId: str
    treeId: Optional[str] = None
    currentDecision: Optional[DecisionPoint] = None
    progress: Optional[DecisionTreeProgress] = None


class DecisionIn(BaseModel):
    optionId: str


class GenerateScenarioIn(ScenarioOptions):
    userId: Optional[str] = None


def session_out(session_id: str, session: DecisionTreeSession) -> SessionOut:
    return SessionOut(
        sessionId=session_id,
        treeId=session.tree.id if session.tree else None,
        currentDecision=session.current_decision(),
        progress=session.progress,
    )

# -----------------------------
# Routes
# -----------------------------

@app.get("/")
def read_root():
    return {"message": "Cybercrime Decision Scenario API"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "❌ Not Set",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
        "active_sessions": len(SESSIONS),
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = os.getenv("DATABASE_NAME") or "❌ Not Set"
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {e}"[:120]
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {e}"[:120]
    return response


@app.get("/api/trees", response_model=List[TreeSummary])
def list_trees():
    out = []
    for factory in SAMPLE_TREES.values():
        tree = factory()
        out.append(TreeSummary(
            id=tree.id,
            title=tree.title,
            description=tree.description,
            decisionPoints=len(tree.decisionPoints),
            maxScore=tree.maxScore,
        ))
    return out


@app.get("/api/trees/{tree_id}", response_model=DecisionTree)
def get_tree(tree_id: str):
    tree = get_sample_tree(tree_id)
    if tree is None:
        raise HTTPException(status_code=404, detail="Decision tree not found")
    return tree


@app.post("/api/trees/validate", response_model=TreeValidationOut)
def validate_tree(payload: Dict[str, Any]):
    try:
        tree = build_tree(payload)
    except InvalidDecisionTree as e:
        return TreeValidationOut(isValid=False, errors=e.errors)

    result = tree.validate()
    out = TreeValidationOut(isValid=result.isValid, errors=result.errors, maxScore=tree.maxScore)
    if result.isValid:
        out.reachableMaxScore = tree.calculate_reachable_max_score()
    return out


@app.post("/api/sessions", response_model=SessionOut, status_code=201)
def start_session(payload: StartSessionIn):
    if payload.tree is not None:
        tree_data = payload.tree
    elif payload.treeId:
        tree_data = get_sample_tree(payload.treeId)
        if tree_data is None:
            raise HTTPException(status_code=404, detail="Decision tree not found")
    else:
        raise HTTPException(status_code=400, detail="Either treeId or tree is required")

    session = initialize_tree(tree_data, payload.userId)
    session_id = register_session(session)
    return session_out(session_id, session)


@app.get("/api/sessions/{session_id}", response_model=SessionOut)
def get_session_state(session_id: str):
    return session_out(session_id, get_session(session_id))


@app.post("/api/sessions/{session_id}/decisions", response_model=DecisionOutcome)
def make_decision(session_id: str, payload: DecisionIn):
    return get_session(session_id).make_decision(payload.optionId)


@app.get("/api/sessions/{session_id}/metrics", response_model=PerformanceMetrics)
def get_metrics(session_id: str):
    metrics = get_session(session_id).performance_metrics()
    if metrics is None:
        raise NoActiveSession()
    return metrics


@app.get("/api/sessions/{session_id}/path", response_model=List[DecisionPathEntry])
def get_decision_path(session_id: str):
    return get_session(session_id).decision_path()


@app.get("/api/sessions/{session_id}/optimal-path", response_model=List[OptimalPathStep])
def get_optimal_path(session_id: str):
    return get_session(session_id).calculate_optimal_path()


@app.get("/api/sessions/{session_id}/suggestions", response_model=List[ImprovementSuggestion])
def get_suggestions(session_id: str):
    return get_session(session_id).improvement_suggestions()


@app.post("/api/sessions/{session_id}/save")
def save_session(session_id: str):
    key = get_session(session_id).save_progress(progress_store)
    return {"saved": key is not None, "key": key}


@app.post("/api/sessions/{session_id}/load", response_model=SessionOut)
def load_session(session_id: str):
    session = get_session(session_id)
    if session.load_progress(progress_store) is None:
        raise HTTPException(status_code=404, detail="No saved progress")
    return session_out(session_id, session)


@app.delete("/api/sessions/{session_id}")
def reset_session(session_id: str):
    session = get_session(session_id)
    session.reset()
    SESSIONS.pop(session_id, None)
    return {"sessionId": session_id, "reset": True}


@app.get("/api/progress/{tree_id}/{user_id}", response_model=DecisionTreeProgress)
def get_saved_progress(tree_id: str, user_id: str):
    data = progress_store.load(progress_key(tree_id, user_id))
    if data is None:
        raise HTTPException(status_code=404, detail="No saved progress")
    return DecisionTreeProgress.model_validate(data)


@app.post("/api/scenarios/generate")
def generate_scenario_route(payload: GenerateScenarioIn):
    options = ScenarioOptions(**payload.model_dump(exclude={"userId"}))
    scenario = generate_scenario(options)
    out = scenario.model_dump(mode="json")

    if db is not None:
        doc = dict(out)
        doc.pop("id")
        doc["userId"] = payload.userId
        out["id"] = create_document("scenario", doc)
    return out


@app.get("/api/scenarios/history/{userId}")
def get_scenario_history(userId: str):
    require_db()
    return get_documents("scenario", {"userId": userId})


@app.get("/api/scenarios/{id}")
def get_scenario(id: str):
    require_db()
    scenario_id = oid(id)
    doc = db["scenario"].find_one({"_id": scenario_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Scenario not found")
    doc["id"] = str(doc.pop("_id"))
    return doc


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
