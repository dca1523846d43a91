"""
FastAPI Backend for the Roleplay Practice Engine

Provides REST + SSE endpoints for:
- Listing scenarios in the user's language
- Starting, advancing and resetting roleplay sessions
- Streaming turns (collaborator tokens, then the step grade)
- Exporting and storing session transcripts
"""

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
import os
import sys
import time
import logging

from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# Add the roleplay_practice package to Python path (when not pip-installed)
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'roleplay_practice', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.supabase_client import get_optional_supabase_client
from lib.auth import get_current_user

from roleplay_practice.config import RoleplayConfig
from roleplay_practice.errors import InvalidTransitionError, ScenarioNotFoundError, ValidationError
from roleplay_practice.roleplay_engine import RoleplayEngine, TurnResult
from roleplay_practice.session_state import LifecycleState, RoleplaySession
from roleplay_practice.stream_events import TokenEvent, encode_sse
from roleplay_practice.transcript_store import TranscriptStore

# Singletons, created on first use
_engine_instance: Optional[RoleplayEngine] = None
_transcript_store: Optional[TranscriptStore] = None

# In-memory roleplay sessions by session id
_sessions: Dict[str, RoleplaySession] = {}


def get_engine_instance() -> RoleplayEngine:
    """Get or create singleton RoleplayEngine instance."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = RoleplayEngine(config=RoleplayConfig.from_env())
    return _engine_instance


def get_transcript_store() -> TranscriptStore:
    """Get or create the transcript store (Supabase when configured)."""
    global _transcript_store
    if _transcript_store is None:
        _transcript_store = TranscriptStore(supabase_client=get_optional_supabase_client())
    return _transcript_store


app = FastAPI(
    title="Roleplay Practice API",
    description="Scenario-driven conversational practice with AI step grading",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================

class StartSessionRequest(BaseModel):
    scenario_id: str
    language: str = "en"


class TurnMessage(BaseModel):
    content: str


class ScenarioSummary(BaseModel):
    id: str
    title: str
    steps: int


class StepInfo(BaseModel):
    step: int
    total_steps: int
    goal: str
    hints: List[str]


class SessionSummary(BaseModel):
    session_id: str
    scenario_id: Optional[str]
    language: str
    state: str
    current_step: int
    total_steps: int
    step: Optional[StepInfo] = None
    step_scores: Dict[int, float]
    coach_notes: Dict[int, str]
    running_score: Optional[float] = None
    final_score: Optional[float] = None
    transcript_length: int


# ==================== Helper Functions ====================

def get_owned_session(session_id: str, user: dict) -> RoleplaySession:
    """Look up a session belonging to the current user."""
    session = _sessions.get(session_id)
    if session is None or session.user_id != user["id"]:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def summarize(engine: RoleplayEngine, session: RoleplaySession) -> SessionSummary:
    total_steps = engine.scenario_for(session).total_steps if session.scenario_id else 0
    view = engine.current_step_view(session)
    return SessionSummary(
        session_id=session.session_id,
        scenario_id=session.scenario_id,
        language=session.language,
        state=session.lifecycle_state.value,
        current_step=session.current_step,
        total_steps=total_steps,
        step=StepInfo(step=view.step, total_steps=view.total_steps, goal=view.goal, hints=view.hints) if view else None,
        step_scores=dict(session.step_scores),
        coach_notes=dict(session.coach_notes),
        running_score=engine.running_score(session),
        final_score=session.final_score,
        transcript_length=len(session.transcript),
    )


def turn_result_payload(engine: RoleplayEngine, session: RoleplaySession, result: TurnResult) -> Dict[str, Any]:
    """SSE payload for the end of a turn."""
    if result.error is not None:
        return {"type": "error", "error": str(result.error), "retryable": True, "state": result.state.value}
    if result.cancelled:
        return {"type": "cancelled", "state": result.state.value}
    if not result.accepted:
        return {"type": "error", "error": "Turn not accepted", "retryable": False, "state": result.state.value}
    if result.graded:
        total_steps = engine.scenario_for(session).total_steps
        step = session.current_step
        return {
            "type": "step_result",
            "stepScore": result.step_score,
            "coachNote": result.coach_note,
            "nextStep": step + 1 if step < total_steps else None,
            "finished": step >= total_steps,
            "state": result.state.value,
        }
    return {"type": "turn_complete", "state": result.state.value}


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    config = get_engine_instance().config
    return {
        "status": "ok",
        "service": "Roleplay Practice API",
        "version": "1.0.0",
        "demo_mode": config.demo_mode,
    }


@app.get("/api/roleplay/scenarios", response_model=List[ScenarioSummary])
async def list_scenarios(lang: str = "en"):
    """List scenarios with titles in the requested language."""
    engine = get_engine_instance()
    return [
        ScenarioSummary(id=scenario.id, title=scenario.localized_title(lang), steps=scenario.total_steps)
        for scenario in engine.catalog.list_scenarios()
    ]


@app.post("/api/roleplay/sessions", response_model=SessionSummary)
async def start_session(request: StartSessionRequest, user: dict = Depends(get_current_user)):
    """Start a new roleplay session."""
    engine = get_engine_instance()
    session = RoleplaySession(user_id=user["id"])
    try:
        engine.start(session, request.scenario_id, request.language)
    except ScenarioNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    _sessions[session.session_id] = session
    logger.success("Roleplay session started", data={
        "session_id": session.session_id,
        "scenario_id": request.scenario_id,
        "language": request.language,
    })
    return summarize(engine, session)


@app.get("/api/roleplay/sessions/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str, user: dict = Depends(get_current_user)):
    """Get current session state."""
    engine = get_engine_instance()
    return summarize(engine, get_owned_session(session_id, user))


@app.post("/api/roleplay/sessions/{session_id}/turns")
async def stream_turn(session_id: str, message: TurnMessage, user: dict = Depends(get_current_user)):
    """
    Submit a user turn and stream the collaborator's reply with SSE.

    Frames: token* then one of step_result / turn_complete / error /
    cancelled, then done.
    """
    engine = get_engine_instance()
    session = get_owned_session(session_id, user)

    if session.lifecycle_state != LifecycleState.IN_STEP:
        raise HTTPException(
            status_code=409,
            detail=f"Session is {session.lifecycle_state.value}, not accepting turns"
        )
    if not message.content.strip():
        raise HTTPException(status_code=422, detail="Turn text must not be empty")

    async def generate():
        """Generator function for streaming response."""
        start_time = time.time()
        logger.request("POST", f"/api/roleplay/sessions/{session_id}/turns", user_id=user["id"], data={
            "step": session.current_step,
            "message_length": len(message.content),
        })
        token_count = 0
        try:
            async for item in engine.stream_turn(session, message.content):
                if isinstance(item, TokenEvent):
                    token_count += 1
                    yield encode_sse(item.to_payload())
                else:
                    yield encode_sse(turn_result_payload(engine, session, item))
        except ValidationError as e:
            yield encode_sse({"type": "error", "error": str(e), "retryable": False})
        except Exception as e:
            logger.error("Error in stream_turn", error=e, data={"session_id": session_id})
            yield encode_sse({"type": "error", "error": f"Error: {e}", "retryable": True})

        logger.response(200, f"/api/roleplay/sessions/{session_id}/turns", duration=time.time() - start_time, data={
            "tokens": token_count,
            "state": session.lifecycle_state.value,
        })
        yield encode_sse({"type": "done"})

    return StreamingResponse(generate(), media_type="text/event-stream")


@app.post("/api/roleplay/sessions/{session_id}/advance", response_model=SessionSummary)
async def advance_session(session_id: str, user: dict = Depends(get_current_user)):
    """Move to the next step (or complete the session) after a grade."""
    engine = get_engine_instance()
    session = get_owned_session(session_id, user)
    try:
        engine.advance(session)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return summarize(engine, session)


@app.post("/api/roleplay/sessions/{session_id}/reset", response_model=SessionSummary)
async def reset_session(session_id: str, user: dict = Depends(get_current_user)):
    """Discard the session's progress and return it to idle."""
    engine = get_engine_instance()
    session = get_owned_session(session_id, user)
    engine.reset(session)
    logger.info("Roleplay session reset", data={"session_id": session_id})
    return summarize(engine, session)


@app.get("/api/roleplay/sessions/{session_id}/export")
async def export_session(session_id: str, user: dict = Depends(get_current_user)):
    """Export the session transcript record."""
    engine = get_engine_instance()
    session = get_owned_session(session_id, user)
    try:
        record = engine.export_transcript(session)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return record.to_dict()


@app.post("/api/roleplay/sessions/{session_id}/export")
async def store_session_export(session_id: str, user: dict = Depends(get_current_user)):
    """Export the session transcript and store it for the user."""
    engine = get_engine_instance()
    session = get_owned_session(session_id, user)
    try:
        record = engine.export_transcript(session)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.section("Transcript export", data={
        "session_id": session_id,
        "completed": record.completed,
        "steps": len(record.steps),
    })
    stored = await get_transcript_store().save(
        record,
        session_id=session.session_id,
        scenario_id=session.scenario_id,
        user_id=user["id"],
    )
    return {"stored": stored, "record": record.to_dict()}


@app.get("/api/roleplay/transcripts")
async def list_transcripts(user: dict = Depends(get_current_user)):
    """List the user's stored transcripts, newest first."""
    records = await get_transcript_store().list_for_user(user["id"])
    return [record.to_dict() for record in records]


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
