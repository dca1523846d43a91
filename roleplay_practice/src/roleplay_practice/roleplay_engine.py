"""
Roleplay Engine

Session state machine for roleplay practice:

    IDLE -> IN_STEP -> STREAMING -> GRADED -> IN_STEP (next step) ... -> COMPLETE
                          |
                          +-> IN_STEP (ungraded exchange, or stream error)

reset is legal from every state and returns to IDLE; start is legal from
every state and implies a reset.

The engine holds no session data itself: every operation takes the
RoleplaySession it acts on, so several independent sessions can share one
engine.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AsyncIterator, Dict, FrozenSet, Optional, Union

from roleplay_practice.config import RoleplayConfig
from roleplay_practice.errors import (
    GradingContractError,
    InvalidTransitionError,
    StreamError,
    ValidationError,
)
from roleplay_practice.grading_collaborator import (
    GradingCollaborator,
    GradingRequest,
    build_grading_collaborator,
)
from roleplay_practice.localization import resolve
from roleplay_practice.scenario_catalog import (
    Scenario,
    ScenarioCatalog,
    StepView,
    describe_step,
    get_default_catalog,
)
from roleplay_practice.score_aggregator import final_score, running_score
from roleplay_practice.session_state import LifecycleState, RoleplaySession, Turn, TurnRole
from roleplay_practice.stream_events import TokenEvent
from roleplay_practice.transcript_exporter import TranscriptRecord, export_transcript
from roleplay_practice.turn_coordinator import StreamingTurnCoordinator, TurnOutcome

logger = logging.getLogger(__name__)


class Operation(Enum):
    START = "start"
    SUBMIT_TURN = "submit_turn"
    ADVANCE = "advance"
    RESET = "reset"
    EXPORT = "export"


# Operations legal in each state; anything missing is an illegal transition.
# STREAMING excludes SUBMIT_TURN: at most one collaborator call per session.
LEGAL_OPERATIONS: Dict[LifecycleState, FrozenSet[Operation]] = {
    LifecycleState.IDLE: frozenset({Operation.START, Operation.RESET}),
    LifecycleState.IN_STEP: frozenset({Operation.START, Operation.SUBMIT_TURN, Operation.RESET, Operation.EXPORT}),
    LifecycleState.STREAMING: frozenset({Operation.START, Operation.RESET, Operation.EXPORT}),
    LifecycleState.GRADED: frozenset({Operation.START, Operation.ADVANCE, Operation.RESET, Operation.EXPORT}),
    LifecycleState.COMPLETE: frozenset({Operation.START, Operation.RESET, Operation.EXPORT}),
}

BANNER_TEMPLATE = "Starting roleplay: {title}"

# Queued by the turn task after its last event
_END_OF_TURN = object()


def is_legal(session: RoleplaySession, operation: Operation) -> bool:
    return operation in LEGAL_OPERATIONS[session.lifecycle_state]


@dataclass(frozen=True)
class TurnResult:
    """What happened to a submitted turn."""
    accepted: bool
    state: LifecycleState
    assistant_turn: Optional[Turn] = None
    step_score: Optional[float] = None
    coach_note: Optional[str] = None
    error: Optional[StreamError] = None  # non-fatal; the user may retry
    cancelled: bool = False  # session was reset while streaming

    @property
    def graded(self) -> bool:
        return self.step_score is not None


class RoleplayEngine:
    """Mediates turn submission, grading and step advancement for sessions."""

    def __init__(
        self,
        catalog: Optional[ScenarioCatalog] = None,
        collaborator: Optional[GradingCollaborator] = None,
        config: Optional[RoleplayConfig] = None,
    ):
        self.config = config or RoleplayConfig.from_env()
        self.catalog = catalog or get_default_catalog()
        self.collaborator = collaborator or build_grading_collaborator(self.config)
        self.coordinator = StreamingTurnCoordinator(
            self.collaborator,
            idle_timeout=self.config.stream_idle_timeout,
            allow_ungraded_turns=self.config.allow_ungraded_turns,
        )

    # ==================== Lifecycle ====================

    def start(self, session: RoleplaySession, scenario_id: str, language: str = "en") -> RoleplaySession:
        """
        Start a scenario, discarding whatever the session held.

        Raises:
            ScenarioNotFoundError: unknown id (session left unchanged)
        """
        scenario = self.catalog.get_scenario(scenario_id)

        self.reset(session)
        session.scenario_id = scenario.id
        session.language = language
        session.current_step = 1
        session.append_turn(TurnRole.SYSTEM, BANNER_TEMPLATE.format(title=scenario.localized_title(language)))
        session.lifecycle_state = LifecycleState.IN_STEP

        logger.info(
            f"🎭 [RoleplayEngine] Started '{scenario.id}' ({scenario.total_steps} steps, "
            f"lang={language}) for session {session.session_id}"
        )
        return session

    def reset(self, session: RoleplaySession) -> RoleplaySession:
        """Abort any in-flight turn and clear the session back to IDLE."""
        task = session.active_task
        if task is not None and not task.done():
            task.cancel()
            logger.info(f"🛑 [RoleplayEngine] Cancelled in-flight turn for session {session.session_id}")
        session.clear()
        return session

    def advance(self, session: RoleplaySession) -> LifecycleState:
        """
        Move past a graded step.

        Raises:
            InvalidTransitionError: session is not GRADED (session unchanged)
        """
        if not is_legal(session, Operation.ADVANCE):
            raise InvalidTransitionError(Operation.ADVANCE.value, session.lifecycle_state)

        scenario = self.scenario_for(session)
        if session.current_step < scenario.total_steps:
            session.current_step += 1
            session.lifecycle_state = LifecycleState.IN_STEP
            logger.info(f"➡️ [RoleplayEngine] Session {session.session_id} advanced to step {session.current_step}")
        else:
            session.final_score = final_score(session.step_scores, scenario.total_steps)
            session.current_step = scenario.total_steps + 1
            session.lifecycle_state = LifecycleState.COMPLETE
            logger.info(
                f"✅ [RoleplayEngine] Session {session.session_id} complete "
                f"(final score {session.final_score})"
            )
        return session.lifecycle_state

    # ==================== Turns ====================

    async def submit_turn(self, session: RoleplaySession, text: str) -> TurnResult:
        """
        Submit a user turn and wait for the collaborator's response.

        A no-op (``accepted=False``) unless the session is IN_STEP.

        Raises:
            ValidationError: empty or whitespace-only text (session unchanged)
        """
        result = None
        async for item in self.stream_turn(session, text):
            if isinstance(item, TurnResult):
                result = item
        if result is None:
            return TurnResult(accepted=True, state=session.lifecycle_state, cancelled=True)
        return result

    async def stream_turn(self, session: RoleplaySession, text: str) -> AsyncIterator[Union[TokenEvent, TurnResult]]:
        """
        Submit a user turn, yielding tokens as they arrive.

        Yields TokenEvents, then exactly one TurnResult. Acceptance rules are
        those of ``submit_turn``.

        The collaborator stream is consumed by a task recorded on
        ``session.active_task``, so ``reset`` aborts it. Closing this
        generator early (or cancelling its consumer) aborts it too and
        returns the session to IN_STEP.
        """
        request = self._accept_turn(session, text)
        if request is None:
            yield TurnResult(accepted=False, state=session.lifecycle_state)
            return

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.ensure_future(self._pump(session, request, session.generation, queue))
        session.active_task = task
        try:
            while True:
                item = await queue.get()
                if item is _END_OF_TURN:
                    break
                yield item
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
        finally:
            if not task.done():
                task.cancel()
                await asyncio.wait({task})
            if session.active_task is task:
                session.active_task = None

    def _accept_turn(self, session: RoleplaySession, text: str) -> Optional[GradingRequest]:
        if not is_legal(session, Operation.SUBMIT_TURN):
            logger.info(
                f"⏭️ [RoleplayEngine] Ignoring turn for session {session.session_id} "
                f"in state {session.lifecycle_state.value}"
            )
            return None
        if text is None or not text.strip():
            raise ValidationError("Turn text must not be empty")

        scenario = self.scenario_for(session)
        session.append_turn(TurnRole.USER, text)
        session.lifecycle_state = LifecycleState.STREAMING
        return self._build_request(session, scenario)

    def _build_request(self, session: RoleplaySession, scenario: Scenario) -> GradingRequest:
        step = scenario.get_step(session.current_step)
        return GradingRequest(
            scenario_id=scenario.id,
            step=session.current_step,
            total_steps=scenario.total_steps,
            transcript=[turn.to_message() for turn in session.transcript],
            language=session.language,
            persona=scenario.persona,
            language_style=scenario.language_style,
            goal=resolve(step.goal, session.language, f"{scenario.id}.step{step.id}.goal"),
            rubric=step.rubric,
        )

    async def _pump(
        self,
        session: RoleplaySession,
        request: GradingRequest,
        generation: int,
        queue: asyncio.Queue,
    ) -> None:
        finished = False
        try:
            async for item in self._run_turn(session, request, generation):
                finished = finished or isinstance(item, TurnResult)
                queue.put_nowait(item)
        finally:
            if not finished and session.generation != generation:
                # Reset while streaming: the session this turn belonged to is gone
                queue.put_nowait(TurnResult(accepted=True, state=session.lifecycle_state, cancelled=True))
            queue.put_nowait(_END_OF_TURN)

    async def _run_turn(
        self,
        session: RoleplaySession,
        request: GradingRequest,
        generation: int,
    ) -> AsyncIterator[Union[TokenEvent, TurnResult]]:
        settled = False
        stream = self.coordinator.consume(request)
        try:
            async for item in stream:
                if session.generation != generation:
                    logger.info(f"🗑️ [RoleplayEngine] Discarding events for reset session {session.session_id}")
                    settled = True
                    return
                if isinstance(item, TurnOutcome):
                    result = self._apply_outcome(session, item)
                    settled = True
                    yield result
                else:
                    yield item
        except StreamError as e:
            if session.generation != generation:
                settled = True
                return
            self._recover(session, e)
            settled = True
            yield TurnResult(accepted=True, state=session.lifecycle_state, error=e)
        finally:
            await stream.aclose()
            if not settled and session.generation == generation and session.is_streaming:
                # Consumer went away or the task was cancelled mid-stream
                self._recover(session, None)

    def _apply_outcome(self, session: RoleplaySession, outcome: TurnOutcome) -> TurnResult:
        assistant_turn = None
        if outcome.assistant_text:
            assistant_turn = session.append_turn(TurnRole.ASSISTANT, outcome.assistant_text)

        step_result = outcome.step_result
        if step_result is None:
            session.lifecycle_state = LifecycleState.IN_STEP
            logger.info(f"💬 [RoleplayEngine] Step {session.current_step} continues (no grade yet)")
            return TurnResult(accepted=True, state=session.lifecycle_state, assistant_turn=assistant_turn)

        step = session.current_step
        session.step_scores[step] = step_result.step_score
        session.coach_notes[step] = step_result.coach_note
        session.lifecycle_state = LifecycleState.GRADED
        logger.info(f"📝 [RoleplayEngine] Step {step} graded {step_result.step_score} for session {session.session_id}")
        return TurnResult(
            accepted=True,
            state=session.lifecycle_state,
            assistant_turn=assistant_turn,
            step_score=step_result.step_score,
            coach_note=step_result.coach_note,
        )

    def _recover(self, session: RoleplaySession, error: Optional[StreamError]) -> None:
        session.lifecycle_state = LifecycleState.IN_STEP
        if isinstance(error, GradingContractError):
            logger.warning(f"⚠️ [RoleplayEngine] Grading contract violation on step {session.current_step}: {error}")
        elif error is not None:
            logger.warning(f"⚠️ [RoleplayEngine] Stream error on step {session.current_step}: {error}")
        else:
            logger.info(f"🛑 [RoleplayEngine] Turn aborted on step {session.current_step}")

    # ==================== Read-only views ====================

    def scenario_for(self, session: RoleplaySession) -> Scenario:
        if session.scenario_id is None:
            raise InvalidTransitionError("read scenario", session.lifecycle_state)
        return self.catalog.get_scenario(session.scenario_id)

    def export_transcript(self, session: RoleplaySession, exported_at: Optional[datetime] = None) -> TranscriptRecord:
        """
        Export the session record; never mutates the session.

        Legal in every state except IDLE: an idle session has no scenario
        to title the record with, so there is nothing to export.

        Raises:
            InvalidTransitionError: session is IDLE (nothing to export)
        """
        if not is_legal(session, Operation.EXPORT):
            raise InvalidTransitionError(Operation.EXPORT.value, session.lifecycle_state)
        return export_transcript(session, self.scenario_for(session), exported_at=exported_at)

    def current_step_view(self, session: RoleplaySession) -> Optional[StepView]:
        """Localized goal and hints for the current step, if one is active."""
        if session.scenario_id is None or session.is_complete:
            return None
        return describe_step(self.scenario_for(session), session.current_step, session.language)

    def running_score(self, session: RoleplaySession) -> Optional[float]:
        return running_score(session.step_scores)
