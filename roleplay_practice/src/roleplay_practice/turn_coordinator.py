"""
Streaming Turn Coordinator

Consumes the grading collaborator's event stream for one submitted turn.

Tokens are buffered in arrival order into the in-progress assistant message
and passed through to the caller as they arrive. The buffer is only handed
back (for committing) once the stream ends cleanly; any failure discards it.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Union

from roleplay_practice.errors import GradingContractError, RoleplayError, StreamError
from roleplay_practice.grading_collaborator import GradingCollaborator, GradingRequest
from roleplay_practice.score_aggregator import MAX_STEP_SCORE, MIN_STEP_SCORE, clamp_score
from roleplay_practice.stream_events import ErrorEvent, StepResultEvent, TokenEvent, decode_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnOutcome:
    """Result of a cleanly finished stream."""
    assistant_text: str
    step_result: Optional[StepResultEvent] = None  # score already clamped


class StreamingTurnCoordinator:
    """
    Opens a collaborator stream and assembles the assistant turn.

    Failure modes, all raised as StreamError (GradingContractError for
    malformed events): collaborator error event, transport exception,
    malformed payload, no event within ``idle_timeout`` seconds.
    """

    def __init__(
        self,
        collaborator: GradingCollaborator,
        idle_timeout: Optional[float] = 30.0,
        allow_ungraded_turns: bool = True,
    ):
        self.collaborator = collaborator
        self.idle_timeout = idle_timeout if idle_timeout and idle_timeout > 0 else None
        self.allow_ungraded_turns = allow_ungraded_turns

    async def consume(self, request: GradingRequest) -> AsyncIterator[Union[TokenEvent, TurnOutcome]]:
        """
        Stream one turn.

        Yields every TokenEvent as it arrives, then exactly one TurnOutcome.
        The upstream stream is closed however consumption ends.
        """
        iterator = self.collaborator.stream(request).__aiter__()
        buffer: List[str] = []
        step_result: Optional[StepResultEvent] = None

        try:
            while True:
                try:
                    payload = await asyncio.wait_for(iterator.__anext__(), timeout=self.idle_timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as e:
                    raise StreamError(f"No stream event within {self.idle_timeout}s", cause=e) from e
                except RoleplayError:
                    raise
                except Exception as e:
                    raise StreamError(f"Grading stream failed: {e}", cause=e) from e

                event = decode_event(payload)
                if event is None:
                    break
                if step_result is not None:
                    raise GradingContractError(f"Event after step_result: {type(event).__name__}")

                if isinstance(event, TokenEvent):
                    buffer.append(event.content)
                    yield event
                elif isinstance(event, StepResultEvent):
                    step_result = self._clamp(event, request.step)
                elif isinstance(event, ErrorEvent):
                    raise StreamError(f"Grading collaborator error: {event.error}")
        finally:
            await self._close(iterator)

        if step_result is None and not self.allow_ungraded_turns:
            raise GradingContractError(f"Stream for step {request.step} ended without a step_result")

        yield TurnOutcome(assistant_text="".join(buffer), step_result=step_result)

    def _clamp(self, event: StepResultEvent, step: int) -> StepResultEvent:
        clamped = clamp_score(event.step_score)
        if clamped != event.step_score:
            logger.warning(
                f"⚠️ [TurnCoordinator] Step {step} score {event.step_score} outside "
                f"[{MIN_STEP_SCORE:g}, {MAX_STEP_SCORE:g}], clamped to {clamped}"
            )
            return dataclasses.replace(event, step_score=clamped)
        return event

    async def _close(self, iterator) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug(f"[TurnCoordinator] Error closing stream: {e}")
