"""
Unit Tests for Streaming Turn Coordinator

Tests token buffering, score clamping and every stream failure mode.
"""

import pytest
import asyncio
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "roleplay_practice", "src"))

from roleplay_practice.errors import GradingContractError, StreamError
from roleplay_practice.grading_collaborator import GradingCollaborator, GradingRequest
from roleplay_practice.stream_events import TokenEvent
from roleplay_practice.turn_coordinator import StreamingTurnCoordinator, TurnOutcome

HANG = object()


class ScriptedCollaborator(GradingCollaborator):
    """Replays a fixed list of payloads; exceptions in the list are raised."""

    def __init__(self, events):
        self.events = events
        self.closed = False

    async def stream(self, request):
        try:
            for event in self.events:
                if event is HANG:
                    await asyncio.sleep(10)
                elif isinstance(event, BaseException):
                    raise event
                else:
                    yield event
        finally:
            self.closed = True


def step_result(score=4, note="Good"):
    return {"type": "step_result", "stepScore": score, "coachNote": note, "nextStep": 2, "finished": False}


async def collect(coordinator, request):
    return [item async for item in coordinator.consume(request)]


class TestStreamingTurnCoordinator:
    """Test suite for StreamingTurnCoordinator."""

    @pytest.fixture
    def request_(self):
        return GradingRequest(scenario_id="boundary-setting", step=1, total_steps=3, transcript=[], language="en")

    @pytest.mark.asyncio
    async def test_tokens_then_outcome(self, request_):
        collaborator = ScriptedCollaborator([
            {"type": "token", "content": "Hello"},
            {"type": "token", "content": ", there"},
            step_result(),
            {"type": "done"},
        ])
        items = await collect(StreamingTurnCoordinator(collaborator), request_)

        assert items[:2] == [TokenEvent("Hello"), TokenEvent(", there")]
        outcome = items[-1]
        assert isinstance(outcome, TurnOutcome)
        assert outcome.assistant_text == "Hello, there"
        assert outcome.step_result.step_score == 4.0
        assert outcome.step_result.coach_note == "Good"
        assert collaborator.closed

    @pytest.mark.asyncio
    async def test_score_is_clamped(self, request_):
        collaborator = ScriptedCollaborator([step_result(score=7), {"type": "done"}])
        items = await collect(StreamingTurnCoordinator(collaborator), request_)
        assert items[-1].step_result.step_score == 5.0

    @pytest.mark.asyncio
    async def test_stream_end_without_done(self, request_):
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Hi"}, step_result()])
        items = await collect(StreamingTurnCoordinator(collaborator), request_)
        assert items[-1].step_result is not None

    @pytest.mark.asyncio
    async def test_ungraded_turn_allowed(self, request_):
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Tell me more"}, {"type": "done"}])
        items = await collect(StreamingTurnCoordinator(collaborator, allow_ungraded_turns=True), request_)
        assert items[-1] == TurnOutcome(assistant_text="Tell me more", step_result=None)

    @pytest.mark.asyncio
    async def test_ungraded_turn_rejected(self, request_):
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Tell me more"}, {"type": "done"}])
        coordinator = StreamingTurnCoordinator(collaborator, allow_ungraded_turns=False)
        with pytest.raises(GradingContractError):
            await collect(coordinator, request_)

    @pytest.mark.asyncio
    async def test_error_event(self, request_):
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Hi"}, {"type": "error", "error": "overloaded"}])
        with pytest.raises(StreamError) as exc_info:
            await collect(StreamingTurnCoordinator(collaborator), request_)
        assert "overloaded" in str(exc_info.value)
        assert collaborator.closed

    @pytest.mark.asyncio
    async def test_transport_exception(self, request_):
        failure = ConnectionError("connection reset")
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Hi"}, failure])
        with pytest.raises(StreamError) as exc_info:
            await collect(StreamingTurnCoordinator(collaborator), request_)
        assert exc_info.value.cause is failure

    @pytest.mark.asyncio
    async def test_idle_timeout(self, request_):
        collaborator = ScriptedCollaborator([{"type": "token", "content": "Hi"}, HANG])
        coordinator = StreamingTurnCoordinator(collaborator, idle_timeout=0.05)
        with pytest.raises(StreamError) as exc_info:
            await collect(coordinator, request_)
        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_malformed_step_result(self, request_):
        collaborator = ScriptedCollaborator([{"type": "step_result", "stepScore": "n/a"}])
        with pytest.raises(GradingContractError):
            await collect(StreamingTurnCoordinator(collaborator), request_)

    @pytest.mark.asyncio
    async def test_event_after_step_result(self, request_):
        collaborator = ScriptedCollaborator([step_result(), {"type": "token", "content": "late"}])
        with pytest.raises(GradingContractError):
            await collect(StreamingTurnCoordinator(collaborator), request_)

    @pytest.mark.asyncio
    async def test_consumer_abort_closes_upstream(self, request_):
        collaborator = ScriptedCollaborator([
            {"type": "token", "content": "one"},
            {"type": "token", "content": "two"},
            step_result(),
        ])
        stream = StreamingTurnCoordinator(collaborator).consume(request_)
        assert await stream.__anext__() == TokenEvent("one")
        await stream.aclose()
        assert collaborator.closed


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
