"""
Unit Tests for Grading Stream Events

Tests payload decoding at the collaborator boundary and SSE framing.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "roleplay_practice", "src"))

from roleplay_practice.errors import GradingContractError
from roleplay_practice.stream_events import (
    ErrorEvent,
    StepResultEvent,
    TokenEvent,
    decode_event,
    encode_sse,
    parse_sse_line,
)


class TestDecodeEvent:
    """Test suite for decode_event()."""

    def test_token(self):
        assert decode_event({"type": "token", "content": "Hi"}) == TokenEvent(content="Hi")

    def test_step_result(self):
        event = decode_event({
            "type": "step_result", "stepScore": 4, "coachNote": "Good", "nextStep": 2, "finished": False,
        })
        assert event == StepResultEvent(step_score=4.0, coach_note="Good", next_step=2, finished=False)

    def test_step_result_null_note(self):
        event = decode_event({"type": "step_result", "stepScore": 3, "coachNote": None, "nextStep": None})
        assert event.coach_note == ""
        assert event.next_step is None
        assert event.finished is False

    def test_error(self):
        assert decode_event({"type": "error", "error": "rate limited"}) == ErrorEvent(error="rate limited")

    def test_done(self):
        assert decode_event({"type": "done"}) is None

    def test_event_instances_pass_through(self):
        event = TokenEvent(content="x")
        assert decode_event(event) is event

    @pytest.mark.parametrize("payload", [
        {"type": "unknown"},
        {"type": "token", "content": 5},
        {"type": "step_result", "stepScore": "four", "coachNote": ""},
        {"type": "step_result", "stepScore": True, "coachNote": ""},
        {"type": "step_result", "stepScore": float("nan"), "coachNote": ""},
        {"type": "step_result", "stepScore": 3, "coachNote": 42},
        {"type": "step_result", "stepScore": 3, "coachNote": "", "nextStep": "2"},
        "token",
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(GradingContractError):
            decode_event(payload)

    def test_out_of_range_score_is_decoded(self):
        # Range is enforced by the coordinator, not the decoder
        assert decode_event({"type": "step_result", "stepScore": 7, "coachNote": ""}).step_score == 7.0


class TestSSE:
    """Test suite for SSE framing."""

    def test_encode(self):
        frame = encode_sse({"type": "token", "content": "Hej å"})
        assert frame == 'data: {"type": "token", "content": "Hej å"}\n\n'

    def test_parse(self):
        assert parse_sse_line('data: {"type": "token", "content": "a"}') == {"type": "token", "content": "a"}

    def test_parse_ignores_non_data(self):
        assert parse_sse_line("") is None
        assert parse_sse_line(": keep-alive") is None
        assert parse_sse_line("event: message") is None

    def test_parse_done_marker(self):
        assert parse_sse_line("data: [DONE]") == {"type": "done"}

    def test_parse_malformed(self):
        with pytest.raises(GradingContractError):
            parse_sse_line("data: {not json")
        with pytest.raises(GradingContractError):
            parse_sse_line("data: [1, 2]")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
