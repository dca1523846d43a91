"""
Grading Stream Events

Closed set of events a grading collaborator can send for one turn:

- TokenEvent: a text fragment of the assistant reply
- StepResultEvent: terminal grading of the current step
- ErrorEvent: collaborator-side failure

Raw payloads (``{"type": ..., ...}`` dicts, or SSE ``data:`` lines) are
decoded here so the rest of the engine only ever sees these classes.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from roleplay_practice.errors import GradingContractError

SSE_PREFIX = "data: "


@dataclass(frozen=True)
class TokenEvent:
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "token", "content": self.content}


@dataclass(frozen=True)
class StepResultEvent:
    step_score: float
    coach_note: str
    next_step: Optional[int]
    finished: bool

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "step_result",
            "stepScore": self.step_score,
            "coachNote": self.coach_note,
            "nextStep": self.next_step,
            "finished": self.finished,
        }


@dataclass(frozen=True)
class ErrorEvent:
    error: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "error", "error": self.error}


StreamEvent = Union[TokenEvent, StepResultEvent, ErrorEvent]

# Transport-level end-of-stream marker; never reaches the engine
DONE = "done"


def _require_number(payload: Mapping[str, Any], key: str) -> float:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise GradingContractError(f"step_result.{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise GradingContractError(f"step_result.{key} must be finite, got {value!r}")
    return float(value)


def _decode_step_result(payload: Mapping[str, Any]) -> StepResultEvent:
    step_score = _require_number(payload, "stepScore")

    coach_note = payload.get("coachNote")
    if coach_note is None:
        coach_note = ""
    if not isinstance(coach_note, str):
        raise GradingContractError(f"step_result.coachNote must be a string, got {coach_note!r}")

    next_step = payload.get("nextStep")
    if next_step is not None and (isinstance(next_step, bool) or not isinstance(next_step, int)):
        raise GradingContractError(f"step_result.nextStep must be an integer or null, got {next_step!r}")

    return StepResultEvent(
        step_score=step_score,
        coach_note=coach_note,
        next_step=next_step,
        finished=bool(payload.get("finished", False)),
    )


def decode_event(payload: Any) -> Optional[StreamEvent]:
    """
    Decode one raw payload into a stream event.

    Returns None for the ``done`` marker.

    Raises:
        GradingContractError: unknown type or malformed payload
    """
    if isinstance(payload, (TokenEvent, StepResultEvent, ErrorEvent)):
        return payload
    if not isinstance(payload, Mapping):
        raise GradingContractError(f"Stream event must be an object, got {type(payload).__name__}")

    event_type = payload.get("type")
    if event_type == "token":
        content = payload.get("content")
        if not isinstance(content, str):
            raise GradingContractError(f"token.content must be a string, got {content!r}")
        return TokenEvent(content=content)
    if event_type == "step_result":
        return _decode_step_result(payload)
    if event_type == "error":
        return ErrorEvent(error=str(payload.get("error") or "Unknown collaborator error"))
    if event_type == DONE:
        return None
    raise GradingContractError(f"Unknown stream event type: {event_type!r}")


def encode_sse(payload: Mapping[str, Any]) -> str:
    """Encode a payload as one server-sent-events frame."""
    return f"{SSE_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n"


def parse_sse_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Parse one SSE line into a payload dict.

    Returns None for blank lines, comments and non-data fields.
    """
    line = line.strip()
    if not line.startswith(SSE_PREFIX.strip()):
        return None
    data = line[len("data:"):].strip()
    if not data:
        return None
    if data == "[DONE]":
        return {"type": DONE}
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise GradingContractError(f"Malformed SSE payload: {data[:80]}") from e
    if not isinstance(payload, dict):
        raise GradingContractError(f"SSE payload must be an object: {data[:80]}")
    return payload
