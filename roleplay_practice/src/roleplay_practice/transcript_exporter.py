"""
Transcript Export

Serializes a session into an immutable record for downstream storage and
analysis. Output is deterministic for an unchanged session apart from the
``exportedAt`` timestamp.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from roleplay_practice.scenario_catalog import Scenario
from roleplay_practice.score_aggregator import final_score
from roleplay_practice.session_state import RoleplaySession, TurnRole, utc_now


@dataclass(frozen=True)
class StepRecord:
    step: int
    score: float
    coach_note: str

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "score": self.score, "coachNote": self.coach_note}


@dataclass(frozen=True)
class TurnRecord:
    role: str
    content: str
    timestamp: str  # ISO-8601

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass(frozen=True)
class TranscriptRecord:
    """Exported session record."""
    scenario: str  # Localized title
    language: str
    completed: bool
    final_score: Optional[float]
    steps: Tuple[StepRecord, ...]
    transcript: Tuple[TurnRecord, ...]
    exported_at: str  # ISO-8601

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "language": self.language,
            "completed": self.completed,
            "finalScore": self.final_score,
            "steps": [step.to_dict() for step in self.steps],
            "transcript": [turn.to_dict() for turn in self.transcript],
            "exportedAt": self.exported_at,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TranscriptRecord":
        return cls(
            scenario=data["scenario"],
            language=data["language"],
            completed=bool(data["completed"]),
            final_score=data.get("finalScore"),
            steps=tuple(
                StepRecord(step=int(s["step"]), score=float(s["score"]), coach_note=s.get("coachNote", ""))
                for s in data.get("steps", [])
            ),
            transcript=tuple(
                TurnRecord(role=t["role"], content=t["content"], timestamp=t["timestamp"])
                for t in data.get("transcript", [])
            ),
            exported_at=data["exportedAt"],
        )

    @classmethod
    def from_json(cls, text: str) -> "TranscriptRecord":
        return cls.from_dict(json.loads(text))


def export_transcript(
    session: RoleplaySession,
    scenario: Scenario,
    exported_at: Optional[datetime] = None,
) -> TranscriptRecord:
    """
    Build the export record for a session.

    Graded steps are listed in step order; system turns (the start banner)
    are left out of the transcript.
    """
    completed = session.is_complete
    score = None
    if completed:
        score = session.final_score
        if score is None:
            score = final_score(session.step_scores, scenario.total_steps)

    steps = tuple(
        StepRecord(step=step, score=session.step_scores[step], coach_note=session.coach_notes.get(step, ""))
        for step in sorted(session.step_scores)
    )
    transcript = tuple(
        TurnRecord(role=turn.role.value, content=turn.content, timestamp=turn.timestamp.isoformat())
        for turn in session.transcript
        if turn.role != TurnRole.SYSTEM
    )

    return TranscriptRecord(
        scenario=scenario.localized_title(session.language),
        language=session.language,
        completed=completed,
        final_score=score,
        steps=steps,
        transcript=transcript,
        exported_at=(exported_at or utc_now()).isoformat(),
    )
