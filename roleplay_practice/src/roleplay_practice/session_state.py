"""
Roleplay Session State

Defines the session aggregate, its turns, and the lifecycle states the
engine moves it through.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class LifecycleState(Enum):
    """Roleplay session lifecycle."""
    IDLE = "idle"  # No active scenario
    IN_STEP = "in_step"  # Awaiting user input for current_step
    STREAMING = "streaming"  # Turn submitted, collaborator response in flight
    GRADED = "graded"  # Current step scored, awaiting advance
    COMPLETE = "complete"  # Every step graded (terminal)


class TurnRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Turn:
    """One committed transcript entry."""
    role: TurnRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_message(self) -> Dict[str, str]:
        """Chat-message form sent to the grading collaborator."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class RoleplaySession:
    """One user's in-progress or completed run through a scenario."""
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    scenario_id: Optional[str] = None
    language: str = "en"
    current_step: int = 1  # 1..N, N+1 once complete
    step_scores: Dict[int, float] = field(default_factory=dict)
    coach_notes: Dict[int, str] = field(default_factory=dict)
    transcript: List[Turn] = field(default_factory=list)
    lifecycle_state: LifecycleState = LifecycleState.IDLE
    final_score: Optional[float] = None
    # Bumped by start/reset so an abandoned stream can tell it is stale
    generation: int = 0
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)
    # Task consuming the collaborator stream while STREAMING
    active_task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def is_streaming(self) -> bool:
        return self.lifecycle_state == LifecycleState.STREAMING

    @property
    def is_complete(self) -> bool:
        return self.lifecycle_state == LifecycleState.COMPLETE

    def append_turn(self, role: TurnRole, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self.transcript.append(turn)
        self.last_updated = turn.timestamp
        return turn

    def clear(self) -> None:
        """Discard all session data and return to IDLE."""
        self.scenario_id = None
        self.current_step = 1
        self.step_scores = {}
        self.coach_notes = {}
        self.transcript = []
        self.final_score = None
        self.lifecycle_state = LifecycleState.IDLE
        self.active_task = None
        self.generation += 1
        self.last_updated = utc_now()
