"""
Grading Collaborators

External services that converse in-role and grade each step. A collaborator
receives a GradingRequest and returns an async stream of raw payloads:

    {"type": "token", "content": str}
    {"type": "step_result", "stepScore": number, "coachNote": str,
     "nextStep": int | None, "finished": bool}
    {"type": "error", "error": str}
    {"type": "done"}

Two implementations:
- OpenAIGradingCollaborator: streams the in-role reply from OpenAI, then
  asks for a JSON grade of the step against its rubric
- DemoGradingCollaborator: fixed demo reply and score, used when no API key
  is configured
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from roleplay_practice.config import RoleplayConfig
from roleplay_practice.localization import language_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingRequest:
    """Everything the collaborator needs to play and grade one step."""
    scenario_id: str
    step: int
    total_steps: int
    transcript: List[Dict[str, str]]  # {"role", "content"} in order
    language: str
    # Opaque scenario context, forwarded untouched
    persona: str = ""
    language_style: str = ""
    goal: str = ""
    rubric: str = ""

    @property
    def next_step(self) -> Optional[int]:
        return self.step + 1 if self.step < self.total_steps else None

    @property
    def finished(self) -> bool:
        return self.step >= self.total_steps


class GradingCollaborator(ABC):
    """Source of the event stream for one submitted turn."""

    @abstractmethod
    def stream(self, request: GradingRequest) -> AsyncIterator[Dict[str, Any]]:
        """Open an incremental response for ``request``."""


def build_system_prompt(request: GradingRequest) -> str:
    """Roleplay instructions for the in-role reply."""
    return (
        f"{request.persona}\n\n"
        f"Current step goal: {request.goal}\n\n"
        f"{request.language_style}\n\n"
        f"Evaluation rubric for this step: {request.rubric}\n\n"
        f"Respond in {language_name(request.language)}.\n\n"
        "After the conversation, you will need to evaluate the user's performance on this step "
        "and provide a score (0-5) and brief coaching note."
    )


def build_grading_prompt(request: GradingRequest, assistant_reply: str) -> str:
    """Instructions for grading the step after the in-role reply."""
    conversation = "\n".join(
        f"{message['role']}: {message['content']}" for message in request.transcript
    )
    return (
        "You are grading a roleplay practice step.\n\n"
        f"Step goal: {request.goal}\n"
        f"Rubric: {request.rubric}\n\n"
        f"Conversation so far:\n{conversation}\n"
        f"assistant: {assistant_reply}\n\n"
        "Decide whether the user has done enough to grade this step. "
        f"Write the coaching note in {language_name(request.language)}.\n"
        'Reply with JSON only: {"stepComplete": boolean, "stepScore": number 0-5, "coachNote": string}'
    )


class OpenAIGradingCollaborator(GradingCollaborator):
    """Streams the in-role reply and grade from the OpenAI chat API."""

    def __init__(self, config: Optional[RoleplayConfig] = None, llm_client: Optional[AsyncOpenAI] = None):
        self.config = config or RoleplayConfig.from_env()
        if llm_client is None:
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY not found in environment variables")
            llm_client = AsyncOpenAI(api_key=self.config.openai_api_key)
        self.llm_client = llm_client
        self.model = self.config.model

    def build_messages(self, request: GradingRequest) -> List[Dict[str, str]]:
        """System prompt plus the most recent non-system turns."""
        history = [m for m in request.transcript if m.get("role") != "system"]
        window = self.config.transcript_window
        if window > 0:
            history = history[-window:]
        return [{"role": "system", "content": build_system_prompt(request)}, *history]

    async def stream(self, request: GradingRequest) -> AsyncIterator[Dict[str, Any]]:
        messages = self.build_messages(request)
        full_response = ""
        try:
            stream = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=messages,
                stream=True,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
            async for chunk in stream:
                if chunk.choices and len(chunk.choices) > 0:
                    delta = chunk.choices[0].delta
                    if delta and delta.content:
                        full_response += delta.content
                        yield {"type": "token", "content": delta.content}
        except Exception as e:
            logger.error(f"❌ [OpenAIGrading] Streaming error on step {request.step}: {e}")
            yield {"type": "error", "error": str(e)}
            return

        try:
            grade = await self._grade(request, full_response)
        except Exception as e:
            logger.error(f"❌ [OpenAIGrading] Grading error on step {request.step}: {e}")
            yield {"type": "error", "error": f"Grading failed: {e}"}
            return

        if grade.get("stepComplete", True) or not self.config.allow_ungraded_turns:
            yield {
                "type": "step_result",
                "stepScore": grade.get("stepScore"),
                "coachNote": grade.get("coachNote", ""),
                "nextStep": request.next_step,
                "finished": request.finished,
            }
        else:
            logger.info(f"💬 [OpenAIGrading] Step {request.step} continues without a grade")
        yield {"type": "done"}

    async def _grade(self, request: GradingRequest, assistant_reply: str) -> Dict[str, Any]:
        response = await self.llm_client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": build_grading_prompt(request, assistant_reply)}],
            response_format={"type": "json_object"},
            max_tokens=150,
            temperature=0.3,
        )
        content = response.choices[0].message.content or ""
        grade = json.loads(content)
        if not isinstance(grade, dict):
            raise ValueError(f"Grade must be a JSON object, got: {content[:80]}")
        return grade


DEMO_REPLIES = {
    "sv": "Demo-läge: Rollspelscoach aktiverad. Lägg till OpenAI API-nyckel för full funktionalitet.",
    "en": "Demo mode: Roleplay coach activated. Add OpenAI API key for full functionality.",
}


class DemoGradingCollaborator(GradingCollaborator):
    """Fixed reply and grade; no network calls."""

    def __init__(self, score: float = 3, coach_note: str = "Demo feedback"):
        self.score = score
        self.coach_note = coach_note

    async def stream(self, request: GradingRequest) -> AsyncIterator[Dict[str, Any]]:
        reply = DEMO_REPLIES.get(request.language, DEMO_REPLIES["en"])
        yield {"type": "token", "content": reply}
        yield {
            "type": "step_result",
            "stepScore": self.score,
            "coachNote": self.coach_note,
            "nextStep": request.next_step,
            "finished": request.finished,
        }
        yield {"type": "done"}


def build_grading_collaborator(config: Optional[RoleplayConfig] = None) -> GradingCollaborator:
    """OpenAI collaborator when an API key is configured, demo otherwise."""
    config = config or RoleplayConfig.from_env()
    if config.demo_mode:
        logger.warning("⚠️ [Grading] OPENAI_API_KEY not set - using demo grading collaborator")
        return DemoGradingCollaborator()
    return OpenAIGradingCollaborator(config)
