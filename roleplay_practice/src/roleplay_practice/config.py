"""
Roleplay Engine Configuration

Reads engine settings from the environment (optionally from a .env file).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RoleplayConfig:
    """Settings shared by the engine, the coordinator and the collaborators."""
    openai_api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    stream_idle_timeout: float = 30.0  # seconds between stream events
    allow_ungraded_turns: bool = True  # a step may span several exchanges
    transcript_window: int = 10  # turns forwarded to the collaborator
    max_tokens: int = 300
    temperature: float = 0.7

    @property
    def demo_mode(self) -> bool:
        """True when no API key is configured and the demo collaborator is used."""
        return not self.openai_api_key

    @classmethod
    def from_env(cls) -> "RoleplayConfig":
        """Build config from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            stream_idle_timeout=float(os.getenv("ROLEPLAY_STREAM_IDLE_TIMEOUT", "30")),
            allow_ungraded_turns=_env_bool("ROLEPLAY_ALLOW_UNGRADED_TURNS", True),
            transcript_window=int(os.getenv("ROLEPLAY_TRANSCRIPT_WINDOW", "10")),
            max_tokens=int(os.getenv("ROLEPLAY_MAX_TOKENS", "300")),
        )
