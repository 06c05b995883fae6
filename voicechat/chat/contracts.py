"""Data contracts for conversation turns."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["user", "assistant"]
InputMethod = Literal["text", "voice"]

INPUT_METHODS = ("text", "voice")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NewTurn(BaseModel):
    """A turn as handed to the store, before it has an id or timestamp."""

    content: str
    role: Role
    inputMethod: InputMethod = "text"
    hasAudio: bool = False
    audioUrl: Optional[str] = None

    @model_validator(mode="after")
    def _audio_flag_matches_url(self) -> "NewTurn":
        if self.hasAudio != (self.audioUrl is not None):
            raise ValueError("hasAudio must be true exactly when audioUrl is set")
        return self


class Turn(NewTurn):
    """A persisted turn. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: int
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_new(cls, new_turn: NewTurn, turn_id: int, timestamp: Optional[datetime] = None) -> "Turn":
        return cls(
            id=turn_id,
            timestamp=timestamp or utc_now(),
            **new_turn.model_dump(),
        )

    def as_context(self) -> dict:
        return {"role": self.role, "content": self.content}
