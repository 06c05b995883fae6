"""Wire schemas for the chat WebSocket channel."""
from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, ValidationError, field_validator

from voicechat.chat.contracts import INPUT_METHODS, InputMethod, Turn


class InboundFrameError(Exception):
    """Raised when an inbound frame is not a well-formed chat intent."""


class ChatIntent(BaseModel):
    type: Literal["chat"]
    content: str
    inputMethod: InputMethod = "text"
    generateSpeech: bool = False

    @field_validator("inputMethod", mode="before")
    @classmethod
    def _default_unknown_input_method(cls, value: Any) -> Any:
        return value if value in INPUT_METHODS else "text"

    @field_validator("generateSpeech", mode="before")
    @classmethod
    def _none_means_no_speech(cls, value: Any) -> Any:
        return False if value is None else value

    def is_blank(self) -> bool:
        return not self.content.strip()


def parse_inbound(raw: str | bytes | None) -> ChatIntent:
    """Parse a raw text frame into a ChatIntent or raise InboundFrameError."""
    if not isinstance(raw, str):
        raise InboundFrameError("inbound frame must be text")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise InboundFrameError(f"inbound frame is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InboundFrameError("inbound frame must be a JSON object")
    try:
        return ChatIntent.model_validate(data)
    except ValidationError as exc:
        raise InboundFrameError(f"inbound frame is not a chat intent: {exc.error_count()} error(s)") from exc


class MessageFrame(BaseModel):
    type: Literal["message"] = "message"
    message: Turn


class ChunkFrame(BaseModel):
    type: Literal["chunk"] = "chunk"
    content: str


class CompleteFrame(BaseModel):
    type: Literal["complete"] = "complete"
    message: Turn


class TypingFrame(BaseModel):
    type: Literal["typing"] = "typing"
    isTyping: bool


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    message: str


OutboundFrame = Union[MessageFrame, ChunkFrame, CompleteFrame, TypingFrame, ErrorFrame]
