"""Per-connection chat relay: persist, stream, synthesize, persist."""
from __future__ import annotations

import asyncio
import base64
import logging
import time
from contextlib import aclosing
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from voicechat.chat.contracts import NewTurn
from voicechat.chat.service.llm_client import ChatProvider, ProviderError, get_provider
from voicechat.chat.service.schemas import (
    ChatIntent,
    ChunkFrame,
    CompleteFrame,
    ErrorFrame,
    InboundFrameError,
    MessageFrame,
    OutboundFrame,
    TypingFrame,
    parse_inbound,
)
from voicechat.chat.store_service import MessageStore, MessageStoreError, get_message_store
from voicechat.config import runtime_config

logger = logging.getLogger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid message payload"
BUSY_MESSAGE = "A response is already being generated"
FAILURE_MESSAGE = "Failed to process message"

Emit = Callable[[OutboundFrame], Awaitable[None]]


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"


def audio_data_url(audio: bytes, audio_format: str) -> str:
    encoded = base64.b64encode(audio).decode("ascii")
    return f"data:audio/{audio_format};base64,{encoded}"


class ChatSession:
    """Relay state for one connection. At most one generation runs at a time."""

    def __init__(
        self,
        emit: Emit,
        store: Optional[MessageStore] = None,
        provider: Optional[ChatProvider] = None,
        connection_id: str = "local",
    ) -> None:
        self.emit = emit
        self.store = store or get_message_store()
        self.provider = provider or get_provider()
        self.connection_id = connection_id
        self.state = SessionState.IDLE
        self.buffer: List[str] = []

    @property
    def generation_in_flight(self) -> bool:
        return self.state is SessionState.AWAITING_COMPLETION

    async def accept_frame(self, raw: str | bytes | None) -> Optional[ChatIntent]:
        """Validate a raw frame and claim the session for it.

        Returns the intent to run, or None when the frame was discarded
        (blank content) or rejected (malformed, or a generation is already
        in flight). Rejections emit one error frame and leave the state alone.
        """
        try:
            intent = parse_inbound(raw)
        except InboundFrameError as exc:
            logger.warning("Rejected malformed frame on %s: %s", self.connection_id, exc)
            await self.emit(ErrorFrame(message=INVALID_PAYLOAD_MESSAGE))
            return None
        if await self._claim(intent):
            return intent
        return None

    async def _claim(self, intent: ChatIntent) -> bool:
        if intent.is_blank():
            return False
        if self.generation_in_flight:
            logger.warning("Rejected concurrent chat intent on %s", self.connection_id)
            await self.emit(ErrorFrame(message=BUSY_MESSAGE))
            return False
        # no await between the check above and this assignment
        self.state = SessionState.AWAITING_COMPLETION
        return True

    async def handle_frame(self, raw: str | bytes | None) -> None:
        """Accept a frame and run it to completion in the caller's task."""
        intent = await self.accept_frame(raw)
        if intent is not None:
            await self.run_intent(intent)

    async def handle_chat_intent(
        self,
        content: str,
        input_method: str = "text",
        wants_speech: bool = False,
    ) -> None:
        intent = ChatIntent(
            type="chat",
            content=content,
            inputMethod=input_method,  # type: ignore[arg-type]
            generateSpeech=wants_speech,
        )
        if await self._claim(intent):
            await self.run_intent(intent)

    async def run_intent(self, intent: ChatIntent) -> None:
        """Run the effect sequence for a claimed intent.

        Any failure becomes exactly one error frame (plus typing-stopped if
        typing was announced); no assistant turn is persisted for a failed or
        cancelled generation. The user turn is kept.
        """
        typing_started = False
        start_ts = time.monotonic()
        try:
            user_turn = self.store.append(
                NewTurn(content=intent.content, role="user", inputMethod=intent.inputMethod)
            )
            await self.emit(MessageFrame(message=user_turn))

            history = self.store.recent(runtime_config.get_context_turns())
            context = [turn.as_context() for turn in history]

            await self.emit(TypingFrame(isTyping=True))
            typing_started = True

            async with aclosing(self.provider.stream_completion(context)) as stream:
                async for delta in stream:
                    self.buffer.append(delta)
                    await self.emit(ChunkFrame(content=delta))

            reply = "".join(self.buffer)
            audio_url = None
            if intent.generateSpeech and reply.strip():
                audio = await self.provider.synthesize_speech(reply)
                audio_url = audio_data_url(audio, runtime_config.get_tts_format())

            assistant_turn = self.store.append(
                NewTurn(
                    content=reply,
                    role="assistant",
                    hasAudio=audio_url is not None,
                    audioUrl=audio_url,
                )
            )
            await self.emit(CompleteFrame(message=assistant_turn))
            await self.emit(TypingFrame(isTyping=False))
            logger.info(
                "Generation finished on %s: user_turn=%s assistant_turn=%s chunks=%d in %dms",
                self.connection_id,
                user_turn.id,
                assistant_turn.id,
                len(self.buffer),
                int((time.monotonic() - start_ts) * 1000),
            )
        except asyncio.CancelledError:
            logger.info("Generation cancelled on %s after %d chunks", self.connection_id, len(self.buffer))
            raise
        except (ProviderError, MessageStoreError) as exc:
            logger.error("Generation failed on %s: %s", self.connection_id, exc)
            await self._emit_failure(f"{FAILURE_MESSAGE}: {exc}", typing_started)
        except Exception:
            logger.exception("Generation crashed on %s", self.connection_id)
            await self._emit_failure(FAILURE_MESSAGE, typing_started)
        finally:
            self.buffer = []
            self.state = SessionState.IDLE

    async def _emit_failure(self, message: str, typing_started: bool) -> None:
        await self.emit(ErrorFrame(message=message))
        if typing_started:
            await self.emit(TypingFrame(isTyping=False))
