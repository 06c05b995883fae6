"""HTTP transport for history, clearing and transcription."""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, File, UploadFile

from voicechat.chat.contracts import Turn
from voicechat.chat.service.llm_client import ProviderError, get_provider
from voicechat.chat.store_service import MessageStoreError, get_message_store
from voicechat.common.error_envelope import error_response
from voicechat.config import runtime_config

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


@router.get("/messages", response_model=List[Turn])
def list_messages() -> List[Turn]:
    try:
        return get_message_store().recent(runtime_config.get_history_limit())
    except MessageStoreError as exc:
        logger.error("Failed to fetch messages: %s", exc)
        raise error_response(
            code="messages.fetch_failed",
            message="Failed to fetch messages",
            status_code=500,
        )


@router.delete("/messages")
def clear_messages() -> dict:
    try:
        get_message_store().clear()
    except MessageStoreError as exc:
        logger.error("Failed to clear messages: %s", exc)
        raise error_response(
            code="messages.clear_failed",
            message="Failed to clear messages",
            status_code=500,
        )
    return {"message": "Messages cleared"}


@router.post("/transcribe")
async def transcribe(audio: Optional[UploadFile] = File(default=None)) -> dict:
    payload = await audio.read() if audio is not None else b""
    if not payload:
        raise error_response(
            code="transcribe.no_audio",
            message="No audio file provided",
            status_code=400,
        )

    try:
        text = await get_provider().transcribe(payload, filename=audio.filename or "audio.wav")
    except ProviderError as exc:
        logger.error("Transcription error: %s", exc)
        raise error_response(
            code="transcribe.failed",
            message="Failed to transcribe audio",
            status_code=500,
        )
    logger.info("Transcribed %d bytes of audio", len(payload))
    return {"text": text}
