"""OpenAI chat client helper.

Wraps streamed completion, speech synthesis and transcription behind one
provider object; callers may swap it with set_provider in tests.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict, List, Optional, Protocol

import httpx
import openai

from voicechat.config import runtime_config

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a completion, synthesis or transcription call fails."""


class ChatProvider(Protocol):
    def stream_completion(self, messages: List[Dict[str, str]]) -> AsyncGenerator[str, None]: ...
    async def synthesize_speech(self, text: str) -> bytes: ...
    async def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str: ...


class OpenAIProvider:
    def __init__(self, client: Optional[openai.AsyncOpenAI] = None) -> None:
        self._client = client

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            api_key = runtime_config.get_openai_api_key()
            if not api_key:
                raise ProviderError("OpenAI API key not found. Set OPENAI_API_KEY.")
            client_kwargs: Dict[str, Any] = {
                "api_key": api_key,
                "timeout": runtime_config.get_openai_timeout_s(),
            }
            base_url = runtime_config.get_openai_base_url()
            if base_url:
                client_kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        return self._client

    async def stream_completion(self, messages: List[Dict[str, str]]) -> AsyncGenerator[str, None]:
        """Yield text increments from a streamed chat completion."""
        client = self._get_client()
        try:
            stream = await client.chat.completions.create(
                model=runtime_config.get_chat_model(),
                messages=messages,  # type: ignore[arg-type]
                max_completion_tokens=runtime_config.get_max_completion_tokens(),
                stream=True,
            )
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise ProviderError(f"Completion request failed: {exc}") from exc

        try:
            async with stream:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise ProviderError(f"Completion stream failed: {exc}") from exc

    async def synthesize_speech(self, text: str) -> bytes:
        client = self._get_client()
        try:
            response = await client.audio.speech.create(
                model=runtime_config.get_tts_model(),
                voice=runtime_config.get_tts_voice(),  # type: ignore[arg-type]
                input=text,
                response_format=runtime_config.get_tts_format(),  # type: ignore[arg-type]
            )
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise ProviderError(f"Speech synthesis failed: {exc}") from exc
        audio = response.content
        logger.debug("Synthesized %d bytes of speech for %d chars", len(audio), len(text))
        return audio

    async def transcribe(self, audio: bytes, filename: str = "audio.wav") -> str:
        client = self._get_client()
        try:
            result = await client.audio.transcriptions.create(
                model=runtime_config.get_transcribe_model(),
                file=(filename, audio),
            )
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            raise ProviderError(f"Transcription failed: {exc}") from exc
        return result.text


_provider: Optional[ChatProvider] = None


def get_provider() -> ChatProvider:
    global _provider
    if _provider is None:
        _provider = OpenAIProvider()
    return _provider


def set_provider(provider: Optional[ChatProvider]) -> None:
    global _provider
    _provider = provider
