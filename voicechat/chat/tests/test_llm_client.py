import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from voicechat.chat.service import llm_client
from voicechat.chat.service.llm_client import OpenAIProvider, ProviderError


class _FakeStream:
    def __init__(self, chunks, error=None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


def _delta(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def _client_with_stream(stream):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=stream)
    return client


def _collect(provider, messages):
    async def run():
        return [piece async for piece in provider.stream_completion(messages)]

    return asyncio.run(run())


def _connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


def test_stream_yields_non_empty_deltas_only():
    stream = _FakeStream([_delta("Hi"), _delta(None), _delta(""), SimpleNamespace(choices=[]), _delta(" there!")])
    client = _client_with_stream(stream)
    provider = OpenAIProvider(client=client)

    pieces = _collect(provider, [{"role": "user", "content": "Hello"}])

    assert pieces == ["Hi", " there!"]
    assert stream.closed is True
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["model"] == "gpt-5"
    assert kwargs["max_completion_tokens"] == 8192
    assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]


def test_model_is_configurable(monkeypatch):
    monkeypatch.setenv("CHAT_MODEL", "gpt-4o-mini")
    client = _client_with_stream(_FakeStream([_delta("ok")]))
    _collect(OpenAIProvider(client=client), [])
    assert client.chat.completions.create.await_args.kwargs["model"] == "gpt-4o-mini"


def test_request_failure_becomes_provider_error():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=_connection_error())
    with pytest.raises(ProviderError):
        _collect(OpenAIProvider(client=client), [])


def test_mid_stream_failure_becomes_provider_error():
    stream = _FakeStream([_delta("Hi")], error=httpx.ReadError("connection reset"))
    provider = OpenAIProvider(client=_client_with_stream(stream))

    seen = []

    async def run():
        async for piece in provider.stream_completion([]):
            seen.append(piece)

    with pytest.raises(ProviderError):
        asyncio.run(run())
    assert seen == ["Hi"]
    assert stream.closed is True


def test_missing_api_key_is_provider_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY_ENV_VAR", raising=False)
    with pytest.raises(ProviderError):
        _collect(OpenAIProvider(), [])


def test_client_built_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.example.com/v1/")
    monkeypatch.setenv("OPENAI_TIMEOUT_S", "12.5")
    with patch.object(openai, "AsyncOpenAI") as factory:
        provider = OpenAIProvider()
        provider._get_client()
        provider._get_client()
    factory.assert_called_once_with(api_key="sk-test", timeout=12.5, base_url="https://proxy.example.com/v1")


def test_synthesize_speech_returns_bytes():
    client = MagicMock()
    client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"mp3-bytes"))
    provider = OpenAIProvider(client=client)

    audio = asyncio.run(provider.synthesize_speech("Hi there!"))

    assert audio == b"mp3-bytes"
    kwargs = client.audio.speech.create.await_args.kwargs
    assert kwargs == {"model": "tts-1", "voice": "nova", "input": "Hi there!", "response_format": "mp3"}


def test_synthesize_speech_failure_is_provider_error():
    client = MagicMock()
    client.audio.speech.create = AsyncMock(side_effect=_connection_error())
    with pytest.raises(ProviderError):
        asyncio.run(OpenAIProvider(client=client).synthesize_speech("Hi"))


def test_transcribe_sends_named_file():
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text="hello world"))
    provider = OpenAIProvider(client=client)

    text = asyncio.run(provider.transcribe(b"RIFF....", filename="recording.wav"))

    assert text == "hello world"
    kwargs = client.audio.transcriptions.create.await_args.kwargs
    assert kwargs["model"] == "whisper-1"
    assert kwargs["file"] == ("recording.wav", b"RIFF....")


def test_get_provider_defaults_to_openai():
    llm_client.set_provider(None)
    assert isinstance(llm_client.get_provider(), OpenAIProvider)
