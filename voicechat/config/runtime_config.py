"""Runtime configuration helpers for the voice chat service."""
from __future__ import annotations

import os
from typing import Optional

DEFAULT_CHAT_MODEL = "gpt-5"
DEFAULT_TTS_MODEL = "tts-1"
DEFAULT_TTS_VOICE = "nova"
DEFAULT_TTS_FORMAT = "mp3"
DEFAULT_TRANSCRIBE_MODEL = "whisper-1"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_openai_api_key() -> Optional[str]:
    return _get_env("OPENAI_API_KEY") or _get_env("OPENAI_API_KEY_ENV_VAR")


def get_openai_base_url() -> Optional[str]:
    value = _get_env("OPENAI_BASE_URL")
    return value.rstrip("/") if value else None


def get_openai_timeout_s() -> float:
    return _get_float("OPENAI_TIMEOUT_S", 60.0)


def get_chat_model() -> str:
    return _get_env("CHAT_MODEL") or DEFAULT_CHAT_MODEL


def get_max_completion_tokens() -> int:
    return _get_int("CHAT_MAX_COMPLETION_TOKENS", 8192)


def get_tts_model() -> str:
    return _get_env("TTS_MODEL") or DEFAULT_TTS_MODEL


def get_tts_voice() -> str:
    return _get_env("TTS_VOICE") or DEFAULT_TTS_VOICE


def get_tts_format() -> str:
    return _get_env("TTS_FORMAT") or DEFAULT_TTS_FORMAT


def get_transcribe_model() -> str:
    return _get_env("TRANSCRIBE_MODEL") or DEFAULT_TRANSCRIBE_MODEL


def get_context_turns() -> int:
    """Number of recent turns replayed to the completion provider."""
    return _get_int("CHAT_CONTEXT_TURNS", 10)


def get_history_limit() -> int:
    """Number of turns returned by the history endpoint."""
    return _get_int("CHAT_HISTORY_LIMIT", 50)


def get_store_backend() -> str:
    return (_get_env("CHAT_STORE_BACKEND") or "memory").lower()


def get_store_path() -> str:
    return _get_env("CHAT_STORE_PATH") or "chat_store.jsonl"


def get_log_level() -> str:
    return (_get_env("LOG_LEVEL") or "INFO").upper()
