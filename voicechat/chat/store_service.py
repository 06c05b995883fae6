"""Append-only message store for conversation turns."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Protocol

from voicechat.chat.contracts import NewTurn, Turn
from voicechat.config import runtime_config

logger = logging.getLogger(__name__)


class MessageStoreError(Exception):
    """Raised when the underlying storage cannot be read or written."""


class MessageStore(Protocol):
    def append(self, new_turn: NewTurn) -> Turn: ...
    def recent(self, limit: int) -> List[Turn]: ...
    def clear(self) -> None: ...


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._turns: List[Turn] = []
        self._last_id = 0
        self._lock = threading.Lock()

    def append(self, new_turn: NewTurn) -> Turn:
        with self._lock:
            self._last_id += 1
            turn = Turn.from_new(new_turn, self._last_id)
            self._turns.append(turn)
        return turn

    def recent(self, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._turns[-limit:])

    def clear(self) -> None:
        with self._lock:
            self._turns.clear()


class FileMessageStore:
    """JSON-lines log, one turn per line in creation order.

    The log is parsed once on open; reads are served from the parsed turns.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as exc:
            raise MessageStoreError(f"Cannot open message store at {self.path}: {exc}") from exc
        self._turns: List[Turn] = self._load()
        self._last_id = self._turns[-1].id if self._turns else 0

    def _load(self) -> List[Turn]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return [Turn.model_validate_json(line) for line in f if line.strip()]
        except (OSError, ValueError) as exc:
            raise MessageStoreError(f"Cannot read message store at {self.path}: {exc}") from exc

    def append(self, new_turn: NewTurn) -> Turn:
        with self._lock:
            turn = Turn.from_new(new_turn, self._last_id + 1)
            try:
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(turn.model_dump_json() + "\n")
            except OSError as exc:
                raise MessageStoreError(f"Cannot append to message store at {self.path}: {exc}") from exc
            self._last_id = turn.id
            self._turns.append(turn)
        return turn

    def recent(self, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._turns[-limit:])

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.write_text("", encoding="utf-8")
            except OSError as exc:
                raise MessageStoreError(f"Cannot clear message store at {self.path}: {exc}") from exc
            self._turns = []
        logger.info("Cleared message store at %s", self.path)


def _default_message_store() -> MessageStore:
    backend = runtime_config.get_store_backend()
    if backend == "memory":
        return InMemoryMessageStore()
    if backend == "file":
        return FileMessageStore(runtime_config.get_store_path())
    raise RuntimeError(f"CHAT_STORE_BACKEND must be 'memory' or 'file'. Got: '{backend}'")


_message_store: Optional[MessageStore] = None


def get_message_store() -> MessageStore:
    global _message_store
    if _message_store is None:
        _message_store = _default_message_store()
    return _message_store


def set_message_store(store: Optional[MessageStore]) -> None:
    global _message_store
    _message_store = store
