import sys
from pathlib import Path
import os

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("CHAT_STORE_BACKEND", "memory")
os.environ.setdefault("CHAT_CONTEXT_TURNS", "10")
os.environ.setdefault("CHAT_HISTORY_LIMIT", "50")
os.environ.pop("OPENAI_API_KEY", None)

from voicechat.chat.service.llm_client import set_provider  # noqa: E402
from voicechat.chat.store_service import InMemoryMessageStore, set_message_store  # noqa: E402
from voicechat.chat.tests.fakes import FakeProvider  # noqa: E402


@pytest.fixture(autouse=True)
def message_store():
    store = InMemoryMessageStore()
    set_message_store(store)
    yield store
    set_message_store(None)


@pytest.fixture(autouse=True)
def provider():
    fake = FakeProvider(chunks=["Hi", " there!"])
    set_provider(fake)
    yield fake
    set_provider(None)
