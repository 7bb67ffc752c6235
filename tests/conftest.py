"""
Shared test fixtures and configuration.
"""

import asyncio
import pytest
import os
import tempfile

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="topicchat_test_data_"))
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
# Tests never reach real AI backends
for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "MISTRAL_API_KEY", "COMPOSIO_API_KEY"):
    os.environ[key] = ""

from topicchat.agents.model_router import BackendHandler, ModelRouter  # noqa: E402
from topicchat.core.session_memory import SessionMemory  # noqa: E402
from topicchat.llm.base import LLMProvider, LLMResponse  # noqa: E402
from topicchat.models import BackendId  # noqa: E402
from topicchat.storage import ChatSessionStore, LocalStorage  # noqa: E402


class FakeProvider(LLMProvider):
    """Scripted provider: returns ``reply`` or raises ``error`` after ``delay`` seconds."""

    provider_name = "fake"

    def __init__(self, reply="Fake reply", error=None, delay=0.0, release=None):
        super().__init__(api_key="fake-key", model="fake-model")
        self.reply = reply
        self.error = error
        self.delay = delay
        self.release = release
        self.calls = []

    async def chat_completion(self, messages, temperature=None, max_tokens=None, **kwargs):
        self.calls.append(messages)
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model=self.model, usage={"total_tokens": 12})


def make_router(**providers):
    """
    Router over all backends in declared order. Keyword names are backend
    values with dashes replaced (gpt_4, claude_3, mistral, composio); a
    missing one is unconfigured.
    """
    handlers = [
        BackendHandler(backend, providers.get(backend.value.replace("-", "_")), timeout=1.0)
        for backend in BackendId
    ]
    return ModelRouter(handlers)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def store(storage):
    return ChatSessionStore(storage)


@pytest.fixture
def memory(store):
    return SessionMemory(store)
