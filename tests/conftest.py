"""Shared fixtures: temporary databases and scripted providers."""

import asyncio
from typing import Dict, List, Optional

import pytest

from recall_agent.domain.context.context_manager import ContextManager
from recall_agent.domain.context.context_ranker import SimilarityRanker
from recall_agent.domain.context.memory.conversation_store import ConversationStore
from recall_agent.domain.context.memory.vector_memory_store import MemoryStore
from recall_agent.domain.orchestration.core.main_agent import AgentOrchestrator
from recall_agent.domain.tool.action_parser import ActionParser
from recall_agent.domain.tool.tool_executor import ActionExecutor
from recall_agent.infrastructure.persistence.database import Database
from recall_agent.infrastructure.security.jwt_validator import JWTValidator
from recall_agent.infrastructure.security.user_store import UserStore

TEST_SECRET = "test-secret"


class FakeEmbeddingProvider:
    """Returns a fixed vector per known text and a default vector otherwise."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default or [0.0, 0.0, 1.0]
        self.calls: List[str] = []
        self.error: Optional[Exception] = None

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class FakeGenerationProvider:
    """Replies with scripted text; optionally blocks until released."""

    def __init__(self, reply: str = "Hello!"):
        self.reply = reply
        self.prompts: List[str] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'recall.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def memory_store(database):
    return MemoryStore(database)


@pytest.fixture
def conversation_store(database):
    return ConversationStore(database)


@pytest.fixture
def user_store(database):
    return UserStore(database)


@pytest.fixture
async def user_id(user_store):
    return await user_store.create("alice@example.com", "hunter2")


@pytest.fixture
def embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def generator():
    return FakeGenerationProvider()


@pytest.fixture
def token_validator():
    return JWTValidator(TEST_SECRET)


@pytest.fixture
def make_orchestrator(memory_store, conversation_store, embedder, generator, token_validator):
    def _make(**options) -> AgentOrchestrator:
        allow_empty_notes = options.pop("allow_empty_notes", False)
        return AgentOrchestrator(
            context_manager=ContextManager(memory_store, embedder, SimilarityRanker(k=3, threshold=0.5)),
            generation_provider=generator,
            action_parser=ActionParser(),
            action_executor=ActionExecutor(memory_store, embedder, allow_empty_notes=allow_empty_notes),
            conversation_store=conversation_store,
            token_validator=token_validator,
            **options
        )
    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
