from typing import Optional

import structlog

from recall_agent.application.websocket.connection_manager import ConnectionManager
from recall_agent.domain.context.context_manager import ContextManager
from recall_agent.domain.context.context_ranker import SimilarityRanker
from recall_agent.domain.context.memory.conversation_store import ConversationStore
from recall_agent.domain.context.memory.vector_memory_store import MemoryStore
from recall_agent.domain.orchestration.core.main_agent import AgentOrchestrator
from recall_agent.domain.tool.action_parser import ActionParser
from recall_agent.domain.tool.tool_executor import ActionExecutor
from recall_agent.infrastructure.config.settings import Settings
from recall_agent.infrastructure.persistence.database import Database
from recall_agent.infrastructure.providers.base import EmbeddingProvider, GenerationProvider
from recall_agent.infrastructure.providers.langchain_providers import build_gemini_providers
from recall_agent.infrastructure.security.jwt_validator import JWTValidator
from recall_agent.infrastructure.security.user_store import UserStore

logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Wires stores, providers and the orchestrator for one application instance"""

    def __init__(
        self,
        settings: Settings,
        embedding_provider: Optional[EmbeddingProvider] = None,
        generation_provider: Optional[GenerationProvider] = None
    ):
        self.settings = settings

        if embedding_provider is None or generation_provider is None:
            default_embedding, default_generation = build_gemini_providers(settings)
            embedding_provider = embedding_provider or default_embedding
            generation_provider = generation_provider or default_generation

        self.embedding_provider = embedding_provider
        self.generation_provider = generation_provider

        self.database = Database(settings.database_url)
        self.user_store = UserStore(self.database)
        self.memory_store = MemoryStore(self.database)
        self.conversation_store = ConversationStore(self.database)
        self.token_validator = JWTValidator(settings.jwt_secret, settings.jwt_algorithm)
        self.connection_manager = ConnectionManager()

        ranker = SimilarityRanker(k=settings.top_k, threshold=settings.similarity_threshold)
        self.orchestrator = AgentOrchestrator(
            context_manager=ContextManager(self.memory_store, embedding_provider, ranker),
            generation_provider=generation_provider,
            action_parser=ActionParser(),
            action_executor=ActionExecutor(
                self.memory_store,
                embedding_provider,
                allow_empty_notes=settings.allow_empty_notes
            ),
            conversation_store=self.conversation_store,
            token_validator=self.token_validator,
            enforce_conversation_ownership=settings.enforce_conversation_ownership,
            serialize_conversation_turns=settings.serialize_conversation_turns
        )

    async def start(self) -> None:
        await self.database.create_all()
        logger.info(
            "Services started",
            top_k=self.settings.top_k,
            similarity_threshold=self.settings.similarity_threshold,
            enforce_conversation_ownership=self.settings.enforce_conversation_ownership,
        )

    async def stop(self) -> None:
        await self.connection_manager.disconnect_all()
        await self.database.dispose()
