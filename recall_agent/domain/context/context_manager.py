from typing import List

import structlog

from recall_agent.domain.models.memory import Note, RetrievedContext
from recall_agent.infrastructure.providers.base import EmbeddingProvider
from .context_ranker import SimilarityRanker
from .memory.vector_memory_store import MemoryStore

logger = structlog.get_logger(__name__)

CONTEXT_SEPARATOR = " | "


def format_fragment(notes: List[Note]) -> str:
    """Join note contents into the human-readable fragment used in prompts"""
    return CONTEXT_SEPARATOR.join(note.content for note in notes)


class ContextManager:
    """Assembles long-term memory relevant to a query"""

    def __init__(
        self,
        memory_store: MemoryStore,
        embedding_provider: EmbeddingProvider,
        ranker: SimilarityRanker
    ):
        self.memory_store = memory_store
        self.embedding_provider = embedding_provider
        self.ranker = ranker

    async def build_context(self, user_id: int, query: str) -> RetrievedContext:
        """Embed the query, rank the user's notes and build the context fragment"""

        query_vector = await self.embedding_provider.embed(query)
        candidates = await self.memory_store.search_candidates(user_id)

        ranked = self.ranker.rank_scored(query_vector, candidates)
        notes = [s.note for s in ranked]

        logger.info(
            "Context retrieved",
            user_id=user_id,
            candidates=len(candidates),
            selected=[{"note_id": s.note.id, "score": round(s.score, 4)} for s in ranked],
        )

        return RetrievedContext(notes=notes, fragment=format_fragment(notes))
