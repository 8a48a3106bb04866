from typing import List, Optional, Tuple

import structlog
from sqlalchemy import select

from recall_agent.domain.models.memory import Note
from recall_agent.infrastructure.persistence.database import Database
from recall_agent.infrastructure.persistence.tables import NoteRecord, encode_embedding

logger = structlog.get_logger(__name__)


class MemoryStore:
    """Durable per-user collection of notes with optional semantic vectors"""

    def __init__(self, database: Database):
        self.database = database

    async def add(self, user_id: int, content: str, embedding: Optional[List[float]] = None) -> Note:
        """Insert a new note; notes are never updated in place"""

        async with self.database.transaction("add_note") as session:
            record = NoteRecord(
                user_id=user_id,
                content=content,
                embedding_json=encode_embedding(embedding),
            )
            session.add(record)
            await session.flush()
            note = Note.model_validate(record)

        logger.info("Note stored", note_id=note.id, user_id=user_id, has_embedding=embedding is not None)
        return note

    async def list_notes(self, user_id: int) -> List[Note]:
        """All of a user's notes in creation order, with or without embeddings"""

        async with self.database.transaction("list_notes") as session:
            result = await session.execute(
                select(NoteRecord)
                .where(NoteRecord.user_id == user_id)
                .order_by(NoteRecord.created_at, NoteRecord.id)
            )
            return [Note.model_validate(record) for record in result.scalars()]

    async def search_candidates(self, user_id: int) -> List[Tuple[Note, Optional[List[float]]]]:
        """Notes paired with their stored vectors, ready for ranking"""

        notes = await self.list_notes(user_id)
        return [(note, note.embedding) for note in notes]
