from typing import Optional

import structlog
from pydantic import BaseModel

from recall_agent.domain.context.memory.vector_memory_store import MemoryStore
from recall_agent.domain.models.agent_state import ActionDirective, ActionKind
from recall_agent.domain.models.memory import Note
from recall_agent.infrastructure.providers.base import EmbeddingProvider

logger = structlog.get_logger(__name__)

EMPTY_NOTE_REPLY = "(System: There was nothing to save.)"


def save_confirmation(content: str) -> str:
    return f'(System: I have saved the note: "{content}" to your database.)'


class ActionOutcome(BaseModel):
    """Visible result of executing a directive"""
    output: str
    note: Optional[Note] = None


class ActionExecutor:
    """Executes parsed action directives against the memory store"""

    def __init__(
        self,
        memory_store: MemoryStore,
        embedding_provider: EmbeddingProvider,
        allow_empty_notes: bool = False
    ):
        self.memory_store = memory_store
        self.embedding_provider = embedding_provider
        self.allow_empty_notes = allow_empty_notes

    async def execute(self, directive: ActionDirective, user_id: int) -> ActionOutcome:
        """Run a directive for a user and return the confirmation to show"""

        if directive.kind != ActionKind.SAVE_NOTE:
            raise ValueError(f"Unsupported action: {directive.kind}")

        if not directive.payload and not self.allow_empty_notes:
            logger.info("Empty note directive ignored", user_id=user_id)
            return ActionOutcome(output=EMPTY_NOTE_REPLY)

        embedding = await self.embedding_provider.embed(directive.payload)
        note = await self.memory_store.add(user_id=user_id, content=directive.payload, embedding=embedding)

        return ActionOutcome(output=save_confirmation(note.content), note=note)
