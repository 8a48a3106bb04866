from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import func, select

from recall_agent.domain.models.memory import Conversation, Message, MessageRole
from recall_agent.infrastructure.persistence.database import Database
from recall_agent.infrastructure.persistence.tables import ConversationRecord, MessageRecord

logger = structlog.get_logger(__name__)

_TICK = timedelta(microseconds=1)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConversationStore:
    """Durable, append-only, time-ordered log of conversation turns"""

    def __init__(self, database: Database):
        self.database = database

    async def get(self, conversation_id: int) -> Optional[Conversation]:
        async with self.database.transaction("get_conversation") as session:
            record = await session.get(ConversationRecord, conversation_id)
            return Conversation.model_validate(record) if record else None

    async def get_or_create_for_user(self, user_id: int) -> Conversation:
        """Return the user's implicit conversation, creating it on first use"""

        async with self.database.transaction("resolve_conversation") as session:
            result = await session.execute(
                select(ConversationRecord)
                .where(ConversationRecord.user_id == user_id)
                .order_by(ConversationRecord.id)
                .limit(1)
            )
            record = result.scalars().first()
            if record is None:
                record = ConversationRecord(user_id=user_id)
                session.add(record)
                await session.flush()
                logger.info("Conversation created", conversation_id=record.id, user_id=user_id)
            return Conversation.model_validate(record)

    async def append_turn(
        self,
        conversation_id: int,
        user_text: str,
        assistant_text: str
    ) -> Tuple[Message, Message]:
        """Append the user and assistant messages of one turn in a single transaction.

        Timestamps are strictly increasing within the conversation: the user
        message lands after every existing message and the assistant message
        lands after the user message.
        """

        async with self.database.transaction("append_turn") as session:
            latest = await session.scalar(
                select(func.max(MessageRecord.created_at))
                .where(MessageRecord.conversation_id == conversation_id)
            )

            user_at = datetime.now(timezone.utc)
            if latest is not None and user_at <= _as_utc(latest):
                user_at = _as_utc(latest) + _TICK
            assistant_at = user_at + _TICK

            user_record = MessageRecord(
                conversation_id=conversation_id,
                role=MessageRole.USER.value,
                content=user_text,
                created_at=user_at,
            )
            assistant_record = MessageRecord(
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT.value,
                content=assistant_text,
                created_at=assistant_at,
            )
            session.add(user_record)
            await session.flush()
            session.add(assistant_record)
            await session.flush()

            pair = (Message.model_validate(user_record), Message.model_validate(assistant_record))

        logger.debug("Turn appended", conversation_id=conversation_id, message_ids=[m.id for m in pair])
        return pair

    async def get_history(self, conversation_id: int) -> List[Message]:
        """Messages of a conversation in creation order"""

        async with self.database.transaction("get_history") as session:
            result = await session.execute(
                select(MessageRecord)
                .where(MessageRecord.conversation_id == conversation_id)
                .order_by(MessageRecord.created_at, MessageRecord.id)
            )
            return [Message.model_validate(record) for record in result.scalars()]
