from .database import Database
from .tables import Base, ConversationRecord, MessageRecord, NoteRecord, UserRecord

__all__ = [
    "Base",
    "ConversationRecord",
    "Database",
    "MessageRecord",
    "NoteRecord",
    "UserRecord",
]
