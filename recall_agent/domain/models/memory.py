from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum


class MessageRole(str, Enum):
    """Author of a conversation message"""
    USER = "user"
    ASSISTANT = "assistant"


class Note(BaseModel):
    """A unit of long-term memory"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Note identifier")
    user_id: int = Field(description="Owner of the note")
    content: str = Field(description="Raw note text")
    embedding: Optional[List[float]] = Field(None, description="Semantic vector, absent when never computed")
    created_at: datetime


class Conversation(BaseModel):
    """Groups an ordered sequence of messages for one user"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    created_at: datetime


class Message(BaseModel):
    """One append-only entry of a conversation transcript"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    role: MessageRole
    content: str
    created_at: datetime


class ScoredNote(BaseModel):
    """A note paired with its similarity to a query"""
    note: Note
    score: float


class RetrievedContext(BaseModel):
    """Notes selected for a query and the fragment injected into the prompt"""
    notes: List[Note] = Field(default_factory=list)
    fragment: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.fragment
