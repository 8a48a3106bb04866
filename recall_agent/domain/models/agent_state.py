from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


class TurnStatus(str, Enum):
    """Externally visible state of a turn"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ActionKind(str, Enum):
    """Side-effecting actions the model may request"""
    SAVE_NOTE = "save_note"


class ActionDirective(BaseModel):
    """An instruction recognized at the start of generated text"""
    kind: ActionKind = ActionKind.SAVE_NOTE
    payload: str = Field(description="Directive text with the marker removed and whitespace trimmed")


class TurnRequest(BaseModel):
    """Input to one conversational turn"""
    user_id: int = Field(description="Authenticated user")
    conversation_id: Optional[int] = Field(None, description="Conversation to continue, or None for the implicit one")
    text: str = Field(description="The user's message")


class TurnResult(BaseModel):
    """Outcome of a completed turn"""
    output: str = Field(description="Visible assistant output delivered to the client")
    conversation_id: int
    note_id: Optional[int] = Field(None, description="Note created by an action directive, if any")
    status: TurnStatus = TurnStatus.SUCCEEDED
