from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """WebSocket event types"""
    JOIN = "join"
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    CONNECTION = "connection"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    model_config = ConfigDict(populate_by_name=True)

    type: EventType
    timestamp: datetime = Field(default_factory=_now)


class JoinEvent(BaseEvent):
    """Associates a connection with the user's room"""
    type: Literal[EventType.JOIN] = EventType.JOIN
    token: str


class UserMessage(BaseEvent):
    """Inbound turn request"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    text: str
    token: Optional[str] = None
    user_id: Optional[int] = Field(None, alias="userId")
    conversation_id: Optional[int] = Field(None, alias="conversationId")


class AssistantMessageEvent(BaseEvent):
    """Visible output of a completed turn"""
    type: Literal[EventType.ASSISTANT_MESSAGE] = EventType.ASSISTANT_MESSAGE
    text: str
    conversation_id: int


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "joined", "disconnected"]
    connection_id: Optional[str] = None
    room: Optional[str] = None
