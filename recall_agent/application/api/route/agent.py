from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from recall_agent.domain.models.memory import Message, Note
from recall_agent.infrastructure.security.jwt_validator import SessionClaims

router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    message: str
    conversation_id: Optional[int] = Field(None, alias="conversationId")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    conversation_id: int = Field(alias="conversationId")


class TokenRequest(BaseModel):
    token: Optional[str] = None


class NoteView(BaseModel):
    id: int
    content: str
    has_embedding: bool
    created_at: str

    @classmethod
    def from_note(cls, note: Note) -> "NoteView":
        return cls(
            id=note.id,
            content=note.content,
            has_embedding=note.embedding is not None,
            created_at=note.created_at.isoformat()
        )


def get_services(request: Request):
    return request.app.state.services


def bearer_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> SessionClaims:
    token = credentials.credentials if credentials else None
    return get_services(request).token_validator.verify(token)


@router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(body: ChatRequest, services=Depends(get_services)):
    """Run one turn for the token's user"""

    result = await services.orchestrator.run_authenticated_turn(
        body.token,
        body.message,
        body.conversation_id
    )
    return ChatResponse(response=result.output, conversation_id=result.conversation_id)


@router.get("/history/{conversation_id}", response_model=List[Message])
async def history_endpoint(
    conversation_id: int,
    claims: SessionClaims = Depends(bearer_claims),
    services=Depends(get_services)
):
    """Messages of a conversation in creation order"""

    if services.settings.enforce_conversation_ownership:
        conversation = await services.conversation_store.get(conversation_id)
        if conversation is None or conversation.user_id != claims.user_id:
            raise HTTPException(status_code=404, detail="Conversation not found")

    return await services.conversation_store.get_history(conversation_id)


@router.post("/my-notes", response_model=List[NoteView])
async def my_notes_endpoint(body: TokenRequest, services=Depends(get_services)):
    """Everything the agent has saved for the token's user"""

    claims = services.token_validator.verify(body.token)
    notes = await services.memory_store.list_notes(claims.user_id)
    return [NoteView.from_note(note) for note in notes]
