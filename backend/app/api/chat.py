"""
Chat API endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from app.core.database import get_db
from app.core.auth import get_current_user_dependency
from app.core.config import CHAT_MAX_QUERY_LENGTH
from app.models.user import User
from app.models.chat_message import ChatMessageStatus
from app.services.chat import ChatProvider, get_chat_provider, send_message, get_chat_history

router = APIRouter()


class SendMessageRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=CHAT_MAX_QUERY_LENGTH)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    query: str
    response: Optional[str]
    model: Optional[str]
    prompt_tokens: Optional[int]
    completion_tokens: Optional[int]
    total_tokens: Optional[int]
    status: ChatMessageStatus
    error_message: Optional[str]
    created_at: Optional[datetime]


class SendMessageResponse(BaseModel):
    message: ChatMessageResponse
    quota_remaining: int


class ChatHistoryResponse(BaseModel):
    messages: List[ChatMessageResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# Plain def: the provider call blocks for several seconds and runs in the threadpool
@router.post("/send", response_model=SendMessageResponse)
def send(
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
    provider: ChatProvider = Depends(get_chat_provider),
):
    """Send a chat message (costs one message of quota)."""
    result = send_message(db, current_user.id, request.query, provider)
    return SendMessageResponse(
        message=ChatMessageResponse.model_validate(result.message),
        quota_remaining=result.quota_remaining,
    )


@router.get("/history", response_model=ChatHistoryResponse)
async def history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_dependency),
):
    """Get chat history for the current user."""
    result = get_chat_history(db, current_user.id, page=page, limit=limit)
    return ChatHistoryResponse(
        messages=[ChatMessageResponse.model_validate(m) for m in result.messages],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
