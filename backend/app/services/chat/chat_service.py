"""
Chat metering: every chat message costs one message of quota.
"""
import logging
import math
from dataclasses import dataclass
from typing import List
from sqlalchemy.orm import Session
from app.core.config import CHAT_MAX_QUERY_LENGTH
from app.core.errors import QuotaExceededError, ValidationError
from app.models.chat_message import ChatMessage, ChatMessageStatus
from app.services.chat.providers import ChatProvider
from app.services.quota import get_quota_info, deduct_quota

logger = logging.getLogger(__name__)

MAX_HISTORY_PAGE_SIZE = 100


@dataclass
class ChatResult:
    message: ChatMessage
    quota_remaining: int


@dataclass
class ChatHistory:
    messages: List[ChatMessage]
    total: int
    page: int
    limit: int
    total_pages: int


def send_message(db: Session, user_id: int, query: str, provider: ChatProvider) -> ChatResult:
    """
    Send one chat message on behalf of a user.

    Quota is checked and deducted before the provider is called, and is not
    refunded when the provider fails.

    Args:
        db: Database session
        user_id: User ID
        query: User query (1-4000 characters)
        provider: Chat provider

    Returns:
        ChatResult with the stored message and remaining quota

    Raises:
        ValidationError: empty or oversized query
        QuotaExceededError: no remaining messages
    """
    if query is None or not query.strip():
        raise ValidationError("Query cannot be empty")
    if len(query) > CHAT_MAX_QUERY_LENGTH:
        raise ValidationError(f"Query must be at most {CHAT_MAX_QUERY_LENGTH} characters")

    quota_info = get_quota_info(db, user_id)
    if not quota_info.has_quota:
        raise QuotaExceededError(
            "You have no remaining messages. Please upgrade your plan or wait for renewal.",
            details={"remaining": quota_info.total_remaining_messages},
        )

    message = ChatMessage(user_id=user_id, query=query, status=ChatMessageStatus.PENDING)
    db.add(message)
    db.commit()
    db.refresh(message)

    if not quota_info.is_unlimited:
        try:
            deduct_quota(db, user_id, 1)
        except QuotaExceededError:
            # Lost the race for the last message
            db.refresh(message)
            message.status = ChatMessageStatus.FAILED
            message.error_message = "Quota exceeded"
            db.commit()
            raise

    completion = provider.complete(query)

    db.refresh(message)
    message.model = completion.model
    if completion.success:
        message.response = completion.text
        message.prompt_tokens = completion.prompt_tokens
        message.completion_tokens = completion.completion_tokens
        message.total_tokens = completion.total_tokens
        message.status = ChatMessageStatus.COMPLETED
    else:
        message.error_message = completion.error or "Unknown error"
        message.status = ChatMessageStatus.FAILED
        logger.warning(f"Chat message {message.id} for user {user_id} failed: {message.error_message}")
    db.commit()
    db.refresh(message)

    updated = get_quota_info(db, user_id)
    return ChatResult(message=message, quota_remaining=updated.total_remaining_messages)


def get_chat_history(db: Session, user_id: int, page: int = 1, limit: int = 20) -> ChatHistory:
    """Paginated chat history of a user, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_HISTORY_PAGE_SIZE)

    query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
    total = query.count()
    messages = query.order_by(
        ChatMessage.created_at.desc(), ChatMessage.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    return ChatHistory(
        messages=messages,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )
