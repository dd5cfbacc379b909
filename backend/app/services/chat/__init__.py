"""
Chat service: metered chat messages.
"""
from app.services.chat.providers import (
    ChatCompletion,
    ChatProvider,
    MockChatProvider,
    OpenRouterChatProvider,
    get_chat_provider,
)
from app.services.chat.chat_service import (
    ChatResult,
    ChatHistory,
    send_message,
    get_chat_history,
)

__all__ = [
    "ChatCompletion",
    "ChatProvider",
    "MockChatProvider",
    "OpenRouterChatProvider",
    "get_chat_provider",
    "ChatResult",
    "ChatHistory",
    "send_message",
    "get_chat_history",
]
