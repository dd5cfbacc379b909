"""
Chat completion providers.

MockChatProvider stands in for the LLM: it waits 3-5 seconds, fails 5% of
calls and answers with a canned response. OpenRouterChatProvider calls a real
model through OpenRouter's OpenAI-compatible API.
"""
import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional
from openai import OpenAI
from app.core.config import (
    CHAT_PROVIDER,
    CHAT_MIN_LATENCY_SECONDS,
    CHAT_MAX_LATENCY_SECONDS,
    CHAT_FAILURE_RATE,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    DEFAULT_LLM_MODEL,
)

logger = logging.getLogger(__name__)

MOCK_MODEL = "gpt-3.5-turbo-0125"

MOCK_RESPONSES = [
    "That's a great question! Based on my analysis, the answer involves several key factors that we should consider carefully.",
    "I understand your query. Let me provide you with a comprehensive response that addresses all aspects of your question.",
    "Thank you for asking. Here's what I can tell you based on my knowledge and understanding of the topic.",
    "Interesting question! The topic you've raised has multiple dimensions that are worth exploring in detail.",
    "I'd be happy to help with that. Let me break down the answer into manageable parts for better understanding.",
    "Great inquiry! This is a fascinating area that requires thoughtful consideration of various perspectives.",
    "Your question touches on an important subject. Here's my take on it with relevant details and insights.",
    "I appreciate the complexity of your question. Let me provide a thorough response with practical examples.",
]


@dataclass
class ChatCompletion:
    success: bool
    text: Optional[str] = None
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    error: Optional[str] = None


def estimate_tokens(text: str) -> int:
    """Rough token count (about 4 characters per token)."""
    return math.ceil(len(text) / 4)


class ChatProvider:
    """Produces one completion for a user query."""

    def complete(self, query: str) -> ChatCompletion:
        raise NotImplementedError


class MockChatProvider(ChatProvider):
    """Simulated LLM with realistic latency and a small failure rate."""

    def __init__(
        self,
        min_latency: float = CHAT_MIN_LATENCY_SECONDS,
        max_latency: float = CHAT_MAX_LATENCY_SECONDS,
        failure_rate: float = CHAT_FAILURE_RATE,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self.sleep = sleep

    def complete(self, query: str) -> ChatCompletion:
        self.sleep(self.rng.uniform(self.min_latency, self.max_latency))

        if self.rng.random() < self.failure_rate:
            logger.warning("Mock chat provider simulated an upstream failure")
            return ChatCompletion(
                success=False,
                model=MOCK_MODEL,
                error="OpenAI API temporarily unavailable. Please try again later.",
            )

        excerpt = query[:50] + ("..." if len(query) > 50 else "")
        text = (
            f"{self.rng.choice(MOCK_RESPONSES)}\n\n"
            f"Regarding your specific question about \"{excerpt}\", I would suggest considering the following points:\n\n"
            "1. First, it's important to understand the core concepts involved.\n"
            "2. Second, we should examine the practical implications.\n"
            "3. Third, let's look at potential solutions or approaches.\n"
            "4. Finally, consider the long-term effects and sustainability.\n\n"
            "Is there anything specific you'd like me to elaborate on?"
        )
        prompt_tokens = estimate_tokens(query)
        completion_tokens = estimate_tokens(text)
        return ChatCompletion(
            success=True,
            text=text,
            model=MOCK_MODEL,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


class OpenRouterChatProvider(ChatProvider):
    """Chat completions via OpenRouter."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        api_key = api_key or OPENROUTER_API_KEY
        if not api_key:
            raise ValueError("OpenRouter API key not configured. Set OPENROUTER_API_KEY in app/config_local.py")

        # Create OpenAI client without proxies to avoid version compatibility issues
        import httpx
        http_client = httpx.Client(
            timeout=60.0,
            follow_redirects=True,
        )

        self.client = OpenAI(
            api_key=api_key,
            base_url=OPENROUTER_BASE_URL,
            http_client=http_client,
        )
        self.model = model or DEFAULT_LLM_MODEL

    def complete(self, query: str) -> ChatCompletion:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": query}],
            )
        except Exception as e:
            logger.error(f"chat_completion_failed: model={self.model}, error_type={type(e).__name__}, error={e}")
            return ChatCompletion(success=False, model=self.model, error=str(e))

        text = response.choices[0].message.content
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else estimate_tokens(query)
        completion_tokens = usage.completion_tokens if usage else estimate_tokens(text or "")
        total_tokens = usage.total_tokens if usage else prompt_tokens + completion_tokens

        logger.info(
            f"chat_completion_completed: model={self.model}, input_tokens={prompt_tokens}, "
            f"output_tokens={completion_tokens}, total_tokens={total_tokens}"
        )
        return ChatCompletion(
            success=True,
            text=text,
            model=response.model or self.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )


def get_chat_provider() -> ChatProvider:
    """Provider selected by CHAT_PROVIDER."""
    if CHAT_PROVIDER == "openrouter":
        return OpenRouterChatProvider()
    if CHAT_PROVIDER != "mock":
        raise ValueError(f"Unknown CHAT_PROVIDER '{CHAT_PROVIDER}', expected 'mock' or 'openrouter'")
    return MockChatProvider()
