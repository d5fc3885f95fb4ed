"""LLM client factory."""

from enum import Enum
from typing import Optional

from .base_client import BaseLLMClient
from .openai_client import OpenAIClient, OPENROUTER_BASE_URL
from .anthropic_client import AnthropicClient


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


OPENROUTER_DEFAULT_MODEL = "anthropic/claude-3-haiku"
OPENROUTER_HEADERS = {
    "HTTP-Referer": "http://localhost:3000",
    "X-Title": "AI Coaching Agent",
}


def create_llm_client(
    provider: LLMProvider,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None
) -> BaseLLMClient:
    """
    Create an LLM client for the specified provider.

    Args:
        provider: LLM provider (openrouter, openai or anthropic)
        api_key: API key for the provider
        model: Optional model override
        base_url: Optional endpoint override for OpenAI-compatible providers

    Returns:
        Configured LLM client

    Raises:
        ValueError: If provider is not supported
    """
    if provider == LLMProvider.OPENROUTER:
        return OpenAIClient(
            api_key=api_key,
            model=model or OPENROUTER_DEFAULT_MODEL,
            base_url=base_url or OPENROUTER_BASE_URL,
            default_headers=OPENROUTER_HEADERS,
            provider_name="openrouter",
        )
    elif provider == LLMProvider.OPENAI:
        return OpenAIClient(api_key=api_key, model=model, base_url=base_url)
    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")
