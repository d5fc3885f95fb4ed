"""LLM client abstraction layer."""

from .base_client import BaseLLMClient, LLMRequest, LLMResponse, LLMServiceError
from .factory import create_llm_client, LLMProvider

__all__ = [
    "BaseLLMClient",
    "LLMRequest",
    "LLMResponse",
    "LLMServiceError",
    "create_llm_client",
    "LLMProvider",
]
