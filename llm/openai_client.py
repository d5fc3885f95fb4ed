"""OpenAI-compatible LLM client (OpenAI or OpenRouter)."""

import os
import logging
from typing import Optional, Dict

import openai
from openai import AsyncOpenAI

from .base_client import BaseLLMClient, LLMRequest, LLMResponse, LLMServiceError

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenAIClient(BaseLLMClient):
    """Async client for any OpenAI-compatible chat completions endpoint."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        provider_name: str = "openai",
    ):
        """
        Initialize OpenAI-compatible client.

        Args:
            api_key: API key (falls back to OPENAI_API_KEY env var)
            model: Model to use (default: DEFAULT_MODEL)
            base_url: Optional endpoint override (e.g. OpenRouter)
            default_headers: Extra headers sent on every request
            provider_name: Name reported by get_provider_name()
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.base_url = base_url
        self.provider_name = provider_name

        if not self.api_key:
            logger.warning(f"No API key provided for {provider_name}")

        self.client = AsyncOpenAI(
            api_key=self.api_key or "missing",
            base_url=base_url,
            default_headers=default_headers,
        )
        logger.info(f"{provider_name} client initialized with model: {self.model}")

    async def chat(self, request: LLMRequest) -> LLMResponse:
        """Send chat completion request."""
        messages = [{"role": "system", "content": request.system_prompt}]
        messages.extend(
            {"role": msg.role, "content": msg.content} for msg in request.messages
        )

        try:
            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                presence_penalty=request.presence_penalty,
                frequency_penalty=request.frequency_penalty,
                timeout=request.timeout_s,
            )
        except openai.APITimeoutError as e:
            raise LLMServiceError(LLMServiceError.TIMEOUT, "The request to the model timed out.") from e
        except openai.APIConnectionError as e:
            raise LLMServiceError(LLMServiceError.NETWORK, str(e) or "Network connectivity issue") from e
        except openai.APIStatusError as e:
            raise _status_error(e.status_code, str(e)) from e

        if response is None or not response.choices:
            raise LLMServiceError(
                LLMServiceError.MALFORMED,
                "The model returned an invalid completion object.",
            )

        choice = response.choices[0]
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            role="assistant",
            content=choice.message.content if choice.message else None,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return self.provider_name

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model


def _status_error(status: int, message: str) -> LLMServiceError:
    """Map an HTTP status to a structured service error."""
    if status == 401:
        return LLMServiceError(LLMServiceError.AUTH, "The API key is invalid or has expired.", status)
    if status == 429:
        return LLMServiceError(LLMServiceError.RATE_LIMIT, "Too many requests to the model API.", status)
    if status >= 500:
        return LLMServiceError(LLMServiceError.SERVER, f"Server error with status {status}.", status)
    return LLMServiceError(LLMServiceError.UNKNOWN, message[:150], status)
