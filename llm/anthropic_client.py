"""Anthropic Claude LLM client implementation."""

import os
import logging
from typing import Optional

import anthropic

from .base_client import BaseLLMClient, LLMRequest, LLMResponse, LLMServiceError
from .openai_client import _status_error

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client implementation."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            model: Model to use (default: claude-sonnet-4-20250514)
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or self.DEFAULT_MODEL

        if not self.api_key:
            logger.warning("No Anthropic API key provided")

        self.client = anthropic.AsyncAnthropic(api_key=self.api_key or "missing")
        logger.info(f"Anthropic client initialized with model: {self.model}")

    async def chat(self, request: LLMRequest) -> LLMResponse:
        """Send chat completion request to Anthropic."""
        # Anthropic has no presence/frequency penalties; they are dropped here
        messages = [
            {"role": msg.role, "content": msg.content} for msg in request.messages
        ]

        try:
            response = await self.client.messages.create(
                model=request.model or self.model,
                system=request.system_prompt,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                timeout=request.timeout_s,
            )
        except anthropic.APITimeoutError as e:
            raise LLMServiceError(LLMServiceError.TIMEOUT, "The request to the model timed out.") from e
        except anthropic.APIConnectionError as e:
            raise LLMServiceError(LLMServiceError.NETWORK, str(e) or "Network connectivity issue") from e
        except anthropic.APIStatusError as e:
            raise _status_error(e.status_code, str(e)) from e

        if response is None or not response.content:
            raise LLMServiceError(
                LLMServiceError.MALFORMED,
                "The model returned an invalid completion object.",
            )

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            role="assistant",
            content=content,
            usage=usage,
            finish_reason=response.stop_reason,
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "anthropic"

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
