"""Base LLM client interface."""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict
from pydantic import BaseModel, Field

from schemas.conversation import Message


class LLMRequest(BaseModel):
    """A single chat completion request."""
    system_prompt: str
    messages: List[Message] = Field(default_factory=list)
    model: Optional[str] = None  # Falls back to the client's model
    temperature: float = 0.5
    max_tokens: int = 400
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    timeout_s: float = 20.0


class LLMResponse(BaseModel):
    """Response from LLM."""
    role: str = "assistant"
    content: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None


class LLMServiceError(Exception):
    """Structured failure from the language-generation service."""

    TIMEOUT = "timeout"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    NETWORK = "network"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"

    def __init__(self, error_kind: str, details: str = "", status: Optional[int] = None):
        super().__init__(details or error_kind)
        self.error_kind = error_kind
        self.details = details
        self.status = status

    def __repr__(self) -> str:
        return f"LLMServiceError(kind={self.error_kind!r}, status={self.status!r}, details={self.details!r})"


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    async def chat(self, request: LLMRequest) -> LLMResponse:
        """
        Send chat completion request.

        Args:
            request: System prompt, conversation and sampling parameters

        Returns:
            LLMResponse with the assistant content

        Raises:
            LLMServiceError: On transport, status or shape failures
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the name of the LLM provider."""
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the name of the model being used."""
        pass
