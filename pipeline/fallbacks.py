"""Canned assistant messages used when generation fails."""

from typing import Optional

from llm.base_client import LLMServiceError
from schemas.conversation import ChatResponse, Message, Role

CLARIFICATION_SUFFIX = (
    "\n\nIs there a specific aspect of this you'd like me to explain "
    "differently or in more detail?"
)

MISSING_FIELDS = (
    "I apologize, but some required information is missing. Please try again."
)
EMPTY_RESPONSE_OBJECT = (
    "I apologize, but I'm having trouble connecting with the AI service. "
    "Could you please try again in a moment?"
)
EMPTY_CONTENT = (
    "I apologize, but I received an empty response from the AI service. "
    "Could you please try a different question?"
)
MALFORMED_COMPLETION = (
    "I apologize, but the AI service is having difficulty processing your "
    "request. Let's try something simpler or rephrase your question."
)
AUTH_FAILED = (
    "I seem to be having a connection issue. Let's try something else or simpler."
)
FEEDBACK_FAILED = (
    "Sorry, there was an error generating the feedback. Please try again."
)
FEEDBACK_NOT_ENOUGH_CONVERSATION = (
    "There isn't enough conversation yet to generate feedback. "
    "Talk with your coach a little longer and try again."
)

ERROR_LABELS = {
    LLMServiceError.TIMEOUT: "Request timeout",
    LLMServiceError.AUTH: "Authentication failed",
    LLMServiceError.RATE_LIMIT: "Rate limit exceeded",
    LLMServiceError.SERVER: "Server error",
    LLMServiceError.NETWORK: "Network error",
    LLMServiceError.MALFORMED: "Invalid response from AI model",
    LLMServiceError.UNKNOWN: "AI service error",
}

RETRY_GUIDANCE = {
    LLMServiceError.TIMEOUT: "Could you ask a simpler question or try again in a moment?",
    LLMServiceError.RATE_LIMIT: "I'm getting a lot of requests right now. Could we wait a moment and try again?",
    LLMServiceError.SERVER: "Let's try again in a moment with a simpler request.",
    LLMServiceError.NETWORK: "Please check your internet connection and try again.",
}
DEFAULT_GUIDANCE = "Could you please try speaking again or asking a different question?"


def error_label(kind: str) -> str:
    return ERROR_LABELS.get(kind, ERROR_LABELS[LLMServiceError.UNKNOWN])


def exhausted_message(kind: str, description: str) -> str:
    """Apologetic message after every attempt failed."""
    short = (description or error_label(kind))[:150]
    guidance = RETRY_GUIDANCE.get(kind, DEFAULT_GUIDANCE)
    return (
        "I apologize, but I'm having trouble generating a response right now "
        f"(Error: {short}). {guidance}"
    )


def fallback_response(
    content: str,
    error: str,
    details: str = "",
    status: Optional[int] = None,
    is_feedback_summary: bool = False,
) -> ChatResponse:
    """Wrap canned text in a well-formed assistant response."""
    return ChatResponse(
        message=Message(
            role=Role.ASSISTANT,
            content=content,
            is_feedback_summary=is_feedback_summary,
        ),
        error=error,
        details=details,
        status=status,
    )
