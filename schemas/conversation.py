"""Conversation message schemas."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Speaker of a conversation message."""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation message. Immutable once created."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    role: Role
    content: str
    is_feedback_summary: bool = Field(False, alias="isFeedbackSummary")

    @property
    def key(self) -> tuple:
        """Dedup identity."""
        return (self.role, self.content)

    def to_record(self) -> dict:
        """JSON-shaped record as persisted with the session."""
        record = {"role": self.role, "content": self.content}
        if self.is_feedback_summary:
            record["isFeedbackSummary"] = True
        return record


class ChatResponse(BaseModel):
    """Outcome of a request pipeline call.

    ``message`` is always a well-formed assistant message, even when
    ``error`` is set.
    """
    message: Message
    error: Optional[str] = None
    details: Optional[str] = None
    status: Optional[int] = None
    unique_id: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
