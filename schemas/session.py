"""Session lifecycle and account schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Any
from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Lifecycle state of a coaching session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    AWAITING_MODEL = "awaiting_model"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class SessionRecord(BaseModel):
    """Persisted coaching session."""
    session_id: str
    topic: str
    coaching_option: str
    expert_name: str
    user_id: Optional[str] = None
    conversation: Optional[List[Any]] = None  # As persisted; may be nested
    session_feedback: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class UserRecord(BaseModel):
    """Persisted user with a credit balance."""
    user_id: str
    name: str
    email: str
    credits: float = 0.0


class UsageAccount(BaseModel):
    """In-memory mirror of a user's credit balance."""
    user_id: str
    credits_remaining: float = 0.0
