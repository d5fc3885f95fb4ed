"""Pydantic schemas for the voice coaching session core."""

from .conversation import Role, Message, ChatResponse
from .transcript import SegmentKind, WordTiming, TranscriptSegment
from .session import SessionState, SessionRecord, UserRecord, UsageAccount
from .coaching import CoachingOption, CoachingExpert

__all__ = [
    "Role",
    "Message",
    "ChatResponse",
    "SegmentKind",
    "WordTiming",
    "TranscriptSegment",
    "SessionState",
    "SessionRecord",
    "UserRecord",
    "UsageAccount",
    "CoachingOption",
    "CoachingExpert",
]
