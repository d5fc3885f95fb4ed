"""Conversation buffer and session persistence."""

from .conversation_buffer import (
    MAX_MESSAGES,
    ConversationBuffer,
    sanitize_conversation,
    flatten_messages,
    deduplicate_messages,
)
from .store import SessionStore, PersistenceError
from .sqlite_store import SQLiteSessionStore

__all__ = [
    "MAX_MESSAGES",
    "ConversationBuffer",
    "sanitize_conversation",
    "flatten_messages",
    "deduplicate_messages",
    "SessionStore",
    "PersistenceError",
    "SQLiteSessionStore",
]
