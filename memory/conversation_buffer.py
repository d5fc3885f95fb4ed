"""Ordered conversation log with flattening, deduplication and size capping."""

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from schemas.conversation import Message, Role

logger = logging.getLogger(__name__)

MAX_MESSAGES = 50

_VALID_ROLES = {role.value for role in Role}


def _as_message(item: Any) -> Optional[Message]:
    """Return a Message for a well-formed leaf, or None."""
    if isinstance(item, Message):
        return item if item.content else None

    if isinstance(item, Mapping):
        role = item.get("role")
        content = item.get("content")
        if role in _VALID_ROLES and isinstance(content, str) and content:
            return Message(
                role=role,
                content=content,
                is_feedback_summary=bool(
                    item.get("isFeedbackSummary", item.get("is_feedback_summary", False))
                ),
            )
    return None


def flatten_messages(items: Any) -> List[Message]:
    """
    Recursively flatten nested sequences into well-formed messages.

    Non-message leaves are dropped; encounter order is preserved.
    """
    result: List[Message] = []

    def _walk(node: Any):
        if node is None:
            return
        if isinstance(node, (list, tuple)):
            for child in node:
                _walk(child)
            return
        message = _as_message(node)
        if message is not None:
            result.append(message)

    _walk(items)
    return result


def deduplicate_messages(messages: Iterable[Message]) -> List[Message]:
    """Drop repeated (role, content) pairs; first occurrence wins."""
    seen = set()
    result = []
    for message in messages:
        if message.key in seen:
            continue
        seen.add(message.key)
        result.append(message)
    return result


def sanitize_conversation(items: Any, max_messages: int = MAX_MESSAGES) -> List[Message]:
    """
    Flatten, deduplicate and cap a conversation.

    Args:
        items: Possibly nested sequence of messages or message-shaped dicts
        max_messages: Keep at most this many of the most recent messages

    Returns:
        Flat list of unique messages, oldest first
    """
    if not isinstance(items, (list, tuple)):
        logger.error(f"Invalid conversation data: {type(items).__name__}")
        return []

    flattened = flatten_messages(items)
    deduplicated = deduplicate_messages(flattened)
    limited = deduplicated[-max_messages:] if len(deduplicated) > max_messages else deduplicated

    logger.debug(
        f"Cleaned up conversation: {len(items)} items -> {len(flattened)} flattened "
        f"-> {len(deduplicated)} deduplicated -> {len(limited)} limited"
    )
    return limited


class ConversationBuffer:
    """Ordered message log for one coaching session.

    Mutated only by the session that owns it.
    """

    def __init__(self, max_messages: int = MAX_MESSAGES):
        self.max_messages = max_messages
        self._messages: List[Message] = []

    def append(self, message: Any) -> bool:
        """
        Append a message and re-sanitize.

        Args:
            message: Message or message-shaped dict

        Returns:
            True if the message is present after sanitation
        """
        candidate = _as_message(message)
        if candidate is None:
            logger.warning("Ignoring malformed message append")
            return False

        if any(existing.key == candidate.key for existing in self._messages):
            logger.info(f"Dropping duplicate {candidate.role} message")
            return False

        self._messages = sanitize_conversation(
            self._messages + [candidate], self.max_messages
        )
        return True

    def hydrate(self, existing: Any):
        """Replace the contents with a persisted conversation."""
        self._messages = sanitize_conversation(existing or [], self.max_messages)
        logger.info(f"Hydrated conversation with {len(self._messages)} messages")

    def materialize(self) -> List[Message]:
        """Flat, deduplicated, capped copy of the conversation."""
        return list(self._messages)

    def window(self, size: int) -> List[Message]:
        """Most recent ``size`` messages."""
        if size <= 0:
            return []
        return self._messages[-size:]

    def assistant_contents(self) -> List[str]:
        return [m.content for m in self._messages if m.role == Role.ASSISTANT.value]

    def has_both_roles(self) -> bool:
        roles = {m.role for m in self._messages}
        return Role.USER.value in roles and Role.ASSISTANT.value in roles

    def to_records(self) -> List[dict]:
        """JSON-shaped records for persistence."""
        return [m.to_record() for m in self._messages]

    def clear(self):
        self._messages = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(list(self._messages))
