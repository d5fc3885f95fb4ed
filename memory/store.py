"""Persistence collaborator interface."""

from typing import Any, List, Optional, Protocol

from schemas.session import SessionRecord


class PersistenceError(Exception):
    """A persistence write or read failed."""


class SessionStore(Protocol):
    """Narrow persistence interface consumed by the session core."""

    def create_session(
        self,
        topic: str,
        coaching_option: str,
        expert_name: str,
        user_id: Optional[str]
    ) -> str:
        ...

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    def update_conversation(self, session_id: str, conversation: List[Any]):
        ...

    def update_session_feedback(self, session_id: str, feedback: str):
        ...

    def update_user_credits(self, user_id: str, new_balance: float) -> bool:
        ...
