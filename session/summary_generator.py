"""End-of-session feedback summary."""

import asyncio
import logging
from typing import Any, List, Optional

from memory.conversation_buffer import sanitize_conversation
from memory.store import SessionStore, PersistenceError
from pipeline import fallbacks
from pipeline.request_pipeline import RequestPipeline
from schemas.coaching import CoachingOption
from schemas.conversation import Role

logger = logging.getLogger(__name__)


class SummaryGenerator:
    """Requests structured feedback for a finished conversation and persists it."""

    def __init__(self, pipeline: RequestPipeline, store: Optional[SessionStore] = None):
        self.pipeline = pipeline
        self.store = store

    async def generate(
        self,
        topic: str,
        option: Optional[CoachingOption],
        conversation: List[Any],
        session_id: Optional[str] = None,
    ) -> str:
        """
        Generate and persist feedback for a session.

        Args:
            topic: Session topic
            option: Coaching option providing the summary template
            conversation: Session conversation
            session_id: Session to store the feedback on

        Returns:
            Feedback text, or an apologetic placeholder on failure
        """
        messages = sanitize_conversation(conversation or [], self.pipeline.settings.max_messages)
        roles = {m.role for m in messages}
        if Role.USER.value not in roles or Role.ASSISTANT.value not in roles:
            logger.info("Skipping feedback: conversation needs both user and assistant turns")
            return fallbacks.FEEDBACK_NOT_ENOUGH_CONVERSATION

        if option is None:
            logger.error("Cannot generate feedback without a coaching option")
            return fallbacks.FEEDBACK_FAILED

        logger.info(f"Generating feedback with {len(messages)} cleaned messages")
        response = await self.pipeline.respond(
            topic=topic,
            option=option,
            conversation=messages,
            is_feedback_request=True,
            summary_prompt=option.render_summary_prompt(topic),
        )
        if not response.ok:
            logger.error(f"Feedback generation failed: {response.error}")
            return fallbacks.FEEDBACK_FAILED

        feedback = response.message.content
        if self.store is not None and session_id:
            try:
                await asyncio.to_thread(self.store.update_session_feedback, session_id, feedback)
                logger.info("Session feedback saved")
            except PersistenceError as e:
                # Feedback is still shown; persistence can be retried by the caller
                logger.error(f"Failed to save session feedback: {e}")
        return feedback
