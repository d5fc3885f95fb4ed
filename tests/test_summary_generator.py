"""Tests for end-of-session feedback generation."""

from unittest.mock import AsyncMock, Mock

import pytest

from config.settings import Settings
from memory.store import PersistenceError
from pipeline import fallbacks
from schemas.coaching import CoachingOption
from schemas.conversation import ChatResponse, Message, Role
from session.summary_generator import SummaryGenerator


def reply(content, error=None):
    return ChatResponse(
        message=Message(role=Role.ASSISTANT, content=content, is_feedback_summary=True),
        error=error,
    )


class TestSummaryGenerator:
    """Test SummaryGenerator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.pipeline = Mock()
        self.pipeline.settings = Settings()
        self.pipeline.respond = AsyncMock(return_value=reply("## Notes\n- loops"))
        self.store = Mock()
        self.generator = SummaryGenerator(self.pipeline, self.store)
        self.option = CoachingOption(
            name="Lecture on Topic",
            prompt_template="You teach {user_topic}.",
            summary_prompt_template="Write notes on {user_topic}.",
        )
        self.conversation = [
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "Explain loops"},
            {"role": "assistant", "content": "Loops repeat work."},
        ]

    @pytest.mark.asyncio
    async def test_generates_and_persists_feedback(self):
        """Test the normal feedback path."""
        feedback = await self.generator.generate("Python", self.option, self.conversation, "s1")

        assert feedback == "## Notes\n- loops"
        kwargs = self.pipeline.respond.await_args.kwargs
        assert kwargs["is_feedback_request"] is True
        assert kwargs["summary_prompt"] == "Write notes on Python."
        self.store.update_session_feedback.assert_called_once_with("s1", feedback)

    @pytest.mark.asyncio
    async def test_requires_both_roles(self):
        """Test that a one-sided conversation is not summarized."""
        feedback = await self.generator.generate(
            "Python", self.option, [{"role": "assistant", "content": "Hello!"}], "s1"
        )

        assert feedback == fallbacks.FEEDBACK_NOT_ENOUGH_CONVERSATION
        self.pipeline.respond.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_option(self):
        """Test feedback without a coaching option."""
        feedback = await self.generator.generate("Python", None, self.conversation, "s1")

        assert feedback == fallbacks.FEEDBACK_FAILED
        self.pipeline.respond.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_generation_is_not_persisted(self):
        """Test that fallback text is not stored as feedback."""
        self.pipeline.respond.return_value = reply("I apologize...", error="Request timeout")

        feedback = await self.generator.generate("Python", self.option, self.conversation, "s1")

        assert feedback == fallbacks.FEEDBACK_FAILED
        self.store.update_session_feedback.assert_not_called()

    @pytest.mark.asyncio
    async def test_persistence_failure_still_returns_feedback(self):
        """Test that a storage error does not hide the feedback."""
        self.store.update_session_feedback.side_effect = PersistenceError("disk full")

        feedback = await self.generator.generate("Python", self.option, self.conversation, "s1")

        assert feedback == "## Notes\n- loops"
