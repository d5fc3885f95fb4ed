"""Tests for SQLite session store."""

import pytest

from memory.sqlite_store import SQLiteSessionStore
from memory.store import PersistenceError


class TestSQLiteSessionStore:
    """Test session and user persistence."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        """Set up test fixtures."""
        self.store = SQLiteSessionStore(db_path=str(tmp_path / "sessions.db"))

    def test_create_and_get_session(self):
        """Test session round trip."""
        session_id = self.store.create_session("Python", "Lecture on Topic", "Joanna")

        record = self.store.get_session(session_id)

        assert record.session_id == session_id
        assert record.topic == "Python"
        assert record.coaching_option == "Lecture on Topic"
        assert record.expert_name == "Joanna"
        assert record.conversation is None
        assert record.session_feedback is None

    def test_missing_session(self):
        """Test lookup of an unknown session."""
        assert self.store.get_session("nope") is None

    def test_update_conversation(self):
        """Test conversation persistence keeps the feedback marker."""
        session_id = self.store.create_session("Python", "Lecture on Topic", "Joanna")
        conversation = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "notes", "isFeedbackSummary": True},
        ]

        self.store.update_conversation(session_id, conversation)

        assert self.store.get_session(session_id).conversation == conversation

    def test_update_feedback(self):
        """Test feedback persistence."""
        session_id = self.store.create_session("Python", "Lecture on Topic", "Joanna")

        self.store.update_session_feedback(session_id, "Great progress")

        assert self.store.get_session(session_id).session_feedback == "Great progress"

    def test_user_credits(self):
        """Test credit balance updates."""
        user = self.store.create_user("Ada", "ada@example.com", credits=100)

        assert self.store.update_user_credits(user.user_id, 90) is True
        assert self.store.get_user(user.user_id).credits == 90

    def test_update_credits_unknown_user(self):
        """Test that updating a missing user reports failure."""
        assert self.store.update_user_credits("ghost", 10) is False

    def test_duplicate_user_raises_persistence_error(self):
        """Test that database errors surface as PersistenceError."""
        self.store.create_user("Ada", "ada@example.com", user_id="u1")

        with pytest.raises(PersistenceError):
            self.store.create_user("Ada", "ada@example.com", user_id="u1")

    def test_list_sessions_by_user(self):
        """Test listing sessions filtered by user."""
        user = self.store.create_user("Ada", "ada@example.com")
        self.store.create_session("Python", "Lecture on Topic", "Joanna", user_id=user.user_id)
        self.store.create_session("SQL", "Mock Interview", "Matthew", user_id=user.user_id)
        self.store.create_session("Other", "Meditation", "Sallie")

        sessions = self.store.list_sessions(user_id=user.user_id)

        assert {s.topic for s in sessions} == {"Python", "SQL"}
        assert len(self.store.list_sessions()) == 3
