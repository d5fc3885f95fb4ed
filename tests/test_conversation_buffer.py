"""Tests for conversation sanitation and the conversation buffer."""

from memory.conversation_buffer import (
    ConversationBuffer,
    deduplicate_messages,
    flatten_messages,
    sanitize_conversation,
)
from schemas.conversation import Message, Role


def user(content):
    return {"role": "user", "content": content}


def assistant(content):
    return {"role": "assistant", "content": content}


class TestSanitizeConversation:
    """Test flattening, deduplication and capping."""

    def test_flattens_nested_lists_in_order(self):
        """Test that nested sequences are flattened in encounter order."""
        items = [user("a"), [assistant("b"), [user("c")]], assistant("d")]

        result = flatten_messages(items)

        assert [m.content for m in result] == ["a", "b", "c", "d"]

    def test_drops_malformed_leaves(self):
        """Test that non-message leaves are discarded."""
        items = [user("a"), "stray", 42, None, {"role": "system", "content": "x"},
                 {"role": "user"}, {"role": "user", "content": ""}, assistant("b")]

        result = sanitize_conversation(items)

        assert [m.content for m in result] == ["a", "b"]

    def test_first_occurrence_wins(self):
        """Test that repeated (role, content) pairs keep the first one."""
        messages = flatten_messages([user("hi"), assistant("hello"), user("hi"), assistant("other")])

        result = deduplicate_messages(messages)

        assert [m.content for m in result] == ["hi", "hello", "other"]

    def test_same_content_different_role_is_kept(self):
        """Test that dedup identity includes the role."""
        result = sanitize_conversation([user("same"), assistant("same")])

        assert len(result) == 2

    def test_caps_to_most_recent(self):
        """Test that only the most recent messages survive the cap."""
        items = [user(f"message {i}") for i in range(60)]

        result = sanitize_conversation(items, max_messages=50)

        assert len(result) == 50
        assert result[0].content == "message 10"
        assert result[-1].content == "message 59"

    def test_sanitize_is_idempotent(self):
        """Test that sanitizing twice gives the same result."""
        items = [[user("a"), assistant("b")], user("a"), [[assistant("c")]]] + \
            [user(f"u{i}") for i in range(55)]

        once = sanitize_conversation(items)
        twice = sanitize_conversation(once)

        assert once == twice

    def test_non_list_input_returns_empty(self):
        """Test that non-sequence input yields an empty conversation."""
        assert sanitize_conversation("not a list") == []
        assert sanitize_conversation(None) == []

    def test_preserves_feedback_flag(self):
        """Test that the feedback-summary marker survives sanitation."""
        items = [assistant("summary") | {"isFeedbackSummary": True}]

        result = sanitize_conversation(items)

        assert result[0].is_feedback_summary is True
        assert result[0].to_record()["isFeedbackSummary"] is True


class TestConversationBuffer:
    """Test ConversationBuffer mutation and views."""

    def setup_method(self):
        """Set up test fixtures."""
        self.buffer = ConversationBuffer(max_messages=50)

    def test_append_rejects_duplicate(self):
        """Test that a repeated final transcript is not appended twice."""
        self.buffer.hydrate([assistant("Hi"), user("hello")])

        added = self.buffer.append(Message(role=Role.USER, content="hello"))

        assert added is False
        assert [m.content for m in self.buffer] == ["Hi", "hello"]

    def test_append_rejects_malformed(self):
        """Test that malformed appends are ignored."""
        assert self.buffer.append({"role": "user", "content": ""}) is False
        assert self.buffer.append({"content": "no role"}) is False
        assert len(self.buffer) == 0

    def test_append_beyond_cap_drops_oldest(self):
        """Test that the buffer keeps the newest messages after the cap."""
        self.buffer.hydrate([user(f"m{i}") for i in range(50)])

        self.buffer.append(assistant("new"))

        messages = self.buffer.materialize()
        assert len(messages) == 50
        assert messages[0].content == "m1"
        assert messages[-1].content == "new"

    def test_hydrate_sanitizes(self):
        """Test that hydration flattens and deduplicates persisted data."""
        self.buffer.hydrate([[user("a"), user("a")], [assistant("b")]])

        assert [m.content for m in self.buffer] == ["a", "b"]

    def test_window_and_roles(self):
        """Test window slicing and role checks."""
        self.buffer.hydrate([user("a"), assistant("b"), user("c")])

        assert [m.content for m in self.buffer.window(2)] == ["b", "c"]
        assert self.buffer.window(0) == []
        assert self.buffer.assistant_contents() == ["b"]
        assert self.buffer.has_both_roles() is True

    def test_to_records(self):
        """Test JSON-shaped record output."""
        self.buffer.append(user("hello"))

        assert self.buffer.to_records() == [{"role": "user", "content": "hello"}]

    def test_materialize_returns_copy(self):
        """Test that callers cannot mutate the buffer through a view."""
        self.buffer.append(user("hello"))

        view = self.buffer.materialize()
        view.clear()

        assert len(self.buffer) == 1
