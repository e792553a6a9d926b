"""Unit tests for the memory data models."""

import json
from datetime import datetime, timezone

import pytest

from chat_memory.models import (
    ChatTurn,
    ConversationMemory,
    MemoryContext,
    MemoryMessage,
    StoredMessage,
    memory_key,
    storage_key,
)
from chat_memory.models.memory import parse_timestamp
from tests.fixtures import make_turn


class TestChatTurn:
    """Tests for ChatTurn."""

    def test_defaults(self):
        """Test that id and timestamp are generated."""
        turn = ChatTurn(sender="user", content="Hello")
        assert turn.id
        assert turn.timestamp.tzinfo is not None
        assert turn.is_user

    def test_from_dict(self):
        """Test creating a turn from the UI message shape."""
        turn = ChatTurn.from_dict(
            {
                "id": "m1",
                "sender": "ai",
                "content": "Hi!",
                "timestamp": "2024-06-01T12:00:00.000Z",
            }
        )
        assert turn.id == "m1"
        assert not turn.is_user
        assert turn.timestamp == datetime(2024, 6, 1, 12, tzinfo=timezone.utc)

    def test_from_dict_requires_sender(self):
        """Test that a turn without sender is rejected."""
        with pytest.raises(ValueError):
            ChatTurn.from_dict({"content": "orphan"})


class TestMemoryMessage:
    """Tests for role mapping."""

    def test_role_mapping(self):
        """Test that 'user' stays user and anything else becomes assistant."""
        assert MemoryMessage.from_turn(make_turn("user", "a")).role == "user"
        assert MemoryMessage.from_turn(make_turn("ai", "b")).role == "assistant"
        assert MemoryMessage.from_turn(make_turn("assistant", "c")).role == "assistant"


class TestConversationMemorySerialization:
    """Tests for ConversationMemory serialization."""

    def _memory(self):
        return ConversationMemory(
            user_id="u1",
            session_id="s1",
            messages=[MemoryMessage.from_turn(make_turn("user", "I love chess"))],
            context=MemoryContext(
                topics=["love", "chess"],
                user_preferences={"interests": ["chess"]},
                conversation_summary="Discussed love, chess.",
                last_interaction=datetime(2024, 6, 1, 12, tzinfo=timezone.utc),
            ),
        )

    def test_key(self):
        """Test the composite key."""
        assert self._memory().key == "u1_s1"
        assert memory_key("u1", "s1") == "u1_s1"
        assert storage_key("u1_s1") == "memory_u1_s1"

    def test_field_layout(self):
        """Test that persisted records use the browser client's names."""
        data = self._memory().to_dict()
        assert data["userId"] == "u1"
        assert data["sessionId"] == "s1"
        assert data["context"]["userPreferences"] == {"interests": ["chess"]}
        assert data["context"]["lastInteraction"] == "2024-06-01T12:00:00+00:00"
        assert data["messages"][0]["timestamp"] == "2024-06-01T12:00:00+00:00"

    def test_json_round_trip(self):
        """Test that timestamps survive serialization."""
        restored = ConversationMemory.from_json(self._memory().to_json())
        assert restored == self._memory()

    @pytest.mark.parametrize(
        "record",
        [
            [],
            {"sessionId": "s1", "messages": [], "context": {}},
            {"userId": "u1", "messages": [], "context": {}},
            {"userId": "u1", "sessionId": "s1", "messages": "nope", "context": {}},
            {"userId": "u1", "sessionId": "s1", "messages": [], "context": None},
            {
                "userId": "u1",
                "sessionId": "s1",
                "messages": [],
                "context": {"lastInteraction": "not a date"},
            },
        ],
    )
    def test_malformed_records_rejected(self, record):
        """Test that malformed records raise ValueError."""
        with pytest.raises(ValueError):
            ConversationMemory.from_dict(record)

    def test_invalid_json_rejected(self):
        """Test that undecodable text raises ValueError."""
        with pytest.raises(ValueError):
            ConversationMemory.from_json("{not json")

    def test_reads_browser_records(self):
        """Test reading a record with Z-suffixed millisecond timestamps."""
        record = {
            "userId": "u1",
            "sessionId": "s1",
            "messages": [
                {"role": "user", "content": "hi", "timestamp": "2024-06-01T12:00:00.000Z"}
            ],
            "context": {
                "topics": [],
                "userPreferences": {},
                "conversationSummary": "",
                "lastInteraction": "2024-06-01T12:05:00.000Z",
            },
        }
        memory = ConversationMemory.from_json(json.dumps(record))
        assert memory.last_interaction == datetime(2024, 6, 1, 12, 5, tzinfo=timezone.utc)


class TestTimestamps:
    """Tests for timestamp parsing."""

    def test_naive_is_utc(self):
        """Test that naive timestamps are read as UTC."""
        assert parse_timestamp("2024-06-01T12:00:00").tzinfo == timezone.utc

    def test_rejects_empty(self):
        """Test that missing timestamps are rejected."""
        with pytest.raises(ValueError):
            parse_timestamp(None)


class TestStoredMessage:
    """Tests for StoredMessage."""

    def test_from_turn_maps_assistant_to_ai(self):
        """Test that assistant turns are stored with the 'ai' sender."""
        stored = StoredMessage.from_turn(make_turn("assistant", "Hello", turn_id="t1"), "u1")
        assert stored.sender == "ai"
        assert stored.user_id == "u1"
        assert stored.id == "t1"
        assert stored.timestamp == "2024-06-01T12:00:00+00:00"

    def test_insert_row_omits_created_at(self):
        """Test that created_at is left to the server."""
        stored = StoredMessage(
            id="m1",
            user_id="u1",
            content="hi",
            sender="user",
            timestamp="2024-06-01T12:00:00+00:00",
            created_at="2024-06-01T12:00:01+00:00",
        )
        assert "created_at" in stored.to_dict()
        assert "created_at" not in stored.to_insert_row()

    def test_from_dict_requires_fields(self):
        """Test that rows without ids are rejected."""
        with pytest.raises(ValueError):
            StoredMessage.from_dict({"user_id": "u1", "sender": "user"})
