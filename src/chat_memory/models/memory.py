"""Memory-related data models."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC.

    Raises:
        ValueError: If the value is not a datetime or ISO-8601 text.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        # Browser clients write a trailing "Z"
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 text in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


@dataclass(frozen=True)
class ChatTurn:
    """A single message as the chat UI produces it."""

    sender: str  # "user", "ai" or "assistant"
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_user(self) -> bool:
        return self.sender == "user"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatTurn":
        """Create a ChatTurn from the UI's message shape.

        Raises:
            ValueError: If the data is not a mapping with a sender.
        """
        if not isinstance(data, dict) or not data.get("sender"):
            raise ValueError(f"Invalid chat turn: {data!r}")

        raw_timestamp = data.get("timestamp")
        return cls(
            sender=str(data["sender"]),
            content=str(data.get("content") or ""),
            id=str(data.get("id") or uuid.uuid4().hex),
            timestamp=parse_timestamp(raw_timestamp) if raw_timestamp else utcnow(),
        )


@dataclass
class MemoryMessage:
    """A turn after mapping the UI sender onto a conversation role."""

    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    @classmethod
    def from_turn(cls, turn: ChatTurn) -> "MemoryMessage":
        return cls(
            role="user" if turn.is_user else "assistant",
            content=turn.content or "",
            timestamp=turn.timestamp or utcnow(),
        )


@dataclass
class MemoryContext:
    """Metadata derived from a session's transcript."""

    topics: List[str] = field(default_factory=list)
    user_preferences: Dict[str, Any] = field(default_factory=dict)
    conversation_summary: str = ""
    last_interaction: datetime = field(default_factory=utcnow)


@dataclass
class ConversationMemory:
    """Everything remembered about one (user, session) pair."""

    user_id: str
    session_id: str
    messages: List[MemoryMessage] = field(default_factory=list)
    context: MemoryContext = field(default_factory=MemoryContext)

    @property
    def key(self) -> str:
        return memory_key(self.user_id, self.session_id)

    @property
    def last_interaction(self) -> datetime:
        return self.context.last_interaction

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the browser client's field layout."""
        return {
            "userId": self.user_id,
            "sessionId": self.session_id,
            "messages": [
                {
                    "role": m.role,
                    "content": m.content,
                    "timestamp": format_timestamp(m.timestamp),
                }
                for m in self.messages
            ],
            "context": {
                "topics": list(self.context.topics),
                "userPreferences": dict(self.context.user_preferences),
                "conversationSummary": self.context.conversation_summary,
                "lastInteraction": format_timestamp(self.context.last_interaction),
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ConversationMemory":
        """Deserialize a persisted record.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("Memory record is not an object")
        if not data.get("userId") or not data.get("sessionId"):
            raise ValueError("Memory record is missing userId or sessionId")
        if not isinstance(data.get("messages"), list):
            raise ValueError("Memory record messages is not a list")

        messages = []
        for raw in data["messages"]:
            if not isinstance(raw, dict):
                raise ValueError(f"Invalid message entry: {raw!r}")
            messages.append(
                MemoryMessage(
                    role="user" if raw.get("role") == "user" else "assistant",
                    content=str(raw.get("content") or ""),
                    timestamp=parse_timestamp(raw.get("timestamp")),
                )
            )

        raw_context = data.get("context")
        if not isinstance(raw_context, dict):
            raise ValueError("Memory record context is not an object")

        context = MemoryContext(
            topics=list(raw_context.get("topics") or []),
            user_preferences=dict(raw_context.get("userPreferences") or {}),
            conversation_summary=str(raw_context.get("conversationSummary") or ""),
            last_interaction=parse_timestamp(raw_context.get("lastInteraction")),
        )

        return cls(
            user_id=str(data["userId"]),
            session_id=str(data["sessionId"]),
            messages=messages,
            context=context,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "ConversationMemory":
        """Parse JSON text produced by ``to_json``.

        Raises:
            ValueError: If the text is not valid JSON or not a valid record.
        """
        try:
            data = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Memory record is not valid JSON: {e}") from e
        return cls.from_dict(data)


def memory_key(user_id: str, session_id: str) -> str:
    """Composite index key for a (user, session) pair."""
    return f"{user_id}_{session_id}"


def storage_key(key: str) -> str:
    """Local cache key holding the serialized memory for an index key."""
    return f"memory_{key}"


@dataclass
class StoredMessage:
    """A chat message row as kept by the durable store and its local mirror."""

    id: str
    user_id: str
    content: str
    sender: str  # "user" or "ai"
    timestamp: str
    created_at: Optional[str] = None

    @classmethod
    def from_turn(cls, turn: ChatTurn, user_id: str) -> "StoredMessage":
        return cls(
            id=turn.id,
            user_id=user_id,
            content=turn.content,
            sender="user" if turn.is_user else "ai",
            timestamp=format_timestamp(turn.timestamp),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "StoredMessage":
        """Create a StoredMessage from a store row.

        Raises:
            ValueError: If required fields are missing.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid message row: {data!r}")
        missing = [k for k in ("id", "user_id", "sender", "timestamp") if not data.get(k)]
        if missing:
            raise ValueError(f"Message row is missing {', '.join(missing)}")
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            content=str(data.get("content") or ""),
            sender=str(data["sender"]),
            timestamp=str(data["timestamp"]),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "sender": self.sender,
            "timestamp": self.timestamp,
        }
        if self.created_at:
            row["created_at"] = self.created_at
        return row

    def to_insert_row(self) -> Dict[str, Any]:
        """Row sent to the remote table; created_at is assigned server side."""
        row = self.to_dict()
        row.pop("created_at", None)
        return row
