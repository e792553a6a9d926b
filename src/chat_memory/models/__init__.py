"""Data models for the chat memory subsystem."""

from .memory import (
    ChatTurn,
    ConversationMemory,
    MemoryContext,
    MemoryMessage,
    StoredMessage,
    memory_key,
    storage_key,
)

__all__ = [
    "ChatTurn",
    "ConversationMemory",
    "MemoryContext",
    "MemoryMessage",
    "StoredMessage",
    "memory_key",
    "storage_key",
]
