"""Service components for the chat memory subsystem."""

from .cache import LocalCache
from .memory import MemoryManager
from .message_storage import MessageStorage

__all__ = ["LocalCache", "MemoryManager", "MessageStorage"]
