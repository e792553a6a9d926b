"""Chat memory - conversation memory and message history for a web chat client"""

__version__ = "1.0.0"

from .models import ChatTurn, ConversationMemory, StoredMessage
from .services import LocalCache, MemoryManager, MessageStorage

__all__ = [
    "ChatTurn",
    "ConversationMemory",
    "StoredMessage",
    "LocalCache",
    "MemoryManager",
    "MessageStorage",
]
