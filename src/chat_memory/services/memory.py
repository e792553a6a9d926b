"""Conversation memory service: persistence, derivation and prompt context."""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.memory import (
    ChatTurn,
    ConversationMemory,
    MemoryContext,
    MemoryMessage,
    memory_key,
    storage_key,
    utcnow,
)
from ..storage import StorageError
from . import extraction
from .cache import LocalCache

logger = logging.getLogger(__name__)

MEMORY_PREFIX = "memory_"
DEFAULT_RETENTION_DAYS = 30
RECENT_SUMMARIES = 3

CONTEXT_HEADER = "\n\n--- USER MEMORY CONTEXT ---\n"
CONTEXT_FOOTER = "--- END MEMORY CONTEXT ---\n\n"
CONTEXT_REMINDER = (
    "REMEMBER: Use any personal information (especially names) naturally in your "
    "responses. The user expects you to remember what they've told you.\n\n"
)


class MemoryManager:
    """Per-user, per-session conversation memory.

    Holds an in-process index keyed by ``{user_id}_{session_id}`` that writes
    through to a ``LocalCache``. Construct one per process and pass it to the
    code that needs it. Storage failures are logged and never raised; without a
    working cache the manager keeps memories in-process only.
    """

    def __init__(
        self,
        cache: Optional[LocalCache] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the memory manager.

        Args:
            cache: Local cache to persist memories to. If None, memories live
                in-process only.
            retention_days: Age after which ``cleanup_old_memories`` removes a
                memory.
            clock: Source of the current time.
        """
        self.cache = cache
        self.retention_days = retention_days
        self.clock = clock
        self.memories: Dict[str, ConversationMemory] = {}

    def save_conversation(self, user_id: str, session_id: str, turns: Sequence[Any]) -> None:
        """Save the full current transcript of a session.

        Args:
            user_id: Owner of the session
            session_id: Session identifier
            turns: The authoritative transcript, as ``ChatTurn`` objects or the
                UI's message dicts
        """
        if not user_id or not session_id or not isinstance(turns, (list, tuple)):
            logger.warning("Invalid parameters for save_conversation")
            return

        try:
            chat_turns = [t if isinstance(t, ChatTurn) else ChatTurn.from_dict(t) for t in turns]
        except ValueError as e:
            logger.warning(f"Invalid turn passed to save_conversation: {e}")
            return

        key = memory_key(user_id, session_id)
        now = self.clock()
        previous = self.get_conversation_memory(user_id, session_id)
        if previous and previous.last_interaction > now:
            now = previous.last_interaction

        memory = ConversationMemory(
            user_id=user_id,
            session_id=session_id,
            messages=[MemoryMessage.from_turn(t) for t in chat_turns],
            context=MemoryContext(
                topics=extraction.extract_topics(chat_turns),
                user_preferences=extraction.extract_preferences(chat_turns),
                conversation_summary=extraction.generate_summary(chat_turns),
                last_interaction=now,
            ),
        )

        self.memories[key] = memory
        self._save_to_cache(key, memory)
        logger.debug(f"Saved memory {key} with {len(memory.messages)} messages")

    def get_conversation_memory(
        self, user_id: str, session_id: str
    ) -> Optional[ConversationMemory]:
        """Get the memory for a session from the index or the local cache."""
        if not user_id or not session_id:
            return None

        key = memory_key(user_id, session_id)
        memory = self.memories.get(key)
        if memory is None:
            memory = self._load_from_cache(key)
            if memory is not None:
                self.memories[key] = memory
        return memory

    def get_user_history(self, user_id: str) -> List[ConversationMemory]:
        """Get all of a user's session memories, most recent first.

        Sessions with the same ``last_interaction`` are ordered by session id.
        """
        if not user_id:
            return []

        user_memories = [m for m in self.memories.values() if m.user_id == user_id]

        for key in self._list_cache_keys(f"{MEMORY_PREFIX}{user_id}_"):
            index_key = key[len(MEMORY_PREFIX) :]
            if index_key in self.memories:
                continue
            memory = self._load_from_cache(index_key)
            if memory is not None and memory.user_id == user_id:
                user_memories.append(memory)

        user_memories.sort(key=lambda m: m.session_id)
        user_memories.sort(key=lambda m: m.last_interaction, reverse=True)
        return user_memories

    def generate_context_prompt(self, user_id: str, current_session_id: str) -> str:
        """Build the memory block to insert ahead of the next model prompt.

        Returns an empty string when there is nothing to remember.
        """
        if not user_id or not current_session_id:
            return ""

        user_history = self.get_user_history(user_id)
        current_memory = self.get_conversation_memory(user_id, current_session_id)

        if not user_history and (current_memory is None or not current_memory.messages):
            return ""

        parts = [CONTEXT_HEADER]

        if current_memory is not None:
            prefs = _format_preferences(current_memory.context.user_preferences)
            if prefs:
                parts.append(f"IMPORTANT - User preferences and personal info: {prefs}\n")

        transcripts = [m.messages for m in user_history]
        if current_memory is not None:
            transcripts.insert(0, current_memory.messages)
        names = extraction.extract_user_names(transcripts)
        if names:
            parts.append(
                f"IMPORTANT - User's name(s): {', '.join(names)} - "
                "Always use their name when appropriate!\n"
            )

        summaries = [
            m.context.conversation_summary
            for m in user_history[:RECENT_SUMMARIES]
            if m.context.conversation_summary
        ]
        if summaries:
            parts.append("\nRecent conversation summaries:\n")
            for index, summary in enumerate(summaries, start=1):
                parts.append(f"{index}. {summary}\n")

        parts.append(CONTEXT_FOOTER)
        parts.append(CONTEXT_REMINDER)
        return "".join(parts)

    def clear_user_memories(self, user_id: str) -> int:
        """Remove every session memory of a user.

        Returns:
            Number of sessions removed
        """
        if not user_id:
            return 0

        removed = {k for k, m in self.memories.items() if m.user_id == user_id}
        for key in removed:
            del self.memories[key]

        for key in self._list_cache_keys(f"{MEMORY_PREFIX}{user_id}_"):
            index_key = key[len(MEMORY_PREFIX) :]
            memory = self._load_from_cache(index_key)
            # The prefix also matches users whose id extends this one
            if memory is not None and memory.user_id != user_id:
                continue
            self._remove_from_cache(key)
            removed.add(index_key)

        logger.info(f"Cleared {len(removed)} memories for user {user_id}")
        return len(removed)

    def cleanup_old_memories(self) -> int:
        """Remove memories whose last interaction is past the retention window.

        Returns:
            Number of memories removed
        """
        cutoff = self.clock() - timedelta(days=self.retention_days)
        removed = set()

        for key, memory in list(self.memories.items()):
            if memory.last_interaction < cutoff:
                del self.memories[key]
                removed.add(key)

        for key in self._list_cache_keys(MEMORY_PREFIX):
            index_key = key[len(MEMORY_PREFIX) :]
            memory = self._load_from_cache(index_key)
            if memory is not None and memory.last_interaction < cutoff:
                self._remove_from_cache(key)
                removed.add(index_key)

        if removed:
            logger.info(f"Removed {len(removed)} memories older than {self.retention_days} days")
        return len(removed)

    def get_stats(self) -> Dict[str, Any]:
        """Get memory usage statistics."""
        return {
            "indexed_sessions": len(self.memories),
            "users": len({m.user_id for m in self.memories.values()}),
            "retention_days": self.retention_days,
            "cache": self.cache.get_stats() if self.cache else None,
        }

    def _save_to_cache(self, key: str, memory: ConversationMemory) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(storage_key(key), memory.to_json())
        except StorageError as e:
            logger.warning(f"Failed to save memory {key} to local storage: {e}")

    def _load_from_cache(self, key: str) -> Optional[ConversationMemory]:
        if self.cache is None:
            return None
        try:
            stored = self.cache.get(storage_key(key))
        except StorageError as e:
            logger.warning(f"Failed to load memory {key} from local storage: {e}")
            return None
        if stored is None:
            return None

        try:
            return ConversationMemory.from_json(stored)
        except ValueError as e:
            logger.warning(f"Invalid memory data structure for {key}: {e}")
            return None

    def _remove_from_cache(self, key: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.remove(key)
        except StorageError as e:
            logger.warning(f"Failed to remove {key} from local storage: {e}")

    def _list_cache_keys(self, prefix: str) -> List[str]:
        if self.cache is None:
            return []
        try:
            return self.cache.list_keys(prefix)
        except StorageError as e:
            logger.warning(f"Error accessing local storage: {e}")
            return []


def _format_preferences(preferences: Dict[str, Any]) -> str:
    rendered = []
    for key, value in preferences.items():
        if value is None or value == "" or value == []:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        rendered.append(f"{key}: {value}")
    return ", ".join(rendered)
