"""Message history with a local mirror and a best-effort remote store."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from ..models.memory import StoredMessage
from ..providers.base import RemoteStore, RemoteStoreError
from ..storage import StorageError
from .cache import LocalCache

logger = logging.getLogger(__name__)

MESSAGES_PREFIX = "chat_messages_"
LOCAL_LIMIT = 20
RECENT_LIMIT = 5
DEBUG_REMOTE_LIMIT = 10


def messages_key(user_id: str) -> str:
    return f"{MESSAGES_PREFIX}{user_id}"


class MessageStorage:
    """Per-user message history.

    Every write lands in the local mirror first, so reads keep working without
    the remote store. Remote inserts run as background tasks whose outcome is
    only logged.
    """

    def __init__(
        self,
        cache: LocalCache,
        remote: Optional[RemoteStore] = None,
        local_limit: int = LOCAL_LIMIT,
        recent_limit: int = RECENT_LIMIT,
    ):
        self.cache = cache
        self.remote = remote
        self.local_limit = local_limit
        self.recent_limit = recent_limit
        self._pending: Set["asyncio.Task[None]"] = set()

    @property
    def remote_available(self) -> bool:
        return self.remote is not None and self.remote.is_available()

    def save_message(self, message: StoredMessage) -> Optional["asyncio.Task[None]"]:
        """Save a message locally and dispatch the remote insert.

        Returns:
            The background task writing to the remote store, or None when the
            message was only saved locally.
        """
        self._save_local_message(message)

        if not self.remote_available:
            logger.debug("Remote store not configured. Message saved locally only.")
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, skipping remote write of {message.id}")
            return None

        task = loop.create_task(self._insert_remote(message))
        self._pending.add(task)
        task.add_done_callback(self._on_remote_done)
        return task

    def _on_remote_done(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Unexpected error in remote write: {error}", exc_info=error)

    async def _insert_remote(self, message: StoredMessage) -> None:
        remote = self.remote
        if remote is None:
            return
        try:
            await remote.insert(message)
            logger.info(f"Message {message.id} saved to {remote.name}")
        except RemoteStoreError as e:
            logger.error(f"Error saving message to {remote.name}: {e}")
            logger.info("Message kept in local storage as fallback")

    async def get_recent_messages(self, user_id: str) -> List[StoredMessage]:
        """Get a user's most recent messages in chronological order.

        Prefers the remote store; falls back to the local mirror when the remote
        store is unavailable, failing or empty.
        """
        remote = self.remote
        if remote is not None and remote.is_available():
            try:
                remote_messages = await remote.fetch_recent(user_id, self.recent_limit)
                if remote_messages:
                    logger.info(f"Loaded {len(remote_messages)} messages from {remote.name}")
                    return list(reversed(remote_messages))
            except RemoteStoreError as e:
                logger.error(f"Failed to fetch from {remote.name}: {e}")

        messages = self.get_local_messages(user_id, self.recent_limit)
        logger.info(f"Loaded {len(messages)} messages from local storage")
        return messages

    def get_local_messages(self, user_id: str, limit: Optional[int] = None) -> List[StoredMessage]:
        """Read the local mirror, oldest first."""
        messages = []
        for row in self._read_local(user_id):
            try:
                messages.append(StoredMessage.from_dict(row))
            except ValueError as e:
                logger.warning(f"Skipping malformed local message: {e}")
        if limit:
            return messages[-limit:]
        return messages

    async def clear_user_messages(self, user_id: str) -> None:
        """Delete a user's messages locally and remotely."""
        try:
            self.cache.remove(messages_key(user_id))
            logger.info(f"Cleared local messages for {user_id}")
        except StorageError as e:
            logger.warning(f"Failed to clear local messages for {user_id}: {e}")

        remote = self.remote
        if remote is None or not remote.is_available():
            return

        try:
            await remote.delete_user(user_id)
            logger.info(f"Cleared {remote.name} messages for {user_id}")
        except RemoteStoreError as e:
            logger.error(f"Error clearing {remote.name} messages: {e}")

    async def drain(self) -> None:
        """Wait for all pending remote writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def debug_messages(self, user_id: str) -> Dict[str, Any]:
        """Log and return what is stored for a user locally and remotely."""
        local_messages = self.get_local_messages(user_id, self.recent_limit)
        logger.info(f"Local messages for {user_id}: {len(local_messages)}")
        for index, msg in enumerate(local_messages, start=1):
            logger.info(f"{index}. [{msg.sender}] {msg.content[:50]}...")

        remote_messages: Optional[List[StoredMessage]] = None
        remote = self.remote
        if remote is not None and remote.is_available():
            try:
                fetched = await remote.fetch_recent(user_id, DEBUG_REMOTE_LIMIT)
                remote_messages = list(reversed(fetched))
                logger.info(f"{remote.name} messages for {user_id}: {len(remote_messages)}")
                for index, msg in enumerate(remote_messages, start=1):
                    logger.info(f"{index}. [{msg.sender}] {msg.content[:50]}...")
            except RemoteStoreError as e:
                logger.error(f"Failed to debug {remote.name} messages: {e}")

        return {
            "local": [m.to_dict() for m in local_messages],
            "remote": (
                [m.to_dict() for m in remote_messages] if remote_messages is not None else None
            ),
            "pending_writes": len(self._pending),
        }

    def _read_local(self, user_id: str) -> List[Any]:
        try:
            stored = self.cache.get_json(messages_key(user_id))
        except StorageError as e:
            logger.warning(f"Failed to get local messages: {e}")
            return []
        if not isinstance(stored, list):
            return []
        return stored

    def _save_local_message(self, message: StoredMessage) -> None:
        # A failed read must not overwrite the existing mirror with one row
        try:
            stored = self.cache.get_json(messages_key(message.user_id))
        except StorageError as e:
            logger.warning(f"Failed to save local message {message.id}: {e}")
            return
        rows = stored if isinstance(stored, list) else []
        rows.append(message.to_dict())
        if len(rows) > self.local_limit:
            rows = rows[-self.local_limit :]

        try:
            self.cache.set_json(messages_key(message.user_id), rows)
            logger.debug(f"Message saved locally. Total messages: {len(rows)}")
        except StorageError as e:
            logger.warning(f"Failed to save local message: {e}")
