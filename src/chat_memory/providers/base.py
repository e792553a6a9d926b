"""Base classes for remote message stores."""

from abc import ABC, abstractmethod
from typing import List

from ..models.memory import StoredMessage


class RemoteStore(ABC):
    """Abstract base class for durable remote message stores."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the store name."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the store is configured.

        Returns:
            True if the store can be used, False otherwise.
        """
        ...

    @abstractmethod
    async def insert(self, message: StoredMessage) -> None:
        """Append a message.

        Raises:
            RemoteStoreError: If the write fails.
        """
        ...

    @abstractmethod
    async def fetch_recent(self, user_id: str, limit: int) -> List[StoredMessage]:
        """Fetch a user's most recent messages, newest first.

        Raises:
            RemoteStoreError: If the read fails.
        """
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        """Delete every message of a user.

        Raises:
            RemoteStoreError: If the delete fails.
        """
        ...

    async def aclose(self) -> None:
        """Release any network resources."""
        return None


class RemoteStoreError(Exception):
    """Base exception for remote store errors."""

    def __init__(self, message: str, store: str = "", is_retryable: bool = False):
        super().__init__(message)
        self.store = store
        self.is_retryable = is_retryable


class RemoteAuthenticationError(RemoteStoreError):
    """Raised when the store rejects the credentials."""

    def __init__(self, message: str, store: str = ""):
        super().__init__(message, store, is_retryable=False)


class RemoteTimeoutError(RemoteStoreError):
    """Raised when a request to the store times out."""

    def __init__(self, message: str, store: str = ""):
        super().__init__(message, store, is_retryable=True)
