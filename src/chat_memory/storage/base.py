"""Base classes for local storage backends."""

from abc import ABC, abstractmethod
from typing import List, Optional


class StorageBackend(ABC):
    """Synchronous string key/value storage.

    Implementations raise ``StorageError`` subclasses when the underlying
    substrate cannot serve a request.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        ...

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        ...

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with ``prefix``."""
        ...


class StorageError(Exception):
    """Base exception for local storage errors."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class StorageUnavailableError(StorageError):
    """Raised when the storage substrate is absent or failing."""


class StorageQuotaError(StorageError):
    """Raised when a write would exceed the storage size ceiling."""
