"""Local storage backends for the chat memory subsystem."""

from .base import StorageBackend, StorageError, StorageQuotaError, StorageUnavailableError
from .file import JsonFileStorage
from .memory import InMemoryStorage

__all__ = [
    "StorageBackend",
    "StorageError",
    "StorageQuotaError",
    "StorageUnavailableError",
    "InMemoryStorage",
    "JsonFileStorage",
]
