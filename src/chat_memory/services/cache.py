"""Local cache over a persistent storage backend."""

import json
import logging
from typing import Any, Dict, List, Optional

from ..storage import InMemoryStorage, StorageBackend, StorageError

logger = logging.getLogger(__name__)

_PROBE_KEY = "__chat_memory_probe__"


class LocalCache:
    """Synchronous key/value cache for serialized records.

    Storage errors propagate as ``StorageError`` so callers can decide how to
    degrade. The JSON helpers treat undecodable values as absent.
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self.backend = backend if backend is not None else InMemoryStorage()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[str]:
        """Get a serialized record if it exists."""
        value = self.backend.load(key)
        if value is None:
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, key: str, value: str) -> None:
        """Store a serialized record."""
        self.backend.save(key, value)

    def remove(self, key: str) -> None:
        """Remove a record; absent keys are ignored."""
        self.backend.delete(key)

    def list_keys(self, prefix: str = "") -> List[str]:
        """List keys with the given prefix."""
        return self.backend.list_keys(prefix)

    def get_json(self, key: str) -> Optional[Any]:
        """Get and decode a JSON record."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

    def set_json(self, key: str, value: Any) -> None:
        """Encode and store a JSON record."""
        self.set(key, json.dumps(value))

    def is_available(self) -> bool:
        """Check that the backend accepts a write and a delete."""
        try:
            self.backend.save(_PROBE_KEY, _PROBE_KEY)
            self.backend.delete(_PROBE_KEY)
            return True
        except StorageError as e:
            logger.debug(f"Local storage unavailable: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.hits + self.misses
        try:
            size: Optional[int] = len(self.list_keys())
        except StorageError:
            size = None
        return {
            "backend": type(self.backend).__name__,
            "size": size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total_requests if total_requests > 0 else 0,
        }
