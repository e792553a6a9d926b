"""Dict-backed storage for tests and ephemeral runs."""

from typing import Dict, List, Optional

from .base import StorageBackend


class InMemoryStorage(StorageBackend):
    """Storage that lives only as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def save(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def list_keys(self, prefix: str = "") -> List[str]:
        return [k for k in self.data if k.startswith(prefix)]
