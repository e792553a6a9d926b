"""Test fixtures for the chat memory tests."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from chat_memory.models import ChatTurn, StoredMessage
from chat_memory.providers.base import RemoteStore, RemoteStoreError
from chat_memory.storage import InMemoryStorage, StorageBackend, StorageUnavailableError


class FixedClock:
    """Controllable replacement for the memory manager's clock."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FailingStorage(StorageBackend):
    """Storage whose every operation fails, like a disabled browser storage."""

    def __init__(self):
        self.calls = 0

    def _fail(self, key: str = ""):
        self.calls += 1
        raise StorageUnavailableError("storage disabled", key=key)

    def load(self, key):
        self._fail(key)

    def save(self, key, value):
        self._fail(key)

    def delete(self, key):
        self._fail(key)

    def list_keys(self, prefix=""):
        self._fail()


class FlakyStorage(InMemoryStorage):
    """In-memory storage whose next reads fail, like a briefly locked file."""

    def __init__(self):
        super().__init__()
        self.failing_loads = 0

    def load(self, key):
        if self.failing_loads:
            self.failing_loads -= 1
            raise StorageUnavailableError("storage busy", key=key)
        return super().load(key)


class FakeRemoteStore(RemoteStore):
    """In-memory remote store that can be switched into failure mode."""

    def __init__(self, available: bool = True, fail: bool = False):
        self.available = available
        self.fail = fail
        self.rows: Dict[str, List[StoredMessage]] = {}
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return self.available

    def _check(self):
        if self.fail:
            raise RemoteStoreError("remote down", store=self.name)

    async def insert(self, message):
        self._check()
        self.rows.setdefault(message.user_id, []).append(message)

    async def fetch_recent(self, user_id, limit):
        self._check()
        rows = sorted(self.rows.get(user_id, []), key=lambda m: m.timestamp, reverse=True)
        return rows[:limit]

    async def delete_user(self, user_id):
        self._check()
        self.rows.pop(user_id, None)

    async def aclose(self):
        self.closed = True


def make_turn(sender: str, content: str, minute: int = 0, turn_id: Optional[str] = None) -> ChatTurn:
    """Create a ChatTurn with a predictable timestamp."""
    return ChatTurn(
        sender=sender,
        content=content,
        id=turn_id or f"{sender}-{minute}",
        timestamp=datetime(2024, 6, 1, 12, minute, 0, tzinfo=timezone.utc),
    )


def make_stored(user_id: str, index: int, sender: str = "user") -> StoredMessage:
    """Create a StoredMessage whose timestamp grows with ``index``."""
    return StoredMessage(
        id=f"msg-{index}",
        user_id=user_id,
        content=f"Message {index}",
        sender=sender,
        timestamp=(
            datetime(2024, 6, 1, tzinfo=timezone.utc) + timedelta(minutes=index)
        ).isoformat(),
    )
