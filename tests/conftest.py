"""Pytest configuration and shared fixtures"""

import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from chat_memory.services.cache import LocalCache  # noqa: E402
from chat_memory.services.memory import MemoryManager  # noqa: E402
from chat_memory.storage import InMemoryStorage  # noqa: E402
from tests.fixtures import FixedClock  # noqa: E402


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def cache(storage):
    return LocalCache(storage)


@pytest.fixture
def manager(cache, clock):
    return MemoryManager(cache, clock=clock)
