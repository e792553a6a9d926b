"""Environment-driven configuration."""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = "~/.chat-memory/storage.json"
DEFAULT_LOG_DIR = "~/.chat-memory/logs"
DEFAULT_STORAGE_MAX_BYTES = 5 * 1024 * 1024  # browser-like per-origin quota
DEFAULT_RETENTION_DAYS = 30
DEFAULT_REMOTE_TIMEOUT = 10.0


def load_env_file() -> Optional[str]:
    """Load the first .env file found near the entry point.

    Returns:
        The path loaded, or None if the default dotenv search was used.
    """
    # 1. Directory of the main entry point
    main_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
    # 2. Its parent, in case we're in a subdirectory
    parent_dir = os.path.dirname(main_dir)
    # 3. Current working directory
    cwd = os.getcwd()
    # 4. Package directory
    script_dir = os.path.dirname(os.path.abspath(__file__))

    for directory in (main_dir, parent_dir, cwd, script_dir):
        env_path = os.path.join(directory, ".env")
        if os.path.exists(env_path):
            logger.info(f"Loading .env from {env_path}")
            load_dotenv(env_path)
            return env_path

    logger.info("No .env file found in expected locations, trying default search")
    load_dotenv()
    return None


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Runtime settings for the chat memory service."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    storage_path: str = DEFAULT_STORAGE_PATH
    storage_max_bytes: int = DEFAULT_STORAGE_MAX_BYTES
    retention_days: int = DEFAULT_RETENTION_DAYS
    remote_timeout: float = DEFAULT_REMOTE_TIMEOUT
    debug: bool = False
    log_dir: str = DEFAULT_LOG_DIR

    @property
    def remote_configured(self) -> bool:
        """A missing remote store is a normal mode, not an error."""
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            supabase_url=_first_env("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
            supabase_key=_first_env("SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
            storage_path=os.getenv("CHAT_MEMORY_STORAGE_PATH") or DEFAULT_STORAGE_PATH,
            storage_max_bytes=_int_env("CHAT_MEMORY_STORAGE_MAX_BYTES", DEFAULT_STORAGE_MAX_BYTES),
            retention_days=_int_env("CHAT_MEMORY_RETENTION_DAYS", DEFAULT_RETENTION_DAYS),
            remote_timeout=_float_env("CHAT_MEMORY_REMOTE_TIMEOUT", DEFAULT_REMOTE_TIMEOUT),
            debug=bool(os.getenv("CHAT_MEMORY_DEBUG")),
            log_dir=os.getenv("CHAT_MEMORY_LOG_DIR") or DEFAULT_LOG_DIR,
        )
