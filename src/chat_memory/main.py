"""
Service wiring and command line entry point for the chat memory subsystem.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional, Sequence

from . import __version__
from .config import Settings, load_env_file
from .models.memory import ChatTurn, StoredMessage, format_timestamp
from .providers import RemoteStore, SupabaseStore
from .services.cache import LocalCache
from .services.extraction import extract_user_names
from .services.memory import MemoryManager
from .services.message_storage import MessageStorage
from .storage import JsonFileStorage, StorageBackend

logger = logging.getLogger(__name__)


class ChatMemoryService:
    """The memory components a chat client needs, built once per process.

    The chat page holds a single instance and passes it to whatever needs
    memory; nothing here is stored in module globals.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[StorageBackend] = None,
        remote: Optional[RemoteStore] = None,
    ):
        """Initialize the service.

        Args:
            settings: Runtime settings. If None, read from the environment.
            backend: Local storage backend. If None, a JsonFileStorage at
                ``settings.storage_path``.
            remote: Remote message store. If None, a SupabaseStore when one is
                configured.
        """
        self.settings = settings or Settings.from_env()

        if backend is None:
            backend = JsonFileStorage(
                self.settings.storage_path, max_bytes=self.settings.storage_max_bytes
            )
        self.cache = LocalCache(backend)
        self.memory = MemoryManager(self.cache, retention_days=self.settings.retention_days)

        if remote is None and self.settings.remote_configured:
            remote = SupabaseStore(
                url=self.settings.supabase_url,
                api_key=self.settings.supabase_key,
                timeout=self.settings.remote_timeout,
            )
        self.messages = MessageStorage(self.cache, remote)

        if remote is not None and self.messages.remote_available:
            logger.info(f"Chat memory service using remote store {remote.name}")
        else:
            logger.info("Remote store not configured, using local storage only")

    def record_turn(
        self, user_id: str, session_id: str, turns: Sequence[Any]
    ) -> Optional["asyncio.Task[None]"]:
        """Record the transcript after a new turn was appended to it.

        Saves the full transcript to memory and the newest turn to the message
        history.
        """
        if not user_id or not session_id or not isinstance(turns, (list, tuple)):
            logger.warning("Invalid parameters for record_turn")
            return None

        self.memory.save_conversation(user_id, session_id, turns)

        if not turns:
            return None
        try:
            latest = turns[-1] if isinstance(turns[-1], ChatTurn) else ChatTurn.from_dict(turns[-1])
        except ValueError as e:
            logger.warning(f"Not storing invalid turn: {e}")
            return None
        return self.messages.save_message(StoredMessage.from_turn(latest, user_id))

    def context_for(self, user_id: str, session_id: str) -> str:
        """Context block to insert ahead of the next model prompt."""
        return self.memory.generate_context_prompt(user_id, session_id)

    def get_status(self, user_id: str) -> Dict[str, Any]:
        """Summary of what is remembered about a user."""
        history = self.memory.get_user_history(user_id)
        return {
            "user_id": user_id,
            "sessions": [
                {
                    "session_id": m.session_id,
                    "messages": len(m.messages),
                    "last_interaction": format_timestamp(m.last_interaction),
                    "summary": m.context.conversation_summary,
                    "topics": m.context.topics,
                    "preferences": m.context.user_preferences,
                }
                for m in history
            ],
            "names": extract_user_names(m.messages for m in history),
            "local_storage_available": self.cache.is_available(),
            "remote_configured": self.messages.remote_available,
        }

    async def clear_user(self, user_id: str) -> int:
        """Forget everything about a user, locally and remotely."""
        removed = self.memory.clear_user_memories(user_id)
        await self.messages.clear_user_messages(user_id)
        return removed

    async def aclose(self) -> None:
        """Finish pending remote writes and release network resources."""
        await self.messages.drain()
        if self.messages.remote is not None:
            await self.messages.remote.aclose()


def setup_logging(settings: Settings) -> str:
    """Configure logging to stderr and a rotating file.

    Returns:
        The log file path.
    """
    log_dir = os.path.expanduser(settings.log_dir)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "chat-memory.log")

    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        RotatingFileHandler(
            log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        ),
    ]

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-memory",
        description="Inspect and maintain chat conversation memory.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show what is remembered about a user")
    status.add_argument("user_id")

    context = subparsers.add_parser("context", help="Print the prompt context for a session")
    context.add_argument("user_id")
    context.add_argument("session_id")

    clear = subparsers.add_parser("clear", help="Forget all memories and messages of a user")
    clear.add_argument("user_id")

    subparsers.add_parser("cleanup", help="Remove memories past the retention window")

    recent = subparsers.add_parser("recent", help="Show a user's most recent messages")
    recent.add_argument("user_id")

    debug = subparsers.add_parser("debug", help="Dump stored messages for a user")
    debug.add_argument("user_id")

    return parser


async def run_command(service: ChatMemoryService, args: argparse.Namespace) -> str:
    """Execute a parsed command and return its output."""
    try:
        if args.command == "status":
            return json.dumps(service.get_status(args.user_id), indent=2)
        if args.command == "context":
            return service.context_for(args.user_id, args.session_id)
        if args.command == "clear":
            removed = await service.clear_user(args.user_id)
            return f"Cleared {removed} memories for {args.user_id}"
        if args.command == "cleanup":
            removed = service.memory.cleanup_old_memories()
            return f"Removed {removed} old memories"
        if args.command == "recent":
            messages = await service.messages.get_recent_messages(args.user_id)
            return json.dumps([m.to_dict() for m in messages], indent=2)
        if args.command == "debug":
            return json.dumps(await service.messages.debug_messages(args.user_id), indent=2)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await service.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    load_env_file()
    settings = Settings.from_env()
    log_file = setup_logging(settings)
    logger.debug(f"Logging to file: {log_file}")

    try:
        service = ChatMemoryService(settings)
        output = asyncio.run(run_command(service, args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 1
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
