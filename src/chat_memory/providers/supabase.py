"""Supabase (PostgREST) message store."""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from ..models.memory import StoredMessage
from .base import RemoteAuthenticationError, RemoteStore, RemoteStoreError, RemoteTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "chat_messages"


class SupabaseStore(RemoteStore):
    """Message store backed by a Supabase table over its REST API."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        table: str = DEFAULT_TABLE,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Supabase store.

        Args:
            url: Project URL. If None, reads from SUPABASE_URL.
            api_key: Anon or service key. If None, reads from SUPABASE_ANON_KEY.
            table: Table holding the chat messages.
            timeout: Request timeout in seconds.
            client: Preconfigured HTTP client, mainly for tests.
        """
        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("SUPABASE_ANON_KEY")
        self.table = table
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "supabase"

    @property
    def endpoint(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            if not self.is_available():
                raise RemoteAuthenticationError(
                    "Supabase not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.",
                    store=self.name,
                )
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def is_available(self) -> bool:
        return bool(self.url and self.api_key)

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key or "",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, self.endpoint, **kwargs)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(f"{method} {self.table} timed out: {e}", store=self.name)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = f"{method} {self.table} failed with HTTP {status}: {e.response.text}"
            if status in (401, 403):
                raise RemoteAuthenticationError(message, store=self.name)
            raise RemoteStoreError(message, store=self.name, is_retryable=status >= 500)
        except httpx.HTTPError as e:
            raise RemoteStoreError(
                f"{method} {self.table} failed: {e}", store=self.name, is_retryable=True
            )

    async def insert(self, message: StoredMessage) -> None:
        await self._request(
            "POST",
            json=[message.to_insert_row()],
            headers=self._headers(Prefer="return=minimal"),
        )
        logger.debug(f"Inserted message {message.id} into {self.table}")

    async def fetch_recent(self, user_id: str, limit: int) -> List[StoredMessage]:
        response = await self._request(
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "timestamp.desc",
                "limit": str(limit),
            },
            headers=self._headers(),
        )
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteStoreError(f"Invalid JSON from {self.table}: {e}", store=self.name)
        if not isinstance(rows, list):
            raise RemoteStoreError(f"Unexpected response from {self.table}", store=self.name)

        messages = []
        for row in rows:
            try:
                messages.append(StoredMessage.from_dict(row))
            except ValueError as e:
                logger.warning(f"Skipping malformed row from {self.table}: {e}")
        return messages

    async def delete_user(self, user_id: str) -> None:
        await self._request(
            "DELETE",
            params={"user_id": f"eq.{user_id}"},
            headers=self._headers(),
        )
        logger.debug(f"Deleted messages of {user_id} from {self.table}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
