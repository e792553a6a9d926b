"""Remote message stores for the chat memory subsystem."""

from .base import RemoteAuthenticationError, RemoteStore, RemoteStoreError, RemoteTimeoutError
from .supabase import SupabaseStore

__all__ = [
    "RemoteStore",
    "RemoteStoreError",
    "RemoteAuthenticationError",
    "RemoteTimeoutError",
    "SupabaseStore",
]
