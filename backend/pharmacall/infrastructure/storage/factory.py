"""
Store Factory
Builds the call, presence and chat stores for the configured backend
"""
import logging
from dataclasses import dataclass
from typing import Optional

from supabase import Client, create_client

from pharmacall.core.config import Settings
from pharmacall.core.errors import StoreNotConfigured
from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.interfaces.console_store import ChatSessionStore, PresenceStore
from pharmacall.infrastructure.storage.memory_store import (
    InMemoryCallRecordStore,
    InMemoryChatSessionStore,
    InMemoryPresenceStore,
)
from pharmacall.infrastructure.storage.supabase_store import (
    SupabaseCallRecordStore,
    SupabaseChatSessionStore,
    SupabasePresenceStore,
)

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """Everything the services persist to"""
    calls: CallRecordStore
    presence: PresenceStore
    chat: ChatSessionStore


class StoreFactory:
    """
    Factory for store bundles.

    The memory backend is process-wide so every request sees the same queue.
    """

    _memory: Optional[Stores] = None

    @classmethod
    def create(cls, settings: Settings, client: Optional[Client] = None) -> Stores:
        backend = settings.store_backend.lower()
        if backend == "memory":
            return cls.memory()
        if backend == "supabase":
            return cls.supabase(client or cls.supabase_client(settings))
        raise ValueError(f"Unknown store backend: {settings.store_backend}. Available: supabase, memory")

    @classmethod
    def memory(cls) -> Stores:
        if cls._memory is None:
            logger.warning("Using in-memory stores: queue state is lost on restart")
            cls._memory = Stores(
                calls=InMemoryCallRecordStore(),
                presence=InMemoryPresenceStore(),
                chat=InMemoryChatSessionStore(),
            )
        return cls._memory

    @classmethod
    def reset_memory(cls) -> None:
        cls._memory = None

    @staticmethod
    def supabase(client: Client) -> Stores:
        return Stores(
            calls=SupabaseCallRecordStore(client),
            presence=SupabasePresenceStore(client),
            chat=SupabaseChatSessionStore(client),
        )

    @staticmethod
    def supabase_client(settings: Settings) -> Client:
        """
        Raises:
            StoreNotConfigured: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing
        """
        if not settings.supabase_configured:
            raise StoreNotConfigured()
        return create_client(settings.supabase_url, settings.supabase_service_key)
