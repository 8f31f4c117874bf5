"""
Console Service
Administrative operations behind the pharmacist console
"""
import logging
from typing import Any, Dict

from pydantic import BaseModel

from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.interfaces.console_store import ChatSessionStore, PresenceStore

logger = logging.getLogger(__name__)


class ResetSummary(BaseModel):
    """Counts deleted by a bulk reset"""
    deleted_sessions: int = 0
    deleted_messages: int = 0
    deleted_calls: int = 0
    deleted_presence_docs: int = 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "deletedSessions": self.deleted_sessions,
            "deletedMessages": self.deleted_messages,
            "deletedCalls": self.deleted_calls,
            "deletedPresenceDocs": self.deleted_presence_docs,
        }


class ConsoleService:
    """Bulk reset and diagnostics across all console collections"""

    def __init__(
        self,
        call_store: CallRecordStore,
        presence_store: PresenceStore,
        chat_store: ChatSessionStore
    ):
        self._calls = call_store
        self._presence = presence_store
        self._chat = chat_store

    async def reset_all(self) -> ResetSummary:
        """
        Wipe sessions (with messages), call requests and presence.

        Each collection is deleted atomically; collections are processed one
        after another, so a failure part-way leaves earlier ones wiped.
        """
        deleted_sessions, deleted_messages = await self._chat.delete_all()
        deleted_calls = await self._calls.delete_all()
        deleted_presence = await self._presence.delete_all()

        summary = ResetSummary(
            deleted_sessions=deleted_sessions,
            deleted_messages=deleted_messages,
            deleted_calls=deleted_calls,
            deleted_presence_docs=deleted_presence,
        )
        logger.warning(f"Console data reset: {summary.model_dump()}")
        return summary

    async def diagnostics(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "storeBackend": self._calls.name,
            "sessionsCount": await self._chat.count_sessions(),
            "callsCount": await self._calls.count_all(),
        }
