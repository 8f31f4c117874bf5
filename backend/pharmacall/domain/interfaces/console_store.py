"""
Console Store Interfaces
Presence heartbeat and chat session storage read by the pharmacist console
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from pharmacall.domain.models.chat import ChatMessage, ChatSession
from pharmacall.domain.models.presence import PresenceRecord


class PresenceStore(ABC):
    """Singleton presence document"""

    @abstractmethod
    async def get(self) -> Optional[PresenceRecord]:
        pass

    @abstractmethod
    async def upsert_heartbeat(self, now: datetime) -> PresenceRecord:
        """Create or refresh the presence document with updated_at=now"""
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        pass


class ChatSessionStore(ABC):
    """Chat sessions and their append-only messages"""

    @abstractmethod
    async def list_sessions(self, limit: int = 50) -> List[ChatSession]:
        """Sessions ordered by updated_at descending"""
        pass

    @abstractmethod
    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        """Messages of one session ordered by created_at ascending"""
        pass

    @abstractmethod
    async def add_message(
        self,
        session_id: str,
        content: str,
        role: str,
        status_text: Optional[str] = None
    ) -> ChatMessage:
        """
        Append a message and touch the session's updated_at.

        Raises:
            NotFound: If the session does not exist
        """
        pass

    @abstractmethod
    async def update_session_status(
        self,
        session_id: str,
        status_text: Optional[str],
        queue_position: Optional[int]
    ) -> ChatSession:
        """
        Raises:
            NotFound: If the session does not exist
        """
        pass

    @abstractmethod
    async def count_sessions(self) -> int:
        pass

    @abstractmethod
    async def delete_all(self) -> Tuple[int, int]:
        """
        Delete every session and message.

        Returns:
            (deleted_sessions, deleted_messages)
        """
        pass
