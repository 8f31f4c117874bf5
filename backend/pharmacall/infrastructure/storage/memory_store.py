"""
In-Memory Stores
Process-local implementations of the store interfaces for development and tests
"""
import itertools
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pharmacall.core.errors import NotFound
from pharmacall.domain.interfaces.call_record_store import CallRecordStore, FieldUpdate
from pharmacall.domain.interfaces.console_store import ChatSessionStore, PresenceStore
from pharmacall.domain.models.call_request import CallRequest, utc_now
from pharmacall.domain.models.chat import ChatMessage, ChatSession
from pharmacall.domain.models.presence import CONSOLE_PRESENCE_ID, PresenceRecord


class InMemoryCallRecordStore(CallRecordStore):
    """
    Call requests kept in a dict.

    Each record gets an insertion sequence number so equal created_at
    values keep arrival order, like the seq column in Postgres.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._records: Dict[str, CallRequest] = {}
        self._seq: Dict[str, int] = {}
        self._counter = itertools.count(1)

    @property
    def name(self) -> str:
        return "memory"

    async def create(self, call: CallRequest) -> CallRequest:
        now = self._clock()
        stored = call.model_copy(deep=True, update={
            "created_at": call.created_at or now,
            "updated_at": now,
        })
        self._records[stored.id] = stored
        self._seq[stored.id] = next(self._counter)
        return stored.model_copy(deep=True)

    async def get(self, call_id: str) -> Optional[CallRequest]:
        record = self._records.get(call_id)
        return record.model_copy(deep=True) if record else None

    async def update_fields(self, call_id: str, fields: Dict[str, Any]) -> CallRequest:
        if call_id not in self._records:
            raise NotFound("Call request not found.")
        self._records[call_id] = self._apply(self._records[call_id], fields)
        return self._records[call_id].model_copy(deep=True)

    async def query_active_ordered(self) -> List[CallRequest]:
        active = [record for record in self._records.values() if record.is_active]
        active.sort(key=lambda record: (
            record.created_at.timestamp() if record.created_at else 0.0,
            self._seq[record.id],
        ))
        return [record.model_copy(deep=True) for record in active]

    async def batch_update(self, updates: Sequence[FieldUpdate]) -> None:
        missing = [call_id for call_id, _ in updates if call_id not in self._records]
        if missing:
            raise NotFound(f"Call requests not found: {', '.join(missing)}")

        # Build every new record first so a validation error writes nothing
        staged = {
            call_id: self._apply(self._records[call_id], fields)
            for call_id, fields in updates
            if self._records[call_id].is_active
        }
        self._records.update(staged)

    async def list_recent(self, limit: int = 50) -> List[CallRequest]:
        ordered = sorted(
            self._records.values(),
            key=lambda record: (
                record.created_at.timestamp() if record.created_at else 0.0,
                self._seq[record.id],
            ),
            reverse=True,
        )
        return [record.model_copy(deep=True) for record in ordered[:limit]]

    async def count_all(self) -> int:
        return len(self._records)

    async def delete_all(self) -> int:
        deleted = len(self._records)
        self._records.clear()
        self._seq.clear()
        return deleted

    def _apply(self, record: CallRequest, fields: Dict[str, Any]) -> CallRequest:
        merged = record.model_dump()
        merged.update(fields)
        return CallRequest.model_validate(merged)


class InMemoryPresenceStore(PresenceStore):
    """Single presence document"""

    def __init__(self):
        self._record: Optional[PresenceRecord] = None

    async def get(self) -> Optional[PresenceRecord]:
        return self._record.model_copy() if self._record else None

    async def upsert_heartbeat(self, now: datetime) -> PresenceRecord:
        self._record = PresenceRecord(id=CONSOLE_PRESENCE_ID, is_online=True, updated_at=now)
        return self._record.model_copy()

    async def delete_all(self) -> int:
        deleted = 1 if self._record else 0
        self._record = None
        return deleted


class InMemoryChatSessionStore(ChatSessionStore):
    """Chat sessions and messages kept in dicts"""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._sessions: Dict[str, ChatSession] = {}
        self._messages: Dict[str, List[ChatMessage]] = {}

    def add_session(self, session: ChatSession) -> ChatSession:
        """Seed a session (sessions are normally written by the mobile client)"""
        now = self._clock()
        stored = session.model_copy(update={
            "created_at": session.created_at or now,
            "updated_at": session.updated_at or now,
        })
        self._sessions[stored.id] = stored
        self._messages.setdefault(stored.id, [])
        return stored

    async def list_sessions(self, limit: int = 50) -> List[ChatSession]:
        ordered = sorted(
            self._sessions.values(),
            key=lambda session: session.updated_at.timestamp() if session.updated_at else 0.0,
            reverse=True,
        )
        return [session.model_copy() for session in ordered[:limit]]

    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        messages = self._messages.get(session_id, [])
        return sorted(
            (message.model_copy() for message in messages),
            key=lambda message: message.created_at.timestamp() if message.created_at else 0.0,
        )

    async def add_message(
        self,
        session_id: str,
        content: str,
        role: str,
        status_text: Optional[str] = None
    ) -> ChatMessage:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("Session not found.")

        now = self._clock()
        message = ChatMessage(
            id=uuid.uuid4().hex,
            session_id=session_id,
            role=role,
            content=content,
            created_at=now,
        )
        self._messages.setdefault(session_id, []).append(message)

        update: Dict[str, Any] = {"updated_at": now}
        if status_text is not None:
            update["status_text"] = status_text
        self._sessions[session_id] = session.model_copy(update=update)
        return message.model_copy()

    async def update_session_status(
        self,
        session_id: str,
        status_text: Optional[str],
        queue_position: Optional[int]
    ) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("Session not found.")
        self._sessions[session_id] = session.model_copy(update={
            "status_text": status_text,
            "queue_position": queue_position,
            "updated_at": self._clock(),
        })
        return self._sessions[session_id].model_copy()

    async def count_sessions(self) -> int:
        return len(self._sessions)

    async def delete_all(self) -> Tuple[int, int]:
        deleted_sessions = len(self._sessions)
        deleted_messages = sum(len(messages) for messages in self._messages.values())
        self._sessions.clear()
        self._messages.clear()
        return deleted_sessions, deleted_messages
