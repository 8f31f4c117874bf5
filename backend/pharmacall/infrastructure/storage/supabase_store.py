"""
Supabase Stores
Store interfaces backed by Supabase (PostgREST) tables.

Schema and the apply_call_queue_updates function live in
backend/database/schema.sql.
"""
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from pharmacall.core.errors import NotFound, StoreUnavailable
from pharmacall.domain.interfaces.call_record_store import CallRecordStore, FieldUpdate
from pharmacall.domain.interfaces.console_store import ChatSessionStore, PresenceStore
from pharmacall.domain.models.call_request import ACTIVE_STATUSES, CallRequest, utc_now
from pharmacall.domain.models.chat import ChatMessage, ChatSession
from pharmacall.domain.models.presence import CONSOLE_PRESENCE_ID, PresenceRecord

logger = logging.getLogger(__name__)


CALLS_TABLE = "pharmacist_call_requests"
PRESENCE_TABLE = "pharmacist_presence"
SESSIONS_TABLE = "pharmacist_sessions"
MESSAGES_TABLE = "pharmacist_messages"

QUEUE_UPDATE_RPC = "apply_call_queue_updates"
# errcode raised by apply_call_queue_updates for unknown ids
NO_DATA_FOUND = "P0002"

_UNAVAILABLE_HTTP_CODES = {"429", "503", "504"}
_QUOTA_MARKERS = ("quota", "rate limit", "too many requests", "resource_exhausted", "exceed")


def is_quota_exceeded(error: Exception) -> bool:
    """
    True for errors meaning "backend over quota or unreachable, retry later".
    """
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return str(error.response.status_code) in _UNAVAILABLE_HTTP_CODES

    code = str(getattr(error, "code", "") or "")
    if code in _UNAVAILABLE_HTTP_CODES:
        return True

    message = str(getattr(error, "message", "") or error).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


def serialize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Make a partial update JSON-safe for PostgREST"""
    serialized: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            serialized[key] = value.isoformat()
        elif isinstance(value, Enum):
            serialized[key] = value.value
        else:
            serialized[key] = value
    return serialized


class SupabaseTableStore:
    """Shared error mapping for Supabase-backed stores"""

    def __init__(self, client: Client):
        self._client = client

    def _execute(self, operation: str, request: Callable[[], Any]) -> Any:
        """
        Run one PostgREST request.

        Raises:
            StoreUnavailable: Backend over quota, rate limited or unreachable
        """
        try:
            return request()
        except (APIError, httpx.HTTPError) as e:
            if is_quota_exceeded(e):
                logger.warning(f"Supabase unavailable during {operation}: {e}")
                raise StoreUnavailable() from e
            logger.error(f"Supabase error during {operation}: {e}")
            raise

    def _delete_all_rows(self, table: str) -> int:
        """Delete every row of a table with a single DELETE statement"""
        # PostgREST refuses an unfiltered DELETE; every id is non-empty text
        response = self._execute(
            f"delete {table}",
            lambda: self._client.table(table).delete(count="exact").neq("id", "").execute()
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])


class SupabaseCallRecordStore(SupabaseTableStore, CallRecordStore):
    """
    Call requests in the pharmacist_call_requests table.

    Ordering ties on created_at are broken by the bigserial seq column.
    """

    @property
    def name(self) -> str:
        return "supabase"

    async def create(self, call: CallRequest) -> CallRequest:
        row = call.to_record()
        # Timestamps default to now() in the database
        for column in ("created_at", "updated_at"):
            if row.get(column) is None:
                row.pop(column, None)

        response = self._execute(
            "create call request",
            lambda: self._client.table(CALLS_TABLE).insert(row).execute()
        )
        return CallRequest.from_record(response.data[0])

    async def get(self, call_id: str) -> Optional[CallRequest]:
        response = self._execute(
            "get call request",
            lambda: self._client.table(CALLS_TABLE).select("*").eq("id", call_id).limit(1).execute()
        )
        if not response.data:
            return None
        return CallRequest.from_record(response.data[0])

    async def update_fields(self, call_id: str, fields: Dict[str, Any]) -> CallRequest:
        payload = serialize_fields(fields)
        response = self._execute(
            "update call request",
            lambda: self._client.table(CALLS_TABLE).update(payload).eq("id", call_id).execute()
        )
        if not response.data:
            raise NotFound("Call request not found.")
        return CallRequest.from_record(response.data[0])

    async def query_active_ordered(self) -> List[CallRequest]:
        statuses = [status.value for status in ACTIVE_STATUSES]
        response = self._execute(
            "list active call requests",
            lambda: self._client.table(CALLS_TABLE)
            .select("*")
            .in_("status", statuses)
            .order("created_at")
            .order("seq")
            .execute()
        )
        return [CallRequest.from_record(row) for row in response.data or []]

    async def batch_update(self, updates: Sequence[FieldUpdate]) -> None:
        if not updates:
            return
        payload = [{"id": call_id, **serialize_fields(fields)} for call_id, fields in updates]
        # One Postgres function call runs in one transaction
        try:
            self._execute(
                "apply queue updates",
                lambda: self._client.rpc(QUEUE_UPDATE_RPC, {"p_updates": payload}).execute()
            )
        except APIError as e:
            if getattr(e, "code", None) == NO_DATA_FOUND:
                raise NotFound(f"Call requests not found: {e.message}") from e
            raise

    async def list_recent(self, limit: int = 50) -> List[CallRequest]:
        response = self._execute(
            "list recent call requests",
            lambda: self._client.table(CALLS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [CallRequest.from_record(row) for row in response.data or []]

    async def count_all(self) -> int:
        response = self._execute(
            "count call requests",
            lambda: self._client.table(CALLS_TABLE).select("id", count="exact").limit(1).execute()
        )
        return response.count or 0

    async def delete_all(self) -> int:
        return self._delete_all_rows(CALLS_TABLE)


class SupabasePresenceStore(SupabaseTableStore, PresenceStore):
    """Singleton row in pharmacist_presence"""

    async def get(self) -> Optional[PresenceRecord]:
        response = self._execute(
            "get presence",
            lambda: self._client.table(PRESENCE_TABLE)
            .select("*")
            .eq("id", CONSOLE_PRESENCE_ID)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return PresenceRecord.model_validate(response.data[0])

    async def upsert_heartbeat(self, now: datetime) -> PresenceRecord:
        record = PresenceRecord(id=CONSOLE_PRESENCE_ID, is_online=True, updated_at=now)
        self._execute(
            "upsert presence",
            lambda: self._client.table(PRESENCE_TABLE).upsert(record.model_dump(mode="json")).execute()
        )
        return record

    async def delete_all(self) -> int:
        return self._delete_all_rows(PRESENCE_TABLE)


class SupabaseChatSessionStore(SupabaseTableStore, ChatSessionStore):
    """Sessions in pharmacist_sessions, messages in pharmacist_messages"""

    async def list_sessions(self, limit: int = 50) -> List[ChatSession]:
        response = self._execute(
            "list sessions",
            lambda: self._client.table(SESSIONS_TABLE)
            .select("*")
            .order("updated_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [ChatSession.model_validate(row) for row in response.data or []]

    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        response = self._execute(
            "list messages",
            lambda: self._client.table(MESSAGES_TABLE)
            .select("*")
            .eq("session_id", session_id)
            .order("created_at")
            .execute()
        )
        return [ChatMessage.model_validate(row) for row in response.data or []]

    async def add_message(
        self,
        session_id: str,
        content: str,
        role: str,
        status_text: Optional[str] = None
    ) -> ChatMessage:
        session_update: Dict[str, Any] = {"updated_at": utc_now().isoformat()}
        if status_text is not None:
            session_update["status_text"] = status_text

        touched = self._execute(
            "touch session",
            lambda: self._client.table(SESSIONS_TABLE).update(session_update).eq("id", session_id).execute()
        )
        if not touched.data:
            raise NotFound("Session not found.")

        row = {"id": uuid.uuid4().hex, "session_id": session_id, "role": role, "content": content}
        response = self._execute(
            "add message",
            lambda: self._client.table(MESSAGES_TABLE).insert(row).execute()
        )
        return ChatMessage.model_validate(response.data[0])

    async def update_session_status(
        self,
        session_id: str,
        status_text: Optional[str],
        queue_position: Optional[int]
    ) -> ChatSession:
        payload = {"status_text": status_text, "queue_position": queue_position, "updated_at": utc_now().isoformat()}
        response = self._execute(
            "update session status",
            lambda: self._client.table(SESSIONS_TABLE).update(payload).eq("id", session_id).execute()
        )
        if not response.data:
            raise NotFound("Session not found.")
        return ChatSession.model_validate(response.data[0])

    async def count_sessions(self) -> int:
        response = self._execute(
            "count sessions",
            lambda: self._client.table(SESSIONS_TABLE).select("id", count="exact").limit(1).execute()
        )
        return response.count or 0

    async def delete_all(self) -> Tuple[int, int]:
        deleted_messages = self._delete_all_rows(MESSAGES_TABLE)
        deleted_sessions = self._delete_all_rows(SESSIONS_TABLE)
        return deleted_sessions, deleted_messages

