"""
Call Request Domain Models
One record per admitted pharmacist call attempt
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


USER_MESSAGE_MAX_CHARS = 500
SUMMARIZED_LOGS_MAX_CHARS = 4000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, Enum):
    """Lifecycle status of a call request"""
    REQUESTED = "requested"
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    MISSED = "missed"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES: FrozenSet[CallStatus] = frozenset({
    CallStatus.REQUESTED,
    CallStatus.QUEUED,
    CallStatus.RINGING,
    CallStatus.IN_PROGRESS,
})

TERMINAL_STATUSES: FrozenSet[CallStatus] = frozenset({
    CallStatus.COMPLETED,
    CallStatus.FAILED,
    CallStatus.CANCELLED,
    CallStatus.MISSED,
})


class CallerRole(str, Enum):
    """Who is reporting a status change"""
    USER = "user"
    STAFF = "staff"
    TELEPHONY = "telephony"


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Handoff(WireModel):
    """
    Context the user hands to the pharmacist when requesting a call.

    Strings longer than their bound are truncated rather than rejected.
    """
    user_message: str = ""
    summarized_logs: str = ""
    attached_range: Optional[Any] = None

    @field_validator("user_message", "summarized_logs", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("user_message")
    @classmethod
    def _truncate_message(cls, value: str) -> str:
        return value[:USER_MESSAGE_MAX_CHARS]

    @field_validator("summarized_logs")
    @classmethod
    def _truncate_logs(cls, value: str) -> str:
        return value[:SUMMARIZED_LOGS_MAX_CHARS]


class CallRequest(WireModel):
    """
    Call request record.

    Active records (requested, queued, ringing, in_progress) are ranked by
    created_at; queue_position is that rank and is None once terminal.
    """

    # Identity (immutable)
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str

    # Caller display metadata
    caller_name: str = ""
    caller_first_name: str = ""
    caller_last_name: str = ""
    user_email: str = ""
    identity: str

    handoff: Handoff = Field(default_factory=Handoff)

    # Queue state
    status: CallStatus = CallStatus.QUEUED
    queue_position: Optional[int] = Field(default=None, ge=1)

    # Timing (server assigned)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the document store (snake_case, JSON-safe)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "CallRequest":
        """Deserialize from the document store, ignoring store-only columns."""
        known = {key: value for key, value in data.items() if key in cls.model_fields}
        return cls.model_validate(known)

    def __repr__(self) -> str:
        return (
            f"CallRequest(id={self.id[:8]}..., "
            f"user={self.user_id}, "
            f"status={self.status.value}, "
            f"position={self.queue_position})"
        )
