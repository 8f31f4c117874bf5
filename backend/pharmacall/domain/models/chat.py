"""
Chat Session Models
Storage shapes read by the pharmacist console. Sessions are written by the
mobile client; unknown fields are passed through untouched.
"""
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from pharmacall.domain.models.call_request import WireModel


class ChatSession(WireModel):
    """A user's chat thread with the pharmacy"""
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    status_text: Optional[str] = None
    queue_position: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChatMessage(WireModel):
    """Append-only message within a session"""
    id: str
    session_id: str
    role: str = Field(default="user", description="user, assistant or pharmacist")
    content: str
    created_at: Optional[datetime] = None
