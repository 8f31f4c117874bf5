"""
Presence Domain Models
Pharmacist console liveness and the derived wait estimate
"""
from datetime import datetime
from typing import Optional

from pharmacall.domain.models.call_request import WireModel


CONSOLE_PRESENCE_ID = "console"


class PresenceRecord(WireModel):
    """Singleton heartbeat document written by the pharmacist console"""
    id: str = CONSOLE_PRESENCE_ID
    is_online: bool = True
    updated_at: Optional[datetime] = None


class PresenceSnapshot(WireModel):
    """What a waiting user sees about pharmacist availability"""
    online: bool
    active_calls: int
    estimated_wait_minutes: int
    degraded: bool = False
