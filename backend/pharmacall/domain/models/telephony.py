"""
Telephony Domain Models
Voice grants and routing instructions exchanged with the telephony bridge
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TelephonyGrant(BaseModel):
    """Short-lived credential letting a client place/receive calls as `identity`"""
    token: str
    identity: str
    expires_at: datetime


class RoutingInstruction(BaseModel):
    """
    Where an inbound telephony leg should be bridged to.

    `parameters` is correlation metadata (caller name, caller identity,
    request id) the receiving client reads to match the leg to a call request.
    """
    target_identity: str
    caller_identity: Optional[str] = None
    request_id: Optional[str] = None
    caller_name: Optional[str] = None
    event_url: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)

    def to_ncco(self) -> List[Dict[str, Any]]:
        """Render as a Vonage NCCO connecting the leg to an in-app user."""
        endpoint: Dict[str, Any] = {"type": "app", "user": self.target_identity}
        if self.parameters:
            endpoint["headers"] = dict(self.parameters)

        connect: Dict[str, Any] = {
            "action": "connect",
            "endpoint": [endpoint],
        }
        if self.caller_identity:
            connect["from"] = self.caller_identity
        if self.event_url:
            connect["eventUrl"] = [self.event_url]
            connect["eventMethod"] = "POST"
        return [connect]
