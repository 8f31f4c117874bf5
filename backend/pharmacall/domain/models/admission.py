"""
Admission Result Model
Response of the call admission service
"""
from typing import Optional

from pharmacall.domain.models.call_request import WireModel


class AdmissionResult(WireModel):
    """
    Outcome of a call admission.

    queued=False carries a live voice token; queued=True only reports the
    caller's place in line. degraded=True means the queue was bypassed.
    """
    queued: bool
    request_id: Optional[str] = None
    queue_position: int
    token: Optional[str] = None
    identity: Optional[str] = None
    display_name: Optional[str] = None
    pharmacist_routing_identity: Optional[str] = None
    message: Optional[str] = None
    degraded: bool = False
