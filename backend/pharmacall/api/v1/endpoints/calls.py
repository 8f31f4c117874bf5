"""
Call Endpoints
User-facing admission, access token and call status endpoints
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ValidationError

from pharmacall.api.v1.dependencies import (
    get_admission_service,
    get_current_caller,
    get_reconciler,
)
from pharmacall.core.errors import InvalidArgument
from pharmacall.domain.models.call_request import CallerRole, Handoff
from pharmacall.domain.models.caller import CallerIdentity
from pharmacall.domain.services.call_admission import CallAdmissionService
from pharmacall.domain.services.call_status_reconciler import CallStatusReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/call", tags=["call"])


class CallTokenRequest(BaseModel):
    """Body of POST /call/token"""
    handoff: Optional[Any] = None


class CallStatusRequest(BaseModel):
    """Body of POST /call/{id}/status"""
    status: Optional[str] = None


def parse_handoff(raw: Any) -> Handoff:
    """
    Raises:
        InvalidArgument: If the handoff is not an object
    """
    if raw is None:
        return Handoff()
    if not isinstance(raw, dict):
        raise InvalidArgument("Handoff must be an object.")
    try:
        return Handoff.model_validate(raw)
    except ValidationError as e:
        raise InvalidArgument("Malformed handoff.") from e


@router.post("/token")
async def request_call(
    body: Optional[CallTokenRequest] = None,
    caller: CallerIdentity = Depends(get_current_caller),
    admission: CallAdmissionService = Depends(get_admission_service)
) -> Dict[str, Any]:
    """
    Ask to talk to a pharmacist.

    Returns a live voice token when the caller is at the head of the queue,
    otherwise their position in line. Calling again while a request is
    active returns the same request.
    """
    handoff = parse_handoff(body.handoff if body else None)
    result = await admission.admit(caller, handoff)
    return result.to_wire()


@router.post("/access-token")
async def access_token(
    caller: CallerIdentity = Depends(get_current_caller),
    admission: CallAdmissionService = Depends(get_admission_service)
) -> Dict[str, Any]:
    """Voice token for the caller without queue bookkeeping"""
    result = admission.issue_direct_grant(caller)
    return {
        "token": result.token,
        "identity": result.identity,
        "displayName": result.display_name,
        "pharmacistRoutingIdentity": result.pharmacist_routing_identity,
    }


@router.get("/{call_id}")
async def get_call(
    call_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    reconciler: CallStatusReconciler = Depends(get_reconciler)
) -> Dict[str, Any]:
    call = await reconciler.get_for_user(call_id, caller.uid)
    return {"call": call.to_wire()}


@router.post("/{call_id}/status")
async def update_call_status(
    call_id: str,
    body: CallStatusRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    reconciler: CallStatusReconciler = Depends(get_reconciler)
) -> Dict[str, Any]:
    """Report the caller's side of the call (ringing, in_progress, completed, ...)"""
    call = await reconciler.apply(call_id, body.status, CallerRole.USER, caller_uid=caller.uid)
    return {"ok": True, "call": call.to_wire()}
