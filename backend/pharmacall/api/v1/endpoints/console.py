"""
Pharmacist Console Endpoints
Staff-facing queue, presence, chat and admin endpoints behind HTTP Basic auth
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from pharmacall.api.v1.dependencies import (
    get_console_service,
    get_presence_service,
    get_reconciler,
    get_stores,
    get_telephony,
    require_console,
)
from pharmacall.core.config import QueueTuning, get_queue_tuning
from pharmacall.core.errors import InvalidArgument, TelephonyNotConfigured
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.domain.models.call_request import CallStatus, CallerRole
from pharmacall.domain.services.call_status_reconciler import CallStatusReconciler
from pharmacall.domain.services.console_service import ConsoleService
from pharmacall.domain.services.presence_service import PresenceService
from pharmacall.infrastructure.storage.factory import Stores

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/pharmacist",
    tags=["pharmacist"],
    dependencies=[Depends(require_console)],
)

PHARMACIST_REPLIED = "Pharmacist replied"


class ConsoleStatusRequest(BaseModel):
    """Body of POST /pharmacist/calls/{id}/status"""
    status: Optional[str] = None


class MessageRequest(BaseModel):
    content: Optional[str] = None


class SessionStatusRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_text: Optional[str] = None
    queue_position: Optional[int] = None


# ============================================
# Call queue
# ============================================

@router.get("/calls")
async def list_calls(
    stores: Stores = Depends(get_stores),
    tuning: QueueTuning = Depends(get_queue_tuning)
) -> Dict[str, Any]:
    """Most recent call requests, newest first"""
    calls = await stores.calls.list_recent(tuning.recent_calls_limit)
    return {"calls": [call.to_wire() for call in calls]}


@router.post("/calls/{call_id}/status")
async def update_call_status(
    call_id: str,
    body: Optional[ConsoleStatusRequest] = None,
    reconciler: CallStatusReconciler = Depends(get_reconciler)
) -> Dict[str, Any]:
    """Console call controls. Without a status the call is accepted (in_progress)."""
    requested = (body.status if body else None) or CallStatus.IN_PROGRESS.value
    call = await reconciler.apply(call_id, requested, CallerRole.STAFF)
    return {"ok": True, "call": call.to_wire()}


# ============================================
# Presence and voice token
# ============================================

@router.post("/presence/heartbeat")
async def heartbeat(presence: PresenceService = Depends(get_presence_service)) -> Dict[str, bool]:
    return {"ok": await presence.heartbeat()}


@router.get("/presence")
async def read_presence(presence: PresenceService = Depends(get_presence_service)) -> Dict[str, Any]:
    snapshot = await presence.read_presence()
    return snapshot.to_wire()


@router.post("/token")
async def console_token(telephony: TelephonyProvider = Depends(get_telephony)) -> Dict[str, str]:
    """Voice token letting the console receive calls as the pharmacist identity"""
    if not telephony.is_configured:
        raise TelephonyNotConfigured()
    grant = telephony.mint_grant(telephony.pharmacist_identity)
    return {"token": grant.token, "identity": grant.identity}


# ============================================
# Chat sessions
# ============================================

@router.get("/sessions")
async def list_sessions(
    stores: Stores = Depends(get_stores),
    tuning: QueueTuning = Depends(get_queue_tuning)
) -> Dict[str, Any]:
    sessions = await stores.chat.list_sessions(tuning.sessions_limit)
    return {"sessions": [session.to_wire() for session in sessions]}


@router.get("/sessions/{session_id}/messages")
async def list_messages(session_id: str, stores: Stores = Depends(get_stores)) -> Dict[str, Any]:
    messages = await stores.chat.list_messages(session_id)
    return {"messages": [message.to_wire() for message in messages]}


@router.post("/sessions/{session_id}/messages")
async def send_message(
    session_id: str,
    body: MessageRequest,
    stores: Stores = Depends(get_stores)
) -> Dict[str, Any]:
    content = (body.content or "").strip()
    if not content:
        raise InvalidArgument("Message content is required.")

    message = await stores.chat.add_message(
        session_id,
        content,
        role="pharmacist",
        status_text=PHARMACIST_REPLIED,
    )
    return {"ok": True, "message": message.to_wire()}


@router.post("/sessions/{session_id}/status")
async def update_session_status(
    session_id: str,
    body: SessionStatusRequest,
    stores: Stores = Depends(get_stores)
) -> Dict[str, Any]:
    session = await stores.chat.update_session_status(session_id, body.status_text, body.queue_position)
    return {"ok": True, "session": session.to_wire()}


# ============================================
# Admin
# ============================================

@router.get("/diagnostics")
async def diagnostics(console: ConsoleService = Depends(get_console_service)) -> Dict[str, Any]:
    return await console.diagnostics()


@router.post("/admin/reset")
async def reset_all(console: ConsoleService = Depends(get_console_service)) -> Dict[str, Any]:
    """Delete every session, message, call request and presence record"""
    summary = await console.reset_all()
    return {"ok": True, **summary.to_wire()}
