"""
Webhooks API Endpoints
Handles answer and event webhooks from the telephony provider (Vonage)
"""
import logging
import secrets
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from pharmacall.api.v1.dependencies import get_reconciler, get_telephony
from pharmacall.core.config import Settings, get_settings
from pharmacall.core.errors import CallQueueError, PermissionDenied, TelephonyNotConfigured
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.domain.models.call_request import CallerRole
from pharmacall.domain.services.call_status_reconciler import CallStatusReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def secret_matches(settings: Settings, provided: Optional[str]) -> bool:
    """True when no webhook secret is configured or the provided one matches"""
    if not settings.webhook_secret:
        return True
    return secrets.compare_digest((provided or "").encode("utf-8"), settings.webhook_secret.encode("utf-8"))


async def read_webhook_params(request: Request) -> Dict[str, Any]:
    """Query string merged with a JSON or form body (body wins)"""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return params

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        body = await request.json()
        if isinstance(body, dict):
            params.update(body)
    elif "form" in content_type:
        form = await request.form()
        params.update(dict(form))
    return params


@router.api_route("/vonage/answer", methods=["GET", "POST"])
async def vonage_answer(
    request: Request,
    secret: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    telephony: TelephonyProvider = Depends(get_telephony)
) -> List[Dict[str, Any]]:
    """
    Handle Vonage answer webhook for in-app calls.

    Returns an NCCO that bridges the leg to the pharmacist console (or the
    dialed identity), with the caller's name, identity and request id
    attached so the console can match the leg to a call request.
    """
    if not secret_matches(settings, secret):
        raise PermissionDenied("Invalid webhook secret.")
    if not telephony.is_configured:
        raise TelephonyNotConfigured()

    params = await read_webhook_params(request)
    logger.info(f"Vonage answer webhook: uuid={params.get('uuid')}, to={params.get('to')}")

    instruction = telephony.route_incoming(params)
    return instruction.to_ncco()


@router.post("/vonage/event")
async def vonage_event(
    request: Request,
    request_id: Optional[str] = Query(None),
    secret: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    telephony: TelephonyProvider = Depends(get_telephony),
    reconciler: CallStatusReconciler = Depends(get_reconciler)
) -> Dict[str, str]:
    """
    Handle Vonage leg events.

    Leg status is mapped to a call status and applied with the telephony
    role. Always acknowledged: failures are logged, never returned.
    """
    if not secret_matches(settings, secret):
        logger.warning("Vonage event with invalid webhook secret ignored")
        return {"message": "Event received"}

    try:
        data = await read_webhook_params(request)
    except ValueError as e:
        logger.warning(f"Unreadable Vonage event body: {e}")
        return {"message": "Event received (unreadable)"}

    vonage_status = data.get("status")
    call_id = request_id or data.get("request_id")
    logger.info(f"Vonage event: uuid={data.get('uuid')}, status={vonage_status}, request={call_id}")

    if not call_id or not vonage_status:
        return {"message": "Event received (missing data)"}

    call_status = telephony.map_leg_status(vonage_status)
    if call_status is None:
        return {"message": f"Event received: {vonage_status}"}

    try:
        await reconciler.apply(call_id, call_status, CallerRole.TELEPHONY)
    except CallQueueError as e:
        logger.warning(f"Vonage event {vonage_status} not applied to {call_id}: {e.message}")
        return {"message": f"Event received: {vonage_status}"}
    except Exception as e:
        logger.error(f"Error in vonage_event: {e}", exc_info=True)
        return {"message": "Event received (error processing)"}

    return {"message": f"Event processed: {vonage_status}"}
