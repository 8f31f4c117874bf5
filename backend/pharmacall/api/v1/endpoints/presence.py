"""
Presence Endpoint
Pharmacist availability for waiting users
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from pharmacall.api.v1.dependencies import get_current_caller, get_presence_service
from pharmacall.domain.models.caller import CallerIdentity
from pharmacall.domain.services.presence_service import PresenceService

router = APIRouter(prefix="/presence", tags=["presence"])


@router.get("")
async def read_presence(
    caller: CallerIdentity = Depends(get_current_caller),
    presence: PresenceService = Depends(get_presence_service)
) -> Dict[str, Any]:
    """
    Whether a pharmacist is online, how many calls are active and the
    estimated wait in minutes.
    """
    snapshot = await presence.read_presence()
    return snapshot.to_wire()
