"""
Call Admission Service
Entry point for a user asking to talk to a pharmacist
"""
import logging
from typing import Optional, Tuple

from pharmacall.core.errors import StoreUnavailable, TelephonyNotConfigured
from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.domain.models.admission import AdmissionResult
from pharmacall.domain.models.call_request import CallRequest, CallStatus, Handoff
from pharmacall.domain.models.caller import CallerIdentity
from pharmacall.domain.services.queue_rebalancer import QueueRebalancer

logger = logging.getLogger(__name__)


DEGRADED_MESSAGE = "Queue service is temporarily unavailable. We are connecting you directly."


def queued_message(position: int) -> str:
    return f"All pharmacists are on active calls. You are position {position} in queue."


class CallAdmissionService:
    """
    Admits callers into the single global call queue.

    Responsibilities:
    - Enforce one active call request per user (re-admission reuses it)
    - Create the request as requested (head of queue) or queued
    - Hand out a voice grant only to the head of the queue
    - Bypass the queue when storage is unavailable but telephony works
    """

    def __init__(
        self,
        store: CallRecordStore,
        rebalancer: QueueRebalancer,
        telephony: TelephonyProvider
    ):
        self._store = store
        self._rebalancer = rebalancer
        self._telephony = telephony

    async def admit(self, caller: CallerIdentity, handoff: Optional[Handoff] = None) -> AdmissionResult:
        """
        Admit or re-admit a caller.

        Args:
            caller: Verified caller identity
            handoff: Context for the pharmacist (only stored on first admission)

        Returns:
            AdmissionResult with a live token (position 1) or a queue acknowledgement

        Raises:
            TelephonyNotConfigured: If voice grants cannot be minted at all
        """
        if not self._telephony.is_configured:
            raise TelephonyNotConfigured()

        try:
            request_id, position = await self._admit_to_queue(caller, handoff or Handoff())
        except StoreUnavailable as e:
            logger.warning(f"Call queue unavailable, connecting {caller.uid} directly: {e}")
            return self._direct_result(caller, DEGRADED_MESSAGE)

        if position > 1:
            logger.info(f"Caller {caller.uid} queued: request={request_id}, position={position}")
            return AdmissionResult(
                queued=True,
                request_id=request_id,
                queue_position=position,
                message=queued_message(position),
            )

        grant = self._telephony.mint_grant(caller.identity)
        logger.info(f"Caller {caller.uid} at head of queue: request={request_id}")
        return AdmissionResult(
            queued=False,
            request_id=request_id,
            queue_position=1,
            token=grant.token,
            identity=caller.identity,
            display_name=caller.caller_name,
            pharmacist_routing_identity=self._telephony.pharmacist_identity,
        )

    async def _admit_to_queue(self, caller: CallerIdentity, handoff: Handoff) -> Tuple[str, int]:
        """Returns (request_id, authoritative queue position)."""
        await self._rebalancer.rebalance()
        active_calls = await self._store.query_active_ordered()

        for rank, call in enumerate(active_calls):
            if call.user_id == caller.uid:
                logger.info(f"Re-admission for {caller.uid}: reusing request {call.id}")
                return call.id, call.queue_position or rank + 1

        apparent_position = len(active_calls) + 1
        created = await self._store.create(CallRequest(
            user_id=caller.uid,
            caller_name=caller.caller_name,
            caller_first_name=caller.first_name,
            caller_last_name=caller.last_name,
            user_email=caller.user_email,
            identity=caller.identity,
            handoff=handoff,
            status=CallStatus.REQUESTED if apparent_position == 1 else CallStatus.QUEUED,
            queue_position=apparent_position,
        ))

        # Concurrent admissions can both see position 1; created_at decides
        await self._rebalancer.rebalance()
        refreshed = await self._store.get(created.id)
        position = refreshed.queue_position if refreshed and refreshed.queue_position else apparent_position
        return created.id, position

    def issue_direct_grant(self, caller: CallerIdentity) -> AdmissionResult:
        """
        Voice grant for the caller without any queue bookkeeping.

        Raises:
            TelephonyNotConfigured: If voice grants cannot be minted
        """
        if not self._telephony.is_configured:
            raise TelephonyNotConfigured()
        grant = self._telephony.mint_grant(caller.identity)
        return AdmissionResult(
            queued=False,
            queue_position=1,
            token=grant.token,
            identity=caller.identity,
            display_name=caller.caller_name,
            pharmacist_routing_identity=self._telephony.pharmacist_identity,
        )

    def _direct_result(self, caller: CallerIdentity, message: str) -> AdmissionResult:
        result = self.issue_direct_grant(caller)
        result.degraded = True
        result.message = message
        return result
