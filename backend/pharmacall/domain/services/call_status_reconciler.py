"""
Call Status Reconciler
Applies status changes reported by the caller, the console or the telephony leg
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pharmacall.core.errors import NotFound, PermissionDenied
from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.models.call_request import CallRequest, CallStatus, CallerRole, utc_now
from pharmacall.domain.services.call_state_machine import (
    TransitionDecision,
    check_requested_status,
    decide_transition,
    parse_status,
)
from pharmacall.domain.services.queue_rebalancer import QueueRebalancer

logger = logging.getLogger(__name__)


class CallStatusReconciler:
    """
    Single entry point for call status transitions.

    Users may only touch their own records; staff and the telephony
    bridge may act on any record. Every applied transition is followed by
    a queue rebalance.
    """

    def __init__(
        self,
        store: CallRecordStore,
        rebalancer: QueueRebalancer,
        clock: Callable[[], datetime] = utc_now
    ):
        self._store = store
        self._rebalancer = rebalancer
        self._clock = clock

    async def get_for_user(self, call_id: str, caller_uid: str) -> CallRequest:
        """
        Snapshot of a call request owned by `caller_uid`.

        Raises:
            NotFound: Unknown id
            PermissionDenied: Record belongs to another user
        """
        call = await self._store.get(call_id)
        if call is None:
            raise NotFound("Call request not found.")
        if call.user_id != caller_uid:
            raise PermissionDenied("You cannot access this call request.")
        return call

    async def apply(
        self,
        call_id: str,
        status: Any,
        role: CallerRole,
        caller_uid: Optional[str] = None
    ) -> CallRequest:
        """
        Apply a status transition.

        Args:
            call_id: Call request id
            status: Requested status (CallStatus or its string value)
            role: Who is reporting the change
            caller_uid: Required for CallerRole.USER, the reporting user

        Returns:
            The record after the transition (unchanged for no-ops)

        Raises:
            InvalidArgument: Status unknown, outside the role's whitelist, or not allowed from the current status
            NotFound: Unknown id
            PermissionDenied: A user reporting on a record they do not own
        """
        requested = parse_status(status)
        check_requested_status(requested, role)

        current = await self._store.get(call_id)
        if current is None:
            raise NotFound("Call request not found.")

        if role == CallerRole.USER and current.user_id != caller_uid:
            raise PermissionDenied("You cannot update this call request.")

        decision = decide_transition(current.status, requested, role)
        if decision == TransitionDecision.NOOP:
            logger.debug(f"Call {call_id} already {requested.value}, nothing to do ({role.value})")
            return current

        fields = self._transition_fields(current, requested)
        updated = await self._store.update_fields(call_id, fields)
        logger.info(
            f"Call {call_id}: {current.status.value} -> {requested.value} (by {role.value})"
        )

        await self._rebalancer.rebalance()
        return await self._store.get(call_id) or updated

    def _transition_fields(self, current: CallRequest, requested: CallStatus) -> Dict[str, Any]:
        now = self._clock()
        fields: Dict[str, Any] = {"status": requested, "updated_at": now}

        if requested == CallStatus.IN_PROGRESS:
            fields["started_at"] = current.started_at or now
            fields["queue_position"] = 1

        if requested.is_terminal:
            fields["ended_at"] = now
            fields["queue_position"] = None

        return fields
