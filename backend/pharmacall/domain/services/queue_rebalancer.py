"""
Queue Rebalancer
Recomputes queue positions over the active call set and promotes the head
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.models.call_request import CallRequest, CallStatus, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueUpdate:
    """One record's change as decided by a rebalance pass"""
    call_id: str
    queue_position: int
    status: Optional[CallStatus] = None

    def to_fields(self, now: datetime) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"queue_position": self.queue_position, "updated_at": now}
        if self.status is not None:
            fields["status"] = self.status
        return fields


def compute_queue_updates(active_calls: Sequence[CallRequest]) -> List[QueueUpdate]:
    """
    Rank active calls and return only the records that must change.

    The snapshot is expected in created_at order with ties in arrival order;
    the sort is stable so that order survives. Rank 0 is promoted from
    queued to requested; a requested record behind it drops back to queued
    (two racing admissions can both create one). Ringing and in_progress
    records keep their status. Pure: calling it on its own output state
    yields [].
    """
    # Records without created_at rank first
    ordered = sorted(
        (call for call in active_calls if call.is_active),
        key=lambda call: call.created_at.timestamp() if call.created_at else 0.0,
    )

    updates: List[QueueUpdate] = []
    for rank, call in enumerate(ordered):
        position = rank + 1
        new_status = None
        if rank == 0 and call.status == CallStatus.QUEUED:
            new_status = CallStatus.REQUESTED
        elif rank > 0 and call.status == CallStatus.REQUESTED:
            new_status = CallStatus.QUEUED

        if call.queue_position != position or new_status is not None:
            updates.append(QueueUpdate(call_id=call.id, queue_position=position, status=new_status))

    return updates


class QueueRebalancer:
    """
    Applies compute_queue_updates to the stored active set.

    Holds no state and takes no locks; every pass recomputes from created_at,
    so a crash between two writes heals on the next call.
    """

    def __init__(self, store: CallRecordStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    async def rebalance(self) -> List[QueueUpdate]:
        """
        Renumber the queue and promote its head.

        Returns:
            The updates that were written (empty when already consistent)
        """
        active_calls = await self._store.query_active_ordered()
        updates = compute_queue_updates(active_calls)
        if not updates:
            return []

        now = self._clock()
        await self._store.batch_update([(update.call_id, update.to_fields(now)) for update in updates])

        promoted = [update.call_id for update in updates if update.status == CallStatus.REQUESTED]
        logger.info(
            f"Queue rebalanced: active={len(active_calls)}, writes={len(updates)}, "
            f"promoted={promoted or 'none'}"
        )
        return updates
