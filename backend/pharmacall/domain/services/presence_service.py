"""
Presence Service
Pharmacist console heartbeat and the availability view shown to callers
"""
import logging
from datetime import datetime, timedelta
from typing import Callable

from pharmacall.core.errors import CallQueueError, StoreUnavailable
from pharmacall.domain.interfaces.call_record_store import CallRecordStore
from pharmacall.domain.interfaces.console_store import PresenceStore
from pharmacall.domain.models.call_request import utc_now
from pharmacall.domain.models.presence import PresenceSnapshot

logger = logging.getLogger(__name__)


def estimate_wait_minutes(active_calls: int, minutes_per_call: int) -> int:
    """Every call ahead of the newest one is assumed to take minutes_per_call."""
    return max(0, (active_calls - 1) * minutes_per_call)


class PresenceService:
    """
    Publishes and reads pharmacist console liveness.

    Args:
        presence_store: Singleton heartbeat storage
        call_store: Used to count active calls
        window_seconds: Heartbeat age below which the console is online
        minutes_per_call: Assumed service time for the wait estimate
    """

    def __init__(
        self,
        presence_store: PresenceStore,
        call_store: CallRecordStore,
        window_seconds: int = 45,
        minutes_per_call: int = 6,
        clock: Callable[[], datetime] = utc_now
    ):
        self._presence = presence_store
        self._calls = call_store
        self._window = timedelta(seconds=window_seconds)
        self._minutes_per_call = minutes_per_call
        self._clock = clock

    async def heartbeat(self) -> bool:
        """
        Record that the console is alive.

        Best-effort: failures are logged and reported as False.
        """
        try:
            await self._presence.upsert_heartbeat(self._clock())
            return True
        except CallQueueError as e:
            logger.warning(f"Presence heartbeat not recorded: {e}")
            return False

    async def read_presence(self) -> PresenceSnapshot:
        """
        Current availability.

        Returns a degraded offline snapshot when storage is unavailable.
        """
        try:
            record = await self._presence.get()
            active_calls = len(await self._calls.query_active_ordered())
        except StoreUnavailable as e:
            logger.warning(f"Presence unavailable, reporting offline: {e}")
            return PresenceSnapshot(
                online=False,
                active_calls=0,
                estimated_wait_minutes=0,
                degraded=True,
            )

        online = bool(
            record
            and record.updated_at
            and self._clock() - record.updated_at < self._window
        )
        return PresenceSnapshot(
            online=online,
            active_calls=active_calls,
            estimated_wait_minutes=estimate_wait_minutes(active_calls, self._minutes_per_call),
        )
