"""
Unit tests for the presence heartbeat and availability reader
"""
import pytest

from pharmacall.core.errors import StoreUnavailable
from pharmacall.domain.models.call_request import CallRequest
from pharmacall.domain.services.presence_service import PresenceService, estimate_wait_minutes


class BrokenPresenceStore:
    async def get(self):
        raise StoreUnavailable()

    async def upsert_heartbeat(self, now):
        raise StoreUnavailable()


@pytest.fixture
def presence(presence_store, call_store, clock):
    return PresenceService(presence_store, call_store, window_seconds=45, minutes_per_call=6, clock=clock)


class TestEstimateWait:

    @pytest.mark.parametrize("active,expected", [(0, 0), (1, 0), (2, 6), (4, 18)])
    def test_estimate(self, active, expected):
        assert estimate_wait_minutes(active, 6) == expected

    def test_custom_minutes_per_call(self):
        assert estimate_wait_minutes(3, 10) == 20


class TestPresenceService:

    @pytest.mark.asyncio
    async def test_offline_without_heartbeat(self, presence):
        snapshot = await presence.read_presence()
        assert snapshot.online is False
        assert snapshot.degraded is False

    @pytest.mark.asyncio
    async def test_liveness_window(self, presence, clock):
        assert await presence.heartbeat() is True

        clock.advance(40)
        assert (await presence.read_presence()).online is True

        clock.advance(10)
        assert (await presence.read_presence()).online is False

    @pytest.mark.asyncio
    async def test_window_boundary_is_offline(self, presence, clock):
        await presence.heartbeat()
        clock.advance(45)
        assert (await presence.read_presence()).online is False

    @pytest.mark.asyncio
    async def test_counts_active_calls(self, presence, call_store):
        for uid in ("a", "b", "c"):
            await call_store.create(CallRequest(user_id=uid, identity=f"user_{uid}"))
        await call_store.create(CallRequest(user_id="d", identity="user_d", status="completed"))

        snapshot = await presence.read_presence()

        assert snapshot.active_calls == 3
        assert snapshot.estimated_wait_minutes == 12
        assert snapshot.to_wire() == {
            "online": False,
            "activeCalls": 3,
            "estimatedWaitMinutes": 12,
            "degraded": False,
        }

    @pytest.mark.asyncio
    async def test_heartbeat_failure_is_reported_not_raised(self, call_store, clock):
        presence = PresenceService(BrokenPresenceStore(), call_store, clock=clock)
        assert await presence.heartbeat() is False

    @pytest.mark.asyncio
    async def test_store_unavailable_reports_degraded_offline(self, call_store, clock):
        presence = PresenceService(BrokenPresenceStore(), call_store, clock=clock)

        snapshot = await presence.read_presence()

        assert snapshot.online is False
        assert snapshot.active_calls == 0
        assert snapshot.estimated_wait_minutes == 0
        assert snapshot.degraded is True
