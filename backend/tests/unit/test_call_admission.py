"""
Unit tests for CallAdmissionService
"""
import asyncio

import jwt
import pytest

from pharmacall.core.errors import StoreUnavailable, TelephonyNotConfigured
from pharmacall.domain.models.call_request import CallStatus, CallerRole, Handoff
from pharmacall.domain.services.call_admission import CallAdmissionService, DEGRADED_MESSAGE
from pharmacall.domain.services.queue_rebalancer import QueueRebalancer
from pharmacall.infrastructure.storage.memory_store import InMemoryCallRecordStore


class UnavailableStore:
    """Call store whose backend is over quota"""

    async def query_active_ordered(self):
        raise StoreUnavailable()

    async def create(self, call):
        raise StoreUnavailable()

    async def get(self, call_id):
        raise StoreUnavailable()

    async def batch_update(self, updates):
        raise StoreUnavailable()


class YieldingCallStore(InMemoryCallRecordStore):
    """In-memory store that yields to the event loop like a network-backed one"""

    async def create(self, call):
        await asyncio.sleep(0)
        return await super().create(call)

    async def query_active_ordered(self):
        await asyncio.sleep(0)
        return await super().query_active_ordered()


class TestAdmission:

    @pytest.mark.asyncio
    async def test_first_caller_gets_live_token(self, admission, make_caller, rsa_key_pair):
        result = await admission.admit(make_caller("a"), Handoff(user_message="Rash since Monday"))

        assert result.queued is False
        assert result.queue_position == 1
        assert result.request_id
        assert result.identity == "user_a"
        assert result.display_name == "Jane Doe"
        assert result.pharmacist_routing_identity == "pharmacist_console"
        assert result.degraded is False

        _, public_pem = rsa_key_pair
        claims = jwt.decode(result.token, public_pem, algorithms=["RS256"])
        assert claims["sub"] == "user_a"

    @pytest.mark.asyncio
    async def test_three_callers_then_head_completes(
        self, admission, reconciler, call_store, clock, make_caller
    ):
        a = await admission.admit(make_caller("a"))
        clock.advance(1)
        b = await admission.admit(make_caller("b"))
        clock.advance(1)
        c = await admission.admit(make_caller("c"))

        assert (a.queued, a.queue_position) == (False, 1)
        assert (b.queued, b.queue_position) == (True, 2)
        assert (c.queued, c.queue_position) == (True, 3)
        assert b.token is None
        assert b.message == "All pharmacists are on active calls. You are position 2 in queue."

        await reconciler.apply(a.request_id, "in_progress", CallerRole.USER, caller_uid="a")
        await reconciler.apply(a.request_id, "completed", CallerRole.USER, caller_uid="a")

        promoted = await call_store.get(b.request_id)
        assert promoted.queue_position == 1
        assert promoted.status == CallStatus.REQUESTED
        third = await call_store.get(c.request_id)
        assert third.queue_position == 2
        assert third.status == CallStatus.QUEUED

    @pytest.mark.asyncio
    async def test_promoted_caller_gets_token_on_retry(self, admission, reconciler, clock, make_caller):
        a = await admission.admit(make_caller("a"))
        clock.advance(1)
        b = await admission.admit(make_caller("b"))
        assert b.queued is True

        await reconciler.apply(a.request_id, "cancelled", CallerRole.USER, caller_uid="a")
        retry = await admission.admit(make_caller("b"))

        assert retry.queued is False
        assert retry.request_id == b.request_id
        assert retry.token

    @pytest.mark.asyncio
    async def test_readmission_reuses_active_request(self, admission, call_store, clock, make_caller):
        first = await admission.admit(make_caller("a"), Handoff(user_message="first"))
        clock.advance(5)
        second = await admission.admit(make_caller("a"), Handoff(user_message="second"))

        assert second.request_id == first.request_id
        assert await call_store.count_all() == 1
        stored = await call_store.get(first.request_id)
        assert stored.handoff.user_message == "first"

    @pytest.mark.asyncio
    async def test_new_request_after_previous_one_ended(self, admission, reconciler, call_store, make_caller):
        first = await admission.admit(make_caller("a"))
        await reconciler.apply(first.request_id, "cancelled", CallerRole.USER, caller_uid="a")

        second = await admission.admit(make_caller("a"))

        assert second.request_id != first.request_id
        assert second.queue_position == 1
        assert await call_store.count_all() == 2

    @pytest.mark.asyncio
    async def test_record_carries_caller_details(self, admission, call_store, make_caller):
        result = await admission.admit(make_caller("a", "Ada Lovelace"), Handoff(summarized_logs="2 logs"))

        stored = await call_store.get(result.request_id)
        assert stored.user_id == "a"
        assert stored.caller_first_name == "Ada"
        assert stored.caller_last_name == "Lovelace"
        assert stored.user_email == "a@example.com"
        assert stored.status == CallStatus.REQUESTED
        assert stored.handoff.summarized_logs == "2 logs"

    @pytest.mark.asyncio
    async def test_concurrent_admissions_get_distinct_positions(self, admission, call_store, make_caller):
        callers = [make_caller(f"u{i}") for i in range(6)]

        results = await asyncio.gather(*(admission.admit(caller) for caller in callers))

        active = await call_store.query_active_ordered()
        assert sorted(c.queue_position for c in active) == list(range(1, 7))
        assert len({r.request_id for r in results}) == 6
        assert sum(1 for r in results if not r.queued) == 1

    @pytest.mark.asyncio
    async def test_interleaved_admissions_leave_one_requested_head(self, telephony, clock, make_caller):
        store = YieldingCallStore(clock=clock)
        service = CallAdmissionService(store, QueueRebalancer(store, clock=clock), telephony)

        results = await asyncio.gather(*(service.admit(make_caller(uid)) for uid in ("a", "b", "c")))

        assert [(r.queued, r.queue_position) for r in results] == [(False, 1), (True, 2), (True, 3)]
        active = await store.query_active_ordered()
        assert [(c.user_id, c.status, c.queue_position) for c in active] == [
            ("a", CallStatus.REQUESTED, 1),
            ("b", CallStatus.QUEUED, 2),
            ("c", CallStatus.QUEUED, 3),
        ]


class TestDegradedMode:

    @pytest.mark.asyncio
    async def test_store_unavailable_connects_directly(self, telephony, clock, make_caller, rsa_key_pair):
        store = UnavailableStore()
        service = CallAdmissionService(store, QueueRebalancer(store, clock=clock), telephony)

        result = await service.admit(make_caller("a"))

        assert result.degraded is True
        assert result.queued is False
        assert result.request_id is None
        assert result.message == DEGRADED_MESSAGE
        _, public_pem = rsa_key_pair
        claims = jwt.decode(result.token, public_pem, algorithms=["RS256"])
        assert claims["sub"] == "user_a"

    @pytest.mark.asyncio
    async def test_fails_closed_without_telephony(self, unconfigured_telephony, clock, make_caller):
        store = UnavailableStore()
        service = CallAdmissionService(store, QueueRebalancer(store, clock=clock), unconfigured_telephony)

        with pytest.raises(TelephonyNotConfigured):
            await service.admit(make_caller("a"))

    @pytest.mark.asyncio
    async def test_no_record_written_without_telephony(
        self, call_store, rebalancer, unconfigured_telephony, make_caller
    ):
        service = CallAdmissionService(call_store, rebalancer, unconfigured_telephony)

        with pytest.raises(TelephonyNotConfigured):
            await service.admit(make_caller("a"))
        assert await call_store.count_all() == 0


class TestDirectGrant:

    def test_issue_direct_grant(self, admission, make_caller):
        result = admission.issue_direct_grant(make_caller("a"))
        assert result.token
        assert result.identity == "user_a"
        assert result.degraded is False

    def test_direct_grant_requires_telephony(self, call_store, rebalancer, unconfigured_telephony, make_caller):
        service = CallAdmissionService(call_store, rebalancer, unconfigured_telephony)
        with pytest.raises(TelephonyNotConfigured):
            service.issue_direct_grant(make_caller("a"))
