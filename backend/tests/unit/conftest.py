"""
Shared fixtures: a manual clock, in-memory stores and a Vonage bridge
signing with a throwaway RSA key
"""
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from pharmacall.core.config import Settings
from pharmacall.domain.models.caller import CallerIdentity
from pharmacall.domain.services.call_admission import CallAdmissionService
from pharmacall.domain.services.call_status_reconciler import CallStatusReconciler
from pharmacall.domain.services.queue_rebalancer import QueueRebalancer
from pharmacall.infrastructure.storage.memory_store import (
    InMemoryCallRecordStore,
    InMemoryChatSessionStore,
    InMemoryPresenceStore,
)
from pharmacall.infrastructure.telephony.vonage_voice import VonageVoiceBridge


class ManualClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def build_caller(uid: str, name: str = "Jane Doe") -> CallerIdentity:
    first, _, last = name.partition(" ")
    return CallerIdentity(
        uid=uid,
        identity=f"user_{uid}",
        caller_name=name,
        first_name=first,
        last_name=last,
        user_email=f"{uid}@example.com",
    )


def build_settings(**overrides) -> Settings:
    values = {
        "store_backend": "memory",
        "api_base_url": "https://api.example.com",
        "pharmacist_identity": "pharmacist_console",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session")
def rsa_key_pair():
    """(private PEM, public PEM) generated once per test session"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def call_store(clock):
    return InMemoryCallRecordStore(clock=clock)


@pytest.fixture
def presence_store():
    return InMemoryPresenceStore()


@pytest.fixture
def chat_store(clock):
    return InMemoryChatSessionStore(clock=clock)


@pytest.fixture
def telephony(rsa_key_pair):
    private_pem, _ = rsa_key_pair
    settings = build_settings(
        vonage_application_id="app-123",
        vonage_private_key=private_pem,
    )
    return VonageVoiceBridge(settings)


@pytest.fixture
def unconfigured_telephony():
    return VonageVoiceBridge(build_settings())


@pytest.fixture
def rebalancer(call_store, clock):
    return QueueRebalancer(call_store, clock=clock)


@pytest.fixture
def admission(call_store, rebalancer, telephony):
    return CallAdmissionService(call_store, rebalancer, telephony)


@pytest.fixture
def reconciler(call_store, rebalancer, clock):
    return CallStatusReconciler(call_store, rebalancer, clock=clock)


@pytest.fixture
def make_caller():
    return build_caller


@pytest.fixture
def make_settings():
    return build_settings
