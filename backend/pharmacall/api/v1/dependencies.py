"""
API Dependencies
Shared dependencies for authentication, store access and service wiring
"""
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from supabase import Client

from pharmacall.core.config import QueueTuning, Settings, get_queue_tuning, get_settings
from pharmacall.core.errors import ConsoleNotConfigured
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.domain.models.caller import CallerIdentity
from pharmacall.domain.services.call_admission import CallAdmissionService
from pharmacall.domain.services.call_status_reconciler import CallStatusReconciler
from pharmacall.domain.services.console_service import ConsoleService
from pharmacall.domain.services.identity_resolver import IdentityResolver
from pharmacall.domain.services.presence_service import PresenceService
from pharmacall.domain.services.queue_rebalancer import QueueRebalancer
from pharmacall.infrastructure.storage.factory import StoreFactory, Stores
from pharmacall.infrastructure.telephony.factory import TelephonyFactory


console_basic = HTTPBasic(auto_error=False)


def get_supabase(settings: Settings = Depends(get_settings)) -> Client:
    """
    Get Supabase client with validation.

    Raises:
        StoreNotConfigured: If Supabase URL or SERVICE_KEY is not configured
    """
    return StoreFactory.supabase_client(settings)


def get_stores(settings: Settings = Depends(get_settings)) -> Stores:
    """Call, presence and chat stores for the configured backend"""
    return StoreFactory.create(settings)


def get_telephony(
    settings: Settings = Depends(get_settings),
    tuning: QueueTuning = Depends(get_queue_tuning)
) -> TelephonyProvider:
    return TelephonyFactory.create("vonage", settings, grant_ttl_seconds=tuning.grant_ttl_seconds)


def get_identity_resolver(supabase: Client = Depends(get_supabase)) -> IdentityResolver:
    return IdentityResolver(supabase.auth)


async def get_current_caller(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    resolver: IdentityResolver = Depends(get_identity_resolver)
) -> CallerIdentity:
    """
    Dependency to get the verified caller from the bearer token.

    Raises:
        Unauthenticated: If the token is missing or invalid
    """
    return await resolver.resolve(authorization)


def require_console(
    credentials: Optional[HTTPBasicCredentials] = Depends(console_basic),
    settings: Settings = Depends(get_settings)
) -> str:
    """
    Dependency guarding the pharmacist console (HTTP Basic).

    Returns:
        The authenticated console username

    Raises:
        ConsoleNotConfigured: If PHARMACIST_USER / PHARMACIST_PASS are unset
        HTTPException: 401 without credentials, 403 with wrong credentials
    """
    if not settings.console_configured:
        raise ConsoleNotConfigured()

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Basic"},
        )

    user_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.pharmacist_user.encode("utf-8")
    )
    pass_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.pharmacist_pass.encode("utf-8")
    )
    if not (user_ok and pass_ok):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid credentials.",
        )
    return credentials.username


def get_rebalancer(stores: Stores = Depends(get_stores)) -> QueueRebalancer:
    return QueueRebalancer(stores.calls)


def get_admission_service(
    stores: Stores = Depends(get_stores),
    rebalancer: QueueRebalancer = Depends(get_rebalancer),
    telephony: TelephonyProvider = Depends(get_telephony)
) -> CallAdmissionService:
    return CallAdmissionService(stores.calls, rebalancer, telephony)


def get_reconciler(
    stores: Stores = Depends(get_stores),
    rebalancer: QueueRebalancer = Depends(get_rebalancer)
) -> CallStatusReconciler:
    return CallStatusReconciler(stores.calls, rebalancer)


def get_presence_service(
    stores: Stores = Depends(get_stores),
    tuning: QueueTuning = Depends(get_queue_tuning)
) -> PresenceService:
    return PresenceService(
        stores.presence,
        stores.calls,
        window_seconds=tuning.presence_window_seconds,
        minutes_per_call=tuning.minutes_per_call,
    )


def get_console_service(stores: Stores = Depends(get_stores)) -> ConsoleService:
    return ConsoleService(stores.calls, stores.presence, stores.chat)
