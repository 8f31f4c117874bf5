"""
Vonage Voice Bridge
Mints Vonage Client SDK tokens and routes in-app calls to the pharmacist console
"""
import json
import logging
import os
import uuid
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import jwt

from pharmacall.core.config import DEFAULT_PHARMACIST_IDENTITY, Settings
from pharmacall.core.errors import TelephonyNotConfigured
from pharmacall.domain.interfaces.telephony_provider import TelephonyProvider
from pharmacall.domain.models.call_request import CallStatus, utc_now
from pharmacall.domain.models.telephony import RoutingInstruction, TelephonyGrant
from pharmacall.domain.services.identity_resolver import sanitize_identity

logger = logging.getLogger(__name__)


REQUEST_ID_MAX_CHARS = 120
CALLER_NAME_MAX_CHARS = 80

# Client SDK users need these paths to place and receive in-app calls
CLIENT_SDK_ACL = {
    "paths": {
        "/*/users/**": {},
        "/*/conversations/**": {},
        "/*/sessions/**": {},
        "/*/devices/**": {},
        "/*/image/**": {},
        "/*/media/**": {},
        "/*/applications/**": {},
        "/*/push/**": {},
        "/*/knocking/**": {},
        "/*/legs/**": {},
    }
}

# Vonage leg event status to call status
VONAGE_STATUS_MAP = {
    "ringing": CallStatus.RINGING,
    "answered": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.MISSED,
    "rejected": CallStatus.MISSED,
    "timeout": CallStatus.MISSED,
    "unanswered": CallStatus.MISSED,
    "cancelled": CallStatus.CANCELLED,
    "failed": CallStatus.FAILED,
}


def _clip(value: Any, limit: int) -> str:
    return str(value or "").strip()[:limit]


class VonageVoiceBridge(TelephonyProvider):
    """
    Vonage Voice API bridge for in-app (Client SDK) calls.

    Requirements:
    - VONAGE_APPLICATION_ID
    - VONAGE_PRIVATE_KEY (PEM text) or VONAGE_PRIVATE_KEY_PATH
    """

    def __init__(self, settings: Settings, grant_ttl_seconds: int = 3600):
        self._application_id = settings.vonage_application_id
        self._private_key = self._load_private_key(settings)
        self._pharmacist_identity = sanitize_identity(
            settings.pharmacist_identity, DEFAULT_PHARMACIST_IDENTITY
        )
        self._api_base_url = settings.api_base_url.rstrip("/")
        self._webhook_secret = settings.webhook_secret
        self._grant_ttl = timedelta(seconds=grant_ttl_seconds)

    @staticmethod
    def _load_private_key(settings: Settings) -> Optional[str]:
        if settings.vonage_private_key:
            # .env files usually carry the PEM on one line with literal \n
            return settings.vonage_private_key.replace("\\n", "\n")

        path = settings.vonage_private_key_path
        if path and os.path.exists(path):
            with open(path, 'r') as f:
                return f.read()
        if path:
            logger.warning(f"Vonage private key not found at {path}")
        return None

    @property
    def name(self) -> str:
        return "vonage"

    @property
    def is_configured(self) -> bool:
        return bool(self._application_id and self._private_key)

    @property
    def pharmacist_identity(self) -> str:
        return self._pharmacist_identity

    def mint_grant(self, identity: str) -> TelephonyGrant:
        if not self.is_configured:
            raise TelephonyNotConfigured()

        issued_at = utc_now()
        expires_at = issued_at + self._grant_ttl
        claims = {
            "application_id": self._application_id,
            "sub": identity,
            "acl": CLIENT_SDK_ACL,
            "jti": str(uuid.uuid4()),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._private_key, algorithm="RS256")
        logger.debug(f"Minted Vonage grant for {identity}, expires {expires_at.isoformat()}")
        return TelephonyGrant(token=token, identity=identity, expires_at=expires_at)

    def route_incoming(self, params: Mapping[str, Any]) -> RoutingInstruction:
        """
        Build the connect instruction for an answer webhook.

        Reads `to`, `from_user`/`from`, and `request_id`/`caller_name`
        either at the top level or inside `custom_data` (set by the app
        when it calls serverCall).
        """
        custom = params.get("custom_data") or {}
        # Form and query webhooks carry custom_data as a JSON string
        if isinstance(custom, str):
            try:
                custom = json.loads(custom)
            except ValueError:
                logger.warning(f"Ignoring malformed custom_data on answer webhook: {custom[:80]!r}")
                custom = {}
        if not isinstance(custom, Mapping):
            custom = {}

        def pick(*keys: str) -> Any:
            for key in keys:
                for source in (custom, params):
                    if source.get(key):
                        return source.get(key)
            return None

        target = sanitize_identity(pick("to"), "") or self._pharmacist_identity
        caller_identity = sanitize_identity(pick("from_user", "from", "caller_identity"), "")
        request_id = _clip(pick("request_id", "requestId"), REQUEST_ID_MAX_CHARS)
        caller_name = _clip(pick("caller_name", "callerName"), CALLER_NAME_MAX_CHARS)

        parameters: Dict[str, str] = {}
        if caller_name:
            parameters["callerName"] = caller_name
        if caller_identity:
            parameters["callerIdentity"] = caller_identity
        if request_id:
            parameters["requestId"] = request_id

        logger.info(
            f"Routing inbound leg: from={caller_identity or '-'} to={target} request={request_id or '-'}"
        )
        return RoutingInstruction(
            target_identity=target,
            caller_identity=caller_identity or None,
            request_id=request_id or None,
            caller_name=caller_name or None,
            event_url=self._event_url(request_id),
            parameters=parameters,
        )

    def _event_url(self, request_id: str) -> str:
        query: Dict[str, str] = {}
        if request_id:
            query["request_id"] = request_id
        if self._webhook_secret:
            query["secret"] = self._webhook_secret
        url = f"{self._api_base_url}/api/v1/webhooks/vonage/event"
        return f"{url}?{urlencode(query)}" if query else url

    def map_leg_status(self, provider_status: str) -> Optional[CallStatus]:
        return VONAGE_STATUS_MAP.get(str(provider_status or "").strip().lower())
