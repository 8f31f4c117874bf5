"""
Identity Resolver
Turns a bearer token into a stable caller identity and display name
"""
import logging
import re
import time
from typing import Any, Dict, Optional, Tuple

from pharmacall.core.errors import Unauthenticated
from pharmacall.domain.models.caller import CallerIdentity

logger = logging.getLogger(__name__)


IDENTITY_MAX_CHARS = 120
CALLER_NAME_MAX_CHARS = 80
_IDENTITY_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_identity(identity: Any, fallback: str = "") -> str:
    """
    Make a value safe to embed as a telephony routing address.

    Every character outside [A-Za-z0-9_.-] becomes "_" and the result is
    capped at 120 characters. Empty results fall back to `fallback`.
    """
    cleaned = _IDENTITY_UNSAFE.sub("_", str(identity or "").strip())[:IDENTITY_MAX_CHARS]
    return cleaned or fallback


def parse_caller_name_parts(full_name: str) -> Tuple[str, str]:
    """Split a display name into (first, last); empty names become ("User", "")."""
    pieces = str(full_name or "").split()
    if not pieces:
        return "User", ""
    return pieces[0], " ".join(pieces[1:])


def resolve_caller_name(uid: str, email: Optional[str], metadata: Optional[Dict[str, Any]]) -> str:
    """
    Best display name for a caller.

    Order: given + family name, full/display name, email local part,
    then "User <uid prefix>".
    """
    metadata = metadata or {}
    from_parts = " ".join(
        str(part).strip()
        for part in (metadata.get("given_name"), metadata.get("family_name"))
        if part and str(part).strip()
    )
    if from_parts:
        return from_parts[:CALLER_NAME_MAX_CHARS]

    display = str(metadata.get("full_name") or metadata.get("name") or "").strip()
    if display:
        return display[:CALLER_NAME_MAX_CHARS]

    email = str(email or "").strip()
    if "@" in email:
        return email.split("@")[0][:CALLER_NAME_MAX_CHARS]

    return f"User {str(uid or 'unknown')[:6]}"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a "Bearer <token>" header, else None"""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class IdentityResolver:
    """
    Verifies bearer tokens against Supabase Auth.

    Args:
        auth_client: Object exposing get_user(token) (supabase.Client.auth)
    """

    def __init__(self, auth_client):
        self._auth = auth_client

    async def resolve(self, authorization: Optional[str]) -> CallerIdentity:
        """
        Resolve the caller behind an Authorization header.

        Raises:
            Unauthenticated: If the header is missing, malformed or the token is invalid
        """
        token = extract_bearer_token(authorization)
        if not token:
            raise Unauthenticated("Missing bearer token.")

        try:
            user_response = self._auth.get_user(token)
        except Exception as e:
            logger.info(f"Token verification failed: {e}")
            raise Unauthenticated("Invalid or expired token.") from e

        user = getattr(user_response, "user", None) if user_response else None
        if not user or not getattr(user, "id", None):
            raise Unauthenticated("Invalid or expired token.")

        uid = str(user.id)
        email = getattr(user, "email", None) or ""
        metadata = getattr(user, "user_metadata", None) or {}

        caller_name = resolve_caller_name(uid, email, metadata)
        first_name, last_name = parse_caller_name_parts(caller_name)

        return CallerIdentity(
            uid=uid,
            identity=sanitize_identity(f"user_{uid}", f"user_{int(time.time() * 1000)}"),
            caller_name=caller_name,
            first_name=first_name,
            last_name=last_name,
            user_email=email,
        )
