"""
Error Taxonomy
Domain errors raised by the call queue and mapped to HTTP responses in main.py
"""
from typing import Any, Dict, Optional


class CallQueueError(Exception):
    """
    Base class for all expected call-queue failures.

    Attributes:
        message: Human-readable description
        code: Stable machine-readable error code
        status_code: HTTP status the error maps to
        hint: Optional remediation text shown to the client
    """

    code: str = "internal"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.hint:
            body["hint"] = self.hint
        return body


class Unauthenticated(CallQueueError):
    """Missing or invalid credential"""
    code = "unauthenticated"
    status_code = 401


class PermissionDenied(CallQueueError):
    """Caller does not own the record"""
    code = "permission_denied"
    status_code = 403


class NotFound(CallQueueError):
    """Unknown record id"""
    code = "not_found"
    status_code = 404


class InvalidArgument(CallQueueError):
    """Status outside the caller's whitelist, disallowed transition or malformed payload"""
    code = "invalid_argument"
    status_code = 400


class Unavailable(CallQueueError):
    """A backend or capability is temporarily or permanently missing"""
    code = "unavailable"
    status_code = 503


class StoreUnavailable(Unavailable):
    """Document store is over quota, rate limited or unreachable. Retry later."""
    code = "store_unavailable"
    status_code = 429

    DEFAULT_HINT = (
        "The call queue database is over its usage quota or unreachable. "
        "Wait a few minutes and try again."
    )

    def __init__(self, message: str = "Call queue storage is temporarily unavailable.", hint: Optional[str] = None):
        super().__init__(message, hint=hint or self.DEFAULT_HINT)


class StoreNotConfigured(Unavailable):
    code = "store_not_configured"

    def __init__(self, message: str = "Document store not configured."):
        super().__init__(message, hint="Set SUPABASE_URL and SUPABASE_SERVICE_KEY, or STORE_BACKEND=memory.")


class TelephonyNotConfigured(Unavailable):
    code = "telephony_not_configured"

    def __init__(self, message: str = "Voice calling is not configured."):
        super().__init__(
            message,
            hint="Set VONAGE_APPLICATION_ID and VONAGE_PRIVATE_KEY (or VONAGE_PRIVATE_KEY_PATH)."
        )


class ConsoleNotConfigured(Unavailable):
    code = "console_not_configured"

    def __init__(self, message: str = "Pharmacist console not configured."):
        super().__init__(message, hint="Set PHARMACIST_USER and PHARMACIST_PASS.")


class Internal(CallQueueError):
    """Unexpected failure"""
    code = "internal"
    status_code = 500
