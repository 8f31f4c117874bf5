"""Domain models"""

# Call queue models
from .call_request import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    CallStatus,
    CallerRole,
    Handoff,
    CallRequest,
)

from .admission import (
    AdmissionResult,
)

from .caller import (
    CallerIdentity,
)

# Telephony models
from .telephony import (
    TelephonyGrant,
    RoutingInstruction,
)

# Console models
from .presence import (
    PresenceRecord,
    PresenceSnapshot,
)

from .chat import (
    ChatSession,
    ChatMessage,
)

__all__ = [
    # Call queue
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "CallStatus",
    "CallerRole",
    "Handoff",
    "CallRequest",
    "AdmissionResult",
    "CallerIdentity",
    # Telephony
    "TelephonyGrant",
    "RoutingInstruction",
    # Console
    "PresenceRecord",
    "PresenceSnapshot",
    "ChatSession",
    "ChatMessage",
]
