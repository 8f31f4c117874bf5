"""
Call State Machine
Transition table for call request statuses, per reporting role
"""
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from pharmacall.core.errors import InvalidArgument
from pharmacall.domain.models.call_request import CallStatus, CallerRole


S = CallStatus

# Statuses each role may request at all
ROLE_WHITELISTS: Dict[CallerRole, FrozenSet[CallStatus]] = {
    CallerRole.USER: frozenset({
        S.RINGING, S.IN_PROGRESS, S.COMPLETED, S.FAILED, S.CANCELLED, S.MISSED,
    }),
    CallerRole.TELEPHONY: frozenset({
        S.RINGING, S.IN_PROGRESS, S.COMPLETED, S.FAILED, S.CANCELLED, S.MISSED,
    }),
    # The console can also send a ringing call back to "incoming"
    CallerRole.STAFF: frozenset({
        S.REQUESTED, S.RINGING, S.IN_PROGRESS, S.COMPLETED, S.FAILED, S.CANCELLED, S.MISSED,
    }),
}

# Lifecycle edges, independent of role. Terminal statuses have none.
EDGES: Dict[CallStatus, FrozenSet[CallStatus]] = {
    S.QUEUED: frozenset({S.REQUESTED, S.IN_PROGRESS, S.CANCELLED, S.MISSED, S.FAILED}),
    S.REQUESTED: frozenset({S.RINGING, S.IN_PROGRESS, S.CANCELLED, S.MISSED, S.FAILED}),
    S.RINGING: frozenset({S.REQUESTED, S.IN_PROGRESS, S.CANCELLED, S.MISSED, S.FAILED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.FAILED}),
}

TRANSITIONS: FrozenSet[Tuple[CallStatus, CallStatus, CallerRole]] = frozenset(
    (current, requested, role)
    for current, targets in EDGES.items()
    for requested in targets
    for role, allowed in ROLE_WHITELISTS.items()
    if requested in allowed
)


class TransitionDecision(str, Enum):
    APPLY = "apply"
    NOOP = "noop"


def parse_status(value: object) -> CallStatus:
    """
    Raises:
        InvalidArgument: If value is not a known status
    """
    if isinstance(value, CallStatus):
        return value
    try:
        return CallStatus(str(value or "").strip())
    except ValueError as e:
        raise InvalidArgument("Invalid call status.") from e


def check_requested_status(requested: CallStatus, role: CallerRole) -> None:
    """
    Raises:
        InvalidArgument: If the role may never request this status
    """
    if requested not in ROLE_WHITELISTS[role]:
        raise InvalidArgument("Invalid call status.")


def decide_transition(current: CallStatus, requested: CallStatus, role: CallerRole) -> TransitionDecision:
    """
    Decide whether `role` may move a record from `current` to `requested`.

    Repeating the current status is a no-op, which covers both legs
    reporting the same outcome. Terminal records accept nothing else.

    Raises:
        InvalidArgument: If the requested status is outside the role's
            whitelist or the transition is not allowed
    """
    check_requested_status(requested, role)

    if requested == current:
        return TransitionDecision.NOOP

    if current.is_terminal:
        raise InvalidArgument(f"Call request already ended with status '{current.value}'.")

    if (current, requested, role) not in TRANSITIONS:
        raise InvalidArgument(f"Cannot move call request from '{current.value}' to '{requested.value}'.")

    return TransitionDecision.APPLY
