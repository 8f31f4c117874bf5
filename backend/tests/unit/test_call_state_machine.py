"""
Unit tests for the call status transition table
"""
import pytest

from pharmacall.core.errors import InvalidArgument
from pharmacall.domain.models.call_request import CallStatus, CallerRole
from pharmacall.domain.services.call_state_machine import (
    TRANSITIONS,
    TransitionDecision,
    decide_transition,
    parse_status,
)


S = CallStatus


class TestParseStatus:

    def test_parses_known_values(self):
        assert parse_status("in_progress") == S.IN_PROGRESS
        assert parse_status(" missed ") == S.MISSED
        assert parse_status(S.RINGING) == S.RINGING

    @pytest.mark.parametrize("value", ["", None, "answered", "IN_PROGRESS"])
    def test_rejects_unknown_values(self, value):
        with pytest.raises(InvalidArgument):
            parse_status(value)


class TestDecideTransition:

    def test_happy_path_for_user(self):
        path = [S.REQUESTED, S.RINGING, S.IN_PROGRESS, S.COMPLETED]
        for current, requested in zip(path, path[1:]):
            assert decide_transition(current, requested, CallerRole.USER) == TransitionDecision.APPLY

    @pytest.mark.parametrize("current", [S.QUEUED, S.REQUESTED, S.RINGING])
    @pytest.mark.parametrize("requested", [S.CANCELLED, S.MISSED])
    def test_cancel_or_miss_before_connect(self, current, requested):
        assert decide_transition(current, requested, CallerRole.USER) == TransitionDecision.APPLY

    @pytest.mark.parametrize("role", list(CallerRole))
    def test_repeating_current_status_is_noop(self, role):
        assert decide_transition(S.RINGING, S.RINGING, role) == TransitionDecision.NOOP

    def test_repeating_terminal_status_is_noop(self):
        assert decide_transition(S.COMPLETED, S.COMPLETED, CallerRole.TELEPHONY) == TransitionDecision.NOOP

    def test_conflicting_terminal_report_is_rejected(self):
        with pytest.raises(InvalidArgument, match="already ended"):
            decide_transition(S.COMPLETED, S.FAILED, CallerRole.USER)

    def test_terminal_record_cannot_be_reopened(self):
        with pytest.raises(InvalidArgument):
            decide_transition(S.MISSED, S.RINGING, CallerRole.STAFF)

    def test_user_cannot_request_or_queue(self):
        for requested in (S.REQUESTED, S.QUEUED):
            with pytest.raises(InvalidArgument, match="Invalid call status"):
                decide_transition(S.RINGING, requested, CallerRole.USER)

    def test_staff_can_send_ringing_call_back_to_incoming(self):
        assert decide_transition(S.RINGING, S.REQUESTED, CallerRole.STAFF) == TransitionDecision.APPLY

    def test_in_progress_cannot_be_cancelled(self):
        with pytest.raises(InvalidArgument, match="Cannot move"):
            decide_transition(S.IN_PROGRESS, S.CANCELLED, CallerRole.USER)

    def test_completed_requires_a_connected_call(self):
        with pytest.raises(InvalidArgument):
            decide_transition(S.REQUESTED, S.COMPLETED, CallerRole.TELEPHONY)

    def test_table_never_targets_queued_and_never_leaves_terminal(self):
        for current, requested, _ in TRANSITIONS:
            assert requested != S.QUEUED
            assert not current.is_terminal
