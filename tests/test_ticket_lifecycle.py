# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the ticket state machine.
"""

import pytest
from datetime import datetime, timedelta

from civicaid.domain.tickets import (
    TRANSITIONS,
    TERMINAL_STATUSES,
    TransitionPayload,
    build_assignment_change,
    build_reply_change,
    build_transition_change,
    check_assignment,
    check_reply,
    check_transition,
    clamp_sla_bounds,
    clamp_trend_days,
    compute_sla_due_at,
    generate_ticket_token,
    is_transition_allowed,
    is_valid_token_format,
    validate_transition
)
from civicaid.middleware.error_handler import InvalidTransitionException, ValidationException
from civicaid.models.enums import TicketPriority, TicketStatus, TicketUpdateType

ALLOWED = {
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS),
    (TicketStatus.OPEN, TicketStatus.REJECTED),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
    (TicketStatus.IN_PROGRESS, TicketStatus.REJECTED),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED),
}

ALL_PAIRS = [(current, target) for current in TicketStatus for target in TicketStatus]

FULL_PAYLOAD = TransitionPayload(
    assignee_id="usr_1",
    resolution_note="Fixed",
    reason="Out of scope"
)


class TestTransitionTable:
    """Exhaustive checks over all 25 status pairs."""

    @pytest.mark.parametrize("current,target", ALL_PAIRS)
    def test_table_matches_lifecycle(self, current, target):
        assert is_transition_allowed(current, target) == ((current, target) in ALLOWED)

    @pytest.mark.parametrize("current,target", ALL_PAIRS)
    def test_validate_transition_rejects_pairs_outside_table(self, current, target):
        if (current, target) in ALLOWED:
            validate_transition(current.value, target.value, "usr_1", FULL_PAYLOAD)
        else:
            with pytest.raises(InvalidTransitionException) as exc_info:
                validate_transition(current.value, target.value, "usr_1", FULL_PAYLOAD)
            assert exc_info.value.from_status == current.value
            assert exc_info.value.to_status == target.value

    def test_self_transitions_are_invalid(self):
        for status in TicketStatus:
            assert not is_transition_allowed(status, status)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {TicketStatus.CLOSED, TicketStatus.REJECTED}
        assert all(not TRANSITIONS[status] for status in TERMINAL_STATUSES)


class TestTransitionPreconditions:
    """Payload requirements of specific moves."""

    def test_in_progress_requires_assignee(self):
        result = check_transition("OPEN", "IN_PROGRESS", None, TransitionPayload())
        assert not result.allowed
        with pytest.raises(InvalidTransitionException):
            validate_transition("OPEN", "IN_PROGRESS", None, TransitionPayload())

    def test_in_progress_accepts_existing_or_requested_assignee(self):
        assert check_transition("OPEN", "IN_PROGRESS", "usr_1", TransitionPayload()).allowed
        assert check_transition("OPEN", "IN_PROGRESS", None, TransitionPayload(assignee_id="usr_2")).allowed

    @pytest.mark.parametrize("note", [None, "", "   "])
    def test_resolved_requires_note(self, note):
        with pytest.raises(ValidationException) as exc_info:
            validate_transition("IN_PROGRESS", "RESOLVED", "usr_1", TransitionPayload(resolution_note=note))
        assert exc_info.value.validation_errors[0]["field"] == "resolutionNote"

    def test_rule_violation_wins_over_missing_note(self):
        with pytest.raises(InvalidTransitionException):
            validate_transition("OPEN", "RESOLVED", None, TransitionPayload())


class TestTransitionChanges:
    """What an allowed change writes."""

    def test_resolve_records_timestamp_and_note(self):
        now = datetime(2024, 3, 1, 12, 0)
        change = build_transition_change(
            "IN_PROGRESS", "RESOLVED", "usr_1",
            TransitionPayload(resolution_note="  Fixed  "), now=now
        )

        assert change.set_fields["status"] == "RESOLVED"
        assert change.set_fields["resolvedAt"] == now
        assert change.set_fields["resolutionNote"] == "Fixed"
        assert change.history_entry.from_status == "IN_PROGRESS"
        assert change.history_entry.to_status == "RESOLVED"
        assert change.history_entry.note == "Fixed"

    def test_start_work_assigns(self):
        change = build_transition_change(
            "OPEN", "IN_PROGRESS", "usr_1", TransitionPayload(assignee_id="usr_2")
        )
        assert change.set_fields["assignedToId"] == "usr_2"
        assert change.history_entry.assignee_id == "usr_2"

    def test_reject_records_reason(self):
        change = build_transition_change("OPEN", "REJECTED", "usr_1", TransitionPayload(reason="Spam"))
        assert change.set_fields["rejectionReason"] == "Spam"
        assert "rejectedAt" in change.set_fields

    def test_close_records_timestamp(self):
        change = build_transition_change("RESOLVED", "CLOSED", "usr_1", TransitionPayload())
        assert "closedAt" in change.set_fields
        assert change.history_entry.type == TicketUpdateType.STATUS_CHANGE.value


class TestAssignmentRules:

    @pytest.mark.parametrize("status", ["RESOLVED", "CLOSED", "REJECTED"])
    def test_completed_tickets_cannot_be_reassigned(self, status):
        assert not check_assignment(status, "usr_1").allowed

    def test_unassign_only_while_open(self):
        assert check_assignment("OPEN", None).allowed
        assert not check_assignment("IN_PROGRESS", None).allowed

    def test_assignment_history_entry(self):
        change = build_assignment_change("usr_2", "usr_1")
        assert change.set_fields["assignedToId"] == "usr_2"
        assert change.history_entry.type == TicketUpdateType.ASSIGNMENT_CHANGE.value


class TestReplyRules:

    @pytest.mark.parametrize("status", list(TicketStatus))
    def test_replies_until_terminal(self, status):
        assert check_reply(status.value).allowed == (status not in TERMINAL_STATUSES)

    def test_reply_change_leaves_status_alone(self):
        now = datetime(2026, 3, 1, 9, 30)
        change = build_reply_change("Crew is on the way", "usr_1", now)

        assert change.set_fields == {"updatedAt": now, "updatedBy": "usr_1"}
        assert change.history_entry.type == TicketUpdateType.REPLY_SENT.value
        assert change.history_entry.note == "Crew is on the way"
        assert change.history_entry.to_status is None


class TestTokensAndSla:

    def test_generated_tokens_pass_format_check(self):
        token = generate_ticket_token()
        assert is_valid_token_format(token)
        assert generate_ticket_token() != token

    @pytest.mark.parametrize("token", [
        None,
        "",
        "not-a-token",
        "123",
        "ABCDEF12-3456-7890-ABCD-EF1234567890",
        "abcdef12-3456-7890-abcd-ef1234567890x",
        "abcdef1234567890abcdef1234567890",
    ])
    def test_malformed_tokens(self, token):
        assert not is_valid_token_format(token)

    @pytest.mark.parametrize("priority,hours", [
        (TicketPriority.URGENT, 4),
        (TicketPriority.HIGH, 12),
        (TicketPriority.NORMAL, 24),
        (TicketPriority.LOW, 48),
    ])
    def test_sla_deadline_by_priority(self, priority, hours):
        created = datetime(2024, 1, 1)
        assert compute_sla_due_at(priority, created) == created + timedelta(hours=hours)

    def test_sla_bounds_are_clamped(self):
        assert clamp_sla_bounds(0, 0) == (1, 1)
        assert clamp_sla_bounds(100, 500) == (48, 50)
        assert clamp_sla_bounds(24, 10) == (24, 10)

    def test_trend_days_clamped(self):
        assert [clamp_trend_days(days) for days in (-1, 0, 1, 14, 30, 31)] == [1, 1, 1, 14, 30, 30]
