# SPDX-License-Identifier: Apache-2.0

"""
Ticket lifecycle domain logic.

This module contains the ticket state machine and the pure functions that
decide whether a status or assignment change is allowed, and what a permitted
change writes. Nothing here touches storage; the ticket store applies the
resulting updates atomically.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..middleware.error_handler import InvalidTransitionException, ValidationException
from ..models.entities import TicketUpdate
from ..models.enums import TicketStatus, TicketPriority, TicketUpdateType

TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.REJECTED}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED, TicketStatus.REJECTED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
    TicketStatus.REJECTED: frozenset(),
}

ACTIVE_STATUSES = frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS})
COMPLETED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})
TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Hours until a ticket is considered overdue, by priority
SLA_HOURS = {
    TicketPriority.URGENT: 4,
    TicketPriority.HIGH: 12,
    TicketPriority.NORMAL: 24,
    TicketPriority.LOW: 48,
}

TOKEN_PATTERN = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$')

# Violation kinds
RULE_VIOLATION = "rule"
INPUT_VIOLATION = "input"


@dataclass
class TransitionResult:
    """Outcome of a lifecycle check."""
    allowed: bool
    reason: Optional[str] = None
    violation: Optional[str] = None

    @classmethod
    def ok(cls) -> "TransitionResult":
        return cls(allowed=True)

    @classmethod
    def rule(cls, reason: str) -> "TransitionResult":
        return cls(allowed=False, reason=reason, violation=RULE_VIOLATION)

    @classmethod
    def invalid_input(cls, reason: str) -> "TransitionResult":
        return cls(allowed=False, reason=reason, violation=INPUT_VIOLATION)


@dataclass
class TransitionPayload:
    """Caller-supplied data accompanying a status change."""
    assignee_id: Optional[str] = None
    resolution_note: Optional[str] = None
    reason: Optional[str] = None
    note: Optional[str] = None


@dataclass
class TicketChange:
    """Fields to $set and the history entry to $push for one permitted change."""
    set_fields: Dict[str, Any] = field(default_factory=dict)
    history_entry: Optional[TicketUpdate] = None


def generate_ticket_token() -> str:
    """Issue a fresh, unguessable timeline token."""
    return str(uuid.uuid4())


def is_valid_token_format(token: Optional[str]) -> bool:
    """Check a token is a canonical lowercase UUID string."""
    return isinstance(token, str) and bool(TOKEN_PATTERN.match(token))


def compute_sla_due_at(priority: str, created_at: datetime) -> datetime:
    """Deadline for a ticket of the given priority."""
    hours = SLA_HOURS.get(TicketPriority(priority), SLA_HOURS[TicketPriority.NORMAL])
    return created_at + timedelta(hours=hours)


def is_transition_allowed(current: str, target: str) -> bool:
    """Whether target is directly reachable from current."""
    return TicketStatus(target) in TRANSITIONS[TicketStatus(current)]


def check_transition(
    current: str,
    target: str,
    current_assignee_id: Optional[str],
    payload: TransitionPayload
) -> TransitionResult:
    """
    Decide whether a status change may happen.

    Args:
        current: Status read from the store
        target: Requested status
        current_assignee_id: Assignee read from the store
        payload: Caller-supplied transition data

    Returns:
        TransitionResult; a rule violation maps to InvalidTransition, an input
        violation to ValidationError
    """
    current_status = TicketStatus(current)
    target_status = TicketStatus(target)

    if target_status not in TRANSITIONS[current_status]:
        return TransitionResult.rule(
            f"Cannot move ticket from {current_status.value} to {target_status.value}"
        )

    if target_status == TicketStatus.IN_PROGRESS:
        if not (payload.assignee_id or current_assignee_id):
            return TransitionResult.rule("A ticket must have an assignee before work can start")

    if target_status == TicketStatus.RESOLVED:
        if not payload.resolution_note or not payload.resolution_note.strip():
            return TransitionResult.invalid_input("A resolution note is required to resolve a ticket")

    return TransitionResult.ok()


def validate_transition(
    current: str,
    target: str,
    current_assignee_id: Optional[str],
    payload: TransitionPayload
) -> None:
    """
    Raise the matching domain error when a status change is not allowed.

    Raises:
        InvalidTransitionException: The move breaks a lifecycle rule
        ValidationException: The payload is missing required data
    """
    result = check_transition(current, target, current_assignee_id, payload)
    if result.allowed:
        return
    if result.violation == INPUT_VIOLATION:
        raise ValidationException(
            result.reason,
            [{"field": "resolutionNote", "message": result.reason, "type": "missing"}]
        )
    raise InvalidTransitionException(result.reason, from_status=current, to_status=target)


def build_transition_change(
    current: str,
    target: str,
    actor_id: str,
    payload: TransitionPayload,
    now: Optional[datetime] = None
) -> TicketChange:
    """
    Build the write for an allowed status change.

    Args:
        current: Status the change is conditioned on
        target: New status
        actor_id: Staff user performing the change
        payload: Caller-supplied transition data
        now: Timestamp to record

    Returns:
        TicketChange with fields to set and the history entry
    """
    now = now or datetime.utcnow()
    target_status = TicketStatus(target)
    set_fields: Dict[str, Any] = {
        "status": target_status.value,
        "updatedAt": now,
        "updatedBy": actor_id,
    }
    note = payload.note

    if target_status == TicketStatus.IN_PROGRESS and payload.assignee_id:
        set_fields["assignedToId"] = payload.assignee_id
    elif target_status == TicketStatus.RESOLVED:
        set_fields["resolutionNote"] = payload.resolution_note.strip()
        set_fields["resolvedAt"] = now
        note = note or set_fields["resolutionNote"]
    elif target_status == TicketStatus.CLOSED:
        set_fields["closedAt"] = now
    elif target_status == TicketStatus.REJECTED:
        set_fields["rejectedAt"] = now
        if payload.reason:
            set_fields["rejectionReason"] = payload.reason
            note = note or payload.reason

    entry = TicketUpdate(
        type=TicketUpdateType.STATUS_CHANGE,
        from_status=current,
        to_status=target_status,
        note=note,
        actor_id=actor_id,
        assignee_id=set_fields.get("assignedToId"),
        created_at=now,
    )
    return TicketChange(set_fields=set_fields, history_entry=entry)


def check_assignment(status: str, assignee_id: Optional[str]) -> TransitionResult:
    """
    Decide whether the assignee may change in the current status.

    Assignment is open while the ticket is active; clearing the assignee is
    only possible before work starts, since IN_PROGRESS requires one.
    """
    current_status = TicketStatus(status)
    if current_status not in ACTIVE_STATUSES:
        return TransitionResult.rule(f"Cannot change assignee of a {current_status.value} ticket")
    if assignee_id is None and current_status == TicketStatus.IN_PROGRESS:
        return TransitionResult.rule("An IN_PROGRESS ticket cannot be unassigned")
    return TransitionResult.ok()


def build_assignment_change(
    assignee_id: Optional[str],
    actor_id: str,
    now: Optional[datetime] = None
) -> TicketChange:
    """Build the write for an allowed assignee change."""
    now = now or datetime.utcnow()
    entry = TicketUpdate(
        type=TicketUpdateType.ASSIGNMENT_CHANGE,
        actor_id=actor_id,
        assignee_id=assignee_id,
        created_at=now,
    )
    return TicketChange(
        set_fields={"assignedToId": assignee_id, "updatedAt": now, "updatedBy": actor_id},
        history_entry=entry,
    )


def check_reply(status: str) -> TransitionResult:
    """Replies are accepted until the ticket is closed or rejected."""
    current_status = TicketStatus(status)
    if current_status in TERMINAL_STATUSES:
        return TransitionResult.rule(f"Cannot reply to a {current_status.value} ticket")
    return TransitionResult.ok()


def build_reply_change(text: str, actor_id: str, now: Optional[datetime] = None) -> TicketChange:
    """History-only write for a reply; the status is left as it is."""
    now = now or datetime.utcnow()
    return TicketChange(
        set_fields={"updatedAt": now, "updatedBy": actor_id},
        history_entry=TicketUpdate(
            type=TicketUpdateType.REPLY_SENT,
            note=text,
            actor_id=actor_id,
            created_at=now,
        ),
    )


def clamp_trend_days(days: int) -> int:
    """Clamp a trend window to 1-30 days."""
    return max(1, min(days, 30))


def initial_history_entry(actor_id: Optional[str], created_at: datetime) -> TicketUpdate:
    """History entry recorded when a ticket is created."""
    return TicketUpdate(
        type=TicketUpdateType.STATUS_CHANGE,
        from_status=None,
        to_status=TicketStatus.OPEN,
        actor_id=actor_id,
        created_at=created_at,
    )


def clamp_sla_bounds(hours_threshold: int, limit: int) -> Tuple[int, int]:
    """Clamp SLA query bounds to 1-48 hours and 1-50 tickets."""
    return max(1, min(hours_threshold, 48)), max(1, min(limit, 50))
