# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Ticket store: creation, lifecycle transitions, assignment, replies and inbox queries.

Every change is a single conditional find_one_and_update on the ticket's
id, organization, status and version. A writer that loses the race gets a
ConflictException and can re-read and retry.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from opentelemetry import trace
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..domain import authorization
from ..domain.tickets import (
    ACTIVE_STATUSES,
    COMPLETED_STATUSES,
    TicketChange,
    TransitionPayload,
    build_assignment_change,
    build_reply_change,
    build_transition_change,
    check_assignment,
    check_reply,
    clamp_sla_bounds,
    clamp_trend_days,
    compute_sla_due_at,
    generate_ticket_token,
    initial_history_entry,
    validate_transition
)
from ..middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException
)
from ..models.entities import ANONYMOUS_NICKNAME, CitizenContact, Identity, Ticket
from ..models.enums import Sentiment, TicketPriority, TicketSource, TicketStatus
from ..models.requests import CreateTicketRequest
from ..observability.tracing import traced_operation
from .events import (
    TICKET_ASSIGNED,
    TICKET_CREATED,
    TICKET_REPLIED,
    TICKET_STATUS_CHANGED,
    TicketEvent,
    TicketEventPublisher
)
from .mongodb import TICKETS, MongoDBService, PaginationResult, clamp, normalize_document
from .organizations import TenantDirectory

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

INBOX_MAX_LIMIT = 100
TOKEN_ATTEMPTS = 3
RECENT_FEEDBACK_LIMIT = 10

_ACTIVE = [status.value for status in ACTIVE_STATUSES]
_COMPLETED = [status.value for status in COMPLETED_STATUSES]


def _naive_utc(moment: datetime) -> datetime:
    """Stored timestamps are naive UTC; convert aware inputs to match."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class TicketStore:
    """Tenant-scoped ticket persistence and lifecycle."""

    def __init__(
        self,
        mongodb_service: MongoDBService,
        directory: TenantDirectory,
        event_publisher: TicketEventPublisher
    ):
        self.mongodb_service = mongodb_service
        self.directory = directory
        self.event_publisher = event_publisher

    @property
    def collection(self):
        return self.mongodb_service.tickets

    # Creation

    def create(
        self,
        organization_id: str,
        citizen: CitizenContact,
        content: str,
        category: Optional[str] = None,
        is_public: bool = False,
        nickname: Optional[str] = None,
        priority: TicketPriority = TicketPriority.NORMAL,
        sentiment: Optional[Sentiment] = None,
        created_by: Optional[str] = None,
        source: TicketSource = TicketSource.STAFF
    ) -> Ticket:
        """
        Persist a new OPEN ticket and publish ticket.created.

        Args:
            organization_id: Owning organization
            citizen: Citizen contact details
            content: Complaint text
            category: Category; the organization default when omitted
            is_public: Requested public visibility
            nickname: Public display name; anonymous when omitted
            priority: Drives the SLA deadline
            sentiment: Optional sentiment label
            created_by: Staff user id, None for community submissions
            source: COMMUNITY or STAFF

        Returns:
            The stored Ticket, including its timeline token

        Raises:
            NotFoundException: If the organization does not exist
        """
        with traced_operation(tracer, "tickets.create") as span:
            span.set_attributes({"organization.id": organization_id, "ticket.source": TicketSource(source).value})

            organization = self.directory.get_by_id(organization_id)
            now = datetime.utcnow()
            public = bool(is_public) and organization.settings.allow_public_submissions

            ticket = Ticket(
                organization_id=organization_id,
                citizen_name=citizen.name,
                citizen_phone=citizen.phone,
                citizen_email=citizen.email,
                content=content,
                category=category or organization.settings.default_category,
                priority=priority,
                sentiment=sentiment,
                is_public=public,
                nickname=nickname or ANONYMOUS_NICKNAME,
                token=generate_ticket_token(),
                source=source,
                sla_due_at=compute_sla_due_at(priority, now),
                history=[initial_history_entry(created_by, now)],
                created_at=now,
                updated_at=now,
                created_by=created_by,
                updated_by=created_by,
            )

            self._insert_with_fresh_token(ticket)

            span.set_attribute("ticket.id", ticket.id)
            logger.info(
                "Ticket created",
                extra={
                    "ticket_id": ticket.id,
                    "organization_id": organization_id,
                    "source": ticket.source,
                    "is_public": ticket.is_public
                }
            )

            self._publish(TicketEvent(
                event_type=TICKET_CREATED,
                ticket_id=ticket.id,
                organization_id=organization_id,
                to_status=TicketStatus.OPEN.value,
                actor_id=created_by,
            ))
            return ticket

    def _insert_with_fresh_token(self, ticket: Ticket) -> None:
        for attempt in range(TOKEN_ATTEMPTS):
            try:
                self.collection.insert_one(ticket.to_document())
                return
            except DuplicateKeyError:
                if attempt == TOKEN_ATTEMPTS - 1:
                    raise
                logger.warning("Timeline token collision, reissuing", extra={"ticket_id": ticket.id})
                ticket.token = generate_ticket_token()

    def create_for_caller(self, identity: Identity, request: CreateTicketRequest) -> Ticket:
        """Staff creation inside the caller's own organization."""
        editable = authorization.can_edit_tickets(identity)
        if not editable.allowed:
            raise AuthorizationException(editable.reason)

        return self.create(
            identity.organization_id,
            CitizenContact(
                name=request.citizen_name,
                phone=request.citizen_phone,
                email=request.citizen_email,
            ),
            request.content,
            category=request.category,
            is_public=request.is_public,
            nickname=request.nickname,
            priority=request.priority,
            sentiment=request.sentiment,
            created_by=identity.user_id,
            source=TicketSource.STAFF,
        )

    # Lifecycle

    def transition(
        self,
        ticket_id: str,
        identity: Identity,
        target_status: str,
        payload: Optional[TransitionPayload] = None
    ) -> Ticket:
        """
        Move a ticket to another status.

        Ownership and role are checked before the lifecycle rules, so a caller
        from another organization learns nothing about the ticket's state.

        Raises:
            NotFoundException: Unknown ticket
            AuthorizationException: Other organization, viewer role, or assigning someone else as a member
            InvalidTransitionException: The lifecycle forbids the move
            ValidationException: Missing resolution note or unknown assignee
            ConflictException: The ticket changed since it was read
        """
        payload = payload or TransitionPayload()
        target = TicketStatus(target_status)

        attributes = {"ticket.id": ticket_id, "ticket.target_status": target.value}
        with traced_operation(tracer, "tickets.transition", attributes) as span:
            document = self._load(ticket_id)
            self._authorize_mutation(identity, document["organizationId"])

            starting_work = target == TicketStatus.IN_PROGRESS and payload.assignee_id
            if starting_work:
                self._authorize_assignee(identity, payload.assignee_id)

            current = document["status"]
            validate_transition(current, target.value, document.get("assignedToId"), payload)

            if starting_work:
                self._require_member(document["organizationId"], payload.assignee_id)

            change = build_transition_change(current, target, identity.user_id, payload)
            updated = self._apply_change(document, change)

            span.set_attribute("ticket.from_status", current)
            logger.info(
                "Ticket status changed",
                extra={
                    "ticket_id": ticket_id,
                    "organization_id": document["organizationId"],
                    "from_status": current,
                    "to_status": target.value,
                    "user_id": identity.user_id
                }
            )

            self._publish(TicketEvent(
                event_type=TICKET_STATUS_CHANGED,
                ticket_id=ticket_id,
                organization_id=document["organizationId"],
                from_status=current,
                to_status=target.value,
                actor_id=identity.user_id,
                assignee_id=updated.get("assignedToId"),
            ))
            return Ticket.from_document(updated)

    def assign(self, ticket_id: str, identity: Identity, user_id: Optional[str]) -> Ticket:
        """
        Set or clear a ticket's assignee.

        Raises:
            NotFoundException: Unknown ticket
            AuthorizationException: Other organization, viewer role, or member assigning someone else
            InvalidTransitionException: Assignee cannot change in the current status
            ValidationException: Assignee is not a member of the organization
            ConflictException: The ticket changed since it was read
        """
        attributes = {"ticket.id": ticket_id, "ticket.assignee_id": user_id or ""}
        with traced_operation(tracer, "tickets.assign", attributes):
            document = self._load(ticket_id)
            self._authorize_mutation(identity, document["organizationId"])
            if user_id is not None:
                self._authorize_assignee(identity, user_id)

            allowed = check_assignment(document["status"], user_id)
            if not allowed.allowed:
                raise InvalidTransitionException(allowed.reason, from_status=document["status"])

            if user_id is not None:
                self._require_member(document["organizationId"], user_id)

            change = build_assignment_change(user_id, identity.user_id)
            updated = self._apply_change(document, change)

            logger.info(
                "Ticket assignee changed",
                extra={
                    "ticket_id": ticket_id,
                    "organization_id": document["organizationId"],
                    "assignee_id": user_id,
                    "user_id": identity.user_id
                }
            )

            self._publish(TicketEvent(
                event_type=TICKET_ASSIGNED,
                ticket_id=ticket_id,
                organization_id=document["organizationId"],
                from_status=document["status"],
                to_status=document["status"],
                actor_id=identity.user_id,
                assignee_id=user_id,
            ))
            return Ticket.from_document(updated)

    def reply(self, ticket_id: str, identity: Identity, text: str) -> Ticket:
        """
        Record a staff reply to the citizen and publish ticket.replied.

        The reply is appended to the history under the same version check as
        other changes; the status does not move.

        Raises:
            NotFoundException: Unknown ticket
            AuthorizationException: Other organization or viewer role
            InvalidTransitionException: The ticket is closed or rejected
            ConflictException: The ticket changed since it was read
        """
        with traced_operation(tracer, "tickets.reply", {"ticket.id": ticket_id}):
            document = self._load(ticket_id)
            self._authorize_mutation(identity, document["organizationId"])

            allowed = check_reply(document["status"])
            if not allowed.allowed:
                raise InvalidTransitionException(allowed.reason, from_status=document["status"])

            updated = self._apply_change(document, build_reply_change(text, identity.user_id))

            logger.info(
                "Ticket reply sent",
                extra={
                    "ticket_id": ticket_id,
                    "organization_id": document["organizationId"],
                    "user_id": identity.user_id
                }
            )

            self._publish(TicketEvent(
                event_type=TICKET_REPLIED,
                ticket_id=ticket_id,
                organization_id=document["organizationId"],
                from_status=document["status"],
                to_status=document["status"],
                actor_id=identity.user_id,
                reply_text=text,
            ))
            return Ticket.from_document(updated)

    def _apply_change(self, document: Dict[str, Any], change: TicketChange) -> Dict[str, Any]:
        """
        Apply a change conditioned on the status and version that were read.

        Raises:
            NotFoundException: The ticket disappeared
            ConflictException: Another writer got there first
        """
        update: Dict[str, Any] = {
            "$set": change.set_fields,
            "$inc": {"version": 1},
        }
        if change.history_entry is not None:
            update["$push"] = {"history": change.history_entry.to_document()}

        updated = self.collection.find_one_and_update(
            {
                "_id": document["_id"],
                "organizationId": document["organizationId"],
                "status": document["status"],
                "version": document.get("version", 1),
            },
            update,
            return_document=ReturnDocument.AFTER
        )
        if updated is not None:
            return updated

        if self.collection.find_one({"_id": document["_id"]}, {"_id": 1}) is None:
            raise NotFoundException("Ticket not found")

        logger.warning(
            "Concurrent ticket update lost",
            extra={"ticket_id": document["_id"], "expected_version": document.get("version", 1)}
        )
        raise ConflictException("Ticket was modified concurrently; reload and retry")

    def _load(self, ticket_id: str) -> Dict[str, Any]:
        document = self.collection.find_one({"_id": ticket_id})
        if document is None:
            raise NotFoundException("Ticket not found")
        return document

    def _authorize_mutation(self, identity: Identity, organization_id: str) -> None:
        access = authorization.check_organization_access(identity, organization_id)
        if not access.allowed:
            raise AuthorizationException(access.reason)
        editable = authorization.can_edit_tickets(identity)
        if not editable.allowed:
            raise AuthorizationException(editable.reason)

    def _authorize_assignee(self, identity: Identity, assignee_id: str) -> None:
        result = authorization.can_assign_to(identity, assignee_id)
        if not result.allowed:
            raise AuthorizationException(result.reason)

    def _require_member(self, organization_id: str, user_id: str) -> None:
        member = self.mongodb_service.users.find_one(
            {"_id": user_id, "organizationId": organization_id}, {"_id": 1}
        )
        if member is None:
            raise ValidationException(
                "Assignee is not a member of this organization",
                [{"field": "assigneeId", "message": "Unknown member", "type": "value_error"}]
            )

    def _publish(self, event: TicketEvent) -> None:
        """Hand an event to the publisher after the write has committed. Never raises."""
        try:
            self.event_publisher.dispatch(event)
        except Exception as e:
            logger.error(
                "Ticket event publisher failed",
                extra={"event_type": event.event_type, "ticket_id": event.ticket_id, "error": str(e)},
                exc_info=True
            )

    # Queries

    def list_for_organization(
        self,
        organization_id: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 20,
        offset: int = 0
    ) -> PaginationResult:
        """
        Inbox listing, newest first.

        Args:
            organization_id: Caller's organization
            filters: Optional status, priority, sentiment, category and assignedToId
            limit: Page size, clamped to 1-100
            offset: Items to skip; negative values count as 0
        """
        with traced_operation(tracer, "tickets.list") as span:
            limit = clamp(limit, 1, INBOX_MAX_LIMIT)
            offset = max(0, offset)
            span.set_attributes({"organization.id": organization_id, "page.limit": limit, "page.offset": offset})

            query = self.mongodb_service.build_org_query(organization_id, filters)
            return self.mongodb_service.paginate(TICKETS, query, limit, offset)

    def get_for_caller(self, ticket_id: str, identity: Identity) -> Ticket:
        """Full staff view of one ticket in the caller's organization."""
        document = self._load(ticket_id)
        access = authorization.check_organization_access(identity, document["organizationId"])
        if not access.allowed:
            raise AuthorizationException(access.reason)
        return Ticket.from_document(document)

    def get_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Exact-match lookup by timeline token; None on a miss."""
        return normalize_document(self.collection.find_one({"token": token}))

    def get_dashboard_stats(self, organization_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Received, completed and overdue counts for today and the last seven days."""
        now = now or datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today_start - timedelta(days=7)
        scope = {"organizationId": organization_id}

        def count(**conditions) -> int:
            return self.collection.count_documents(dict(scope, **conditions))

        overdue = {"slaDueAt": {"$lt": now}, "status": {"$nin": _COMPLETED}}

        response_minutes: List[float] = []
        for document in self.collection.find(
            dict(scope, resolvedAt={"$ne": None}, createdAt={"$gte": week_start}),
            {"createdAt": 1, "resolvedAt": 1}
        ):
            response_minutes.append((document["resolvedAt"] - document["createdAt"]).total_seconds() / 60)

        ratings = [
            document["survey"]["rating"]
            for document in self.collection.find(
                dict(scope, **{"survey.submittedAt": {"$gte": week_start}}),
                {"survey.rating": 1}
            )
        ]

        return {
            "today": {
                "received": count(createdAt={"$gte": today_start}),
                "completed": count(status={"$in": _COMPLETED}, resolvedAt={"$gte": today_start}),
                "delayed": count(**overdue),
            },
            "week": {
                "received": count(createdAt={"$gte": week_start}),
                "completed": count(status={"$in": _COMPLETED}, resolvedAt={"$gte": week_start}),
                "delayed": count(createdAt={"$gte": week_start}, **overdue),
            },
            "totalOpen": count(status={"$in": _ACTIVE}),
            "avgResponseMinutes": round(sum(response_minutes) / len(response_minutes)) if response_minutes else 0,
            "satisfaction": {
                "average": round(sum(ratings) / len(ratings), 2) if ratings else 0,
                "count": len(ratings),
            },
        }

    def get_ticket_trends(
        self,
        organization_id: str,
        days: int = 7,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Daily received and completed counts plus the category mix.

        The series runs from `days` days ago through today, one point per
        calendar day (UTC), including days with no activity.

        Args:
            organization_id: Caller's organization
            days: Window length, clamped to 1-30
            now: Reference time (defaults to the current time)
        """
        now = now or datetime.utcnow()
        days = clamp_trend_days(days)
        start = now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days)

        daily = {
            (start + timedelta(days=offset)).date(): {"received": 0, "completed": 0}
            for offset in range(days + 1)
        }
        categories: Dict[str, int] = {}

        for document in self.collection.find(
            {"organizationId": organization_id, "createdAt": {"$gte": start}},
            {"createdAt": 1, "category": 1}
        ):
            bucket = daily.get(document["createdAt"].date())
            if bucket is not None:
                bucket["received"] += 1
            category = document.get("category") or "general"
            categories[category] = categories.get(category, 0) + 1

        for document in self.collection.find(
            {
                "organizationId": organization_id,
                "status": {"$in": _COMPLETED},
                "resolvedAt": {"$gte": start},
            },
            {"resolvedAt": 1}
        ):
            bucket = daily.get(document["resolvedAt"].date())
            if bucket is not None:
                bucket["completed"] += 1

        return {
            "days": days,
            "daily": [
                {"date": day.isoformat(), "received": counts["received"], "completed": counts["completed"]}
                for day, counts in sorted(daily.items())
            ],
            "categories": [
                {"category": category, "count": count}
                for category, count in sorted(categories.items(), key=lambda item: (-item[1], item[0]))
            ],
        }

    def get_satisfaction_stats(
        self,
        organization_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        category: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Survey averages, rating distribution and the latest written feedback.

        Args:
            organization_id: Caller's organization
            date_from: Earliest survey submission to include
            date_to: Latest survey submission to include
            category: Only tickets of this category

        Returns:
            average, count, min, max, responseRate (surveys per completed
            ticket, as a percentage), distribution for ratings 1-5 and up to
            ten recentFeedback entries, newest first
        """
        query: Dict[str, Any] = {"organizationId": organization_id, "survey": {"$ne": None}}
        submitted: Dict[str, datetime] = {}
        if date_from is not None:
            submitted["$gte"] = _naive_utc(date_from)
        if date_to is not None:
            submitted["$lte"] = _naive_utc(date_to)
        if submitted:
            query["survey.submittedAt"] = submitted
        if category:
            query["category"] = category

        surveyed = list(self.collection.find(
            query, {"survey": 1, "category": 1, "citizenName": 1, "createdAt": 1}
        ))
        ratings = [document["survey"]["rating"] for document in surveyed]

        completed_query: Dict[str, Any] = {"organizationId": organization_id, "status": {"$in": _COMPLETED}}
        if category:
            completed_query["category"] = category
        completed = self.collection.count_documents(completed_query)

        with_feedback = sorted(
            (document for document in surveyed if document["survey"].get("feedback")),
            key=lambda document: document["survey"]["submittedAt"],
            reverse=True
        )[:RECENT_FEEDBACK_LIMIT]

        return {
            "average": round(sum(ratings) / len(ratings), 2) if ratings else 0,
            "count": len(ratings),
            "min": min(ratings) if ratings else 0,
            "max": max(ratings) if ratings else 0,
            "responseRate": round(len(ratings) / completed * 100, 2) if completed else 0,
            "distribution": [
                {"rating": rating, "count": ratings.count(rating)} for rating in range(1, 6)
            ],
            "recentFeedback": [
                {
                    "ticketId": document["_id"],
                    "category": document["category"],
                    "citizenName": document["citizenName"],
                    "rating": document["survey"]["rating"],
                    "feedback": document["survey"]["feedback"],
                    "submittedAt": document["survey"]["submittedAt"].isoformat() + "Z",
                }
                for document in with_feedback
            ],
        }

    def get_sla_tickets(
        self,
        organization_id: str,
        hours_threshold: int = 24,
        limit: int = 10,
        now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Uncompleted tickets due within the threshold, soonest first."""
        now = now or datetime.utcnow()
        hours_threshold, limit = clamp_sla_bounds(hours_threshold, limit)

        cursor = self.collection.find(
            {
                "organizationId": organization_id,
                "status": {"$nin": _COMPLETED + [TicketStatus.REJECTED.value]},
                "slaDueAt": {"$ne": None, "$lte": now + timedelta(hours=hours_threshold)},
            },
            {
                "citizenName": 1, "category": 1, "priority": 1, "status": 1,
                "createdAt": 1, "slaDueAt": 1, "assignedToId": 1
            }
        ).sort("slaDueAt", ASCENDING).limit(limit)

        tickets = []
        for document in cursor:
            ticket = normalize_document(document)
            remaining = (ticket["slaDueAt"] - now).total_seconds() / 3600
            ticket["remainingHours"] = max(0, int(remaining))
            tickets.append(ticket)
        return tickets
