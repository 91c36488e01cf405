# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Community access gateway.

Anonymous callers reach tickets only through this module. Every read is
built from one visibility filter that requires both a public ticket and an
organization accepting public submissions, and every result passes through
the public projections in domain.community.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from opentelemetry import trace
from pydantic import ValidationError
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..domain.community import (
    clamp_public_page,
    find_banned_word,
    to_comment_view,
    to_public_summary
)
from ..middleware.error_handler import (
    BusinessRuleException,
    NotFoundException,
    SubmissionsDisabledException,
    ValidationException,
    validation_exception_from
)
from ..models.base import generate_object_id
from ..models.entities import ANONYMOUS_NICKNAME, CitizenContact, CommunityComment, Organization
from ..models.enums import TicketSource
from ..models.requests import CreateCommentRequest, CreatePublicTicketRequest
from ..models.responses import CommentPage, CommentView, LikeResult, PublicTicketPage, SubmissionReceipt
from ..observability.tracing import traced_operation
from ..utils.request import hash_client_ip
from .mongodb import TICKET_COMMENTS, TICKETS, MongoDBService
from .organizations import DEFAULT_COMMUNITY_ORG_ID, TenantDirectory
from .tickets import TicketStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PUBLIC_PROJECTION = {
    "nickname": 1,
    "content": 1,
    "category": 1,
    "status": 1,
    "createdAt": 1,
    "updatedAt": 1,
    "likeCount": 1,
    "commentCount": 1,
}

TICKET_NOT_FOUND = "Ticket not found"


class CommunityGateway:
    """Read and write surface for anonymous community callers."""

    def __init__(self, mongodb_service: MongoDBService, directory: TenantDirectory, store: TicketStore):
        self.mongodb_service = mongodb_service
        self.directory = directory
        self.store = store

    def _organization(self, organization_id: Optional[str]) -> Organization:
        return self.directory.get_by_id(organization_id or DEFAULT_COMMUNITY_ORG_ID)

    def _is_listed(self, organization_id: str) -> bool:
        """Whether an organization shows a public board; unknown ids look like closed ones."""
        organization = self.directory.find_by_id(organization_id)
        return organization is not None and organization.settings.allow_public_submissions

    @staticmethod
    def _visible_query(organization_id: str) -> Dict[str, Any]:
        return {"organizationId": organization_id, "isPublic": True}

    def _visible_ticket(self, ticket_id: str) -> Dict[str, Any]:
        """
        Load a ticket anonymous callers may see.

        Private tickets, tickets of closed organizations and missing tickets
        are indistinguishable.
        """
        document = self.mongodb_service.tickets.find_one({"_id": ticket_id, "isPublic": True})
        if document is None:
            raise NotFoundException(TICKET_NOT_FOUND)

        if not self._is_listed(document["organizationId"]):
            raise NotFoundException(TICKET_NOT_FOUND)
        return document

    def list_public_tickets(
        self,
        organization_id: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = 20,
        offset: Optional[int] = 0
    ) -> PublicTicketPage:
        """
        Page of publicly visible tickets, newest first.

        Args:
            organization_id: Organization to list; the community organization when omitted
            category: Optional exact category filter
            limit: Page size, clamped to 1-50
            offset: Items to skip; negative values count as 0

        Returns:
            An empty page when the organization is unknown or does not accept
            public submissions; the two cases are indistinguishable
        """
        with traced_operation(tracer, "community.list_public_tickets") as span:
            organization_id = organization_id or DEFAULT_COMMUNITY_ORG_ID
            limit, offset = clamp_public_page(limit, offset)
            span.set_attributes({"organization.id": organization_id, "page.limit": limit, "page.offset": offset})

            if not self._is_listed(organization_id):
                span.set_attribute("community.public", False)
                return PublicTicketPage(items=[], total=0, limit=limit, offset=offset, has_more=False)

            query = self._visible_query(organization_id)
            if category:
                query["category"] = category

            page = self.mongodb_service.paginate(
                TICKETS, query, limit, offset, projection=PUBLIC_PROJECTION
            )
            return PublicTicketPage(
                items=[to_public_summary(document) for document in page.items],
                total=page.total,
                limit=limit,
                offset=offset,
                has_more=page.has_more,
            )

    def create_public_ticket(
        self,
        payload: Union[CreatePublicTicketRequest, Dict[str, Any]],
        client_ip: Optional[str] = None
    ) -> SubmissionReceipt:
        """
        Accept an anonymous submission.

        Returns:
            Receipt carrying the ticket id and its timeline token

        Raises:
            ValidationException: Malformed submission
            NotFoundException: Unknown organization
            SubmissionsDisabledException: Organization does not accept submissions
        """
        with traced_operation(tracer, "community.create_public_ticket") as span:
            if isinstance(payload, CreatePublicTicketRequest):
                request = payload
            else:
                try:
                    request = CreatePublicTicketRequest.model_validate(payload)
                except ValidationError as e:
                    raise validation_exception_from(e, "CreatePublicTicketRequest")

            organization = self._organization(request.organization_id)
            span.set_attribute("organization.id", organization.id)

            if not organization.settings.allow_public_submissions:
                logger.info(
                    "Public submission refused",
                    extra={"organization_id": organization.id, "reason": "submissions_disabled"}
                )
                raise SubmissionsDisabledException()

            ticket = self.store.create(
                organization.id,
                CitizenContact(
                    name=request.citizen_name,
                    phone=request.citizen_phone,
                    email=request.citizen_email,
                ),
                request.content,
                category=request.category,
                is_public=request.is_public,
                nickname=request.nickname,
                source=TicketSource.COMMUNITY,
            )

            logger.info(
                "Public submission accepted",
                extra={
                    "ticket_id": ticket.id,
                    "organization_id": organization.id,
                    "ip_hash": hash_client_ip(client_ip)[:12] if client_ip else None
                }
            )
            return SubmissionReceipt(ticket_id=ticket.id, token=ticket.token, status=ticket.status)

    def list_categories(self, organization_id: Optional[str] = None) -> List[str]:
        """Sorted distinct categories among visible tickets; empty for unknown or closed organizations."""
        organization_id = organization_id or DEFAULT_COMMUNITY_ORG_ID
        if not self._is_listed(organization_id):
            return []

        categories = self.mongodb_service.tickets.distinct("category", self._visible_query(organization_id))
        return sorted(category for category in categories if category)

    def add_like(self, ticket_id: str, client_ip: Optional[str]) -> LikeResult:
        """
        Record one like per client address.

        Raises:
            NotFoundException: Ticket is not publicly visible
            BusinessRuleException: This client already liked the ticket
        """
        with traced_operation(tracer, "community.add_like") as span:
            span.set_attribute("ticket.id", ticket_id)
            self._visible_ticket(ticket_id)

            try:
                self.mongodb_service.ticket_likes.insert_one({
                    "_id": generate_object_id(),
                    "ticketId": ticket_id,
                    "ipHash": hash_client_ip(client_ip),
                    "createdAt": datetime.utcnow(),
                })
            except DuplicateKeyError:
                raise BusinessRuleException("You have already liked this ticket")

            document = self.mongodb_service.tickets.find_one_and_update(
                {"_id": ticket_id},
                {"$inc": {"likeCount": 1}},
                projection={"likeCount": 1},
                return_document=ReturnDocument.AFTER
            )
            return LikeResult(ticket_id=ticket_id, like_count=document["likeCount"])

    def add_comment(
        self,
        ticket_id: str,
        payload: Union[CreateCommentRequest, Dict[str, Any]],
        client_ip: Optional[str] = None
    ) -> CommentView:
        """
        Add an anonymous comment to a visible ticket.

        Raises:
            NotFoundException: Ticket is not publicly visible
            ValidationException: Malformed comment or banned wording
        """
        with traced_operation(tracer, "community.add_comment") as span:
            span.set_attribute("ticket.id", ticket_id)

            if isinstance(payload, CreateCommentRequest):
                request = payload
            else:
                try:
                    request = CreateCommentRequest.model_validate(payload)
                except ValidationError as e:
                    raise validation_exception_from(e, "CreateCommentRequest")

            document = self._visible_ticket(ticket_id)

            if find_banned_word(request.content):
                raise ValidationException(
                    "Comment contains inappropriate content",
                    [{"field": "content", "message": "Inappropriate content", "type": "value_error"}]
                )

            comment = CommunityComment(
                ticket_id=ticket_id,
                organization_id=document["organizationId"],
                nickname=request.nickname or ANONYMOUS_NICKNAME,
                content=request.content,
                ip_hash=hash_client_ip(client_ip) if client_ip else None,
            )
            self.mongodb_service.ticket_comments.insert_one(comment.to_document())
            self.mongodb_service.tickets.update_one({"_id": ticket_id}, {"$inc": {"commentCount": 1}})

            logger.info("Community comment added", extra={"ticket_id": ticket_id, "comment_id": comment.id})
            return to_comment_view(comment.model_dump(by_alias=True))

    def list_comments(self, ticket_id: str, limit: Optional[int] = 20, offset: Optional[int] = 0) -> CommentPage:
        """Comments of a visible ticket, oldest first."""
        self._visible_ticket(ticket_id)
        limit, offset = clamp_public_page(limit, offset)

        page = self.mongodb_service.paginate(
            TICKET_COMMENTS,
            {"ticketId": ticket_id},
            limit,
            offset,
            sort_order=ASCENDING,
            projection={"ipHash": 0}
        )
        return CommentPage(
            items=[to_comment_view(document) for document in page.items],
            total=page.total,
            limit=limit,
            offset=offset,
            has_more=page.has_more,
        )
