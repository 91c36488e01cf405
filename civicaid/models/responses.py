# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints and gateway results.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from .base import CamelModel
from .entities import Ticket
from .enums import TicketStatus, TicketPriority, TicketUpdateType


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class ProblemResponse(BaseModel):
    """RFC 7807 problem document."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
    retryable: bool = False


class PublicTicketSummary(CamelModel):
    """Community-safe projection of a ticket. Never carries contact fields or the token."""

    id: str
    nickname: str
    content: str
    category: str
    status: TicketStatus
    created_at: datetime
    updated_at: datetime
    like_count: int = 0
    comment_count: int = 0


class PublicTicketPage(CamelModel):
    """Page of publicly visible tickets."""

    items: List[PublicTicketSummary] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int
    has_more: bool = False


class SubmissionReceipt(CamelModel):
    """Returned once to the citizen after a public submission."""

    ticket_id: str
    token: str
    status: TicketStatus


class TimelineEntry(CamelModel):
    """Public status-change history entry."""

    type: TicketUpdateType
    from_status: Optional[TicketStatus] = None
    to_status: Optional[TicketStatus] = None
    note: Optional[str] = None
    created_at: datetime


class TimelineView(CamelModel):
    """Token-scoped view of one ticket."""

    ticket_id: str
    nickname: str
    content: str
    category: str
    status: TicketStatus
    priority: TicketPriority
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    history: List[TimelineEntry] = Field(default_factory=list)
    survey_submitted: bool = False


class SurveyEligibility(CamelModel):
    """Whether the token holder may submit a satisfaction survey."""

    eligible: bool
    reason: Optional[str] = None


class CommentView(CamelModel):
    """Public comment."""

    id: str
    ticket_id: str
    nickname: str
    content: str
    created_at: datetime


class CommentPage(CamelModel):
    items: List[CommentView] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int
    has_more: bool = False


class TicketPage(CamelModel):
    """Staff inbox page."""

    items: List[Ticket] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int
    has_more: bool = False


class LikeResult(CamelModel):
    ticket_id: str
    like_count: int


class SlaTicketView(CamelModel):
    """Inbox row for a ticket approaching its SLA deadline."""

    id: str
    citizen_name: str
    category: str
    priority: TicketPriority
    status: TicketStatus
    created_at: datetime
    sla_due_at: datetime
    assigned_to_id: Optional[str] = None
    remaining_hours: int
