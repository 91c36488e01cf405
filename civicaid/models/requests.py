# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints and gateway operations.
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .base import CamelModel, EMAIL_PATTERN
from .enums import TicketStatus, TicketPriority, Sentiment, UserRole

PHONE_PATTERN = re.compile(r'^[0-9+\-\s]{10,20}$')


def _strip_required(v: str, field: str) -> str:
    if not v or not v.strip():
        raise ValueError(f'{field} cannot be empty')
    return v.strip()


def _optional_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class CitizenSubmissionFields(CamelModel):
    """Citizen-supplied fields shared by public and staff ticket creation."""

    citizen_name: str = Field(..., max_length=50, description="Citizen name")
    citizen_phone: Optional[str] = Field(None, description="Citizen phone number")
    citizen_email: Optional[str] = Field(None, description="Citizen email address")
    content: str = Field(..., max_length=4000, description="Complaint text")
    category: Optional[str] = Field(None, max_length=50, description="Category, defaults per organization")
    nickname: Optional[str] = Field(None, max_length=30, description="Public display name")
    is_public: bool = Field(default=False, description="Request public visibility")

    @field_validator('citizen_name')
    @classmethod
    def validate_citizen_name(cls, v):
        return _strip_required(v, 'Citizen name')

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        return _strip_required(v, 'Content')

    @field_validator('citizen_phone')
    @classmethod
    def validate_phone(cls, v):
        v = _optional_text(v)
        if v is not None and not PHONE_PATTERN.match(v):
            raise ValueError('Phone number must be 10-20 digits, spaces, + or -')
        return v

    @field_validator('citizen_email')
    @classmethod
    def validate_email(cls, v):
        v = _optional_text(v)
        if v is not None and not EMAIL_PATTERN.match(v.lower()):
            raise ValueError('Invalid email format')
        return v.lower() if v else v

    @field_validator('category', 'nickname')
    @classmethod
    def blank_to_none(cls, v):
        return _optional_text(v)


class CreatePublicTicketRequest(CitizenSubmissionFields):
    """Anonymous submission through the community page."""

    organization_id: Optional[str] = Field(None, description="Target organization, defaults to community")


class CreateTicketRequest(CitizenSubmissionFields):
    """Staff-created ticket inside the caller's organization."""

    priority: TicketPriority = Field(default=TicketPriority.NORMAL)
    sentiment: Optional[Sentiment] = None


class TransitionTicketRequest(CamelModel):
    """Requested lifecycle move and its payload."""

    status: TicketStatus = Field(..., description="Target status")
    assignee_id: Optional[str] = Field(None, description="Assign while starting work")
    resolution_note: Optional[str] = Field(None, max_length=4000, description="Required when resolving")
    reason: Optional[str] = Field(None, max_length=1000, description="Rejection reason")
    note: Optional[str] = Field(None, max_length=1000, description="Free-form note for the history")


class AssignTicketRequest(CamelModel):
    """Assignee change; null unassigns."""

    user_id: Optional[str] = None


class ReplyTicketRequest(CamelModel):
    """Staff reply addressed to the citizen."""

    text: str = Field(..., max_length=2000, description="Reply text")

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        return _strip_required(v, 'Reply')


class TicketListQuery(CamelModel):
    """Inbox filters and pagination."""

    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    sentiment: Optional[Sentiment] = None
    category: Optional[str] = None
    assigned_to_id: Optional[str] = None
    limit: int = 20
    offset: int = 0


class SlaTicketsQuery(CamelModel):
    """Approaching-deadline query."""

    hours_threshold: int = 24
    limit: int = 10


class TrendsQuery(CamelModel):
    """Daily trend window, clamped to 1-30 days."""

    days: int = 7


class SatisfactionQuery(CamelModel):
    """Survey statistics filters."""

    date_from: Optional[datetime] = Field(None, alias="from")
    date_to: Optional[datetime] = Field(None, alias="to")
    category: Optional[str] = None


class PublicTicketQuery(CamelModel):
    """Community listing query. Bounds are clamped server-side."""

    organization_id: Optional[str] = None
    category: Optional[str] = None
    limit: int = 20
    offset: int = 0


class OrganizationQuery(CamelModel):
    """Optional organization selector for community reads."""

    organization_id: Optional[str] = None


class PageQuery(CamelModel):
    """Offset pagination."""

    limit: int = 20
    offset: int = 0


class CreateCommentRequest(CamelModel):
    """Anonymous comment on a public ticket."""

    nickname: Optional[str] = Field(None, max_length=30)
    content: str = Field(..., max_length=500)

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        return _strip_required(v, 'Comment')

    @field_validator('nickname')
    @classmethod
    def blank_to_none(cls, v):
        return _optional_text(v)


class SubmitSurveyRequest(CamelModel):
    """Satisfaction survey answer."""

    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)

    @field_validator('feedback')
    @classmethod
    def blank_to_none(cls, v):
        return _optional_text(v)


class CreateOrganizationRequest(CamelModel):
    """Organization provisioning input."""

    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    allow_public_submissions: bool = False
    default_category: str = Field(default="general", min_length=1, max_length=50)


class UpdateSettingsRequest(CamelModel):
    """Partial organization settings update."""

    allow_public_submissions: Optional[bool] = None
    default_category: Optional[str] = Field(None, min_length=1, max_length=50)


class UpdateMemberRoleRequest(CamelModel):
    """Member role change."""

    role: UserRole


class TicketPath(BaseModel):
    ticket_id: str = Field(..., description="Ticket identifier")


class TokenPath(BaseModel):
    token: str = Field(..., description="Ticket timeline token")


class MemberPath(BaseModel):
    user_id: str = Field(..., description="Member user identifier")
