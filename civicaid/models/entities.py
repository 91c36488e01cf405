# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the CivicAid platform.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator, ConfigDict
from .base import BaseEntity, CamelModel, EMAIL_PATTERN, SLUG_PATTERN
from .enums import (
    TicketStatus,
    TicketPriority,
    Sentiment,
    TicketSource,
    TicketUpdateType,
    UserRole,
    UserStatus
)

ANONYMOUS_NICKNAME = "익명"


class OrganizationSettings(CamelModel):
    """Tenant policy settings."""

    allow_public_submissions: bool = Field(default=False, description="Accept and show public submissions")
    default_category: str = Field(default="general", min_length=1, max_length=50,
                                  description="Category used when a submission omits one")


class Organization(BaseEntity):
    """Organization entity for multi-tenant isolation."""

    name: str = Field(..., min_length=1, max_length=200, description="Organization name")
    slug: str = Field(..., min_length=1, max_length=100, description="URL-friendly unique identifier")
    description: Optional[str] = Field(None, max_length=1000, description="Organization description")
    clerk_org_id: Optional[str] = Field(None, description="Identity provider organization id")
    settings: OrganizationSettings = Field(default_factory=OrganizationSettings)

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, v):
        """Validate slug format."""
        if not SLUG_PATTERN.match(v):
            raise ValueError('Slug must contain only lowercase letters, numbers, and hyphens')
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate organization name."""
        if not v.strip():
            raise ValueError('Organization name cannot be empty')
        return v.strip()


class User(BaseEntity):
    """Organization member known to the identity provider."""

    organization_id: str = Field(..., description="Owning organization")
    external_id: str = Field(..., min_length=1, description="Identity provider user id")
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, max_length=200, description="Display name")
    role: UserRole = Field(default=UserRole.MEMBER, description="Role within the organization")
    status: UserStatus = Field(default=UserStatus.ACTIVE, description="User account status")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not EMAIL_PATTERN.match(v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    def is_active(self) -> bool:
        """Check if user is active."""
        return self.status == UserStatus.ACTIVE


class TicketUpdate(CamelModel):
    """A single entry of a ticket's history."""

    type: TicketUpdateType
    from_status: Optional[TicketStatus] = None
    to_status: Optional[TicketStatus] = None
    note: Optional[str] = None
    actor_id: Optional[str] = None
    assignee_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SatisfactionSurvey(CamelModel):
    """Citizen feedback recorded after resolution."""

    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)
    submitted_at: datetime = Field(default_factory=datetime.utcnow)


class CitizenContact(CamelModel):
    """Citizen-supplied contact details. Untrusted beyond format checks."""

    name: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = None


class Ticket(BaseEntity):
    """Citizen complaint record."""

    organization_id: str = Field(..., description="Owning organization")
    assigned_to_id: Optional[str] = None
    citizen_name: str
    citizen_phone: Optional[str] = None
    citizen_email: Optional[str] = None
    content: str
    category: str
    priority: TicketPriority = TicketPriority.NORMAL
    sentiment: Optional[Sentiment] = None
    status: TicketStatus = TicketStatus.OPEN
    is_public: bool = False
    nickname: str = ANONYMOUS_NICKNAME
    token: str = Field(..., description="Opaque timeline capability")
    source: TicketSource = TicketSource.STAFF
    resolution_note: Optional[str] = None
    rejection_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    sla_due_at: Optional[datetime] = None
    version: int = 1
    history: List[TicketUpdate] = Field(default_factory=list)
    like_count: int = 0
    comment_count: int = 0
    survey: Optional[SatisfactionSurvey] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


class CommunityComment(BaseEntity):
    """Anonymous comment on a publicly visible ticket."""

    ticket_id: str
    organization_id: str
    nickname: str = ANONYMOUS_NICKNAME
    content: str
    ip_hash: Optional[str] = None


class Identity(CamelModel):
    """Resolved caller of an authenticated surface."""

    model_config = ConfigDict(frozen=True)

    user: User
    organization: Organization
    is_synthetic: bool = False

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def organization_id(self) -> str:
        return self.organization.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_admin(self) -> bool:
        return self.user.role == UserRole.ADMIN
