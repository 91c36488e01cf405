# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the CivicAid platform.
"""

# Base models
from .base import BaseEntity, CamelModel, generate_object_id

# Enumerations
from .enums import (
    TicketStatus,
    TicketPriority,
    Sentiment,
    TicketSource,
    TicketUpdateType,
    UserRole,
    UserStatus
)

# Core entities
from .entities import (
    ANONYMOUS_NICKNAME,
    OrganizationSettings,
    Organization,
    User,
    TicketUpdate,
    SatisfactionSurvey,
    CitizenContact,
    Ticket,
    CommunityComment,
    Identity
)

__all__ = [
    "BaseEntity",
    "CamelModel",
    "generate_object_id",
    "TicketStatus",
    "TicketPriority",
    "Sentiment",
    "TicketSource",
    "TicketUpdateType",
    "UserRole",
    "UserStatus",
    "ANONYMOUS_NICKNAME",
    "OrganizationSettings",
    "Organization",
    "User",
    "TicketUpdate",
    "SatisfactionSurvey",
    "CitizenContact",
    "Ticket",
    "CommunityComment",
    "Identity"
]
