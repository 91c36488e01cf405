# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the CivicAid platform.
"""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle status enumeration."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


class TicketPriority(str, Enum):
    """Ticket priority levels."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Sentiment(str, Enum):
    """Derived citizen sentiment."""
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class TicketSource(str, Enum):
    """Where a ticket entered the system."""
    COMMUNITY = "COMMUNITY"
    STAFF = "STAFF"


class TicketUpdateType(str, Enum):
    """Kinds of ticket history entries."""
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNMENT_CHANGE = "ASSIGNMENT_CHANGE"
    REPLY_SENT = "REPLY_SENT"


class UserRole(str, Enum):
    """Organization member roles."""
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class UserStatus(str, Enum):
    """User account status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
