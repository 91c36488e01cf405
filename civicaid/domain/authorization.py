# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for organization-scoped, role-based access.

This module contains pure functions deciding what an identified caller may do
inside its own organization.
"""

from typing import Optional
from dataclasses import dataclass

from ..models.entities import Identity
from ..models.enums import UserRole

TICKET_EDITOR_ROLES = frozenset({UserRole.ADMIN, UserRole.MEMBER})


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def check_organization_access(identity: Identity, target_org_id: str) -> AuthorizationResult:
    """
    Check if the caller belongs to the organization owning a resource.

    Args:
        identity: Resolved caller
        target_org_id: Organization owning the resource

    Returns:
        AuthorizationResult indicating if access is granted
    """
    if identity.organization_id == target_org_id:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason="Resource belongs to another organization"
    )


def can_edit_tickets(identity: Identity) -> AuthorizationResult:
    """Viewers may read the inbox but not change tickets."""
    if UserRole(identity.role) in TICKET_EDITOR_ROLES:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Role {identity.role} cannot modify tickets"
    )


def can_assign_to(identity: Identity, assignee_id: Optional[str]) -> AuthorizationResult:
    """
    Check if the caller may set the given assignee.

    Admins may assign anyone in their organization; members may only take a
    ticket themselves.
    """
    editable = can_edit_tickets(identity)
    if not editable.allowed:
        return editable

    if identity.is_admin or assignee_id == identity.user_id:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason="Only admins can assign tickets to other members"
    )


def can_manage_organization(identity: Identity) -> AuthorizationResult:
    """Settings and membership changes are admin-only."""
    if identity.is_admin:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason="Organization admin role required"
    )


def would_remove_last_admin(current_role: str, new_role: str, admin_count: int) -> bool:
    """Whether a role change would leave the organization without an admin."""
    return (
        UserRole(current_role) == UserRole.ADMIN
        and UserRole(new_role) != UserRole.ADMIN
        and admin_count <= 1
    )
