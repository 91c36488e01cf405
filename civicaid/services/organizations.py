# SPDX-License-Identifier: Apache-2.0

"""
Tenant directory: organizations, their settings and their members.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from opentelemetry import trace
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..domain import authorization
from ..domain.tickets import ACTIVE_STATUSES
from ..middleware.error_handler import (
    AuthorizationException,
    BusinessRuleException,
    DuplicateSlugException,
    NotFoundException,
    ValidationException,
    validation_exception_from
)
from ..models.entities import Identity, Organization, OrganizationSettings, User
from ..models.enums import UserRole
from ..observability.tracing import traced_operation
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_COMMUNITY_ORG_ID = "org_default_community"
DEFAULT_COMMUNITY_SLUG = "community"


def default_community_organization() -> Organization:
    """The well-known fallback tenant for anonymous submissions."""
    return Organization(
        id=DEFAULT_COMMUNITY_ORG_ID,
        name="Community Organization",
        slug=DEFAULT_COMMUNITY_SLUG,
        description="Default organization for community submissions",
        settings=OrganizationSettings(allow_public_submissions=True, default_category="general"),
    )


class TenantDirectory:
    """Organizations keyed by id and by unique slug."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    def create_organization(
        self,
        name: str,
        slug: str,
        description: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        clerk_org_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Organization:
        """
        Provision a new organization.

        Args:
            name: Human name
            slug: Unique public slug
            description: Free-text description
            settings: allowPublicSubmissions / defaultCategory overrides
            clerk_org_id: Identity provider organization id
            organization_id: Explicit id (generated when omitted)

        Returns:
            The stored Organization

        Raises:
            ValidationException: If name, slug or settings are malformed
            DuplicateSlugException: If the slug is already taken
        """
        with traced_operation(tracer, "organizations.create") as span:
            span.set_attribute("organization.slug", slug)

            data: Dict[str, Any] = {
                "name": name,
                "slug": slug,
                "description": description,
                "clerk_org_id": clerk_org_id,
                "settings": settings or {},
            }
            if organization_id:
                data["id"] = organization_id

            try:
                organization = Organization.model_validate(data)
            except ValidationError as e:
                raise validation_exception_from(e, "Organization")

            try:
                self.mongodb_service.organizations.insert_one(organization.to_document())
            except DuplicateKeyError:
                logger.warning("Organization slug already taken", extra={"slug": slug})
                raise DuplicateSlugException(slug)

            span.set_attribute("organization.id", organization.id)
            logger.info(
                "Organization created",
                extra={"organization_id": organization.id, "slug": organization.slug}
            )
            return organization

    def get_by_slug(self, slug: str) -> Organization:
        """Look up an organization by slug, raising NotFoundException when absent."""
        document = self.mongodb_service.organizations.find_one({"slug": slug})
        if document is None:
            raise NotFoundException(f"Organization '{slug}' not found")
        return Organization.from_document(document)

    def get_by_id(self, organization_id: str) -> Organization:
        """Look up an organization by id, raising NotFoundException when absent."""
        organization = self.find_by_id(organization_id)
        if organization is None:
            raise NotFoundException("Organization not found")
        return organization

    def find_by_id(self, organization_id: str) -> Optional[Organization]:
        document = self.mongodb_service.organizations.find_one({"_id": organization_id})
        return Organization.from_document(document)

    def ensure_default_community(self) -> Organization:
        """
        Create the default community organization if it does not exist.

        Idempotent: an existing record is returned untouched.
        """
        with traced_operation(tracer, "organizations.ensure_default_community"):
            document = default_community_organization().to_document()
            document.pop("_id")

            try:
                result = self.mongodb_service.organizations.update_one(
                    {"_id": DEFAULT_COMMUNITY_ORG_ID},
                    {"$setOnInsert": document},
                    upsert=True
                )
            except DuplicateKeyError:
                logger.error(
                    "Default community slug is held by another organization",
                    extra={"slug": DEFAULT_COMMUNITY_SLUG}
                )
                raise DuplicateSlugException(DEFAULT_COMMUNITY_SLUG)

            if result.upserted_id is not None:
                logger.info("Default community organization created",
                            extra={"organization_id": DEFAULT_COMMUNITY_ORG_ID})

            return self.get_by_id(DEFAULT_COMMUNITY_ORG_ID)

    def update_settings(
        self,
        organization_id: str,
        identity: Identity,
        allow_public_submissions: Optional[bool] = None,
        default_category: Optional[str] = None
    ) -> Organization:
        """
        Change tenant policy settings. Admin only, own organization only.
        """
        with traced_operation(tracer, "organizations.update_settings") as span:
            span.set_attribute("organization.id", organization_id)
            self._require_admin_of(identity, organization_id)

            updates: Dict[str, Any] = {}
            if allow_public_submissions is not None:
                updates["settings.allowPublicSubmissions"] = bool(allow_public_submissions)
            if default_category is not None:
                category = default_category.strip()
                if not category or len(category) > 50:
                    raise ValidationException(
                        "Invalid default category",
                        [{"field": "defaultCategory", "message": "Must be 1-50 characters",
                          "type": "value_error"}]
                    )
                updates["settings.defaultCategory"] = category

            if not updates:
                return self.get_by_id(organization_id)

            updates["updatedAt"] = datetime.utcnow()
            document = self.mongodb_service.organizations.find_one_and_update(
                {"_id": organization_id},
                {"$set": updates},
                return_document=ReturnDocument.AFTER
            )
            if document is None:
                raise NotFoundException("Organization not found")

            logger.info(
                "Organization settings updated",
                extra={"organization_id": organization_id, "user_id": identity.user_id,
                       "fields": sorted(updates)}
            )
            return Organization.from_document(document)

    def list_members(self, organization_id: str) -> List[User]:
        """Members of an organization ordered by join time."""
        cursor = self.mongodb_service.users.find({"organizationId": organization_id}).sort("createdAt", 1)
        return [User.from_document(document) for document in cursor]

    def update_member_role(
        self,
        organization_id: str,
        identity: Identity,
        user_id: str,
        role: str
    ) -> User:
        """
        Change a member's role. Admin only; the last admin cannot be demoted.

        Raises:
            AuthorizationException: Caller is not an admin of the organization
            NotFoundException: User is not a member of the organization
            BusinessRuleException: The change would leave no admin
        """
        with traced_operation(tracer, "organizations.update_member_role") as span:
            span.set_attributes({"organization.id": organization_id, "user.id": user_id})
            self._require_admin_of(identity, organization_id)

            new_role = UserRole(role)
            member = self.mongodb_service.users.find_one({"_id": user_id, "organizationId": organization_id})
            if member is None:
                raise NotFoundException("Member not found")

            admin_count = self.mongodb_service.users.count_documents(
                {"organizationId": organization_id, "role": UserRole.ADMIN.value}
            )
            if authorization.would_remove_last_admin(member["role"], new_role, admin_count):
                raise BusinessRuleException("An organization must keep at least one admin")

            document = self.mongodb_service.users.find_one_and_update(
                {"_id": user_id, "organizationId": organization_id},
                {"$set": {"role": new_role.value, "updatedAt": datetime.utcnow()}},
                return_document=ReturnDocument.AFTER
            )

            logger.info(
                "Member role updated",
                extra={"organization_id": organization_id, "user_id": user_id,
                       "role": new_role.value, "changed_by": identity.user_id}
            )
            return User.from_document(document)

    def get_statistics(self, organization_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        """Ticket and member counts for the organization dashboard."""
        now = now or datetime.utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tickets = self.mongodb_service.tickets

        return {
            "totalTickets": tickets.count_documents({"organizationId": organization_id}),
            "todayTickets": tickets.count_documents(
                {"organizationId": organization_id, "createdAt": {"$gte": today_start}}
            ),
            "weekTickets": tickets.count_documents(
                {"organizationId": organization_id, "createdAt": {"$gte": now - timedelta(days=7)}}
            ),
            "openTickets": tickets.count_documents(
                {"organizationId": organization_id,
                 "status": {"$in": [status.value for status in ACTIVE_STATUSES]}}
            ),
            "memberCount": self.mongodb_service.users.count_documents({"organizationId": organization_id}),
        }

    def _require_admin_of(self, identity: Identity, organization_id: str) -> None:
        access = authorization.check_organization_access(identity, organization_id)
        if not access.allowed:
            raise AuthorizationException(access.reason)
        admin = authorization.can_manage_organization(identity)
        if not admin.allowed:
            raise AuthorizationException(admin.reason)
