# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Caller identity resolution for authenticated surfaces.

The resolver is built once with the process AuthMode. In verified mode the
bearer token is checked by AuthService and mapped to a stored user; in
development mode a fixed, clearly synthetic identity is returned instead.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import trace
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from ..config import AuthMode, ConfigurationError
from ..middleware.error_handler import (
    AuthenticationException,
    AuthorizationException,
    BusinessRuleException,
    validation_exception_from
)
from ..models.entities import Identity, Organization, OrganizationSettings, User
from ..models.enums import UserRole
from ..observability.tracing import traced_operation
from .auth import AuthService, TokenValidationError
from .mongodb import MongoDBService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEV_USER_ID = "usr_test_001"
DEV_EXTERNAL_ID = "test_clerk_id"
DEV_ORGANIZATION_ID = "org_test_001"


def development_identity() -> Identity:
    """The fixed identity used when AUTH_MODE=development."""
    organization = Organization(
        id=DEV_ORGANIZATION_ID,
        name="테스트 조직",
        slug="test-org",
        settings=OrganizationSettings(allow_public_submissions=True),
    )
    user = User(
        id=DEV_USER_ID,
        organization_id=DEV_ORGANIZATION_ID,
        external_id=DEV_EXTERNAL_ID,
        email="test@civicaid.com",
        name="testuser",
        role=UserRole.ADMIN,
    )
    return Identity(user=user, organization=organization, is_synthetic=True)


class IdentityResolver:
    """Maps request credentials to an Identity."""

    def __init__(
        self,
        mongodb_service: MongoDBService,
        auth_mode: AuthMode,
        auth_service: Optional[AuthService] = None
    ):
        if auth_mode == AuthMode.VERIFIED and auth_service is None:
            raise ConfigurationError("Verified auth mode requires a token verifier")

        self.mongodb_service = mongodb_service
        self.auth_mode = auth_mode
        self.auth_service = auth_service

    def resolve_caller(self, credentials: Optional[str]) -> Identity:
        """
        Resolve the caller of an authenticated request.

        Args:
            credentials: Bearer token, or None when the header was absent

        Returns:
            Identity of the caller

        Raises:
            AuthenticationException: No verifiable identity
            AuthorizationException: The user exists but is not active
        """
        with traced_operation(tracer, "identity.resolve_caller") as span:
            span.set_attribute("auth.mode", self.auth_mode.value)

            if self.auth_mode == AuthMode.DEVELOPMENT:
                span.set_attribute("auth.result", "synthetic")
                return development_identity()

            if not credentials:
                span.set_attribute("auth.result", "missing_token")
                raise AuthenticationException("Missing authorization token")

            try:
                claims = self.auth_service.validate_token(credentials)
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}")
                raise AuthenticationException("Invalid or expired token")

            identity = self._load_identity(claims["sub"])

            span.set_attributes({
                "auth.result": "success",
                "user.id": identity.user_id,
                "organization.id": identity.organization_id
            })
            logger.debug(
                "Authentication successful",
                extra={"user_id": identity.user_id, "organization_id": identity.organization_id}
            )
            return identity

    def _load_identity(self, external_id: str) -> Identity:
        user = User.from_document(self.mongodb_service.users.find_one({"externalId": external_id}))
        if user is None:
            logger.warning("Authentication failed: unknown user", extra={"external_id": external_id})
            raise AuthenticationException("No user is registered for this token")

        if not user.is_active():
            raise AuthorizationException(f"User account is {user.status}")

        organization = Organization.from_document(
            self.mongodb_service.organizations.find_one({"_id": user.organization_id})
        )
        if organization is None:
            logger.error(
                "User references a missing organization",
                extra={"user_id": user.id, "organization_id": user.organization_id}
            )
            raise AuthenticationException("User organization not found")

        return Identity(user=user, organization=organization)

    def ensure_development_identity(self) -> Identity:
        """Persist the synthetic user and organization so store writes work against them."""
        identity = development_identity()

        organization_doc = identity.organization.to_document()
        organization_doc.pop("_id")
        self.mongodb_service.organizations.update_one(
            {"_id": identity.organization_id},
            {"$setOnInsert": organization_doc},
            upsert=True
        )

        user_doc = identity.user.to_document()
        user_doc.pop("_id")
        self.mongodb_service.users.update_one(
            {"_id": identity.user_id},
            {"$setOnInsert": user_doc},
            upsert=True
        )

        logger.warning(
            "Development identity in use; all authenticated requests act as the synthetic admin",
            extra={"user_id": identity.user_id, "organization_id": identity.organization_id}
        )
        return identity

    def provision_user(
        self,
        organization_id: str,
        external_id: str,
        email: str,
        name: Optional[str] = None,
        role: UserRole = UserRole.MEMBER,
        user_id: Optional[str] = None
    ) -> User:
        """
        Create a member record for an organization.

        Raises:
            ValidationException: Malformed email or external id
            BusinessRuleException: The external id is already registered
        """
        data: Dict[str, Any] = {
            "organization_id": organization_id,
            "external_id": external_id,
            "email": email,
            "name": name,
            "role": role,
        }
        if user_id:
            data["id"] = user_id

        try:
            user = User.model_validate(data)
        except ValidationError as e:
            raise validation_exception_from(e, "User")

        try:
            self.mongodb_service.users.insert_one(user.to_document())
        except DuplicateKeyError:
            raise BusinessRuleException("A user with this external id already exists")

        logger.info("User provisioned", extra={"user_id": user.id, "organization_id": organization_id})
        return user

    def get_me(self, identity: Identity) -> Dict[str, Any]:
        """Summary of the caller for the profile endpoint."""
        return {
            "id": identity.user_id,
            "email": identity.user.email,
            "name": identity.user.name,
            "role": identity.role,
            "isSynthetic": identity.is_synthetic,
            "organization": {
                "id": identity.organization_id,
                "name": identity.organization.name,
                "slug": identity.organization.slug,
            },
        }
