# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for identity resolution and token verification.
"""

import pytest
import jwt
from datetime import datetime, timedelta
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from civicaid.config import AuthMode, ConfigurationError
from civicaid.middleware.error_handler import (
    AuthenticationException,
    AuthorizationException,
    BusinessRuleException
)
from civicaid.models.enums import UserRole
from civicaid.services.auth import AuthService, TokenValidationError
from civicaid.services.identity import (
    DEV_ORGANIZATION_ID,
    DEV_USER_ID,
    IdentityResolver,
    development_identity
)


@pytest.fixture(scope="module")
def key_pair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("utf-8")
    return private_pem, public_pem


def sign(private_pem, **claims):
    payload = {"sub": "ext_1", "exp": datetime.utcnow() + timedelta(minutes=5)}
    payload.update(claims)
    return jwt.encode(payload, private_pem, algorithm="RS256")


class TestAuthService:

    def test_valid_token(self, key_pair):
        private_pem, public_pem = key_pair
        claims = AuthService(public_pem).validate_token(sign(private_pem))
        assert claims["sub"] == "ext_1"

    def test_expired_token(self, key_pair):
        private_pem, public_pem = key_pair
        token = sign(private_pem, exp=datetime.utcnow() - timedelta(hours=1))
        with pytest.raises(TokenValidationError):
            AuthService(public_pem).validate_token(token)

    def test_wrong_key(self, key_pair):
        _, public_pem = key_pair
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        other_pem = other.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode("utf-8")
        with pytest.raises(TokenValidationError):
            AuthService(public_pem).validate_token(sign(other_pem))

    def test_issuer_and_audience(self, key_pair):
        private_pem, public_pem = key_pair
        service = AuthService(public_pem, issuer="https://idp.example.com", audience="civicaid")

        good = sign(private_pem, iss="https://idp.example.com", aud="civicaid")
        assert service.validate_token(good)["sub"] == "ext_1"

        with pytest.raises(TokenValidationError):
            service.validate_token(sign(private_pem, iss="https://evil.example.com", aud="civicaid"))

    def test_garbage(self, key_pair):
        _, public_pem = key_pair
        with pytest.raises(TokenValidationError):
            AuthService(public_pem).validate_token("not.a.jwt")


class TestVerifiedMode:

    def test_resolves_stored_user(self, resolver, admin):
        resolver.auth_service.validate_token.return_value = {"sub": "admin"}

        identity = resolver.resolve_caller("token")

        assert identity.user_id == admin.user_id
        assert identity.organization_id == admin.organization_id
        assert identity.is_admin is True
        assert identity.is_synthetic is False

    def test_missing_token(self, resolver):
        with pytest.raises(AuthenticationException):
            resolver.resolve_caller(None)
        resolver.auth_service.validate_token.assert_not_called()

    def test_invalid_token(self, resolver):
        resolver.auth_service.validate_token.side_effect = TokenValidationError("bad signature")
        with pytest.raises(AuthenticationException):
            resolver.resolve_caller("token")

    def test_unknown_user(self, resolver):
        resolver.auth_service.validate_token.return_value = {"sub": "stranger"}
        with pytest.raises(AuthenticationException):
            resolver.resolve_caller("token")

    def test_inactive_user(self, resolver, member, mongodb_service):
        mongodb_service.users.update_one({"_id": member.user_id}, {"$set": {"status": "suspended"}})
        resolver.auth_service.validate_token.return_value = {"sub": "member"}
        with pytest.raises(AuthorizationException):
            resolver.resolve_caller("token")

    def test_requires_verifier(self, mongodb_service):
        with pytest.raises(ConfigurationError):
            IdentityResolver(mongodb_service, AuthMode.VERIFIED)

    def test_with_real_verifier(self, mongodb_service, organization, key_pair):
        private_pem, public_pem = key_pair
        resolver = IdentityResolver(mongodb_service, AuthMode.VERIFIED, AuthService(public_pem))
        user = resolver.provision_user(organization.id, "ext_1", "ext1@example.com")

        identity = resolver.resolve_caller(sign(private_pem))
        assert identity.user_id == user.id


class TestDevelopmentMode:

    def test_synthetic_identity_ignores_token(self, mongodb_service):
        resolver = IdentityResolver(mongodb_service, AuthMode.DEVELOPMENT)

        for credentials in (None, "", "garbage"):
            identity = resolver.resolve_caller(credentials)
            assert identity.is_synthetic is True
            assert identity.user_id == DEV_USER_ID
            assert identity.organization_id == DEV_ORGANIZATION_ID
            assert identity.role == UserRole.ADMIN.value

    def test_fixed_values(self):
        identity = development_identity()
        assert identity.user.external_id == "test_clerk_id"
        assert identity.user.email == "test@civicaid.com"
        assert identity.organization.slug == "test-org"
        assert identity.organization.settings.allow_public_submissions is True

    def test_ensure_development_identity_is_idempotent(self, mongodb_service):
        resolver = IdentityResolver(mongodb_service, AuthMode.DEVELOPMENT)
        resolver.ensure_development_identity()
        resolver.ensure_development_identity()

        assert mongodb_service.users.count_documents({"_id": DEV_USER_ID}) == 1
        assert mongodb_service.organizations.count_documents({"_id": DEV_ORGANIZATION_ID}) == 1


class TestProvisioning:

    def test_duplicate_external_id(self, resolver, organization):
        resolver.provision_user(organization.id, "ext_dup", "a@example.com")
        with pytest.raises(BusinessRuleException):
            resolver.provision_user(organization.id, "ext_dup", "b@example.com")

    def test_get_me(self, resolver, member):
        profile = resolver.get_me(member)
        assert profile["id"] == member.user_id
        assert profile["organization"]["id"] == member.organization_id
        assert profile["isSynthetic"] is False

