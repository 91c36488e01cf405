# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the tenant directory.
"""

import pytest

from civicaid.middleware.error_handler import (
    AuthorizationException,
    BusinessRuleException,
    DuplicateSlugException,
    NotFoundException,
    ValidationException
)
from civicaid.models.enums import UserRole
from civicaid.services.organizations import DEFAULT_COMMUNITY_ORG_ID, DEFAULT_COMMUNITY_SLUG


class TestOrganizations:

    def test_create_and_lookup(self, directory):
        organization = directory.create_organization("Capital City", "capital-city")

        assert organization.settings.allow_public_submissions is False
        assert organization.settings.default_category == "general"
        assert directory.get_by_slug("capital-city").id == organization.id
        assert directory.get_by_id(organization.id).name == "Capital City"

    def test_duplicate_slug(self, directory):
        directory.create_organization("Capital City", "capital-city")
        with pytest.raises(DuplicateSlugException) as exc_info:
            directory.create_organization("Other Capital", "capital-city")
        assert exc_info.value.status_code == 409

    @pytest.mark.parametrize("name,slug", [
        ("Capital", "Capital City"),
        ("Capital", "capital_city"),
        ("   ", "capital"),
        ("Capital", ""),
    ])
    def test_invalid_input(self, directory, name, slug):
        with pytest.raises(ValidationException):
            directory.create_organization(name, slug)

    def test_missing(self, directory):
        with pytest.raises(NotFoundException):
            directory.get_by_slug("nowhere")
        with pytest.raises(NotFoundException):
            directory.get_by_id("org_nowhere")


class TestDefaultCommunity:

    def test_bootstrap_creates_default(self, directory):
        organization = directory.ensure_default_community()

        assert organization.id == DEFAULT_COMMUNITY_ORG_ID
        assert organization.slug == DEFAULT_COMMUNITY_SLUG
        assert organization.name == "Community Organization"
        assert organization.settings.allow_public_submissions is True
        assert organization.settings.default_category == "general"

    def test_bootstrap_is_idempotent(self, directory, mongodb_service):
        directory.ensure_default_community()
        mongodb_service.organizations.update_one(
            {"_id": DEFAULT_COMMUNITY_ORG_ID},
            {"$set": {"settings.defaultCategory": "civic"}}
        )

        organization = directory.ensure_default_community()

        assert organization.settings.default_category == "civic"
        assert mongodb_service.organizations.count_documents({"slug": DEFAULT_COMMUNITY_SLUG}) == 1

    def test_slug_taken_by_another_organization(self, directory):
        directory.create_organization("Impostor", DEFAULT_COMMUNITY_SLUG)
        with pytest.raises(DuplicateSlugException):
            directory.ensure_default_community()


class TestSettings:

    def test_admin_updates_settings(self, directory, organization, admin):
        updated = directory.update_settings(
            organization.id, admin, allow_public_submissions=False, default_category="parks"
        )
        assert updated.settings.allow_public_submissions is False
        assert updated.settings.default_category == "parks"

    def test_member_cannot_update(self, directory, organization, member):
        with pytest.raises(AuthorizationException):
            directory.update_settings(organization.id, member, allow_public_submissions=False)

    def test_admin_of_other_organization(self, directory, organization, outsider):
        with pytest.raises(AuthorizationException):
            directory.update_settings(organization.id, outsider, allow_public_submissions=False)

    def test_blank_category(self, directory, organization, admin):
        with pytest.raises(ValidationException):
            directory.update_settings(organization.id, admin, default_category="  ")


class TestMembers:

    def test_list_members(self, directory, organization, admin, member):
        ids = [user.id for user in directory.list_members(organization.id)]
        assert set(ids) == {admin.user_id, member.user_id}

    def test_promote_member(self, directory, organization, admin, member):
        updated = directory.update_member_role(organization.id, admin, member.user_id, "ADMIN")
        assert updated.role == UserRole.ADMIN.value

    def test_last_admin_cannot_be_demoted(self, directory, organization, admin):
        with pytest.raises(BusinessRuleException):
            directory.update_member_role(organization.id, admin, admin.user_id, "MEMBER")

    def test_demote_when_another_admin_exists(self, directory, organization, admin, member):
        directory.update_member_role(organization.id, admin, member.user_id, "ADMIN")
        updated = directory.update_member_role(organization.id, admin, admin.user_id, "VIEWER")
        assert updated.role == UserRole.VIEWER.value

    def test_non_member_target(self, directory, organization, admin, outsider):
        with pytest.raises(NotFoundException):
            directory.update_member_role(organization.id, admin, outsider.user_id, "MEMBER")

    def test_member_cannot_change_roles(self, directory, organization, member, admin):
        with pytest.raises(AuthorizationException):
            directory.update_member_role(organization.id, member, admin.user_id, "VIEWER")


class TestStatistics:

    def test_counts(self, directory, organization, admin, member, make_ticket, drive_to):
        make_ticket()
        drive_to(make_ticket(), "CLOSED")

        statistics = directory.get_statistics(organization.id)

        assert statistics["totalTickets"] == 2
        assert statistics["todayTickets"] == 2
        assert statistics["weekTickets"] == 2
        assert statistics["openTickets"] == 1
        assert statistics["memberCount"] == 2
