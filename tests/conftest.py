# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Storage is an in-memory mongomock client with the production indexes, so
uniqueness rules behave as they do against MongoDB.
"""

import pytest
import mongomock
from unittest.mock import Mock

from civicaid.config import AppConfig, AuthMode
from civicaid.domain.tickets import TransitionPayload
from civicaid.models.entities import CitizenContact, Identity
from civicaid.models.enums import TicketStatus, UserRole
from civicaid.services.community import CommunityGateway
from civicaid.services.events import TicketEventPublisher
from civicaid.services.identity import IdentityResolver
from civicaid.services.mongodb import MongoDBService
from civicaid.services.organizations import TenantDirectory
from civicaid.services.tickets import TicketStore
from civicaid.services.timeline import TimelineGateway


@pytest.fixture
def mongodb_service():
    """MongoDB service over an in-memory client."""
    service = MongoDBService(
        "mongodb://localhost:27017/civicaid_test",
        "civicaid_test",
        client=mongomock.MongoClient()
    )
    service.create_indexes()
    yield service
    service.close_connection()


@pytest.fixture
def event_publisher():
    """Publisher double recording every event."""
    publisher = Mock(spec=TicketEventPublisher)
    publisher.dispatch.return_value = None
    return publisher


@pytest.fixture
def directory(mongodb_service):
    return TenantDirectory(mongodb_service)


@pytest.fixture
def store(mongodb_service, directory, event_publisher):
    return TicketStore(mongodb_service, directory, event_publisher)


@pytest.fixture
def community(mongodb_service, directory, store):
    directory.ensure_default_community()
    return CommunityGateway(mongodb_service, directory, store)


@pytest.fixture
def timeline(mongodb_service, store):
    return TimelineGateway(mongodb_service, store)


@pytest.fixture
def resolver(mongodb_service):
    """Identity resolver in verified mode with a stubbed token verifier."""
    auth_service = Mock()
    return IdentityResolver(mongodb_service, AuthMode.VERIFIED, auth_service)


@pytest.fixture
def organization(directory):
    """Organization accepting public submissions."""
    return directory.create_organization(
        "Springfield City Hall",
        "springfield",
        settings={"allowPublicSubmissions": True, "defaultCategory": "roads"}
    )


@pytest.fixture
def private_organization(directory):
    """Organization not accepting public submissions."""
    return directory.create_organization("Shelbyville", "shelbyville")


def _member(resolver, organization, external_id, role):
    user = resolver.provision_user(
        organization.id,
        external_id,
        f"{external_id}@example.com",
        name=external_id,
        role=role
    )
    return Identity(user=user, organization=organization)


@pytest.fixture
def admin(resolver, organization):
    return _member(resolver, organization, "admin", UserRole.ADMIN)


@pytest.fixture
def member(resolver, organization):
    return _member(resolver, organization, "member", UserRole.MEMBER)


@pytest.fixture
def viewer(resolver, organization):
    return _member(resolver, organization, "viewer", UserRole.VIEWER)


@pytest.fixture
def outsider(resolver, private_organization):
    """Admin of another organization."""
    return _member(resolver, private_organization, "outsider", UserRole.ADMIN)


@pytest.fixture
def citizen():
    return CitizenContact(name="Marge", phone="010-1234-5678", email="marge@example.com")


@pytest.fixture
def make_ticket(store, organization, citizen):
    """Factory creating tickets in the public organization."""
    def factory(**kwargs):
        options = {"is_public": True, "nickname": "marge"}
        options.update(kwargs)
        organization_id = options.pop("organization_id", organization.id)
        content = options.pop("content", "Pothole on Evergreen Terrace")
        return store.create(organization_id, citizen, content, **options)
    return factory


@pytest.fixture
def drive_to(store, admin):
    """Move a ticket along the happy path up to the requested status."""
    path = {
        TicketStatus.OPEN: [],
        TicketStatus.IN_PROGRESS: [TicketStatus.IN_PROGRESS],
        TicketStatus.RESOLVED: [TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED],
        TicketStatus.CLOSED: [TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED],
        TicketStatus.REJECTED: [TicketStatus.REJECTED],
    }

    def drive(ticket, status):
        for step in path[TicketStatus(status)]:
            payload = TransitionPayload(
                assignee_id=admin.user_id if step == TicketStatus.IN_PROGRESS else None,
                resolution_note="Filled the pothole" if step == TicketStatus.RESOLVED else None,
                reason="Duplicate" if step == TicketStatus.REJECTED else None
            )
            ticket = store.transition(ticket.id, admin, step, payload)
        return ticket
    return drive


@pytest.fixture
def test_config():
    return AppConfig(
        environment="test",
        auth_mode=AuthMode.VERIFIED,
        otel_enabled=False,
        base_url="http://localhost:5000"
    )
