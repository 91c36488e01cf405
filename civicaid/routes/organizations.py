# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Organization endpoints scoped to the caller's own organization.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import require_identity
from ..models.entities import Identity
from ..models.requests import MemberPath, UpdateMemberRoleRequest, UpdateSettingsRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

org_tag = Tag(name="Organizations", description="Organization settings and membership")
org_bp = APIBlueprint(
    'organizations',
    __name__,
    url_prefix='/api/organizations',
    abp_tags=[org_tag]
)


@org_bp.get('/current')
@require_identity
def get_current_organization(identity: Identity):
    """The caller's organization and its public submission policy."""
    organization = current_app.tenant_directory.get_by_id(identity.organization_id)
    return jsonify(current_app.hal_formatter.format_resource(
        organization.model_dump(by_alias=True, mode="json"),
        "/api/organizations/current"
    ))


@org_bp.patch('/current/settings')
@require_identity
def update_settings(identity: Identity, body: UpdateSettingsRequest):
    """Change organization settings. Admin only."""
    organization = current_app.tenant_directory.update_settings(
        identity.organization_id,
        identity,
        allow_public_submissions=body.allow_public_submissions,
        default_category=body.default_category
    )
    return jsonify(current_app.hal_formatter.format_resource(
        organization.model_dump(by_alias=True, mode="json"),
        "/api/organizations/current"
    ))


@org_bp.get('/current/members')
@require_identity
def list_members(identity: Identity):
    members = current_app.tenant_directory.list_members(identity.organization_id)
    return jsonify({"items": [member.model_dump(by_alias=True, mode="json") for member in members]})


@org_bp.patch('/current/members/<string:user_id>')
@require_identity
def update_member_role(identity: Identity, path: MemberPath, body: UpdateMemberRoleRequest):
    """Change a member's role. Admin only; the last admin stays admin."""
    member = current_app.tenant_directory.update_member_role(
        identity.organization_id,
        identity,
        path.user_id,
        body.role
    )
    return jsonify(member.model_dump(by_alias=True, mode="json"))


@org_bp.get('/current/statistics')
@require_identity
def get_statistics(identity: Identity):
    statistics = current_app.tenant_directory.get_statistics(identity.organization_id)
    return jsonify(current_app.hal_formatter.format_resource(
        statistics,
        "/api/organizations/current/statistics"
    ))
