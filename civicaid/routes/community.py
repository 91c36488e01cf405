# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Community endpoints for anonymous citizens.

Nothing here requires authentication. Tickets that are private, or belong to
an organization that does not accept public submissions, answer 404.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.rate_limit import rate_limit
from ..models.requests import (
    CreateCommentRequest,
    CreatePublicTicketRequest,
    OrganizationQuery,
    PageQuery,
    PublicTicketQuery,
    TicketPath
)
from ..utils.request import get_client_ip

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

community_tag = Tag(name="Community", description="Public complaint board")
community_bp = APIBlueprint(
    'community',
    __name__,
    url_prefix='/api/community',
    abp_tags=[community_tag]
)


@community_bp.get('/tickets')
def list_public_tickets(query: PublicTicketQuery):
    """List publicly visible tickets of an organization."""
    page = current_app.community_gateway.list_public_tickets(
        organization_id=query.organization_id,
        category=query.category,
        limit=query.limit,
        offset=query.offset
    )
    body = current_app.hal_formatter.format_collection(
        page.model_dump(by_alias=True, mode="json"),
        "/api/community/tickets"
    )
    return jsonify(body)


@community_bp.post('/tickets')
@rate_limit(endpoint="community.create_ticket")
def create_public_ticket(body: CreatePublicTicketRequest):
    """
    Submit a complaint without an account.

    The response carries the timeline token; it is shown to the citizen once
    and is the only way to follow the ticket afterwards.
    """
    receipt = current_app.community_gateway.create_public_ticket(body, client_ip=get_client_ip())
    data = receipt.model_dump(by_alias=True, mode="json")
    return jsonify(current_app.hal_formatter.format_resource(data, f"/api/timeline/{receipt.token}")), 201


@community_bp.get('/categories')
def list_categories(query: OrganizationQuery):
    """Categories in use among visible tickets."""
    categories = current_app.community_gateway.list_categories(query.organization_id)
    return jsonify({"items": categories})


@community_bp.post('/tickets/<string:ticket_id>/likes')
def add_like(path: TicketPath):
    """Like a visible ticket, once per client."""
    result = current_app.community_gateway.add_like(path.ticket_id, get_client_ip())
    return jsonify(result.model_dump(by_alias=True, mode="json")), 201


@community_bp.get('/tickets/<string:ticket_id>/comments')
def list_comments(path: TicketPath, query: PageQuery):
    """Comments on a visible ticket, oldest first."""
    page = current_app.community_gateway.list_comments(path.ticket_id, query.limit, query.offset)
    body = current_app.hal_formatter.format_collection(
        page.model_dump(by_alias=True, mode="json"),
        f"/api/community/tickets/{path.ticket_id}/comments"
    )
    return jsonify(body)


@community_bp.post('/tickets/<string:ticket_id>/comments')
def add_comment(path: TicketPath, body: CreateCommentRequest):
    """Comment on a visible ticket."""
    comment = current_app.community_gateway.add_comment(path.ticket_id, body, client_ip=get_client_ip())
    return jsonify(comment.model_dump(by_alias=True, mode="json")), 201
