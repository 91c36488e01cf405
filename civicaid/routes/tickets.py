# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Staff inbox endpoints.

Every route resolves the caller first and works inside the caller's own
organization.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.tickets import TransitionPayload
from ..middleware.auth import require_identity
from ..models.entities import Identity, Ticket
from ..models.requests import (
    AssignTicketRequest,
    CreateTicketRequest,
    ReplyTicketRequest,
    SatisfactionQuery,
    SlaTicketsQuery,
    TicketListQuery,
    TicketPath,
    TransitionTicketRequest,
    TrendsQuery
)
from ..models.responses import SlaTicketView, TicketPage

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

tickets_tag = Tag(name="Tickets", description="Organization ticket inbox and workflow")
tickets_bp = APIBlueprint(
    'tickets',
    __name__,
    url_prefix='/api/tickets',
    abp_tags=[tickets_tag]
)


def _ticket_response(ticket: Ticket):
    return current_app.hal_formatter.format_ticket(ticket.model_dump(by_alias=True, mode="json"))


@tickets_bp.get('')
@require_identity
def list_tickets(identity: Identity, query: TicketListQuery):
    """List the caller's organization tickets, newest first."""
    filters = {
        "status": query.status,
        "priority": query.priority,
        "sentiment": query.sentiment,
        "category": query.category,
        "assignedToId": query.assigned_to_id,
    }
    page = current_app.ticket_store.list_for_organization(
        identity.organization_id,
        filters,
        limit=query.limit,
        offset=query.offset
    )
    ticket_page = TicketPage(
        items=[Ticket.model_validate(document) for document in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.has_more,
    )
    return jsonify(current_app.hal_formatter.format_collection(
        ticket_page.model_dump(by_alias=True, mode="json"),
        "/api/tickets"
    ))


@tickets_bp.post('')
@require_identity
def create_ticket(identity: Identity, body: CreateTicketRequest):
    """Register a complaint received by staff (phone, counter, email)."""
    ticket = current_app.ticket_store.create_for_caller(identity, body)
    return jsonify(_ticket_response(ticket)), 201


@tickets_bp.get('/stats')
@require_identity
def get_dashboard_stats(identity: Identity):
    stats = current_app.ticket_store.get_dashboard_stats(identity.organization_id)
    return jsonify(current_app.hal_formatter.format_resource(stats, "/api/tickets/stats"))


@tickets_bp.get('/sla')
@require_identity
def get_sla_tickets(identity: Identity, query: SlaTicketsQuery):
    """Open tickets whose SLA deadline falls within the threshold."""
    tickets = current_app.ticket_store.get_sla_tickets(
        identity.organization_id,
        hours_threshold=query.hours_threshold,
        limit=query.limit
    )
    items = [SlaTicketView.model_validate(ticket).model_dump(by_alias=True, mode="json") for ticket in tickets]
    return jsonify({"items": items})


@tickets_bp.get('/trends')
@require_identity
def get_ticket_trends(identity: Identity, query: TrendsQuery):
    """Daily received and completed counts for charts."""
    trends = current_app.ticket_store.get_ticket_trends(identity.organization_id, days=query.days)
    return jsonify(current_app.hal_formatter.format_resource(trends, "/api/tickets/trends"))


@tickets_bp.get('/satisfaction')
@require_identity
def get_satisfaction_stats(identity: Identity, query: SatisfactionQuery):
    stats = current_app.ticket_store.get_satisfaction_stats(
        identity.organization_id,
        date_from=query.date_from,
        date_to=query.date_to,
        category=query.category
    )
    return jsonify(current_app.hal_formatter.format_resource(stats, "/api/tickets/satisfaction"))


@tickets_bp.get('/<string:ticket_id>')
@require_identity
def get_ticket(identity: Identity, path: TicketPath):
    ticket = current_app.ticket_store.get_for_caller(path.ticket_id, identity)
    return jsonify(_ticket_response(ticket))


@tickets_bp.post('/<string:ticket_id>/transitions')
@require_identity
def transition_ticket(identity: Identity, path: TicketPath, body: TransitionTicketRequest):
    """
    Move a ticket through its lifecycle.

    A 409 with retryable=true means the ticket changed since it was read;
    reload and retry.
    """
    payload = TransitionPayload(
        assignee_id=body.assignee_id,
        resolution_note=body.resolution_note,
        reason=body.reason,
        note=body.note
    )
    ticket = current_app.ticket_store.transition(path.ticket_id, identity, body.status, payload)
    return jsonify(_ticket_response(ticket))


@tickets_bp.post('/<string:ticket_id>/assignment')
@require_identity
def assign_ticket(identity: Identity, path: TicketPath, body: AssignTicketRequest):
    ticket = current_app.ticket_store.assign(path.ticket_id, identity, body.user_id)
    return jsonify(_ticket_response(ticket))


@tickets_bp.post('/<string:ticket_id>/replies')
@require_identity
def reply_to_ticket(identity: Identity, path: TicketPath, body: ReplyTicketRequest):
    """Send a reply to the citizen; the ticket keeps its status."""
    ticket = current_app.ticket_store.reply(path.ticket_id, identity, body.text)
    return jsonify(_ticket_response(ticket)), 201
