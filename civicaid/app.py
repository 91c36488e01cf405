# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
CivicAid API - Flask application factory

Builds the OpenAPI application, resolves configuration once, and wires the
storage handle, domain services and route groups together. Every
collaborator is created here and attached to the app; nothing else in the
package reads the environment or holds a global connection.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from . import __version__
from .config import AppConfig
from .middleware.error_handler import ErrorHandlerMiddleware, make_validation_error_callback
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .routes import blueprints
from .services.amqp import create_amqp_service
from .services.auth import AuthService
from .services.community import CommunityGateway
from .services.events import TicketEventPublisher
from .services.hal import create_hal_formatter
from .services.health import HealthCheckService, UNHEALTHY
from .services.identity import IdentityResolver
from .services.mongodb import MongoDBService
from .services.organizations import TenantDirectory
from .services.redis import RedisService
from .services.tickets import TicketStore
from .services.timeline import TimelineGateway

logger = logging.getLogger(__name__)

EVENT_WORKERS = 2

info = Info(
    title="CivicAid API",
    version=__version__,
    description="Multi-tenant civic complaint management API"
)

tags = [
    Tag(name="Community", description="Public complaint board"),
    Tag(name="Timeline", description="Ticket progress for token holders"),
    Tag(name="Tickets", description="Organization ticket inbox and workflow"),
    Tag(name="Organizations", description="Organization settings and membership"),
    Tag(name="Users", description="Authenticated caller"),
    Tag(name="Health", description="System health and status")
]


def create_app(
    config: Optional[AppConfig] = None,
    mongodb_service: Optional[MongoDBService] = None,
    redis_service: Optional[RedisService] = None,
    event_publisher: Optional[TicketEventPublisher] = None,
    auth_service: Optional[AuthService] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config: Resolved configuration; read from the environment when omitted
        mongodb_service: Storage handle override
        redis_service: Rate-limit backend override
        event_publisher: Ticket event publisher override
        auth_service: Token verifier override

    Returns:
        Configured OpenAPI application

    Raises:
        ConfigurationError: If the configuration is unsafe or incomplete
    """
    if config is None:
        config = AppConfig.from_env()
    else:
        config.validate()

    setup_observability(config)

    hal_formatter = create_hal_formatter(config.base_url)

    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=make_validation_error_callback(hal_formatter)
    )
    app.config['ENVIRONMENT'] = config.environment
    app.config['DEBUG'] = config.environment == 'development'
    app.config['BASE_URL'] = config.base_url

    if config.otel_enabled:
        add_observability_middleware(app)

    ErrorHandlerMiddleware(app, hal_formatter, production=config.is_production)

    # Collaborators, each built exactly once
    if mongodb_service is None:
        mongodb_service = MongoDBService(config.mongodb_uri, config.mongodb_database)

    if redis_service is None and config.redis_url:
        redis_service = RedisService(config.redis_url, config.redis_token)

    amqp_service = None
    if event_publisher is None:
        if config.amqp_url:
            amqp_service = create_amqp_service(config.amqp_url)
        event_publisher = TicketEventPublisher(
            amqp_service,
            config.amqp_exchange,
            executor=ThreadPoolExecutor(max_workers=EVENT_WORKERS, thread_name_prefix="ticket-events")
        )

    if auth_service is None and config.jwt_public_key:
        auth_service = AuthService(config.jwt_public_key, config.jwt_issuer, config.jwt_audience)

    tenant_directory = TenantDirectory(mongodb_service)
    identity_resolver = IdentityResolver(mongodb_service, config.auth_mode, auth_service)
    ticket_store = TicketStore(mongodb_service, tenant_directory, event_publisher)

    app.civicaid_config = config
    app.hal_formatter = hal_formatter
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.event_publisher = event_publisher
    app.tenant_directory = tenant_directory
    app.identity_resolver = identity_resolver
    app.ticket_store = ticket_store
    app.community_gateway = CommunityGateway(mongodb_service, tenant_directory, ticket_store)
    app.timeline_gateway = TimelineGateway(mongodb_service, ticket_store)
    app.health_service = HealthCheckService(mongodb_service, redis_service, amqp_service, config.environment)

    for blueprint in blueprints:
        app.register_api(blueprint)

    @app.get('/api/healthz', tags=[tags[-1]])
    def health_check():
        """Dependency health; 503 when MongoDB is unreachable."""
        health_data = app.health_service.get_health()
        status_code = 503 if health_data["status"] == UNHEALTHY else 200
        return jsonify(hal_formatter.format_resource(health_data, "/api/healthz")), status_code

    tenant_directory.ensure_default_community()

    if config.is_development_auth:
        identity_resolver.ensure_development_identity()
        logger.warning(
            "AUTH_MODE=development: every authenticated request runs as a synthetic admin. "
            "Never enable this outside local development."
        )

    logger.info(
        "CivicAid API initialized",
        extra={"environment": config.environment, "auth_mode": config.auth_mode.value}
    )
    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
