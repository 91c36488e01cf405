# SPDX-License-Identifier: Apache-2.0

"""
Identity middleware for authenticated surfaces.

Protected routes are wrapped with require_identity, which asks the
application's IdentityResolver for the caller and hands the resulting
Identity to the view as its first argument.
"""

from functools import wraps
from typing import Callable

from flask import current_app, g
from opentelemetry import trace
import logging

from ..utils.request import get_bearer_token

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def require_identity(f: Callable) -> Callable:
    """
    Decorator resolving the caller before the view runs.

    Resolution failures propagate as AuthenticationException or
    AuthorizationException and are rendered by the error handlers.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        with tracer.start_as_current_span("auth.middleware.resolve_identity") as span:
            identity = current_app.identity_resolver.resolve_caller(get_bearer_token())

            g.identity = identity
            span.set_attributes({
                "user.id": identity.user_id,
                "organization.id": identity.organization_id,
                "auth.synthetic": identity.is_synthetic
            })

        return f(identity, *args, **kwargs)

    return decorated_function
