# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Caller profile endpoint.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..middleware.auth import require_identity
from ..models.entities import Identity

users_tag = Tag(name="Users", description="Authenticated caller")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


@users_bp.get('/me')
@require_identity
def get_me(identity: Identity):
    """Who the API thinks the caller is."""
    profile = current_app.identity_resolver.get_me(identity)
    return jsonify(current_app.hal_formatter.format_resource(profile, "/api/users/me"))
