# SPDX-License-Identifier: Apache-2.0

"""
HTTP route groups.
"""

from .community import community_bp
from .timeline import timeline_bp
from .tickets import tickets_bp
from .organizations import org_bp
from .users import users_bp

blueprints = [community_bp, timeline_bp, tickets_bp, org_bp, users_bp]

__all__ = ["blueprints", "community_bp", "timeline_bp", "tickets_bp", "org_bp", "users_bp"]
