# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting caller metadata.
"""

import hashlib
from typing import Optional
from flask import request


def get_client_ip() -> str:
    """
    Best-effort client address.

    Honors the first hop of X-Forwarded-For (the deployment sits behind a
    proxy) and falls back to the socket address.
    """
    if request.access_route:
        return request.access_route[0]
    return request.remote_addr or "unknown"


def hash_client_ip(ip_address: Optional[str]) -> str:
    """SHA-256 of the client address; raw addresses are never stored."""
    return hashlib.sha256((ip_address or "unknown").encode("utf-8")).hexdigest()


def get_bearer_token() -> Optional[str]:
    """
    Extract bearer token from request headers.

    Returns:
        Token string or None if not found
    """
    auth_header = request.headers.get('Authorization', '')

    if not auth_header:
        return None

    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None

    return None
