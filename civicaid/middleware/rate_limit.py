# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Per-client limit on anonymous ticket submissions.

Hits are counted in fixed windows keyed by a hash of the client address, so
raw IPs never reach Redis. A store that cannot answer lets the request
through.
"""

from dataclasses import dataclass
from functools import wraps
from flask import request, jsonify, current_app
from typing import Optional, Callable
import time
import logging

from ..services.hal import HalFormatter
from ..utils.request import get_client_ip, hash_client_ip

logger = logging.getLogger(__name__)


@dataclass
class WindowState:
    """Outcome of counting one request against its window."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int = 0

    def apply_headers(self, response):
        response.headers['X-RateLimit-Limit'] = str(self.limit)
        response.headers['X-RateLimit-Remaining'] = str(self.remaining)
        response.headers['X-RateLimit-Reset'] = str(self.reset_at)
        if self.retry_after > 0:
            response.headers['Retry-After'] = str(self.retry_after)
        return response


class RateLimiter:
    """Fixed-window counter over the Redis store."""

    def __init__(self, redis_service, hal_formatter: HalFormatter):
        self.redis_service = redis_service
        self.hal_formatter = hal_formatter

    @staticmethod
    def client_key() -> str:
        return f"ip:{hash_client_ip(get_client_ip())}"

    @staticmethod
    def window_key(client: str, endpoint: str, window_seconds: int, now: float) -> str:
        """Counter key for the window containing `now`."""
        return f"rate_limit:{client}:{endpoint}:{int(now) // window_seconds}"

    def hit(self, client: str, endpoint: str, limit: int, window_seconds: int,
            now: Optional[float] = None) -> WindowState:
        """
        Count one request and decide whether it may proceed.

        Args:
            client: Hashed client identifier
            endpoint: Limited operation name
            limit: Requests allowed per window
            window_seconds: Window length
            now: Epoch seconds (defaults to the current time)
        """
        now = int(time.time() if now is None else now)
        reset_at = (now // window_seconds + 1) * window_seconds

        hits = self.redis_service.increment_with_ttl(
            self.window_key(client, endpoint, window_seconds, now), window_seconds
        )
        if hits is None:
            return WindowState(True, limit, limit - 1, reset_at)
        if hits > limit:
            return WindowState(False, limit, 0, reset_at, retry_after=reset_at - now)
        return WindowState(True, limit, limit - hits, reset_at)

    def rejection(self, state: WindowState, window_seconds: int):
        """429 problem document for a request over the limit."""
        problem = self.hal_formatter.problem(
            "rate-limit-exceeded",
            "Rate Limit Exceeded",
            429,
            f"At most {state.limit} submissions are accepted per {window_seconds} seconds",
            request.path,
            retryable=True
        )
        response = jsonify(problem)
        response.status_code = 429
        return state.apply_headers(response)


def rate_limit(
    limit: Optional[int] = None,
    window_seconds: Optional[int] = None,
    endpoint: Optional[str] = None,
    skip_in_development: bool = True
):
    """
    Limit an anonymous endpoint per client.

    Args:
        limit: Requests per window (defaults to the configured submission limit)
        window_seconds: Window length (defaults to the configured window)
        endpoint: Counter name (defaults to the Flask endpoint)
        skip_in_development: No limit while running in development auth mode
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            config = current_app.civicaid_config
            redis_service = getattr(current_app, 'redis_service', None)

            if redis_service is None or (skip_in_development and config.is_development_auth):
                return f(*args, **kwargs)

            window = window_seconds or config.public_submission_window_seconds
            limiter = RateLimiter(redis_service, current_app.hal_formatter)
            client = limiter.client_key()
            name = endpoint or request.endpoint or f.__name__

            state = limiter.hit(client, name, limit or config.public_submission_limit, window)
            if not state.allowed:
                logger.warning(
                    "Submission rate limit exceeded",
                    extra={"client": client, "endpoint": name, "retry_after": state.retry_after}
                )
                return limiter.rejection(state, window)

            return state.apply_headers(current_app.make_response(f(*args, **kwargs)))

        return decorated_function
    return decorator
