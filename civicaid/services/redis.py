# SPDX-License-Identifier: Apache-2.0

"""
Counter store for the public submission rate limiter.

Backed by Upstash Redis over HTTP so it works from serverless workers. The
limiter treats every failure here as "no answer" and lets the request
through, so nothing in this module raises once constructed.
"""

import time
from typing import Optional, Dict, Any
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class RedisService:
    """Fixed-window counters in Upstash Redis."""

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None):
        """
        Args:
            redis_url: Upstash REST URL; None leaves the store disabled
            redis_token: Upstash REST token
        """
        self.redis_url = redis_url
        self.client: Optional[Redis] = None

        if not redis_url:
            logger.warning("REDIS_URL not set, public submission rate limiting is off")
            return

        client = Redis(url=redis_url, token=redis_token or "")
        if self._responds(client):
            self.client = client
            logger.info("Rate limit store connected", extra={"redis_url": redis_url})
        else:
            logger.error("Rate limit store unreachable, limiting disabled", extra={"redis_url": redis_url})

    @staticmethod
    def _responds(client: Redis) -> bool:
        try:
            return client.ping() == "PONG"
        except Exception as e:
            logger.warning("Redis ping failed", extra={"error": str(e)})
            return False

    def is_available(self) -> bool:
        return self.client is not None

    def increment_with_ttl(self, key: str, ttl_seconds: int) -> Optional[int]:
        """
        Count one hit in a window counter.

        The first hit creates the counter and arms its expiry, so stale
        windows disappear on their own.

        Returns:
            Hits so far in the window, or None when the store cannot answer
        """
        if self.client is None:
            return None

        with tracer.start_as_current_span("redis.increment_with_ttl") as span:
            span.set_attribute("rate_limit.window_seconds", ttl_seconds)
            try:
                hits = int(self.client.incr(key))
                if hits == 1:
                    self.client.expire(key, ttl_seconds)
            except Exception as e:
                span.set_attribute("rate_limit.store_error", True)
                logger.error("Rate limit counter update failed", extra={"error": str(e)})
                return None

            span.set_attribute("rate_limit.hits", hits)
            return hits

    def health_check(self) -> Dict[str, Any]:
        """Round-trip a PING and report its latency."""
        if self.client is None:
            return {"status": "unhealthy", "error": "Redis client not connected"}

        started = time.time()
        healthy = self._responds(self.client)
        return {
            "status": "healthy" if healthy else "unhealthy",
            "response_time_ms": round((time.time() - started) * 1000, 2)
        }
