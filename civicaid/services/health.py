# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Dependency health reporting for the /api/healthz endpoint.

MongoDB is required; Redis and the AMQP broker are optional and only degrade
the service when configured but unreachable.
"""

import time
import logging
from datetime import datetime
from typing import Dict, Any, Optional
from opentelemetry import trace

from .. import __version__
from .amqp import AMQPService
from .mongodb import MongoDBService
from .redis import RedisService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
DEGRADED = "degraded"
NOT_CONFIGURED = "not_configured"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        mongodb_service: MongoDBService,
        redis_service: Optional[RedisService] = None,
        amqp_service: Optional[AMQPService] = None,
        environment: str = "development"
    ):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.amqp_service = amqp_service
        self.environment = environment

    def get_health(self) -> Dict[str, Any]:
        """Health status of the API and each dependency."""
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            dependencies = {
                "mongodb": self._check_mongodb_health(),
                "redis": self._check_redis_health(),
                "amqp": self._check_amqp_health()
            }
            overall_status = self._determine_overall_status(dependencies)
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms
            })
            if overall_status != HEALTHY:
                logger.warning(
                    "Health check not healthy",
                    extra={
                        "status": overall_status,
                        "dependencies": {name: info["status"] for name, info in dependencies.items()}
                    }
                )

            return {
                "status": overall_status,
                "service": "civicaid-api",
                "version": __version__,
                "environment": self.environment,
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "responseTimeMs": response_time_ms,
                "dependencies": dependencies
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        start_time = time.time()
        result = self.mongodb_service.health_check()
        return {
            "status": result["status"],
            "responseTimeMs": round((time.time() - start_time) * 1000, 2)
        }

    def _check_redis_health(self) -> Dict[str, Any]:
        if self.redis_service is None or not self.redis_service.is_available():
            return {"status": NOT_CONFIGURED}
        result = self.redis_service.health_check()
        return {"status": result["status"], "responseTimeMs": result.get("response_time_ms")}

    def _check_amqp_health(self) -> Dict[str, Any]:
        if self.amqp_service is None:
            return {"status": NOT_CONFIGURED}
        start_time = time.time()
        healthy = self.amqp_service.health_check()
        return {
            "status": HEALTHY if healthy else UNHEALTHY,
            "responseTimeMs": round((time.time() - start_time) * 1000, 2)
        }

    def _determine_overall_status(self, dependencies: Dict[str, Dict[str, Any]]) -> str:
        """MongoDB decides between healthy and unhealthy; optional services only degrade."""
        if dependencies["mongodb"]["status"] != HEALTHY:
            return UNHEALTHY
        optional = [dependencies["redis"]["status"], dependencies["amqp"]["status"]]
        if all(status in (HEALTHY, NOT_CONFIGURED) for status in optional):
            return HEALTHY
        return DEGRADED
