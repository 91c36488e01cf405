# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry configuration

Sets up distributed tracing and structured logging for the CivicAid API.
"""

import os
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

from .. import __version__
from ..config import AppConfig

SERVICE_NAME = "civicaid-api"

logger = logging.getLogger(__name__)

_SAMPLING = {
    'production': 0.1,
    'staging': 0.5,
}


def setup_observability(config: AppConfig) -> bool:
    """
    Install the tracer provider for the configured environment.

    Returns:
        True when a provider was installed, False when tracing is disabled
    """
    setup_structured_logging(config.environment)

    if not config.otel_enabled:
        logger.info("OpenTelemetry disabled")
        return False

    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": __version__,
        "deployment.environment": config.environment
    })

    tracer_provider = TracerProvider(
        sampler=TraceIdRatioBased(_SAMPLING.get(config.environment, 1.0)),
        resource=resource
    )

    otlp_endpoint = os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
    if otlp_endpoint:
        headers = None
        if os.getenv('OTEL_API_KEY'):
            headers = {"Authorization": f"Bearer {os.getenv('OTEL_API_KEY')}"}
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers), max_export_batch_size=512)
        )
    elif config.environment == 'development':
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)
    logger.info(
        "OpenTelemetry configured",
        extra={"environment": config.environment, "otlp_endpoint": otlp_endpoint}
    )
    return True


def setup_structured_logging(environment: str):
    """Configure root logging level and noisy third-party loggers."""
    log_level = {
        'production': logging.WARNING,
        'staging': logging.INFO,
        'development': logging.DEBUG
    }.get(environment, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
        handlers=[logging.StreamHandler()]
    )

    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('pika').setLevel(logging.ERROR if environment == 'production' else logging.WARNING)
