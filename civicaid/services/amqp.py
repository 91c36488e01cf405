# SPDX-License-Identifier: Apache-2.0

"""
Broker client for ticket events.

Each publish opens its own short-lived pika connection, which suits
serverless workers that cannot hold a connection between requests. Failed
attempts are retried with exponential backoff; the final outcome is returned
as a PublishResult rather than raised.
"""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Any, Optional, Iterator
from urllib.parse import urlparse

import pika
from opentelemetry import trace
from opentelemetry.propagate import inject


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PERSISTENT = 2


@dataclass
class AMQPConfig:
    """Broker location and retry policy."""
    url: str
    connection_timeout: int = 30
    heartbeat: int = 600
    blocked_connection_timeout: int = 300
    retry_delay: float = 1.0
    max_retries: int = 3


@dataclass
class PublishResult:
    """Outcome of one publish, including how many retries it took."""
    success: bool
    correlation_id: str
    exchange: str
    routing_key: str
    error: Optional[str] = None
    retry_count: int = 0


class AMQPConnectionError(Exception):
    pass


class MessageSerializationError(Exception):
    pass


def _encode(message: Dict[str, Any]) -> str:
    def fallback(value):
        return value.isoformat() if hasattr(value, 'isoformat') else str(value)

    try:
        return json.dumps(message, default=fallback, ensure_ascii=False, separators=(',', ':'))
    except (TypeError, ValueError) as e:
        raise MessageSerializationError(f"Cannot serialize message: {e}")


class AMQPService:
    """Publishes JSON messages to durable topic exchanges."""

    def __init__(self, config: AMQPConfig, sleep=time.sleep):
        """
        Args:
            config: Broker URL and retry policy
            sleep: Backoff delay function, replaceable in tests
        """
        self.config = config
        self._sleep = sleep
        self._connection_params = self._parameters_from_url(config.url)

    def _parameters_from_url(self, url: str) -> pika.ConnectionParameters:
        parsed = urlparse(url)
        return pika.ConnectionParameters(
            host=parsed.hostname or 'localhost',
            port=parsed.port or 5672,
            virtual_host=parsed.path.lstrip('/') or '/',
            credentials=pika.PlainCredentials(parsed.username or 'guest', parsed.password or 'guest'),
            connection_attempts=1,
            socket_timeout=self.config.connection_timeout,
            heartbeat=self.config.heartbeat,
            blocked_connection_timeout=self.config.blocked_connection_timeout
        )

    @contextmanager
    def _channel(self) -> Iterator[Any]:
        """Open a connection and channel for one operation, closing both afterwards."""
        params = self._connection_params
        try:
            connection = pika.BlockingConnection(params)
        except pika.exceptions.AMQPConnectionError as e:
            logger.error("Broker connection failed", extra={"host": params.host, "port": params.port, "error": str(e)})
            raise AMQPConnectionError(f"Cannot reach broker at {params.host}:{params.port}: {e}")

        try:
            yield connection.channel()
        finally:
            if connection.is_open:
                try:
                    connection.close()
                except Exception as e:
                    logger.warning("Broker connection close failed", extra={"error": str(e)})

    def _send(self, exchange: str, routing_key: str, body: str, correlation_id: str,
              headers: Dict[str, Any]) -> None:
        with self._channel() as channel:
            channel.exchange_declare(exchange=exchange, exchange_type='topic', durable=True)
            channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                body=body,
                properties=pika.BasicProperties(
                    message_id=correlation_id,
                    correlation_id=correlation_id,
                    timestamp=int(time.time()),
                    delivery_mode=PERSISTENT,
                    content_type='application/json',
                    headers=headers
                )
            )

    def publish(
        self,
        exchange: str,
        routing_key: str,
        message: Dict[str, Any],
        correlation_id: str
    ) -> PublishResult:
        """
        Publish a JSON message, retrying with exponential backoff.

        Args:
            exchange: Topic exchange, declared durable on every attempt
            routing_key: Routing key for the message
            message: JSON-serializable body
            correlation_id: Used as both message id and correlation id

        Returns:
            PublishResult; this method does not raise
        """
        def result(success: bool, error: Optional[str] = None, retries: int = 0) -> PublishResult:
            return PublishResult(success, correlation_id, exchange, routing_key, error, retries)

        with tracer.start_as_current_span("amqp.publish") as span:
            span.set_attributes({
                "messaging.system": "rabbitmq",
                "messaging.destination": exchange,
                "messaging.rabbitmq.routing_key": routing_key,
                "messaging.message_id": correlation_id
            })

            try:
                body = _encode(message)
            except MessageSerializationError as e:
                logger.error("Event body not serializable", extra={"routing_key": routing_key, "error": str(e)})
                return result(False, str(e))

            headers: Dict[str, Any] = {}
            inject(headers)

            error: Optional[Exception] = None
            for attempt in range(self.config.max_retries + 1):
                if attempt:
                    delay = self.config.retry_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "Publish failed, backing off",
                        extra={"routing_key": routing_key, "attempt": attempt, "delay": delay, "error": str(error)}
                    )
                    self._sleep(delay)
                try:
                    self._send(exchange, routing_key, body, correlation_id, headers)
                except Exception as e:
                    error = e
                    continue

                span.set_attribute("amqp.retry_count", attempt)
                logger.info(
                    "Message published",
                    extra={"exchange": exchange, "routing_key": routing_key, "correlation_id": correlation_id}
                )
                return result(True, retries=attempt)

            logger.error(
                "Publish abandoned after retries",
                extra={"exchange": exchange, "routing_key": routing_key,
                       "attempts": self.config.max_retries + 1, "error": str(error)}
            )
            return result(False, str(error), self.config.max_retries)

    def health_check(self) -> bool:
        """True when a connection to the broker can be opened."""
        try:
            with self._channel():
                return True
        except Exception as e:
            logger.warning("Broker health check failed", extra={"error": str(e)})
            return False


def create_amqp_service(amqp_url: str, max_retries: int = 3, retry_delay: float = 1.0) -> AMQPService:
    """Build an AMQPService for a broker URL with the given retry policy."""
    return AMQPService(AMQPConfig(url=amqp_url, retry_delay=retry_delay, max_retries=max_retries))
