# SPDX-License-Identifier: Apache-2.0

"""
Ticket domain events.

Events are emitted after a ticket write has committed and are delivered
best-effort: publishing never raises, so a broker outage cannot undo or fail
a ticket change. With an executor, delivery and its retry backoff run off
the request thread.
"""

import contextvars
import logging
import uuid
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from opentelemetry import trace

from .amqp import AMQPService, PublishResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TICKET_CREATED = "ticket.created"
TICKET_STATUS_CHANGED = "ticket.status_changed"
TICKET_ASSIGNED = "ticket.assigned"
TICKET_REPLIED = "ticket.replied"


@dataclass
class TicketEvent:
    """Notification-boundary event for an external notifier."""
    event_type: str
    ticket_id: str
    organization_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    actor_id: Optional[str] = None
    assignee_id: Optional[str] = None
    reply_text: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_message(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "eventType": self.event_type,
            "ticketId": self.ticket_id,
            "organizationId": self.organization_id,
            "fromStatus": self.from_status,
            "toStatus": self.to_status,
            "actorId": self.actor_id,
            "assigneeId": self.assignee_id,
            "replyText": self.reply_text,
            "occurredAt": self.occurred_at.isoformat() + "Z",
        }


class TicketEventPublisher:
    """Fire-and-forget publisher of ticket events to a topic exchange."""

    def __init__(
        self,
        amqp_service: Optional[AMQPService],
        exchange: str = "civicaid.tickets",
        executor: Optional[Executor] = None
    ):
        """
        Args:
            amqp_service: Broker client; None disables delivery (events are logged)
            exchange: Topic exchange receiving ticket events
            executor: Runs deliveries in the background; None publishes inline
        """
        self.amqp_service = amqp_service
        self.exchange = exchange
        self.executor = executor

    def dispatch(self, event: TicketEvent) -> Optional[Future]:
        """
        Hand an event to the executor and return immediately.

        Without an executor the event is published on the calling thread.

        Returns:
            The pending delivery, or None when published inline
        """
        if self.executor is None:
            self.publish(event)
            return None

        # Carry the request's trace context into the worker
        future = self.executor.submit(contextvars.copy_context().run, self.publish, event)
        future.add_done_callback(lambda done: self._log_failure(event, done))
        return future

    @staticmethod
    def _log_failure(event: TicketEvent, future: Future) -> None:
        if future.cancelled():
            logger.warning(
                "Ticket event delivery cancelled",
                extra={"event_type": event.event_type, "ticket_id": event.ticket_id}
            )
            return
        error = future.exception()
        if error is not None:
            logger.error(
                "Ticket event delivery failed",
                extra={"event_type": event.event_type, "ticket_id": event.ticket_id, "error": str(error)},
                exc_info=error
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events and, by default, drain pending deliveries."""
        if self.executor is not None:
            self.executor.shutdown(wait=wait)

    def publish(self, event: TicketEvent) -> PublishResult:
        """
        Publish an event without ever raising.

        Returns:
            PublishResult describing the delivery attempt
        """
        with tracer.start_as_current_span("events.publish") as span:
            span.set_attributes({
                "event.type": event.event_type,
                "ticket.id": event.ticket_id,
                "organization.id": event.organization_id
            })

            if self.amqp_service is None:
                logger.info(
                    "Ticket event not delivered, no broker configured",
                    extra={"event_type": event.event_type, "ticket_id": event.ticket_id}
                )
                return PublishResult(
                    success=False,
                    correlation_id=event.event_id,
                    exchange=self.exchange,
                    routing_key=event.event_type,
                    error="AMQP not configured"
                )

            try:
                result = self.amqp_service.publish(
                    self.exchange,
                    event.event_type,
                    event.to_message(),
                    event.event_id
                )
            except Exception as e:
                logger.error(
                    "Ticket event publish raised",
                    extra={
                        "event_type": event.event_type,
                        "ticket_id": event.ticket_id,
                        "error": str(e)
                    },
                    exc_info=True
                )
                result = PublishResult(
                    success=False,
                    correlation_id=event.event_id,
                    exchange=self.exchange,
                    routing_key=event.event_type,
                    error=str(e)
                )

            span.set_attribute("event.delivered", result.success)
            if not result.success:
                logger.warning(
                    "Ticket event dropped",
                    extra={
                        "event_type": event.event_type,
                        "ticket_id": event.ticket_id,
                        "error": result.error
                    }
                )
            return result
