# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for best-effort ticket event publishing.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

from civicaid.services.amqp import PublishResult
from civicaid.services.events import (
    TICKET_REPLIED,
    TICKET_STATUS_CHANGED,
    TicketEvent,
    TicketEventPublisher
)


def make_event():
    return TicketEvent(
        event_type=TICKET_STATUS_CHANGED,
        ticket_id="tkt_1",
        organization_id="org_1",
        from_status="OPEN",
        to_status="IN_PROGRESS",
        actor_id="usr_1",
        assignee_id="usr_2"
    )


class TestTicketEvent:

    def test_message_body(self):
        event = make_event()
        message = event.to_message()

        assert message["eventType"] == "ticket.status_changed"
        assert message["ticketId"] == "tkt_1"
        assert message["organizationId"] == "org_1"
        assert message["fromStatus"] == "OPEN"
        assert message["toStatus"] == "IN_PROGRESS"
        assert message["assigneeId"] == "usr_2"
        assert message["eventId"] == event.event_id
        assert message["occurredAt"].endswith("Z")

    def test_message_has_no_contact_fields(self):
        message = make_event().to_message()
        for key in ("citizenPhone", "citizenEmail", "token"):
            assert key not in message


class TestTicketEventPublisher:

    def test_without_broker(self):
        result = TicketEventPublisher(None).publish(make_event())
        assert result.success is False
        assert result.error == "AMQP not configured"

    def test_delivers_to_exchange(self):
        amqp = Mock()
        amqp.publish.return_value = PublishResult(
            success=True, correlation_id="c", exchange="civicaid.tickets", routing_key="ticket.status_changed"
        )
        event = make_event()

        result = TicketEventPublisher(amqp).publish(event)

        assert result.success is True
        amqp.publish.assert_called_once_with(
            "civicaid.tickets", "ticket.status_changed", event.to_message(), event.event_id
        )

    def test_broker_exception_is_swallowed(self):
        amqp = Mock()
        amqp.publish.side_effect = ConnectionError("broker down")

        result = TicketEventPublisher(amqp).publish(make_event())

        assert result.success is False
        assert "broker down" in result.error

    def test_failed_delivery_is_reported(self):
        amqp = Mock()
        amqp.publish.return_value = PublishResult(
            success=False, correlation_id="c", exchange="x", routing_key="r", error="nack"
        )
        assert TicketEventPublisher(amqp).publish(make_event()).error == "nack"

    def test_reply_text_in_message(self):
        event = TicketEvent(TICKET_REPLIED, "tkt_1", "org_1", actor_id="usr_1", reply_text="Crew is on the way")
        assert event.to_message()["replyText"] == "Crew is on the way"


class TestDispatch:

    def test_without_executor_publishes_inline(self):
        amqp = Mock()
        amqp.publish.return_value = PublishResult(
            success=True, correlation_id="c", exchange="civicaid.tickets", routing_key="ticket.status_changed"
        )

        assert TicketEventPublisher(amqp).dispatch(make_event()) is None
        amqp.publish.assert_called_once()

    def test_returns_before_delivery_finishes(self):
        release = threading.Event()
        amqp = Mock()

        def slow_publish(*args):
            release.wait(5)
            return PublishResult(success=True, correlation_id="c", exchange="x", routing_key="r")

        amqp.publish.side_effect = slow_publish
        publisher = TicketEventPublisher(amqp, executor=ThreadPoolExecutor(max_workers=1))

        future = publisher.dispatch(make_event())
        assert future.done() is False

        release.set()
        assert future.result(timeout=5).success is True
        publisher.shutdown()

    def test_worker_failure_is_logged(self, caplog):
        publisher = TicketEventPublisher(None, executor=ThreadPoolExecutor(max_workers=1))
        publisher.publish = Mock(side_effect=RuntimeError("worker crashed"))

        with caplog.at_level(logging.ERROR, logger="civicaid.services.events"):
            publisher.dispatch(make_event())
            publisher.shutdown()

        assert "Ticket event delivery failed" in caplog.text
