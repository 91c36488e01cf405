# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, external integrations and the domain services
built on top of them.
"""

from .mongodb import MongoDBService, PaginationResult
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .events import TicketEvent, TicketEventPublisher

__all__ = [
    "MongoDBService",
    "PaginationResult",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "TicketEvent",
    "TicketEventPublisher"
]
