# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for MongoDB service layer.
"""

import pytest
from pymongo.errors import DuplicateKeyError

from civicaid.services.mongodb import clamp, normalize_document


class TestMongoDBService:
    """Test MongoDB service functionality."""

    def test_org_query_drops_empty_filters(self, mongodb_service):
        query = mongodb_service.build_org_query("org_1", {"status": "OPEN", "category": None})
        assert query == {"organizationId": "org_1", "status": "OPEN"}

    def test_paginate(self, mongodb_service):
        for index in range(5):
            mongodb_service.tickets.insert_one({
                "_id": f"tkt_{index}",
                "organizationId": "org_1",
                "token": f"token-{index}",
                "createdAt": index
            })
        mongodb_service.tickets.insert_one({
            "_id": "tkt_other", "organizationId": "org_2", "token": "token-other", "createdAt": 99
        })

        page = mongodb_service.paginate("tickets", {"organizationId": "org_1"}, limit=2, offset=2)

        assert page.total == 5
        assert [doc["id"] for doc in page.items] == ["tkt_2", "tkt_1"]
        assert page.has_more is True

    def test_paginate_past_the_end(self, mongodb_service):
        mongodb_service.tickets.insert_one({"_id": "tkt_1", "organizationId": "org_1", "token": "t", "createdAt": 1})

        page = mongodb_service.paginate("tickets", {"organizationId": "org_1"}, limit=10, offset=50)

        assert page.items == []
        assert page.total == 1
        assert page.has_more is False

    def test_unique_indexes(self, mongodb_service):
        mongodb_service.organizations.insert_one({"_id": "a", "slug": "springfield"})
        with pytest.raises(DuplicateKeyError):
            mongodb_service.organizations.insert_one({"_id": "b", "slug": "springfield"})

        mongodb_service.ticket_likes.insert_one({"ticketId": "t", "ipHash": "h"})
        with pytest.raises(DuplicateKeyError):
            mongodb_service.ticket_likes.insert_one({"ticketId": "t", "ipHash": "h"})


class TestHelpers:

    def test_normalize_document(self):
        assert normalize_document(None) is None
        assert normalize_document({"_id": "x", "name": "n"}) == {"id": "x", "name": "n"}

    @pytest.mark.parametrize("value,expected", [(0, 1), (50, 50), (500, 100)])
    def test_clamp(self, value, expected):
        assert clamp(value, 1, 100) == expected
