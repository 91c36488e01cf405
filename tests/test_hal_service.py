# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL formatting and RFC 7807 problem documents.
"""

from civicaid.services.hal import create_hal_formatter


class TestHalFormatter:
    """Test HAL response formatting."""

    def setup_method(self):
        self.formatter = create_hal_formatter("https://api.civicaid.test/")

    def test_resource_self_link(self):
        data = {"id": "org_1"}
        response = self.formatter.format_resource(data, "/api/organizations/current")

        assert response["id"] == "org_1"
        assert response["_links"]["self"]["href"] == "https://api.civicaid.test/api/organizations/current"
        assert response["_links"]["self"]["method"] == "GET"
        assert "_links" not in data

    def test_ticket_actions(self):
        response = self.formatter.format_ticket({"id": "tkt_1", "status": "OPEN"})

        links = response["_links"]
        assert links["self"]["href"].endswith("/api/tickets/tkt_1")
        assert links["transition"]["href"].endswith("/api/tickets/tkt_1/transitions")
        assert links["transition"]["method"] == "POST"
        assert links["assign"]["href"].endswith("/api/tickets/tkt_1/assignment")
        assert links["reply"]["href"].endswith("/api/tickets/tkt_1/replies")

    def test_collection_embeds_items(self):
        page = {"items": [{"id": "a"}, {"id": "b"}], "total": 5, "limit": 2, "offset": 0, "hasMore": True}

        response = self.formatter.format_collection(page, "/api/tickets")

        assert "items" not in response
        assert [item["id"] for item in response["_embedded"]["items"]] == ["a", "b"]
        assert response["total"] == 5
        assert response["hasMore"] is True


class TestProblemDocuments:
    """Test RFC 7807 error responses."""

    def setup_method(self):
        self.formatter = create_hal_formatter("https://api.civicaid.test")

    def test_error_fields(self):
        problem = self.formatter.problem(
            "resource-not-found", "Resource Not Found", 404, "Timeline not found", "/api/timeline/x"
        )

        assert problem["type"] == "https://api.civicaid.app/problems/resource-not-found"
        assert problem["status"] == 404
        assert problem["detail"] == "Timeline not found"
        assert problem["instance"] == "/api/timeline/x"
        assert problem["retryable"] is False
        assert "help" in problem["_links"]
        assert "errors" not in problem

    def test_validation_error_links_schema(self):
        problem = self.formatter.format_validation_error(
            "Invalid", "/api/community/tickets", [{"field": "content", "message": "required"}]
        )

        assert problem["status"] == 400
        assert problem["errors"][0]["field"] == "content"
        assert "schema" in problem["_links"]

    def test_retryable_flag(self):
        problem = self.formatter.problem(
            "resource-conflict", "Resource Conflict", 409, "retry", "/api/tickets/t", retryable=True
        )
        assert problem["retryable"] is True

    def test_server_error(self):
        problem = self.formatter.format_server_error("boom", "/api/tickets")
        assert problem["status"] == 500
        assert problem["type"].endswith("/internal-server-error")
