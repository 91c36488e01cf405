# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the timeline access gateway.
"""

import pytest

from civicaid.middleware.error_handler import BusinessRuleException, NotFoundException, ValidationException
from civicaid.models.enums import TicketStatus
from civicaid.services.timeline import ALREADY_SUBMITTED, NOT_RESOLVED, TIMELINE_NOT_FOUND


class TestTimelineLookup:

    @pytest.mark.parametrize("token", ["", "abc", "../../etc", "ABCDEF12-3456-7890-ABCD-EF1234567890"])
    def test_malformed_token_not_found(self, timeline, token):
        with pytest.raises(NotFoundException) as exc_info:
            timeline.get_timeline_by_token(token)
        assert exc_info.value.message == TIMELINE_NOT_FOUND

    def test_malformed_token_skips_lookup(self, timeline, store):
        store.get_by_token = lambda token: pytest.fail("lookup must not run for malformed tokens")
        with pytest.raises(NotFoundException):
            timeline.get_timeline_by_token("not-a-uuid")

    def test_unknown_token_same_error(self, timeline, make_ticket):
        make_ticket()
        with pytest.raises(NotFoundException) as exc_info:
            timeline.get_timeline_by_token("00000000-0000-4000-8000-000000000000")
        assert exc_info.value.message == TIMELINE_NOT_FOUND

    def test_exact_match_only(self, timeline, make_ticket):
        ticket = make_ticket()
        with pytest.raises(NotFoundException):
            timeline.get_timeline_by_token(ticket.token[:-1] + ("0" if ticket.token[-1] != "0" else "1"))

    def test_public_safe_view(self, timeline, make_ticket):
        ticket = make_ticket(content="Call 010-1234-5678 about the pothole")
        view = timeline.get_timeline_by_token(ticket.token)
        dumped = view.model_dump(by_alias=True)

        assert view.ticket_id == ticket.id
        assert view.content == ticket.content
        assert view.survey_submitted is False
        for field in ("token", "citizenName", "citizenPhone", "citizenEmail", "assignedToId"):
            assert field not in dumped
        for entry in dumped["history"]:
            assert "actorId" not in entry
            assert "assigneeId" not in entry

    def test_private_ticket_visible_to_token_holder(self, timeline, make_ticket):
        ticket = make_ticket(is_public=False)
        assert timeline.get_timeline_by_token(ticket.token).ticket_id == ticket.id

    def test_history_in_order_without_assignments(self, timeline, store, admin, make_ticket, drive_to):
        ticket = make_ticket()
        store.assign(ticket.id, admin, admin.user_id)
        drive_to(ticket, TicketStatus.CLOSED)

        view = timeline.get_timeline_by_token(ticket.token)

        assert [(entry.from_status, entry.to_status) for entry in view.history] == [
            (None, "OPEN"),
            ("OPEN", "IN_PROGRESS"),
            ("IN_PROGRESS", "RESOLVED"),
            ("RESOLVED", "CLOSED"),
        ]
        assert all(entry.type == "STATUS_CHANGE" for entry in view.history)
        assert view.history[2].note == "Filled the pothole"
        assert view.resolved_at is not None


class TestSurvey:

    def test_not_eligible_before_resolution(self, timeline, make_ticket):
        ticket = make_ticket()
        eligibility = timeline.check_survey_eligibility(ticket.token)
        assert eligibility.eligible is False
        assert eligibility.reason == NOT_RESOLVED

        with pytest.raises(BusinessRuleException):
            timeline.submit_survey(ticket.token, {"rating": 5})

    def test_submit_once(self, timeline, make_ticket, drive_to, mongodb_service):
        ticket = drive_to(make_ticket(), TicketStatus.RESOLVED)
        assert timeline.check_survey_eligibility(ticket.token).eligible is True

        timeline.submit_survey(ticket.token, {"rating": 4, "feedback": "Quick fix, thanks"})

        stored = mongodb_service.tickets.find_one({"_id": ticket.id})
        assert stored["survey"]["rating"] == 4
        assert timeline.get_timeline_by_token(ticket.token).survey_submitted is True
        assert timeline.check_survey_eligibility(ticket.token).reason == ALREADY_SUBMITTED
        with pytest.raises(BusinessRuleException):
            timeline.submit_survey(ticket.token, {"rating": 1})

    def test_concurrent_double_submit(self, timeline, make_ticket, drive_to, mongodb_service):
        ticket = drive_to(make_ticket(), TicketStatus.CLOSED)
        first_read = timeline._find(ticket.token)

        timeline.submit_survey(ticket.token, {"rating": 5})
        # A second writer that passed the eligibility check on a stale read
        timeline._find = lambda token: first_read
        with pytest.raises(BusinessRuleException):
            timeline.submit_survey(ticket.token, {"rating": 2})

        assert mongodb_service.tickets.find_one({"_id": ticket.id})["survey"]["rating"] == 5

    @pytest.mark.parametrize("payload", [{"rating": 0}, {"rating": 6}, {"rating": 3, "feedback": "x" * 1001}])
    def test_survey_validation(self, timeline, make_ticket, drive_to, payload):
        ticket = drive_to(make_ticket(), TicketStatus.RESOLVED)
        with pytest.raises(ValidationException):
            timeline.submit_survey(ticket.token, payload)

    def test_survey_feeds_dashboard(self, timeline, store, admin, make_ticket, drive_to):
        ticket = drive_to(make_ticket(), TicketStatus.RESOLVED)
        timeline.submit_survey(ticket.token, {"rating": 4})

        stats = store.get_dashboard_stats(admin.organization_id)
        assert stats["satisfaction"] == {"average": 4, "count": 1}
