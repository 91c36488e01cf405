# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Timeline access gateway for token holders.

The token issued at submission time is the only credential. A malformed
token and an unknown token produce the same NotFoundException.
"""

import logging
from typing import Any, Dict, Union

from opentelemetry import trace
from pydantic import ValidationError

from ..domain.community import to_timeline_view
from ..domain.tickets import COMPLETED_STATUSES, is_valid_token_format
from ..middleware.error_handler import BusinessRuleException, NotFoundException, validation_exception_from
from ..models.entities import SatisfactionSurvey
from ..models.enums import TicketStatus
from ..models.requests import SubmitSurveyRequest
from ..models.responses import SurveyEligibility, TimelineView
from ..observability.tracing import traced_operation
from .mongodb import MongoDBService
from .tickets import TicketStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TIMELINE_NOT_FOUND = "Timeline not found"
ALREADY_SUBMITTED = "Survey already submitted"
NOT_RESOLVED = "Ticket is not resolved yet"


class TimelineGateway:
    """Token-scoped read access to one ticket and its satisfaction survey."""

    def __init__(self, mongodb_service: MongoDBService, store: TicketStore):
        self.mongodb_service = mongodb_service
        self.store = store

    def _find(self, token: str) -> Dict[str, Any]:
        if not is_valid_token_format(token):
            raise NotFoundException(TIMELINE_NOT_FOUND)

        document = self.store.get_by_token(token)
        if document is None:
            raise NotFoundException(TIMELINE_NOT_FOUND)
        return document

    def get_timeline_by_token(self, token: str) -> TimelineView:
        """Public-safe view of the ticket with its ordered status history."""
        with traced_operation(tracer, "timeline.get") as span:
            document = self._find(token)
            span.set_attribute("ticket.id", document["id"])
            return to_timeline_view(document)

    @staticmethod
    def _eligibility(document: Dict[str, Any]) -> SurveyEligibility:
        if document.get("survey") is not None:
            return SurveyEligibility(eligible=False, reason=ALREADY_SUBMITTED)
        if TicketStatus(document["status"]) not in COMPLETED_STATUSES:
            return SurveyEligibility(eligible=False, reason=NOT_RESOLVED)
        return SurveyEligibility(eligible=True)

    def check_survey_eligibility(self, token: str) -> SurveyEligibility:
        return self._eligibility(self._find(token))

    def submit_survey(
        self,
        token: str,
        payload: Union[SubmitSurveyRequest, Dict[str, Any]]
    ) -> SurveyEligibility:
        """
        Record the citizen's satisfaction survey once.

        Raises:
            NotFoundException: Unknown or malformed token
            ValidationException: Rating outside 1-5 or feedback too long
            BusinessRuleException: Already submitted or not yet resolved
        """
        with traced_operation(tracer, "timeline.submit_survey") as span:
            if isinstance(payload, SubmitSurveyRequest):
                request = payload
            else:
                try:
                    request = SubmitSurveyRequest.model_validate(payload)
                except ValidationError as e:
                    raise validation_exception_from(e, "SubmitSurveyRequest")

            document = self._find(token)
            span.set_attribute("ticket.id", document["id"])

            eligibility = self._eligibility(document)
            if not eligibility.eligible:
                raise BusinessRuleException(eligibility.reason)

            survey = SatisfactionSurvey(rating=request.rating, feedback=request.feedback)
            result = self.mongodb_service.tickets.update_one(
                {
                    "_id": document["id"],
                    "survey": None,
                    "status": {"$in": [status.value for status in COMPLETED_STATUSES]},
                },
                {"$set": {"survey": survey.to_document()}}
            )
            if result.modified_count == 0:
                raise BusinessRuleException(ALREADY_SUBMITTED)

            logger.info(
                "Satisfaction survey recorded",
                extra={"ticket_id": document["id"], "rating": request.rating}
            )
            return SurveyEligibility(eligible=False, reason=ALREADY_SUBMITTED)
