# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Timeline endpoints for token holders.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import SubmitSurveyRequest, TokenPath

timeline_tag = Tag(name="Timeline", description="Ticket progress for the citizen holding its token")
timeline_bp = APIBlueprint(
    'timeline',
    __name__,
    url_prefix='/api/timeline',
    abp_tags=[timeline_tag]
)


@timeline_bp.get('/<string:token>')
def get_timeline(path: TokenPath):
    """Public-safe ticket view with its status history."""
    view = current_app.timeline_gateway.get_timeline_by_token(path.token)
    return jsonify(view.model_dump(by_alias=True, mode="json"))


@timeline_bp.get('/<string:token>/survey')
def get_survey_eligibility(path: TokenPath):
    eligibility = current_app.timeline_gateway.check_survey_eligibility(path.token)
    return jsonify(eligibility.model_dump(by_alias=True, mode="json"))


@timeline_bp.post('/<string:token>/survey')
def submit_survey(path: TokenPath, body: SubmitSurveyRequest):
    """Record the satisfaction survey of a resolved ticket."""
    result = current_app.timeline_gateway.submit_survey(path.token, body)
    return jsonify(result.model_dump(by_alias=True, mode="json")), 201
