# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy and centralized error handling with RFC 7807 responses.

Domain code raises the CustomException subclasses defined here; the handlers
registered on the Flask application turn them into problem documents without
changing their kind, so callers can tell retry-safe failures apart.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Dict, Any, List, Optional, Tuple
from opentelemetry import trace
import logging
import traceback

from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class CustomException(Exception):
    """Base class for custom application exceptions."""

    title = "Application Error"
    retryable = False

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Malformed or missing input; fixable by the caller."""

    title = "Validation Error"

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """No verifiable identity."""

    title = "Authentication Required"

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Verified identity lacks rights over the resource."""

    title = "Insufficient Permissions"

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    title = "Resource Not Found"

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class InvalidTransitionException(CustomException):
    """Ticket lifecycle rule violation."""

    title = "Invalid Transition"

    def __init__(self, message: str, from_status: Optional[str] = None, to_status: Optional[str] = None):
        super().__init__(message, 409, "invalid-transition")
        self.from_status = from_status
        self.to_status = to_status


class SubmissionsDisabledException(CustomException):
    """Tenant does not accept public submissions."""

    title = "Submissions Disabled"

    def __init__(self, message: str = "This organization does not accept public submissions"):
        super().__init__(message, 403, "submissions-disabled")


class DuplicateSlugException(CustomException):
    """Organization slug already taken."""

    title = "Duplicate Slug"

    def __init__(self, slug: str):
        super().__init__(f"Organization slug '{slug}' is already taken", 409, "duplicate-slug")
        self.slug = slug


class ConflictException(CustomException):
    """Concurrent write lost the race; re-read and retry."""

    title = "Resource Conflict"
    retryable = True

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class BusinessRuleException(CustomException):
    """Request conflicts with a standing business rule."""

    title = "Business Rule Violation"

    def __init__(self, message: str):
        super().__init__(message, 409, "business-rule-violation")


class ServiceUnavailableException(CustomException):
    """Exception for service unavailable errors."""

    title = "Service Unavailable"

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"]
        })

    return errors


def validation_exception_from(validation_error: ValidationError, model_name: str) -> ValidationException:
    """Convert a pydantic ValidationError into the domain ValidationException."""
    return ValidationException(
        f"Request validation failed for {model_name}",
        format_validation_errors(validation_error)
    )


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with problem document formatting."""

    _client_errors = {
        400: ("bad-request", "Bad Request"),
        401: ("authentication-required", "Authentication Required"),
        403: ("insufficient-permissions", "Insufficient Permissions"),
        404: ("resource-not-found", "Resource Not Found"),
        405: ("method-not-allowed", "Method Not Allowed"),
        409: ("resource-conflict", "Resource Conflict"),
        415: ("unsupported-media-type", "Unsupported Media Type"),
        422: ("validation-error", "Validation Error"),
        429: ("rate-limit-exceeded", "Rate Limit Exceeded"),
    }

    def __init__(self, app: Flask, hal_formatter: HalFormatter, production: bool = False):
        self.app = app
        self.hal_formatter = hal_formatter
        self.production = production
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""
        for code in self._client_errors:
            self.app.register_error_handler(code, self.handle_client_error)

        self.app.register_error_handler(CustomException, self.handle_custom_exception)
        self.app.register_error_handler(Exception, self.handle_unexpected_error)

    def handle_client_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Handle client errors (4xx status codes) raised by Flask or werkzeug.

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response dict, status code)
        """
        error_type, title = self._client_errors.get(error.code, ("client-error", error.name))

        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.warning(
                f"Client error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                }
            )

            error_response = self.hal_formatter.problem(
                error_type,
                title,
                error.code,
                detail,
                request.path
            )
            return error_response, error.code

    def handle_custom_exception(self, error: CustomException):
        """Render a domain exception without changing its kind."""
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "error.retryable": error.retryable,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Custom exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "error_message": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            error_response = self.hal_formatter.problem(
                error.error_type,
                error.title,
                error.status_code,
                error.message,
                request.path,
                getattr(error, "validation_errors", None),
                retryable=error.retryable
            )

            response = jsonify(error_response)
            response.status_code = error.status_code
            if error.retryable:
                response.headers['Retry-After'] = '0'
            return response

    def handle_unexpected_error(self, error: Exception):
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        if isinstance(error, HTTPException):
            if error.code is not None and error.code < 500:
                return self.handle_client_error(error)

        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method,
                    "traceback": traceback.format_exc()
                },
                exc_info=True
            )

            # Don't expose internal error details in production
            detail = "An unexpected error occurred"
            if not self.production:
                detail = f"{error.__class__.__name__}: {str(error)}"

            return self.hal_formatter.format_server_error(detail, request.path), 500


def make_validation_error_callback(hal_formatter: HalFormatter):
    """
    Build the flask-openapi3 validation error callback.

    Request bodies, queries and paths rejected by flask-openapi3 are rendered
    as the same 400 problem document a ValidationException produces.
    """
    def validation_error_callback(e: ValidationError):
        error_response = hal_formatter.format_validation_error(
            f"Request validation failed for {e.title}",
            request.path,
            format_validation_errors(e)
        )
        response = jsonify(error_response)
        response.status_code = 400
        return response

    return validation_error_callback
