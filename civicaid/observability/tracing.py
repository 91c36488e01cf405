# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Span helpers for service operations.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry.trace import Span, Status, StatusCode, Tracer

from ..middleware.error_handler import CustomException


@contextmanager
def traced_operation(
    tracer: Tracer,
    name: str,
    attributes: Optional[Dict[str, Any]] = None
) -> Iterator[Span]:
    """
    Run a block inside a span whose status reflects how the block ended.

    A domain error marks the span ERROR with its message and records its
    problem type as `error.type`; any other exception is recorded and marked
    ERROR as well before it propagates.

    Args:
        tracer: Tracer of the calling module
        name: Span name, `component.operation`
        attributes: Initial span attributes
    """
    with tracer.start_as_current_span(name, set_status_on_exception=False) as span:
        if attributes:
            span.set_attributes(attributes)
        try:
            yield span
        except CustomException as e:
            span.set_attribute("error.type", e.error_type)
            span.set_status(Status(StatusCode.ERROR, e.message))
            raise
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
