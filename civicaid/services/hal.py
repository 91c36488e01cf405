# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL links and RFC 7807 problem documents.

Every JSON body the API returns goes through HalFormatter: resources get a
`_links.self`, collections move their items under `_embedded`, and errors
become problem documents carrying a `retryable` flag.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

from ..models.responses import HalLink

PROBLEM_BASE_URI = "https://api.civicaid.app/problems"


def _dump_links(links: Dict[str, HalLink]) -> Dict[str, Dict[str, Any]]:
    return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}


class HalFormatter:
    """Builds hypermedia bodies against one public base URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None
    ) -> HalLink:
        return HalLink(
            href=urljoin(self.base_url, path.lstrip('/')),
            method=method,
            type=content_type,
            title=title
        )

    def format_resource(
        self,
        data: Dict[str, Any],
        self_path: str,
        actions: Optional[Dict[str, HalLink]] = None
    ) -> Dict[str, Any]:
        """Copy of `data` with a self link and any action links."""
        links = {'self': self.link(self_path, title="Self")}
        links.update(actions or {})
        return dict(data, _links=_dump_links(links))

    def format_ticket(self, ticket: Dict[str, Any]) -> Dict[str, Any]:
        """Staff ticket view with its workflow affordances."""
        path = f"/api/tickets/{ticket['id']}"
        return self.format_resource(ticket, path, {
            'transition': self.link(f"{path}/transitions", "POST", "application/json", "Change status"),
            'assign': self.link(f"{path}/assignment", "POST", "application/json", "Assign"),
            'reply': self.link(f"{path}/replies", "POST", "application/json", "Reply to citizen"),
        })

    def format_collection(self, page: Dict[str, Any], collection_path: str) -> Dict[str, Any]:
        """Offset page with items embedded and the paging fields at top level."""
        body = {key: value for key, value in page.items() if key != 'items'}
        body['_links'] = _dump_links({'self': self.link(collection_path, title="Current page")})
        body['_embedded'] = {'items': page.get('items', [])}
        return body

    def problem(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        retryable: bool = False
    ) -> Dict[str, Any]:
        """
        RFC 7807 problem document.

        Args:
            error_type: Slug appended to the problem base URI
            title: Short human summary of the error kind
            status: HTTP status
            detail: Message for this occurrence
            instance: Request path
            validation_errors: Field errors, for validation problems
            retryable: Whether the same request may succeed if repeated
        """
        body: Dict[str, Any] = {
            'type': f"{PROBLEM_BASE_URI}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance,
            'retryable': retryable,
        }
        if validation_errors:
            body['errors'] = validation_errors

        links = {'help': self.link(f"/docs/errors#{error_type}", title="Error documentation")}
        if error_type == "validation-error":
            links['schema'] = self.link("/openapi/openapi.json", title="API schema")
        body['_links'] = _dump_links(links)
        return body

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        return self.problem("validation-error", "Validation Error", 400, detail, instance, validation_errors)

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.problem("internal-server-error", "Internal Server Error", 500, detail, instance)


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
