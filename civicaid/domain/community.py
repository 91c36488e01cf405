# SPDX-License-Identifier: Apache-2.0

"""
Public projection rules for the community and timeline surfaces.

These functions are the only place that turns a stored ticket into data that
anonymous callers may see. Contact fields, tokens, assignees and staff ids
never pass through them.
"""

import re
from typing import Any, Dict, List, Optional

from ..models.enums import TicketUpdateType
from ..models.responses import PublicTicketSummary, TimelineEntry, TimelineView, CommentView

PUBLIC_EXCERPT_LENGTH = 160
PUBLIC_LIST_DEFAULT_LIMIT = 20
PUBLIC_LIST_MAX_LIMIT = 50

BANNED_WORDS = ("욕설1", "욕설2", "광고", "spam")

_PHONE_IN_TEXT = re.compile(r'(\d{3})-?(\d{2})\d{2}-?\d{4}')


def mask_phone_numbers(text: str) -> str:
    """Mask phone numbers: 010-1234-5678 -> 010-12**-****."""
    return _PHONE_IN_TEXT.sub(r'\1-\2**-****', text)


def public_excerpt(content: str) -> str:
    """
    First 160 characters of the content with phone numbers masked.

    Masking runs on the full text so a number cut by the excerpt boundary
    is never shown partially unmasked.
    """
    content = mask_phone_numbers(content)
    if len(content) > PUBLIC_EXCERPT_LENGTH:
        content = content[:PUBLIC_EXCERPT_LENGTH] + "..."
    return content


def find_banned_word(text: str) -> Optional[str]:
    """Return the first banned word contained in text, if any."""
    lowered = text.lower()
    for word in BANNED_WORDS:
        if word in lowered:
            return word
    return None


def to_public_summary(ticket: Dict[str, Any]) -> PublicTicketSummary:
    """Project a stored ticket document for the community list."""
    return PublicTicketSummary(
        id=ticket["id"],
        nickname=ticket["nickname"],
        content=public_excerpt(ticket["content"]),
        category=ticket["category"],
        status=ticket["status"],
        created_at=ticket["createdAt"],
        updated_at=ticket["updatedAt"],
        like_count=ticket.get("likeCount", 0),
        comment_count=ticket.get("commentCount", 0),
    )


def to_timeline_entries(history: List[Dict[str, Any]]) -> List[TimelineEntry]:
    """Status changes only, in the order they were recorded."""
    return [
        TimelineEntry(
            type=entry["type"],
            from_status=entry.get("fromStatus"),
            to_status=entry.get("toStatus"),
            note=entry.get("note"),
            created_at=entry["createdAt"],
        )
        for entry in history
        if entry.get("type") == TicketUpdateType.STATUS_CHANGE.value
    ]


def to_timeline_view(ticket: Dict[str, Any]) -> TimelineView:
    """Project a stored ticket document for its token holder."""
    return TimelineView(
        ticket_id=ticket["id"],
        nickname=ticket["nickname"],
        content=ticket["content"],
        category=ticket["category"],
        status=ticket["status"],
        priority=ticket["priority"],
        created_at=ticket["createdAt"],
        updated_at=ticket["updatedAt"],
        resolved_at=ticket.get("resolvedAt"),
        history=to_timeline_entries(ticket.get("history", [])),
        survey_submitted=ticket.get("survey") is not None,
    )


def to_comment_view(comment: Dict[str, Any]) -> CommentView:
    """Project a stored comment; the address hash stays private."""
    return CommentView(
        id=comment["id"],
        ticket_id=comment["ticketId"],
        nickname=comment["nickname"],
        content=comment["content"],
        created_at=comment["createdAt"],
    )


def clamp_public_page(limit: Optional[int], offset: Optional[int]) -> tuple:
    """Clamp community paging to 1-50 items and a non-negative offset."""
    limit = PUBLIC_LIST_DEFAULT_LIMIT if limit is None else limit
    offset = 0 if offset is None else offset
    return max(1, min(limit, PUBLIC_LIST_MAX_LIMIT)), max(0, offset)
