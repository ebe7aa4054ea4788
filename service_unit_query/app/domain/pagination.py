"""
Response postprocessing: pagination metadata and cache-fallback shaping.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from .filters import FilterSet


def count_records(payload: Any) -> int:
    """Number of records in a Salesforce query payload."""
    if isinstance(payload, dict) and isinstance(payload.get("records"), list):
        return len(payload["records"])
    return 0


def annotate_pagination(payload: Any, filters: FilterSet, max_offset: Optional[int] = None) -> Any:
    """Attach a ``pagination`` object to a Salesforce query response.

    An upstream ``nextRecordsUrl`` is exposed verbatim as ``next_cursor``.
    Failing that, under limit/offset paging a numeric ``next_cursor`` (the next
    offset) is synthesised when ``totalSize`` says more rows remain. When that
    offset would exceed ``max_offset`` the page still reports ``has_more`` but
    carries no cursor. Payloads that are not JSON objects are returned untouched.
    """
    if not isinstance(payload, dict):
        return payload

    returned = count_records(payload)
    total_size = payload.get("totalSize")
    if isinstance(total_size, bool) or not isinstance(total_size, int):
        total_size = None

    offset = filters.offset or 0
    limit: Optional[int] = None if filters.is_cursor else filters.limit

    has_more = False
    next_cursor: Any = None
    next_records_url = payload.get("nextRecordsUrl")
    if isinstance(next_records_url, str) and next_records_url:
        has_more = True
        next_cursor = next_records_url
    elif limit is not None and total_size is not None and total_size > offset + returned:
        has_more = True
        next_offset = offset + limit
        if max_offset is None or next_offset <= max_offset:
            next_cursor = next_offset

    pagination: Dict[str, Any] = {
        "limit": limit,
        "offset": offset,
        "returned": returned,
        "total_size": total_size,
        "has_more": has_more,
        "next_cursor": next_cursor,
    }

    annotated = dict(payload)
    annotated["pagination"] = pagination
    return annotated


def mark_cached(raw: bytes) -> Dict[str, Any]:
    """Shape a cached body served in place of a failed upstream call."""
    text = raw.decode("utf-8", errors="replace")
    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None

    if isinstance(decoded, dict):
        decoded["cached"] = True
        return decoded
    return {"cached": True, "data": text}
