"""
Domain logic for the Unit Query gateway.

- filters: request parameters -> validated FilterSet
- soql: a small typed SOQL expression tree and its renderer
- query_builder: FilterSet -> UpstreamQuery (SOQL text, target, cache key)
- pagination: response postprocessing and cache-fallback shaping
"""

from .filters import FilterSet, FilterParser, FIELD_ALLOWLIST, DEFAULT_FIELDS
from .query_builder import QueryBuilder, UpstreamQuery
from .pagination import annotate_pagination, mark_cached

__all__ = [
    "FilterSet",
    "FilterParser",
    "FIELD_ALLOWLIST",
    "DEFAULT_FIELDS",
    "QueryBuilder",
    "UpstreamQuery",
    "annotate_pagination",
    "mark_cached",
]
