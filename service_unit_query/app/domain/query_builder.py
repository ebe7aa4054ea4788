"""
Renders a FilterSet into the upstream request it stands for.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from .filters import FilterSet
from .soql import Compare, Condition, Equals, In, SelectQuery

QUERY_KEY_PREFIX = "unit_query_"
CURSOR_KEY_PREFIX = "unit_cursor_"


@dataclass(frozen=True)
class UpstreamQuery:
    """An immutable upstream request target plus its cache key."""

    target_url: str
    cache_key: str
    soql: Optional[str] = None

    @property
    def is_cursor(self) -> bool:
        return self.soql is None


def _sha1(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class QueryBuilder:
    """Builds SOQL for the Unit object from validated filters."""

    def __init__(self, instance_url: str, api_version: str = "v61.0", sobject: str = "Unit__c"):
        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self.sobject = sobject

    @property
    def query_endpoint(self) -> str:
        return f"{self.instance_url}/services/data/{self.api_version}/query"

    def build(self, filters: FilterSet) -> UpstreamQuery:
        if filters.is_cursor:
            return UpstreamQuery(
                target_url=filters.cursor,
                cache_key=CURSOR_KEY_PREFIX + _sha1(filters.cursor),
            )

        soql = self.to_select(filters).render()
        return UpstreamQuery(
            target_url=f"{self.query_endpoint}?q={quote(soql, safe='')}",
            cache_key=QUERY_KEY_PREFIX + _sha1(soql),
            soql=soql,
        )

    def to_select(self, filters: FilterSet) -> SelectQuery:
        """Expression tree for a limit/offset FilterSet."""
        return SelectQuery(
            sobject=self.sobject,
            fields=filters.fields,
            where=tuple(self._conditions(filters)),
            limit=filters.limit,
            offset=filters.offset,
        )

    @staticmethod
    def _conditions(filters: FilterSet) -> List[Condition]:
        conditions: List[Condition] = []
        if filters.unit_id:
            conditions.append(Equals("Id", filters.unit_id))
        if filters.status:
            conditions.append(In("Status__c", filters.status))
        if filters.sub_status:
            conditions.append(In("Sub_Status__c", filters.sub_status))
        if filters.model:
            conditions.append(In("Model__c", filters.model))
        if filters.offline is not None:
            conditions.append(Equals("Unit_Offline__c", filters.offline))
        if filters.modified_since is not None:
            conditions.append(Compare("LastModifiedDate", ">=", filters.modified_since))
        if filters.date_from is not None:
            conditions.append(Compare("LastModifiedDate", ">=", filters.date_from))
        if filters.date_to is not None:
            conditions.append(Compare("LastModifiedDate", "<=", filters.date_to))
        return conditions
