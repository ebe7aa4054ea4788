"""
Query parameter parsing for the Unit endpoint.

Parameters are checked in a fixed order and the first failure rejects the
whole request with a ``ValidationError`` carrying a stable error code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from shared.errors import ValidationError

from .soql import render_literal


_UNIT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{15,18}$")
_DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")

SALESFORCE_API_PATH_PREFIX = "/services/data/"

FIELD_ALLOWLIST: Tuple[str, ...] = (
    "Id",
    "Name",
    "Status__c",
    "Sub_Status__c",
    "Unit_Offline__c",
    "Model__c",
    "GPS_IMEI__c",
    "GPS_URL__c",
    "Spot_Ai_Serial_Number__c",
    "Starlink_Serial_Number__c",
    "Carbo_Gx_Serial_Number__c",
    "LastModifiedDate",
    "CreatedDate",
    "SystemModstamp",
)

DEFAULT_FIELDS: Tuple[str, ...] = FIELD_ALLOWLIST[:12]

_CANONICAL_FIELDS: Dict[str, str] = {name.lower(): name for name in FIELD_ALLOWLIST}

CURSOR_PARAMS: Tuple[str, ...] = ("next_cursor", "cursor")
FILTER_PARAMS: Tuple[str, ...] = (
    "unit_id",
    "status",
    "sub_status",
    "model",
    "offline",
    "modified_since",
    "from",
    "to",
    "fields",
    "limit",
    "offset",
)


@dataclass(frozen=True)
class FilterSet:
    """Validated intent of a single Unit query request."""

    limit: int
    fields: Tuple[str, ...] = DEFAULT_FIELDS
    limit_explicit: bool = False
    unit_id: Optional[str] = None
    status: Tuple[str, ...] = ()
    sub_status: Tuple[str, ...] = ()
    model: Tuple[str, ...] = ()
    offline: Optional[bool] = None
    modified_since: Optional[datetime] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    offset: Optional[int] = None
    cursor: Optional[str] = None

    @property
    def is_cursor(self) -> bool:
        return self.cursor is not None

    def describe(self) -> Dict[str, object]:
        """JSON-friendly summary of the applied filters, for access logs."""
        if self.is_cursor:
            return {"cursor": self.cursor}

        summary: Dict[str, object] = {"limit": self.limit}
        if self.unit_id:
            summary["unit_id"] = self.unit_id
        if self.status:
            summary["status"] = list(self.status)
        if self.sub_status:
            summary["sub_status"] = list(self.sub_status)
        if self.model:
            summary["model"] = list(self.model)
        if self.offline is not None:
            summary["offline"] = self.offline
        for key, value in (
            ("modified_since", self.modified_since),
            ("from", self.date_from),
            ("to", self.date_to),
        ):
            if value is not None:
                summary[key] = render_literal(value)
        if self.fields != DEFAULT_FIELDS:
            summary["fields"] = list(self.fields)
        if self.offset is not None:
            summary["offset"] = self.offset
        return summary


class FilterParser:
    """Turns raw query parameters into a FilterSet."""

    def __init__(
        self,
        *,
        instance_url: str,
        max_limit: int = 200,
        max_offset: int = 2000,
        default_status: Sequence[str] = (),
        allowlists: Optional[Mapping[str, Iterable[str]]] = None,
    ):
        self.instance_url = instance_url.rstrip("/")
        self.max_limit = max_limit
        self.max_offset = max_offset
        self.default_status = tuple(default_status)
        self.allowlists = {
            name: tuple(values)
            for name, values in (allowlists or {}).items()
            if values
        }

    def parse(self, params: Mapping[str, str]) -> FilterSet:
        """Validate ``params``; raise ValidationError on the first problem."""
        present = {
            name: str(params[name]).strip()
            for name in CURSOR_PARAMS + FILTER_PARAMS
            if name in params and str(params[name]).strip() != ""
        }

        cursor_name = next((name for name in CURSOR_PARAMS if name in present), None)
        if cursor_name is not None:
            others = sorted(name for name in present if name != cursor_name)
            if others:
                raise ValidationError(
                    "invalid_next_cursor_usage",
                    "next_cursor cannot be combined with other query parameters.",
                    {"conflicting_parameters": others},
                )
            return FilterSet(limit=self.max_limit, cursor=self._parse_cursor(present[cursor_name]))

        unit_id = None
        if "unit_id" in present:
            unit_id = present["unit_id"]
            if not _UNIT_ID_PATTERN.match(unit_id):
                raise ValidationError(
                    "invalid_unit_id",
                    "unit_id must be a 15-18 character Salesforce ID.",
                )

        status = self._parse_list(present, "status")
        if not status and "status" not in present:
            status = self.default_status
        sub_status = self._parse_list(present, "sub_status")
        model = self._parse_list(present, "model")

        offline = None
        if "offline" in present:
            flag = present["offline"].lower()
            if flag not in ("true", "false"):
                raise ValidationError("invalid_offline", "offline must be 'true' or 'false'.")
            offline = flag == "true"

        modified_since = None
        if "modified_since" in present:
            modified_since = self._parse_timestamp(present["modified_since"])

        date_from = None
        if "from" in present:
            parsed = self._parse_date(present["from"], "from")
            date_from = datetime.combine(parsed, time(0, 0, 0), tzinfo=timezone.utc)

        date_to = None
        if "to" in present:
            parsed = self._parse_date(present["to"], "to")
            date_to = datetime.combine(parsed, time(23, 59, 59), tzinfo=timezone.utc)

        if date_from is not None and date_to is not None and date_from > date_to:
            raise ValidationError("invalid_date_range", "from must not be later than to.")

        fields = DEFAULT_FIELDS
        if "fields" in present:
            fields = self._parse_fields(present["fields"])

        limit = self.max_limit
        limit_explicit = "limit" in present
        if limit_explicit:
            limit = self._parse_int(present["limit"], "limit", 1, self.max_limit)

        offset = None
        if "offset" in present:
            if not limit_explicit:
                raise ValidationError(
                    "offset_requires_limit",
                    "offset can only be used together with limit.",
                )
            offset = self._parse_int(present["offset"], "offset", 0, self.max_offset)

        return FilterSet(
            limit=limit,
            fields=fields,
            limit_explicit=limit_explicit,
            unit_id=unit_id,
            status=status,
            sub_status=sub_status,
            model=model,
            offline=offline,
            modified_since=modified_since,
            date_from=date_from,
            date_to=date_to,
            offset=offset,
        )

    def _parse_cursor(self, value: str) -> str:
        """Resolve a continuation locator to an absolute URL on the instance."""
        invalid = ValidationError(
            "invalid_next_cursor",
            "next_cursor must be a Salesforce nextRecordsUrl returned by a previous response.",
        )
        if not value.isprintable() or any(ch.isspace() for ch in value) or ".." in value:
            raise invalid

        if value.startswith(SALESFORCE_API_PATH_PREFIX):
            return f"{self.instance_url}{value}"
        if value.startswith(f"{self.instance_url}{SALESFORCE_API_PATH_PREFIX}"):
            return value
        raise invalid

    def _parse_list(self, present: Mapping[str, str], name: str) -> Tuple[str, ...]:
        if name not in present:
            return ()

        values = []
        for item in present[name].split(","):
            item = item.strip()
            if item and item not in values:
                values.append(item)

        if not values:
            raise ValidationError(
                f"invalid_{name}",
                f"{name} must contain at least one comma-separated value.",
            )

        allowed = self.allowlists.get(name)
        if allowed:
            rejected = [value for value in values if value not in allowed]
            if rejected:
                raise ValidationError(
                    f"invalid_{name}",
                    f"{name} contains unsupported values: {', '.join(rejected)}.",
                    {f"invalid_{name}": rejected, "allowed": list(allowed)},
                )
        return tuple(values)

    def _parse_fields(self, raw: str) -> Tuple[str, ...]:
        names = [item.strip() for item in raw.split(",") if item.strip()]
        if not names:
            raise ValidationError("invalid_fields", "fields must list at least one field name.")

        unknown = [name for name in names if name.lower() not in _CANONICAL_FIELDS]
        if unknown:
            raise ValidationError(
                "invalid_fields",
                f"Unknown fields: {', '.join(unknown)}.",
                {"invalid_fields": unknown, "allowed": list(FIELD_ALLOWLIST)},
            )

        fields = []
        for name in names:
            canonical = _CANONICAL_FIELDS[name.lower()]
            if canonical not in fields:
                fields.append(canonical)
        return tuple(fields)

    @staticmethod
    def _parse_int(raw: str, name: str, minimum: int, maximum: int) -> int:
        if not _INTEGER_PATTERN.match(raw):
            raise ValidationError(f"invalid_{name}", f"{name} must be an integer.")
        value = int(raw)
        if value < minimum or value > maximum:
            raise ValidationError(
                f"invalid_{name}",
                f"{name} must be between {minimum} and {maximum}.",
            )
        return value

    @staticmethod
    def _parse_date(raw: str, name: str) -> date:
        error = ValidationError(f"invalid_{name}", f"{name} must be in YYYY-MM-DD format.")
        if not _DATE_PATTERN.match(raw):
            raise error
        try:
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise error from exc

    @classmethod
    def _parse_timestamp(cls, raw: str) -> datetime:
        """Accept YYYY-MM-DD or an ISO-8601 timestamp carrying Z or an offset."""
        if _DATE_PATTERN.match(raw):
            parsed_date = cls._parse_date(raw, "modified_since")
            return datetime.combine(parsed_date, time(0, 0, 0), tzinfo=timezone.utc)

        error = ValidationError(
            "invalid_modified_since",
            "modified_since must be YYYY-MM-DD or an ISO-8601 timestamp with a timezone.",
        )
        candidate = raw
        if candidate.endswith(("Z", "z")):
            candidate = candidate[:-1] + "+00:00"
        if "T" not in candidate and "t" not in candidate:
            raise error

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise error from exc

        if parsed.tzinfo is None:
            raise error
        try:
            return parsed.astimezone(timezone.utc)
        except (OverflowError, ValueError) as exc:
            # Offsets can push 0001-01-01 or 9999-12-31 outside the datetime range.
            raise error from exc
