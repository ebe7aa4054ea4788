"""
Minimal SOQL expression tree.

Only the shapes the Unit endpoint needs are modelled: a single-object
SELECT with an AND-joined WHERE of equality, membership and range
comparisons. Every literal is rendered through this module, so string
escaping lives in exactly one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_COMPARISON_OPERATORS = frozenset({"=", "!=", "<", "<=", ">", ">="})

LiteralValue = Union[str, bool, int, datetime]


def escape_string(value: str) -> str:
    """Escape a value for use inside a single-quoted SOQL string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def render_literal(value: LiteralValue) -> str:
    """Render a Python value as a SOQL literal."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
        # SOQL datetimes carry at most millisecond precision.
        timespec = "milliseconds" if value.microsecond else "seconds"
        return value.isoformat(timespec=timespec) + "Z"
    if isinstance(value, str):
        return f"'{escape_string(value)}'"
    raise TypeError(f"Unsupported SOQL literal type: {type(value).__name__}")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SOQL identifier: {name!r}")
    return name


@dataclass(frozen=True)
class Equals:
    field: str
    value: LiteralValue

    def render(self) -> str:
        return f"{_check_identifier(self.field)} = {render_literal(self.value)}"


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[str, ...]

    def render(self) -> str:
        if not self.values:
            raise ValueError(f"IN clause on {self.field} needs at least one value")
        rendered = ",".join(render_literal(value) for value in self.values)
        return f"{_check_identifier(self.field)} IN ({rendered})"


@dataclass(frozen=True)
class Compare:
    field: str
    operator: str
    value: LiteralValue

    def render(self) -> str:
        if self.operator not in _COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported SOQL operator: {self.operator}")
        return f"{_check_identifier(self.field)} {self.operator} {render_literal(self.value)}"


Condition = Union[Equals, In, Compare]


@dataclass(frozen=True)
class SelectQuery:
    """SELECT <fields> FROM <sobject> [WHERE ...] [LIMIT n] [OFFSET m]."""

    sobject: str
    fields: Tuple[str, ...]
    where: Tuple[Condition, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None

    def render(self) -> str:
        if not self.fields:
            raise ValueError("SELECT needs at least one field")

        projection = ",".join(_check_identifier(name) for name in self.fields)
        parts = [f"SELECT {projection} FROM {_check_identifier(self.sobject)}"]
        if self.where:
            parts.append("WHERE " + " AND ".join(condition.render() for condition in self.where))
        if self.limit is not None:
            parts.append(f"LIMIT {int(self.limit)}")
        if self.offset is not None:
            parts.append(f"OFFSET {int(self.offset)}")
        return " ".join(parts)
