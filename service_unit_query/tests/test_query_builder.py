"""
Unit tests for SOQL rendering and the query builder.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

import pytest

from service_unit_query.app.domain.filters import FilterParser, FilterSet
from service_unit_query.app.domain.query_builder import CURSOR_KEY_PREFIX, QUERY_KEY_PREFIX, QueryBuilder
from service_unit_query.app.domain.soql import Compare, Equals, In, SelectQuery, escape_string, render_literal

from conftest import INSTANCE_URL


class TestSoqlRendering:
    """Test cases for the SOQL expression tree."""

    def test_escape_backslash_before_quote(self):
        assert escape_string("O'Brien") == "O\\'Brien"
        assert escape_string("a\\b") == "a\\\\b"
        assert escape_string("\\'") == "\\\\\\'"

    def test_literals(self):
        assert render_literal(True) == "true"
        assert render_literal(False) == "false"
        assert render_literal(42) == "42"
        assert render_literal("x'y") == "'x\\'y'"

    def test_datetime_literals_are_utc(self):
        value = datetime(2024, 1, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert render_literal(value) == "2024-01-01T00:00:00Z"

    def test_datetime_literals_keep_milliseconds(self):
        assert render_literal(datetime(2024, 3, 5, 10, 30, 0, 900000, tzinfo=timezone.utc)) == "2024-03-05T10:30:00.900Z"
        assert render_literal(datetime(2024, 3, 5, 10, 30, 0, 123456, tzinfo=timezone.utc)) == "2024-03-05T10:30:00.123Z"

    def test_early_years_are_zero_padded(self):
        assert render_literal(datetime(1, 1, 1, tzinfo=timezone.utc)) == "0001-01-01T00:00:00Z"

    def test_conditions(self):
        assert Equals("Id", "a0B5e00000AbCdE").render() == "Id = 'a0B5e00000AbCdE'"
        assert In("Status__c", ("A", "B'C")).render() == "Status__c IN ('A','B\\'C')"
        assert Compare("LastModifiedDate", "<=", datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)).render() == (
            "LastModifiedDate <= 2024-01-31T23:59:59Z"
        )

    def test_invalid_constructs_rejected(self):
        with pytest.raises(ValueError):
            In("Status__c", ()).render()
        with pytest.raises(ValueError):
            Compare("LastModifiedDate", "LIKE", "x").render()
        with pytest.raises(ValueError):
            Equals("Id; DROP", "x").render()

    def test_select_without_where(self):
        query = SelectQuery(sobject="Unit__c", fields=("Id", "Name"), limit=10)
        assert query.render() == "SELECT Id,Name FROM Unit__c LIMIT 10"


class TestQueryBuilder:
    """Test cases for QueryBuilder."""

    @pytest.fixture
    def builder(self):
        return QueryBuilder(INSTANCE_URL, api_version="v61.0", sobject="Unit__c")

    @pytest.fixture
    def parser(self):
        return FilterParser(instance_url=INSTANCE_URL)

    def test_defaults_render_projection_and_limit(self, builder, parser):
        query = builder.build(parser.parse({}))

        assert query.soql == (
            "SELECT Id,Name,Status__c,Sub_Status__c,Unit_Offline__c,Model__c,GPS_IMEI__c,GPS_URL__c,"
            "Spot_Ai_Serial_Number__c,Starlink_Serial_Number__c,Carbo_Gx_Serial_Number__c,LastModifiedDate "
            "FROM Unit__c LIMIT 200"
        )
        assert "WHERE" not in query.soql

    def test_where_clause_order(self, builder, parser):
        filters = parser.parse({
            "to": "2024-01-31",
            "from": "2024-01-01",
            "modified_since": "2023-12-01",
            "offline": "false",
            "model": "X1",
            "sub_status": "Active",
            "status": "Deployed,In Transit",
            "unit_id": "a0B5e00000AbCdE",
            "fields": "Id,Name",
            "limit": "50",
            "offset": "100",
        })

        assert builder.build(filters).soql == (
            "SELECT Id,Name FROM Unit__c WHERE Id = 'a0B5e00000AbCdE'"
            " AND Status__c IN ('Deployed','In Transit')"
            " AND Sub_Status__c IN ('Active')"
            " AND Model__c IN ('X1')"
            " AND Unit_Offline__c = false"
            " AND LastModifiedDate >= 2023-12-01T00:00:00Z"
            " AND LastModifiedDate >= 2024-01-01T00:00:00Z"
            " AND LastModifiedDate <= 2024-01-31T23:59:59Z"
            " LIMIT 50 OFFSET 100"
        )

    def test_quotes_in_values_are_escaped(self, builder, parser):
        query = builder.build(parser.parse({"model": "O'Neil\\X"}))
        assert "Model__c IN ('O\\'Neil\\\\X')" in query.soql

    def test_target_url_is_rawurlencoded(self, builder, parser):
        query = builder.build(parser.parse({"status": "In Transit", "limit": "5"}))

        prefix = f"{INSTANCE_URL}/services/data/v61.0/query?q="
        assert query.target_url.startswith(prefix)
        encoded = query.target_url[len(prefix):]
        assert " " not in encoded and "+" not in encoded
        assert "%20" in encoded
        assert unquote(encoded) == query.soql

    def test_identical_filters_give_identical_keys(self, builder, parser):
        params = {"status": "Deployed", "limit": "50"}
        first = builder.build(parser.parse(params))
        second = builder.build(parser.parse(dict(params)))

        assert first == second
        assert first.cache_key.startswith(QUERY_KEY_PREFIX)

    @pytest.mark.parametrize("changed", [
        {"status": "Retired"},
        {"limit": "49"},
        {"offset": "1"},
        {"offline": "true"},
        {"fields": "Id"},
        {"unit_id": "a0B5e00000AbCdE"},
        {"sub_status": "Active"},
        {"model": "X1"},
        {"modified_since": "2024-01-01"},
        {"modified_since": "2024-01-01T00:00:00.100Z"},
        {"from": "2024-01-01"},
        {"to": "2024-01-01"},
    ])
    def test_any_differing_filter_changes_key(self, builder, parser, changed):
        base = {"status": "Deployed", "limit": "50"}
        variant = dict(base, **changed)

        assert builder.build(parser.parse(base)).cache_key != builder.build(parser.parse(variant)).cache_key

    def test_sub_second_timestamps_give_distinct_queries(self, builder, parser):
        early = builder.build(parser.parse({"modified_since": "2024-03-05T10:30:00.100Z"}))
        late = builder.build(parser.parse({"modified_since": "2024-03-05T10:30:00.900Z"}))

        assert "LastModifiedDate >= 2024-03-05T10:30:00.100Z" in early.soql
        assert early.cache_key != late.cache_key

    def test_cursor_query_targets_cursor_and_uses_distinct_prefix(self, builder):
        cursor = f"{INSTANCE_URL}/services/data/v61.0/query/01gxx0000000001-200"
        query = builder.build(FilterSet(limit=200, cursor=cursor))

        assert query.is_cursor
        assert query.soql is None
        assert query.target_url == cursor
        assert query.cache_key.startswith(CURSOR_KEY_PREFIX)
        assert builder.build(FilterSet(limit=200, cursor=cursor)).cache_key == query.cache_key
