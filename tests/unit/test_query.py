"""
Unit tests for the query language and attribute access.

Tests cover:
- Pattern-only and filtered queries
- Presence filters and non-string values
- Limits and malformed expressions
- Attribute paths with keys and indices
"""

import pytest

from gts_engine.errors import NotFoundError, ParseError, PathNotFoundError
from gts_engine.query import QueryExpression, parse_path, resolve_attribute, run_query, walk_path

from tests.conftest import EVENT_V1_0, ORDER_V1_0, ORDER_V1_1


def ids_of(result):
    return [doc.get("id") or doc.get("$id") for doc in result.results]


class TestQueryParse:
    """Tests for QueryExpression.parse."""

    def test_pattern_only(self):
        """A bare pattern has no filters."""
        query = QueryExpression.parse("gts.x.core.events.*")
        assert query.filters == ()

    def test_filters_are_split_and_unquoted(self):
        """Comma-separated filters are parsed, quotes stripped."""
        query = QueryExpression.parse('gts.x.core.*[status="active", name=\'first\']')
        assert query.filters == (("status", "active"), ("name", "first"))

    @pytest.mark.parametrize("expr", ["gts.x.core.*[status=active", "gts.x.core.*[status]", "[a=b]", "nope.*"])
    def test_malformed(self, expr):
        """Malformed expressions raise ParseError."""
        with pytest.raises(ParseError):
            QueryExpression.parse(expr)


class TestRunQuery:
    """Tests for run_query."""

    def test_pattern_matches_schemas_and_instances(self, store):
        """A namespace wildcard matches the lineage and its instances."""
        result = run_query("gts.x.core.events.*", store, limit=100)
        assert result.count == 6
        assert result.error == ""

    def test_type_wildcard(self, store):
        """'~*' selects only derived ids."""
        result = run_query("gts.x.core.events.event.v1~*", store, limit=100)
        assert ids_of(result) == [ORDER_V1_0, ORDER_V1_1]

    def test_string_filter(self, store):
        """String fields compare by equality."""
        result = run_query("gts.x.core.events.*[status=active]", store, limit=100)
        assert ids_of(result) == [ORDER_V1_0]

    def test_non_string_filter(self, store):
        """Numbers compare by their JSON text."""
        result = run_query("gts.x.core.events.*[priority=5]", store, limit=100)
        assert ids_of(result) == [ORDER_V1_1]

    def test_presence_filter(self, store):
        """'*' requires the field to be present."""
        result = run_query("gts.x.core.events.*[name=*]", store, limit=100)
        assert ids_of(result) == [ORDER_V1_0, ORDER_V1_1]

    def test_every_filter_must_hold(self, store):
        """Filters are conjunctive."""
        result = run_query("gts.x.core.events.*[name=*, status=archived]", store, limit=100)
        assert ids_of(result) == [ORDER_V1_1]

    def test_limit(self, store):
        """Results are truncated to the limit."""
        result = run_query("gts.x.core.events.*", store, limit=1)
        assert result.count == 1
        assert result.to_dict()["limit"] == 1

    def test_repeatable(self, store):
        """The same query over the same store gives the same answer."""
        first = run_query("gts.x.core.events.*", store, limit=100).to_dict()
        assert run_query("gts.x.core.events.*", store, limit=100).to_dict() == first


class TestAttributePath:
    """Tests for path parsing and resolution."""

    def test_parse_path(self):
        """Keys, bracket indices and bare integers become steps."""
        assert parse_path("a.items[0].grid[1][2]") == ["a", "items", 0, "grid", 1, 2]
        assert parse_path("items.0") == ["items", "0"]

    @pytest.mark.parametrize("path", ["a..b", "a[x]", "a[0"])
    def test_malformed_path(self, path):
        """Malformed segments raise ParseError."""
        with pytest.raises(ParseError):
            parse_path(path)

    def test_walk(self):
        """Lists are indexed by bracket or bare integer."""
        doc = {"payload": {"items": [{"sku": "a"}, {"sku": "b"}]}}
        assert walk_path(doc, "payload.items[1].sku") == "b"
        assert walk_path(doc, "payload.items.0.sku") == "a"

    def test_missing_key_lists_fields(self):
        """A missing key reports what is available."""
        with pytest.raises(PathNotFoundError) as exc:
            walk_path({"b": 1, "a": 2}, "c")
        assert exc.value.available_fields == ["a", "b"]

    def test_index_out_of_range(self):
        """Out-of-range indices are path errors."""
        with pytest.raises(PathNotFoundError):
            walk_path({"items": []}, "items[0]")

    def test_descend_into_scalar(self):
        """Scalars have no children."""
        with pytest.raises(PathNotFoundError):
            walk_path({"a": 1}, "a.b")

    def test_resolve_attribute(self, store):
        """`<id>@<path>` reads from the stored document."""
        result = resolve_attribute(f"{ORDER_V1_0}@name", store)
        assert result.value == "first"
        assert result.to_dict()["ok"] is True

    def test_resolve_schema_attribute(self, store):
        """Schemas are addressable too."""
        result = resolve_attribute(f"{EVENT_V1_0}@properties.status.enum[1]", store)
        assert result.value == "archived"

    def test_resolve_requires_path(self, store):
        """An expression without '@' is rejected."""
        with pytest.raises(ParseError):
            resolve_attribute(ORDER_V1_0, store)

    def test_resolve_unknown_entity(self, store):
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            resolve_attribute("gts.x.none.none.none.v1.0@a", store)
