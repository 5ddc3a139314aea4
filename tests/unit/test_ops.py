"""
Unit tests for the operations facade.

Tests cover:
- Structured results instead of exceptions
- Store writes (add entity/entities/schema) and reload
- Error codes on failure
"""

import json

from gts_engine.config import Settings
from gts_engine.ops import GtsOps

from tests.conftest import EVENT_V1_0, EVENT_V1_1, EVENT_V1_2, EVENT_V2_0, MISSING_SCHEMA, ORDER_V1_0, ORDER_V1_1, ORPHAN


class TestIdentifierOps:
    """Tests for identifier operations."""

    def test_validate_id(self, ops):
        """Validity is reported, with the parse error when invalid."""
        assert ops.validate_id(EVENT_V1_0) == {"id": EVENT_V1_0, "valid": True, "error": ""}
        result = ops.validate_id("gts.bad")
        assert result["valid"] is False
        assert result["error_code"] == "PARSE_ERROR"

    def test_parse_id(self, ops):
        """Segments are returned with the schema flag."""
        result = ops.parse_id(ORDER_V1_0)
        assert result["ok"] is True
        assert result["is_schema"] is False
        assert len(result["segments"]) == 2

    def test_match(self, ops):
        """Pattern errors do not raise."""
        assert ops.match_id_pattern("gts.x.core.*", EVENT_V1_0)["is_match"] is True
        result = ops.match_id_pattern("gts.*.x.*", EVENT_V1_0)
        assert result["is_match"] is False
        assert result["error"]

    def test_uuid_scopes(self, ops):
        """Major scope ignores the minor version."""
        major_a = ops.uuid(EVENT_V1_0, "major")["uuid"]
        major_b = ops.uuid(EVENT_V1_1, "major")["uuid"]
        assert major_a == major_b
        assert ops.uuid(EVENT_V1_0)["uuid"] != ops.uuid(EVENT_V1_1)["uuid"]

    def test_uuid_bad_scope(self, ops):
        """Unknown scopes are reported."""
        result = ops.uuid(EVENT_V1_0, "patch")
        assert result["uuid"] is None
        assert result["error_code"] == "INVALID_SCOPE"


class TestReadOps:
    """Tests for read-side operations."""

    def test_validate_entity_dispatch(self, ops):
        """Schema ids get the meta-schema check, instance ids the instance check."""
        assert ops.validate_entity(EVENT_V1_0)["ok"] is True
        assert ops.validate_entity(ORDER_V1_0)["ok"] is True
        assert ops.validate_entity(ORPHAN)["error_code"] == "NOT_FOUND"

    def test_relationships(self, ops):
        """Missing references are listed."""
        result = ops.resolve_relationships(ORPHAN)
        assert result["ok"] is True
        assert result["missing_refs"] == [MISSING_SCHEMA]

    def test_schema_graph(self, ops):
        """The graph is wrapped under 'graph'."""
        assert ops.schema_graph(ORDER_V1_0)["graph"]["id"] == ORDER_V1_0

    def test_compatibility(self, ops):
        """The report carries the direction and both error lists."""
        result = ops.compatibility(EVENT_V1_1, EVENT_V1_2)
        assert result["ok"] is True
        assert result["direction"] == "up"
        assert result["is_backward_compatible"] is False
        assert result["backward_errors"] == ["Added required properties: email"]

    def test_compatibility_missing_schema(self, ops):
        """A missing schema yields a negative report, not an exception."""
        result = ops.compatibility(EVENT_V1_0, "gts.x.core.events.event.v1.9~")
        assert result["ok"] is False
        assert result["backward_errors"] == ["Schema not found"]
        assert result["error_code"] == "NOT_FOUND"

    def test_compatibility_cross_major(self, ops):
        """Different majors are an error."""
        result = ops.compatibility(EVENT_V1_0, EVENT_V2_0)
        assert result["is_fully_compatible"] is False
        assert result["error_code"] == "MAJOR_VERSION_MISMATCH"

    def test_cast(self, ops):
        """A successful cast is serializable and carries the casted copy."""
        result = ops.cast(ORDER_V1_0, EVENT_V1_1)
        assert result["ok"] is True
        assert result["casted_entity"]["priority"] == 3
        json.dumps(result)

    def test_cast_refused(self, ops):
        """Refused casts carry reasons and an error."""
        result = ops.cast(ORDER_V1_1, EVENT_V1_2)
        assert result["ok"] is False
        assert result["error_code"] == "INCOMPATIBLE_SCHEMAS"
        assert result["incompatibility_reasons"] == ["Added required properties: email"]

    def test_cast_from_schema(self, ops):
        """Schemas cannot be cast."""
        result = ops.cast(EVENT_V1_0, EVENT_V1_1)
        assert result["ok"] is False
        assert result["casted_entity"] is None

    def test_query(self, ops):
        """Queries report count and limit."""
        result = ops.query("gts.x.core.events.*", limit=2)
        assert result["count"] == 2
        assert result["limit"] == 2

    def test_invalid_query(self, ops):
        """Parse errors are prefixed."""
        result = ops.query("nope")
        assert result["error"].startswith("Invalid query:")
        assert result["results"] == []

    def test_attr(self, ops):
        """Attribute values are returned; failures list available fields."""
        assert ops.attr(f"{ORDER_V1_0}@status")["value"] == "active"
        result = ops.attr(f"{ORDER_V1_0}@nope")
        assert result["ok"] is False
        assert result["error_code"] == "PATH_NOT_FOUND"
        assert "name" in result["available_fields"]

    def test_list(self, ops):
        """Listing reports the page and the total."""
        result = ops.list(limit=3)
        assert result["count"] == 3
        assert result["total"] == 7
        assert set(result["results"][0]) == {"id", "schema_id", "is_schema"}

    def test_get_entity(self, ops):
        """Entities are returned with their content."""
        assert ops.get_entity(ORDER_V1_0)["content"]["name"] == "first"
        assert ops.get_entity("gts.x.none.none.none.v1.0")["error_code"] == "NOT_FOUND"

    def test_extract_id(self, ops):
        """Extraction reports the fields used."""
        result = ops.extract_id({"gtsId": "gts.x.a.b.c.v1.0", "type": EVENT_V1_0})
        assert result["id"] == "gts.x.a.b.c.v1.0"
        assert result["selected_entity_field"] == "gtsId"
        assert result["schema_id"] == EVENT_V1_0


class TestWriteOps:
    """Tests for store writes."""

    def test_add_entity(self, ops):
        """Added entities become visible to later operations."""
        new_id = EVENT_V1_0 + "x.app.orders.created.v1.1"
        result = ops.add_entity({"id": new_id, "name": "third"}, validate=True)
        assert result["ok"] is True
        assert ops.get_entity(new_id)["ok"] is True

    def test_add_invalid_entity(self, ops):
        """Validation failures publish nothing."""
        new_id = EVENT_V1_0 + "x.app.orders.created.v1.1"
        result = ops.add_entity({"id": new_id, "status": "active"}, validate=True)
        assert result["ok"] is False
        assert result["error_code"] == "VALIDATION_ERROR"
        assert ops.get_entity(new_id)["ok"] is False

    def test_add_without_validation(self, ops):
        """Without validate, instances are stored as-is."""
        new_id = EVENT_V1_0 + "x.app.orders.created.v1.1"
        assert ops.add_entity({"id": new_id}, validate=False)["ok"] is True

    def test_add_entity_without_id(self, ops):
        """Content without any id is rejected."""
        result = ops.add_entity({"name": "nobody"})
        assert result["ok"] is False

    def test_add_entities_partial(self, ops):
        """Good items are added even when others fail."""
        good = {"id": EVENT_V1_0 + "x.app.orders.created.v1.2", "name": "ok"}
        bad = {"id": EVENT_V1_0 + "x.app.orders.created.v1.3", "status": "bogus"}
        result = ops.add_entities([good, bad], validate=True)
        assert result["ok"] is False
        assert result["added"] == 1
        assert [r["ok"] for r in result["results"]] == [True, False]
        assert ops.get_entity(good["id"])["ok"] is True

    def test_add_schema(self, ops):
        """Schemas are registered under the given id."""
        type_id = "gts.x.core.events.event.v1.3~"
        schema = {"$schema": "http://json-schema.org/draft-07/schema#", "type": "object"}
        assert ops.add_schema(type_id, schema)["ok"] is True
        assert ops.get_entity(type_id)["is_schema"] is True
        assert ops.compatibility(EVENT_V1_0, type_id)["ok"] is True

    def test_add_schema_requires_type_id(self, ops):
        """Instance ids cannot name schemas."""
        result = ops.add_schema("gts.x.core.events.event.v1.3", {"type": "object"})
        assert result["ok"] is False

    def test_add_invalid_schema(self, ops):
        """Malformed schemas are rejected."""
        result = ops.add_schema("gts.x.core.events.event.v1.3~", {"type": 5})
        assert result["error_code"] == "VALIDATION_ERROR"

    def test_reload_drops_added(self, ops):
        """Reload rebuilds from disk, discarding in-memory additions."""
        ops.add_entity({"id": "gts.x.tmp.things.thing.v1.0"})
        result = ops.reload()
        assert result["ok"] is True
        assert result["count"] == 7
        assert ops.get_entity("gts.x.tmp.things.thing.v1.0")["ok"] is False

    def test_reload_new_paths(self, ops, tmp_path):
        """Reload can switch roots."""
        other = tmp_path / "other"
        other.mkdir()
        (other / "one.json").write_text(json.dumps({"id": "gts.x.other.things.thing.v1.0"}))
        result = ops.reload([str(other)])
        assert result["count"] == 1
        assert ops.paths == [str(other)]

    def test_empty_ops(self):
        """An ops object without roots starts empty."""
        ops = GtsOps(settings=Settings())
        assert ops.list()["total"] == 0
