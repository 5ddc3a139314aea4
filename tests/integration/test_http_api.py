"""
Integration tests for the HTTP API.

Tests cover:
- Routes forwarding to the operations facade
- Status codes derived from error codes
- Writes visible to later requests
- Reload
- App construction through the factory only
"""

import pytest
from fastapi.testclient import TestClient

from gts_engine.api import create_app, http_server
from gts_engine.config import Settings
from gts_engine.ops import GtsOps

from tests.conftest import EVENT_V1_0, EVENT_V1_1, EVENT_V1_2, EVENT_V2_0, MISSING_SCHEMA, ORDER_V1_0, ORDER_V1_1, ORPHAN


@pytest.fixture
def client(ops):
    """Test client over the fixture store."""
    return TestClient(create_app(ops, Settings()))


class TestIdentifierRoutes:
    """Tests for /v1/id routes."""

    def test_health(self, client):
        """Health reports the entity count."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["entities"] == 7

    def test_validate(self, client):
        """Valid ids are 200, invalid ones 400."""
        assert client.get("/v1/id/validate", params={"gts_id": EVENT_V1_0}).json()["valid"] is True
        response = client.get("/v1/id/validate", params={"gts_id": "gts.nope"})
        assert response.status_code == 400
        assert response.json()["valid"] is False

    def test_parse(self, client):
        """Segments are returned."""
        body = client.get("/v1/id/parse", params={"gts_id": ORDER_V1_0}).json()
        assert [s["type"] for s in body["segments"]] == ["event", "created"]

    def test_match(self, client):
        """Pattern matching answers is_match."""
        params = {"pattern": "gts.x.core.events.event.v1~*", "candidate": ORDER_V1_0}
        assert client.get("/v1/id/match", params=params).json()["is_match"] is True

    def test_uuid(self, client):
        """Bad scopes are client errors."""
        assert client.get("/v1/id/uuid", params={"gts_id": EVENT_V1_0}).json()["uuid"]
        response = client.get("/v1/id/uuid", params={"gts_id": EVENT_V1_0, "scope": "patch"})
        assert response.status_code == 400

    def test_extract(self, client):
        """Extraction works on posted documents."""
        body = client.post("/v1/id/extract", json={"id": ORDER_V1_0}).json()
        assert body["id"] == ORDER_V1_0
        assert body["schema_id"] == EVENT_V1_0


class TestLifecycleRoutes:
    """Tests for validation, compatibility and casting routes."""

    def test_validate_instance(self, client):
        """Conforming instances are 200, missing schemas 404."""
        assert client.get("/v1/validate-instance", params={"gts_id": ORDER_V1_0}).status_code == 200
        assert client.get("/v1/validate-instance", params={"gts_id": ORPHAN}).status_code == 404

    def test_validate_schema(self, client):
        """Stored schemas pass."""
        body = client.get("/v1/validate-schema", params={"gts_id": EVENT_V1_1}).json()
        assert body["ok"] is True

    def test_validate_entity(self, client):
        """Either kind of id is accepted."""
        assert client.get("/v1/validate-entity", params={"gts_id": EVENT_V1_0}).json()["ok"] is True

    def test_compatibility(self, client):
        """Reports are returned with status 200."""
        response = client.get(
            "/v1/compatibility", params={"old_schema_id": EVENT_V1_0, "new_schema_id": EVENT_V1_1}
        )
        assert response.status_code == 200
        assert response.json()["is_fully_compatible"] is True

    def test_compatibility_cross_major(self, client):
        """Different majors are a conflict."""
        response = client.get(
            "/v1/compatibility", params={"old_schema_id": EVENT_V1_0, "new_schema_id": EVENT_V2_0}
        )
        assert response.status_code == 409

    def test_cast(self, client):
        """Up-casts fill defaults."""
        body = client.get("/v1/cast", params={"from_id": ORDER_V1_0, "to_schema_id": EVENT_V1_1}).json()
        assert body["casted_entity"]["priority"] == 3
        assert body["added_properties"] == ["priority"]

    def test_refused_cast(self, client):
        """Refused casts are conflicts."""
        response = client.get("/v1/cast", params={"from_id": ORDER_V1_1, "to_schema_id": EVENT_V1_2})
        assert response.status_code == 409
        assert response.json()["incompatibility_reasons"]


class TestReadRoutes:
    """Tests for store, query and relationship routes."""

    def test_list(self, client):
        """Listing honours the limit."""
        body = client.get("/v1/entities", params={"limit": 2}).json()
        assert body["count"] == 2
        assert body["total"] == 7

    def test_get_entity(self, client):
        """Entities are fetched by id, unknown ids are 404."""
        assert client.get(f"/v1/entities/{ORDER_V1_0}").json()["content"]["name"] == "first"
        assert client.get("/v1/entities/gts.x.none.none.none.v1.0").status_code == 404

    def test_query(self, client):
        """Queries filter by field."""
        body = client.get("/v1/query", params={"expr": "gts.x.core.events.*[status=archived]"}).json()
        assert [r["id"] for r in body["results"]] == [ORDER_V1_1]

    def test_invalid_query(self, client):
        """Malformed queries are 400."""
        assert client.get("/v1/query", params={"expr": "bad"}).status_code == 400

    def test_attr(self, client):
        """Attribute reads and missing paths."""
        assert client.get("/v1/attr", params={"gts_with_path": f"{ORDER_V1_0}@name"}).json()["value"] == "first"
        assert client.get("/v1/attr", params={"gts_with_path": f"{ORDER_V1_0}@nope"}).status_code == 404

    def test_relationships(self, client):
        """Missing references are listed."""
        body = client.get("/v1/resolve-relationships", params={"gts_id": ORPHAN}).json()
        assert body["missing_refs"] == [MISSING_SCHEMA]

    def test_schema_graph(self, client):
        """The graph links an instance to its schema."""
        body = client.get("/v1/schema-graph", params={"gts_id": ORDER_V1_0}).json()
        assert body["graph"]["schema_id"]["id"] == EVENT_V1_0


class TestWriteRoutes:
    """Tests for write routes."""

    def test_add_entity(self, client):
        """Added entities are readable by later requests."""
        new_id = EVENT_V1_0 + "x.app.orders.created.v1.5"
        response = client.post("/v1/entities", params={"validate": True}, json={"id": new_id, "name": "n"})
        assert response.status_code == 200
        assert client.get(f"/v1/entities/{new_id}").status_code == 200

    def test_add_invalid_entity(self, client):
        """Validation failures are 422."""
        new_id = EVENT_V1_0 + "x.app.orders.created.v1.5"
        response = client.post("/v1/entities", params={"validate": True}, json={"id": new_id})
        assert response.status_code == 422

    def test_bulk(self, client):
        """Bulk adds report per item."""
        docs = [{"id": "gts.x.bulk.things.a.v1.0"}, {"id": "gts.x.bulk.things.b.v1.0"}]
        body = client.post("/v1/entities/bulk", json=docs).json()
        assert body["added"] == 2

    def test_add_schema(self, client):
        """Schemas are registered under their type id."""
        payload = {
            "type_id": "gts.x.core.events.event.v1.3~",
            "schema": {"$schema": "http://json-schema.org/draft-07/schema#", "type": "object"},
        }
        assert client.post("/v1/schemas", json=payload).json()["ok"] is True
        assert client.get("/v1/entities/gts.x.core.events.event.v1.3~").json()["is_schema"] is True

    def test_reload(self, client):
        """Reload discards in-memory additions."""
        client.post("/v1/entities", json={"id": "gts.x.tmp.things.thing.v1.0"})
        body = client.post("/v1/reload").json()
        assert body["count"] == 7
        assert client.get("/v1/entities/gts.x.tmp.things.thing.v1.0").status_code == 404


class TestAppFactory:
    """Tests for create_app as the only way to build an app."""

    def test_no_module_level_app(self):
        """Importing the server module builds nothing."""
        assert not hasattr(http_server, "app")

    def test_apps_do_not_share_state(self, ops):
        """Each call wires its own facade."""
        first = TestClient(create_app(ops, Settings()))
        second = TestClient(create_app(GtsOps(settings=Settings()), Settings()))
        first.post("/v1/entities", json={"id": "gts.x.tmp.things.thing.v1.0"})
        assert second.get("/v1/entities/gts.x.tmp.things.thing.v1.0").status_code == 404
        assert second.get("/health").json()["entities"] == 0
