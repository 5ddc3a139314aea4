"""
Shared fixtures for the GTS engine tests.

The fixture tree holds one schema lineage (event v1.0, v1.1, v1.2 and
v2.0), instances of it, and an instance referencing a schema that is not
stored.
"""

import json

import pytest
import yaml

from gts_engine.config import GtsConfig, Settings
from gts_engine.ops import GtsOps
from gts_engine.store import GtsStore

DRAFT7 = "http://json-schema.org/draft-07/schema#"

EVENT_V1_0 = "gts.x.core.events.event.v1.0~"
EVENT_V1_1 = "gts.x.core.events.event.v1.1~"
EVENT_V1_2 = "gts.x.core.events.event.v1.2~"
EVENT_V2_0 = "gts.x.core.events.event.v2.0~"

ORDER_V1_0 = EVENT_V1_0 + "x.app.orders.created.v1.0"
ORDER_V1_1 = EVENT_V1_1 + "x.app.orders.created.v1.0"
ORPHAN = "gts.x.app.orders.order.v1.0"
MISSING_SCHEMA = "gts.x.missing.things.thing.v1~"


def event_schema(schema_id, extra_props=None, extra_required=None):
    """Build an event schema document."""
    props = {
        "id": {"type": "string"},
        "name": {"type": "string"},
        "status": {"type": "string", "enum": ["active", "archived"]},
    }
    props.update(extra_props or {})
    return {
        "$schema": DRAFT7,
        "$id": f"gts://{schema_id}",
        "type": "object",
        "required": ["id", "name"] + list(extra_required or []),
        "properties": props,
    }


SCHEMAS = {
    EVENT_V1_0: event_schema(EVENT_V1_0),
    EVENT_V1_1: event_schema(EVENT_V1_1, {"priority": {"type": "integer", "default": 3}}),
    EVENT_V1_2: event_schema(
        EVENT_V1_2,
        {"priority": {"type": "integer", "default": 3}, "email": {"type": "string"}},
        ["email"],
    ),
    EVENT_V2_0: event_schema(EVENT_V2_0),
}

INSTANCES = [
    {"id": ORDER_V1_0, "name": "first", "status": "active"},
    {"id": ORDER_V1_1, "name": "second", "status": "archived", "priority": 5},
]

ORPHAN_INSTANCE = {"id": ORPHAN, "type": MISSING_SCHEMA, "name": "orphan"}


@pytest.fixture
def gts_root(tmp_path):
    """Directory tree of schemas and instances."""
    schemas = tmp_path / "schemas"
    schemas.mkdir()
    for schema_id, doc in SCHEMAS.items():
        name = schema_id.rstrip("~").replace("gts.", "", 1) + ".schema.json"
        (schemas / name).write_text(json.dumps(doc))

    instances = tmp_path / "instances"
    instances.mkdir()
    (instances / "orders.json").write_text(json.dumps(INSTANCES))
    (instances / "orphan.yaml").write_text(yaml.safe_dump(ORPHAN_INSTANCE))
    return tmp_path


@pytest.fixture
def store(gts_root):
    """Store built from the fixture tree."""
    return GtsStore.from_paths([str(gts_root)], GtsConfig())


@pytest.fixture
def ops(gts_root):
    """Operations facade over the fixture tree."""
    return GtsOps(paths=[str(gts_root)], settings=Settings(default_limit=100, max_limit=1000))
