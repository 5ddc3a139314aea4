"""
Integration tests for the gts command-line tool.

Tests cover:
- JSON output on stdout
- Exit codes for success, failure and startup errors
- Document extraction from files and stdin
"""

import io
import json
import logging

import pytest

from gts_engine.tools import main

from tests.conftest import EVENT_V1_0, EVENT_V1_1, EVENT_V1_2, ORDER_V1_0, ORDER_V1_1, ORPHAN


@pytest.fixture(autouse=True)
def restore_logging():
    """main() replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def run(gts_root, capsys):
    """Run the CLI against the fixture tree, returning (exit code, parsed stdout)."""

    def _run(*argv):
        code = main(["--path", str(gts_root), "--log-level", "WARNING", *argv])
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else None

    return _run


class TestCli:
    """Tests for CLI subcommands."""

    def test_validate_id(self, run):
        """Valid ids exit 0, invalid ids exit 1."""
        code, body = run("validate-id", EVENT_V1_0)
        assert code == 0
        assert body["valid"] is True
        code, body = run("validate-id", "gts.nope")
        assert code == 1
        assert body["valid"] is False

    def test_parse_id(self, run):
        """Segments are printed."""
        code, body = run("parse-id", ORDER_V1_0)
        assert code == 0
        assert len(body["segments"]) == 2

    def test_uuid_scope(self, run):
        """--scope major collapses minor versions."""
        _, first = run("uuid", EVENT_V1_0, "--scope", "major")
        _, second = run("uuid", EVENT_V1_1, "--scope", "major")
        assert first["uuid"] == second["uuid"]

    def test_validate_instance(self, run):
        """Missing schemas fail."""
        assert run("validate-instance", ORDER_V1_0)[0] == 0
        assert run("validate-instance", ORPHAN)[0] == 1

    def test_compatibility(self, run):
        """A report is printed even when incompatible."""
        code, body = run("compatibility", EVENT_V1_1, EVENT_V1_2)
        assert code == 0
        assert body["is_backward_compatible"] is False

    def test_cast(self, run):
        """Successful casts exit 0, refused ones 1."""
        code, body = run("cast", ORDER_V1_0, EVENT_V1_1)
        assert code == 0
        assert body["casted_entity"]["priority"] == 3
        assert run("cast", ORDER_V1_1, EVENT_V1_2)[0] == 1

    def test_query_limit(self, run):
        """--limit is applied."""
        code, body = run("query", "gts.x.core.events.*", "--limit", "1")
        assert code == 0
        assert body["count"] == 1

    def test_attr(self, run):
        """Attribute values are printed."""
        code, body = run("attr", f"{ORDER_V1_0}@status")
        assert body["value"] == "active"

    def test_list_and_get(self, run):
        """list and get-entity read the store."""
        assert run("list")[1]["total"] == 7
        assert run("get-entity", EVENT_V1_0)[1]["is_schema"] is True

    def test_graph(self, run):
        """schema-graph prints a tree."""
        assert run("schema-graph", ORDER_V1_0)[1]["graph"]["schema_id"]["id"] == EVENT_V1_0

    def test_extract_from_file(self, run, tmp_path):
        """extract-id reads a JSON document."""
        doc = tmp_path / "doc.json"
        doc.write_text(json.dumps({"id": ORDER_V1_0}))
        code, body = run("extract-id", str(doc))
        assert code == 0
        assert body["schema_id"] == EVENT_V1_0

    def test_extract_from_stdin(self, run, monkeypatch):
        """'-' reads stdin."""
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps({"gtsId": "gts.x.a.b.c.v1.0"})))
        assert run("extract-id", "-")[1]["selected_entity_field"] == "gtsId"

    def test_extract_unreadable(self, run, tmp_path):
        """Unreadable documents exit 1."""
        code, body = run("extract-id", str(tmp_path / "missing.json"))
        assert code == 1
        assert body is None

    def test_bad_config_exits_1(self, gts_root, tmp_path, capsys):
        """An explicit unusable config aborts startup."""
        code = main(["--path", str(gts_root), "--config", str(tmp_path / "nope.json"), "validate-id", EVENT_V1_0])
        assert code == 1
        assert "CONFIG_ERROR" in capsys.readouterr().err

    def test_usage_error(self, capsys):
        """Unknown subcommands are usage errors."""
        with pytest.raises(SystemExit) as exc:
            main(["frobnicate"])
        assert exc.value.code == 2
