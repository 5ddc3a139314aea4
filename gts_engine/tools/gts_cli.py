"""
Command-line interface for the GTS engine.

Each subcommand calls one GtsOps operation and prints its result as
pretty JSON on stdout.

Usage:
    gts --path ./gts validate-id gts.x.core.events.event.v1~
    gts --path ./gts compatibility gts.x.core.events.event.v1.0~ gts.x.core.events.event.v1.1~
    gts --path ./gts query 'gts.x.core.events.*[status=active]' --limit 20
    gts --path ./gts server --port 8000

Invariants:
    - Exit 0 when the result succeeded, 1 when it reports failure,
      2 for usage errors (from argparse)
    - Logs go to stderr, results to stdout, so output can be piped

How to change safely:
    - Add subcommands, don't rename existing ones
    - Keep the printed JSON identical to the HTTP response body
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from .._version import __version__
from ..api import run_http_server
from ..config import Settings
from ..errors import ConfigError
from ..logging_setup import setup_logging
from ..ops import GtsOps

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with every subcommand."""
    parser = argparse.ArgumentParser(prog="gts", description="GTS identifier and schema tool")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--path",
        action="append",
        default=[],
        help="Root directory or file to load (repeatable; default: $GTS_PATHS)",
    )
    parser.add_argument("--config", help="Identifier-field config document (JSON or YAML)")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log format")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate-id", help="Validate an identifier")
    p.add_argument("gts_id")

    p = sub.add_parser("parse-id", help="Decompose an identifier into segments")
    p.add_argument("gts_id")

    p = sub.add_parser("match-id", help="Match an identifier against a pattern")
    p.add_argument("pattern")
    p.add_argument("candidate")

    p = sub.add_parser("uuid", help="Deterministic UUID for an identifier")
    p.add_argument("gts_id")
    p.add_argument("--scope", choices=["major", "minor"], default="minor")

    for name, help_text in (
        ("validate-instance", "Validate an instance against its schema"),
        ("validate-schema", "Validate a schema against its meta-schema"),
        ("validate-entity", "Validate a schema or an instance"),
        ("resolve-relationships", "List resolved and missing references"),
        ("schema-graph", "Print the reference graph of an entity"),
        ("get-entity", "Print a stored entity"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("gts_id")

    p = sub.add_parser("compatibility", help="Compare two schema versions")
    p.add_argument("old_schema_id")
    p.add_argument("new_schema_id")

    p = sub.add_parser("cast", help="Cast an instance to another schema version")
    p.add_argument("from_id")
    p.add_argument("to_schema_id")

    p = sub.add_parser("query", help="Query stored entities")
    p.add_argument("expr")
    p.add_argument("--limit", type=int, default=None)

    p = sub.add_parser("attr", help="Read an attribute: <id>@<path>")
    p.add_argument("gts_with_path")

    p = sub.add_parser("list", help="List stored entities")
    p.add_argument("--limit", type=int, default=None)

    p = sub.add_parser("extract-id", help="Show identifier extraction for a document file")
    p.add_argument("file", help="JSON document, or '-' for stdin")

    p = sub.add_parser("server", help="Serve the HTTP API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {}
    if args.path:
        overrides["paths"] = ",".join(args.path)
    if args.config:
        overrides["config"] = args.config
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return Settings(**overrides)


def _read_document(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as f:
        return json.load(f)


COMMANDS: Dict[str, Callable[[GtsOps, argparse.Namespace], Dict[str, Any]]] = {
    "validate-id": lambda ops, a: ops.validate_id(a.gts_id),
    "parse-id": lambda ops, a: ops.parse_id(a.gts_id),
    "match-id": lambda ops, a: ops.match_id_pattern(a.pattern, a.candidate),
    "uuid": lambda ops, a: ops.uuid(a.gts_id, a.scope),
    "validate-instance": lambda ops, a: ops.validate_instance(a.gts_id),
    "validate-schema": lambda ops, a: ops.validate_schema(a.gts_id),
    "validate-entity": lambda ops, a: ops.validate_entity(a.gts_id),
    "resolve-relationships": lambda ops, a: ops.resolve_relationships(a.gts_id),
    "schema-graph": lambda ops, a: ops.schema_graph(a.gts_id),
    "get-entity": lambda ops, a: ops.get_entity(a.gts_id),
    "compatibility": lambda ops, a: ops.compatibility(a.old_schema_id, a.new_schema_id),
    "cast": lambda ops, a: ops.cast(a.from_id, a.to_schema_id),
    "query": lambda ops, a: ops.query(a.expr, a.limit),
    "attr": lambda ops, a: ops.attr(a.gts_with_path),
    "list": lambda ops, a: ops.list(a.limit),
    "extract-id": lambda ops, a: ops.extract_id(_read_document(a.file)),
}


def is_success(result: Dict[str, Any]) -> bool:
    """Whether a facade result reports success."""
    if result.get("error"):
        return False
    if result.get("ok") is False or result.get("valid") is False:
        return False
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        parser.error(str(e))
    setup_logging(settings)

    try:
        ops = GtsOps.from_settings(settings)
    except ConfigError as e:
        logger.error(f"Startup failed: {e.message}")
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1

    if args.command == "server":
        run_http_server(ops, settings)
        return 0

    try:
        result = COMMANDS[args.command](ops, args)
    except (OSError, json.JSONDecodeError) as e:
        print(json.dumps({"error": f"Cannot read document: {e}"}, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
    return 0 if is_success(result) else 1


if __name__ == "__main__":
    sys.exit(main())
