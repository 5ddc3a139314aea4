"""
Operations facade for the GTS engine.

GtsOps composes the identifier model, store, schema and query layers
into the named operations the CLI and HTTP server expose. Every
operation returns a plain, JSON-serializable dict.

Invariants:
    - No GtsEngineError escapes an operation; it becomes the result's
      `error` (message) and `error_code` fields, with `ok`/`valid`/
      `is_match` false where the result has such a flag
    - Each operation reads one store snapshot from start to finish
    - Writes (add_*, reload) publish a new store through StoreHandle;
      a failed write publishes nothing
    - Only from_settings() may raise (ConfigError), at startup

How to change safely:
    - New operations follow the same shape: snapshot, call the layer,
      convert errors with _error_fields()
    - Keep result keys stable; the CLI and HTTP responses are these dicts

Example:
    >>> ops = GtsOps(paths=["./gts"])
    >>> ops.validate_id("gts.x.core.events.event.v1~")["valid"]
    True
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from . import ids
from .config import GtsConfig, Settings, load_gts_config
from .errors import GtsEngineError, IncompatibleSchemasError, NotFoundError, ValidationError
from .ids import GtsID, UuidScope
from .query import resolve_attribute, resolve_relationships, run_query, schema_graph
from .schema import (
    CompatibilityReport,
    cast_direction,
    cast_instance,
    check_compatibility,
    check_schema_content,
    validate_instance,
    validate_schema,
)
from .store import GtsEntity, GtsStore, StoreHandle

logger = logging.getLogger(__name__)


def _error_fields(error: GtsEngineError) -> Dict[str, Any]:
    return {"error": error.message, "error_code": error.code}


class GtsOps:
    """Named GTS operations over one shared store.

    Attributes:
        paths: Roots the store is (re)built from
        cfg: Identifier-extraction config
        settings: Process settings (limits)
        handle: Store handle shared by all operations
    """

    def __init__(
        self,
        paths: Optional[Sequence[str]] = None,
        cfg: Optional[GtsConfig] = None,
        settings: Optional[Settings] = None,
        handle: Optional[StoreHandle] = None,
    ) -> None:
        self.paths: List[str] = list(paths or [])
        self.cfg = cfg or GtsConfig()
        self.settings = settings or Settings()
        if handle is None:
            store = GtsStore.from_paths(self.paths, self.cfg) if self.paths else GtsStore(cfg=self.cfg)
            handle = StoreHandle(store)
        self.handle = handle

    @classmethod
    def from_settings(cls, settings: Settings, paths: Optional[Sequence[str]] = None) -> GtsOps:
        """Build from process settings.

        Raises:
            ConfigError: If an explicitly named config document is unusable
        """
        cfg = load_gts_config(settings.config)
        return cls(paths=list(paths) if paths else settings.root_paths, cfg=cfg, settings=settings)

    @property
    def store(self) -> GtsStore:
        """The currently published store."""
        return self.handle.current

    # -------------------------------------------------------------------------
    # Identifier operations
    # -------------------------------------------------------------------------

    def validate_id(self, gts_id: str) -> Dict[str, Any]:
        """Check an identifier against the grammar."""
        try:
            ids.parse(gts_id)
        except GtsEngineError as e:
            return {"id": gts_id, "valid": False, **_error_fields(e)}
        return {"id": gts_id, "valid": True, "error": ""}

    def parse_id(self, gts_id: str) -> Dict[str, Any]:
        try:
            gid = ids.parse(gts_id)
        except GtsEngineError as e:
            return {"id": gts_id, "ok": False, "segments": [], "is_schema": False, **_error_fields(e)}
        return {
            "id": gid.id,
            "ok": True,
            "segments": [s.to_dict() for s in gid.segments],
            "is_schema": gid.is_type,
            "error": "",
        }

    def match_id_pattern(self, pattern: str, candidate: str) -> Dict[str, Any]:
        try:
            is_match = ids.matches(pattern, candidate)
        except GtsEngineError as e:
            return {"pattern": pattern, "candidate": candidate, "is_match": False, **_error_fields(e)}
        return {"pattern": pattern, "candidate": candidate, "is_match": is_match, "error": ""}

    def uuid(self, gts_id: str, scope: str = "minor") -> Dict[str, Any]:
        """Name-based UUID of an identifier; scope is 'major' or 'minor'."""
        try:
            value = ids.to_uuid(gts_id, UuidScope.from_str(scope))
        except ValueError as e:
            return {"id": gts_id, "uuid": None, "scope": scope, "error": str(e), "error_code": "INVALID_SCOPE"}
        except GtsEngineError as e:
            return {"id": gts_id, "uuid": None, "scope": scope, **_error_fields(e)}
        return {"id": gts_id, "uuid": str(value), "scope": scope, "error": ""}

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_instance(self, gts_id: str) -> Dict[str, Any]:
        try:
            validate_instance(gts_id, self.store)
        except GtsEngineError as e:
            return {"id": gts_id, "ok": False, **_error_fields(e)}
        return {"id": gts_id, "ok": True, "error": ""}

    def validate_schema(self, gts_id: str) -> Dict[str, Any]:
        try:
            validate_schema(gts_id, self.store)
        except GtsEngineError as e:
            return {"id": gts_id, "ok": False, **_error_fields(e)}
        return {"id": gts_id, "ok": True, "error": ""}

    def validate_entity(self, gts_id: str) -> Dict[str, Any]:
        """Schema check for ids ending in '~', instance check otherwise."""
        if gts_id.endswith("~"):
            return self.validate_schema(gts_id)
        return self.validate_instance(gts_id)

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    def resolve_relationships(self, gts_id: str) -> Dict[str, Any]:
        try:
            result = resolve_relationships(gts_id, self.store)
        except GtsEngineError as e:
            return {"id": gts_id, "ok": False, "refs": [], "missing_refs": [], **_error_fields(e)}
        return {**result.to_dict(), "ok": True, "error": ""}

    def schema_graph(self, gts_id: str) -> Dict[str, Any]:
        return {"graph": schema_graph(gts_id, self.store)}

    # -------------------------------------------------------------------------
    # Schema lifecycle
    # -------------------------------------------------------------------------

    def compatibility(self, old_schema_id: str, new_schema_id: str) -> Dict[str, Any]:
        """Compatibility report between two schema versions.

        A missing schema still yields a report, with 'Schema not found' in
        both error lists.
        """
        try:
            report = check_compatibility(old_schema_id, new_schema_id, self.store)
        except NotFoundError as e:
            report = CompatibilityReport(
                old_id=old_schema_id,
                new_id=new_schema_id,
                backward_errors=["Schema not found"],
                forward_errors=["Schema not found"],
            )
            return {**report.to_dict(), "ok": False, **_error_fields(e)}
        except GtsEngineError as e:
            report = CompatibilityReport(old_id=old_schema_id, new_id=new_schema_id)
            return {
                **report.to_dict(),
                "is_backward_compatible": False,
                "is_forward_compatible": False,
                "is_fully_compatible": False,
                "ok": False,
                **_error_fields(e),
            }
        return {**report.to_dict(), "ok": True, "error": ""}

    def cast(self, from_id: str, to_schema_id: str) -> Dict[str, Any]:
        """Cast an instance to another minor version of its schema."""
        try:
            result = cast_instance(from_id, to_schema_id, self.store)
        except GtsEngineError as e:
            reasons = e.reasons if isinstance(e, IncompatibleSchemasError) else [e.message]
            return {
                "from": from_id,
                "to": to_schema_id,
                "direction": cast_direction(from_id, to_schema_id),
                "is_backward_compatible": False,
                "is_forward_compatible": False,
                "is_fully_compatible": False,
                "added_properties": [],
                "removed_properties": [],
                "casted_entity": None,
                "incompatibility_reasons": reasons,
                "ok": False,
                **_error_fields(e),
            }
        out = {**result.to_dict(), "ok": result.ok, "error": ""}
        if not result.ok:
            out["error"] = "Cast refused: " + "; ".join(result.incompatibility_reasons)
            out["error_code"] = "INCOMPATIBLE_SCHEMAS"
        return out

    # -------------------------------------------------------------------------
    # Query and attribute access
    # -------------------------------------------------------------------------

    def query(self, expr: str, limit: Optional[int] = None) -> Dict[str, Any]:
        limit = self.settings.clamp_limit(limit)
        try:
            result = run_query(expr, self.store, limit)
        except GtsEngineError as e:
            return {"error": f"Invalid query: {e.message}", "error_code": e.code, "count": 0, "limit": limit, "results": []}
        return result.to_dict()

    def attr(self, gts_with_path: str) -> Dict[str, Any]:
        try:
            result = resolve_attribute(gts_with_path, self.store)
        except GtsEngineError as e:
            entity_id, _, path = gts_with_path.partition("@")
            return {"id": entity_id, "path": path, "value": None, "ok": False, **_error_fields(e), **_fields_hint(e)}
        return result.to_dict()

    # -------------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------------

    def list(self, limit: Optional[int] = None) -> Dict[str, Any]:
        store = self.store
        entities = store.list(self.settings.clamp_limit(limit))
        return {"results": [e.to_info() for e in entities], "count": len(entities), "total": len(store)}

    def get_entity(self, gts_id: str) -> Dict[str, Any]:
        try:
            entity = self.store.get(gts_id)
        except GtsEngineError as e:
            return {"ok": False, "id": gts_id, "schema_id": None, "is_schema": False, "content": None, **_error_fields(e)}
        return {
            "ok": True,
            "id": entity.effective_id,
            "schema_id": entity.schema_id,
            "is_schema": entity.is_schema,
            "content": entity.content,
            "error": "",
        }

    def extract_id(self, content: Any) -> Dict[str, Any]:
        entity = GtsEntity.from_content(content, self.cfg)
        return {
            "id": entity.effective_id,
            "schema_id": entity.schema_id,
            "selected_entity_field": entity.selected_entity_field,
            "selected_schema_id_field": entity.selected_schema_id_field,
            "is_schema": entity.is_schema,
        }

    def add_entity(self, content: Any, validate: bool = False) -> Dict[str, Any]:
        entity = GtsEntity.from_content(content, self.cfg)
        try:
            self.handle.update(lambda store: self._with_checked(store, [entity], validate))
        except GtsEngineError as e:
            return {"ok": False, "id": entity.effective_id, "schema_id": entity.schema_id, "is_schema": entity.is_schema, **_error_fields(e)}
        return {"ok": True, "id": entity.effective_id, "schema_id": entity.schema_id, "is_schema": entity.is_schema, "error": ""}

    def add_entities(self, items: Sequence[Any], validate: bool = False) -> Dict[str, Any]:
        """Add a batch; failing items are reported and skipped, the rest published together."""
        accepted: List[GtsEntity] = []
        results: List[Dict[str, Any]] = []

        def build(store: GtsStore) -> GtsStore:
            working = store
            for item in items:
                entity = GtsEntity.from_content(item, self.cfg)
                try:
                    working = self._with_checked(working, [entity], validate)
                except GtsEngineError as e:
                    results.append({"ok": False, "id": entity.effective_id, **_error_fields(e)})
                    continue
                accepted.append(entity)
                results.append({"ok": True, "id": entity.effective_id, "error": ""})
            return working

        self.handle.update(build)
        return {"ok": len(accepted) == len(items), "added": len(accepted), "results": results}

    def add_schema(self, type_id: str, schema: Any) -> Dict[str, Any]:
        try:
            gid = GtsID.parse(type_id)
            if not gid.is_type:
                raise ValidationError(f"Schema id '{type_id}' must end with '~'")
            entity = GtsEntity.for_schema(gid.id, schema)
            self.handle.update(lambda store: self._with_checked(store, [entity], True))
        except GtsEngineError as e:
            return {"ok": False, "id": type_id, **_error_fields(e)}
        return {"ok": True, "id": gid.id, "error": ""}

    def reload(self, paths: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """Rebuild the store from disk, optionally switching roots first."""
        if paths:
            self.paths = list(paths)
        store = self.handle.rebuild(self.paths, self.cfg)
        return {"ok": True, "paths": list(self.paths), "count": len(store)}

    def _with_checked(self, store: GtsStore, entities: List[GtsEntity], validate: bool) -> GtsStore:
        """New store with the entities added, after validating them there.

        Raises:
            ValidationError: If an entity has no id or fails validation
        """
        for entity in entities:
            if not entity.effective_id:
                raise ValidationError("Unable to detect GTS ID in entity")

        candidate = store.with_entities(entities)
        for entity in entities:
            if entity.is_schema:
                check_schema_content(entity.effective_id, entity.content, candidate)
            elif validate:
                if entity.gts_id is None:
                    raise ValidationError(f"Cannot validate anonymous instance '{entity.effective_id}'")
                validate_instance(entity.gts_id.id, candidate)
        return candidate


def _fields_hint(error: GtsEngineError) -> Dict[str, Any]:
    fields = error.details.get("available_fields")
    return {"available_fields": fields} if fields else {}
