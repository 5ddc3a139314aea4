"""
Entity model and identifier extraction.

An entity is one JSON/YAML document (or one item of a top-level array)
plus the identifiers extracted from it.

Extraction rules:
    - A document is a schema if and only if it has a non-empty string `$schema`
    - Schemas take their id from `$id` (a `gts://` prefix is stripped),
      falling back to the configured entity-id fields
    - Instances probe the configured entity-id fields in order; `$schema`
      and `type` never name an instance
    - A chained instance id declares its schema (prefix up to the last `~`);
      otherwise the first schema-id field holding a GTS type id is used
    - An instance whose id is not a GTS id is anonymous and keyed by that value
    - An instance with no id at all is keyed by its file path (and index)

Invariants:
    - Entities are immutable after construction; content is deep-copied
      before anything hands it out for transformation
    - Field lists come from configuration, never from reflection

Example:
    >>> entity = GtsEntity.from_content({"$schema": "...", "$id": "gts://gts.x.a.b.c.v1~"}, cfg)
    >>> entity.gts_id.id
    'gts.x.a.b.c.v1~'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import GtsConfig
from ..ids import GTS_URI_PREFIX, GtsID, normalize_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GtsFile:
    """Source document location.

    Attributes:
        path: Resolved file path
        name: File name (used for labels)
    """

    path: str
    name: str


@dataclass(frozen=True)
class GtsRef:
    """A reference discovered inside an entity.

    Attributes:
        id: Referenced identifier (normalized, without `gts://`)
        source_path: Dotted/indexed path of the referencing value ("root" for the document)
    """

    id: str
    source_path: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {"id": self.id, "source_path": self.source_path}


@dataclass(frozen=True)
class GtsEntity:
    """A loaded document with its extracted identifiers.

    Attributes:
        content: The parsed document
        gts_id: GTS identifier, if the document has one
        instance_id: Store key for anonymous instances (UUID, path, ...)
        is_schema: Whether the document is a JSON Schema
        schema_id: Declared schema (instances) or meta-schema/parent (schemas)
        file: Source file, if loaded from disk
        list_sequence: Index within a top-level array, if any
        label: Human-readable label
        description: The document's `description`, if a string
        selected_entity_field: Field the id was taken from
        selected_schema_id_field: Field the schema id was taken from
        gts_refs: Every identifier-shaped string value, with its path
        schema_refs: Every `$ref` value (schemas only), with its path
    """

    content: Any
    gts_id: Optional[GtsID] = None
    instance_id: Optional[str] = None
    is_schema: bool = False
    schema_id: Optional[str] = None
    file: Optional[GtsFile] = None
    list_sequence: Optional[int] = None
    label: str = ""
    description: str = ""
    selected_entity_field: Optional[str] = None
    selected_schema_id_field: Optional[str] = None
    gts_refs: Tuple[GtsRef, ...] = field(default_factory=tuple)
    schema_refs: Tuple[GtsRef, ...] = field(default_factory=tuple)

    @classmethod
    def from_content(
        cls,
        content: Any,
        cfg: Optional[GtsConfig] = None,
        file: Optional[GtsFile] = None,
        list_sequence: Optional[int] = None,
    ) -> GtsEntity:
        """Build an entity from a document, extracting its identifiers.

        Args:
            content: Parsed JSON/YAML document
            cfg: Extraction config (defaults if omitted)
            file: Source file, if any
            list_sequence: Index within a top-level array, if any

        Returns:
            New GtsEntity
        """
        cfg = cfg or GtsConfig()
        extracted = _Extraction()

        is_schema = _has_schema_field(content)
        if is_schema:
            _extract_schema_ids(content, cfg, extracted)
        else:
            _extract_instance_ids(content, cfg, extracted, file, list_sequence)

        if file is not None:
            label = f"{file.name}#{list_sequence}" if list_sequence is not None else file.name
        elif extracted.instance_id:
            label = extracted.instance_id
        else:
            label = ""

        description = ""
        if isinstance(content, dict) and isinstance(content.get("description"), str):
            description = content["description"]

        return cls(
            content=content,
            gts_id=extracted.gts_id,
            instance_id=extracted.instance_id,
            is_schema=is_schema,
            schema_id=extracted.schema_id,
            file=file,
            list_sequence=list_sequence,
            label=label,
            description=description,
            selected_entity_field=extracted.entity_field,
            selected_schema_id_field=extracted.schema_field,
            gts_refs=tuple(extract_gts_refs(content)),
            schema_refs=tuple(extract_ref_strings(content)) if is_schema else (),
        )

    @classmethod
    def for_schema(cls, type_id: str, content: Any) -> GtsEntity:
        """Build a schema entity under an explicitly given type id."""
        gts_id = GtsID.parse(type_id)
        schema_id = content.get("$schema") if isinstance(content, dict) else None
        return cls(
            content=content,
            gts_id=gts_id,
            instance_id=gts_id.id,
            is_schema=True,
            schema_id=schema_id if isinstance(schema_id, str) else None,
            label=gts_id.id,
            gts_refs=tuple(extract_gts_refs(content)),
            schema_refs=tuple(extract_ref_strings(content)),
        )

    @property
    def effective_id(self) -> Optional[str]:
        """Store key: the GTS id if present, else the anonymous instance id."""
        if self.gts_id is not None:
            return self.gts_id.id
        return self.instance_id

    def to_info(self) -> Dict[str, Any]:
        """Short listing representation."""
        return {
            "id": self.effective_id,
            "schema_id": self.schema_id,
            "is_schema": self.is_schema,
        }


@dataclass
class _Extraction:
    gts_id: Optional[GtsID] = None
    instance_id: Optional[str] = None
    schema_id: Optional[str] = None
    entity_field: Optional[str] = None
    schema_field: Optional[str] = None


def _has_schema_field(content: Any) -> bool:
    if not isinstance(content, dict):
        return False
    value = content.get("$schema")
    return isinstance(value, str) and value != ""


def _field_value(content: Any, name: str) -> Optional[str]:
    """Non-empty trimmed string value of a top-level field."""
    if not isinstance(content, dict):
        return None
    value = content.get(name)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    # gts:// is only meaningful inside a JSON Schema $id
    if name == "$id" and value.startswith(GTS_URI_PREFIX):
        value = normalize_id(value)
    return value or None


def _extract_schema_ids(content: Dict[str, Any], cfg: GtsConfig, out: _Extraction) -> None:
    id_value = _field_value(content, "$id")
    if id_value and GtsID.is_valid(id_value):
        out.gts_id = GtsID.parse(id_value)
        out.instance_id = out.gts_id.id
        out.entity_field = "$id"

    out.schema_id = content["$schema"]
    out.schema_field = "$schema"

    if out.gts_id is not None and len(out.gts_id.segments) > 1 and out.schema_id.startswith("http"):
        out.schema_id = out.gts_id.type_id

    if out.gts_id is None:
        # First pass prefers valid GTS ids, second accepts any non-empty value.
        for name in cfg.entity_id_fields:
            value = _field_value(content, name)
            if value and GtsID.is_valid(value):
                out.gts_id = GtsID.parse(value)
                out.instance_id = value
                out.entity_field = name
                return
        for name in cfg.entity_id_fields:
            value = _field_value(content, name)
            if value:
                out.instance_id = value
                out.entity_field = name
                return


def _extract_instance_ids(
    content: Any,
    cfg: GtsConfig,
    out: _Extraction,
    file: Optional[GtsFile],
    list_sequence: Optional[int],
) -> None:
    if not isinstance(content, dict):
        return

    for name in cfg.entity_id_fields:
        if name in ("$schema", "type"):
            continue
        value = _field_value(content, name)
        if value is None:
            continue
        out.entity_field = name
        if GtsID.is_valid(value):
            out.gts_id = GtsID.parse(value)
            out.instance_id = out.gts_id.id
            if len(out.gts_id.segments) > 1:
                out.schema_id = out.gts_id.id[: out.gts_id.id.rfind("~") + 1]
                out.schema_field = name
        else:
            out.instance_id = value
        break

    if out.schema_id is None:
        for name in cfg.schema_id_fields:
            if name == "$schema":
                continue
            value = _field_value(content, name)
            if value and value.endswith("~") and GtsID.is_valid(value):
                out.schema_id = value
                out.schema_field = name
                break

    if out.instance_id is None and file is not None:
        out.instance_id = f"{file.path}#{list_sequence}" if list_sequence is not None else file.path


def _walk(
    node: Any,
    path: str,
    collector: List[GtsRef],
    matcher: Callable[[Any, str], Optional[GtsRef]],
) -> None:
    found = matcher(node, path)
    if found is not None:
        collector.append(found)

    if isinstance(node, dict):
        for key, value in node.items():
            _walk(value, f"{path}.{key}" if path else str(key), collector, matcher)
    elif isinstance(node, list):
        for idx, item in enumerate(node):
            _walk(item, f"{path}[{idx}]", collector, matcher)


def _dedupe(refs: List[GtsRef]) -> List[GtsRef]:
    seen = set()
    result = []
    for ref in refs:
        key = (ref.id, ref.source_path)
        if key not in seen:
            seen.add(key)
            result.append(ref)
    return result


def extract_gts_refs(content: Any) -> List[GtsRef]:
    """Every string value anywhere in the document that is a valid GTS id."""

    def matcher(node: Any, path: str) -> Optional[GtsRef]:
        if isinstance(node, str):
            candidate = normalize_id(node)
            if GtsID.is_valid(candidate):
                return GtsRef(id=candidate, source_path=path or "root")
        return None

    found: List[GtsRef] = []
    _walk(content, "", found, matcher)
    return _dedupe(found)


def extract_ref_strings(content: Any) -> List[GtsRef]:
    """Every `$ref` string in the document, normalized.

    A `<id>#/pointer` ref is reported as `<id>`; local `#...` refs are kept whole.
    """

    def matcher(node: Any, path: str) -> Optional[GtsRef]:
        if isinstance(node, dict) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            if not ref.startswith("#"):
                ref = ref.partition("#")[0]
            return GtsRef(
                id=normalize_id(ref),
                source_path=f"{path}.$ref" if path else "$ref",
            )
        return None

    found: List[GtsRef] = []
    _walk(content, "", found, matcher)
    return _dedupe(found)
