"""
Relationship resolution over the store.

- resolve_relationships(): every identifier an entity mentions, split into
  resolved refs and missing refs
- schema_graph(): the recursive reference tree rooted at an entity

References are collected from identifier-shaped string values anywhere in
the document and from `$ref` values. The entity's own id, local `#` refs
and json-schema.org meta-schema URLs are not relationships.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..store import GtsEntity, GtsRef, GtsStore

logger = logging.getLogger(__name__)

_META_SCHEMA_PREFIXES = ("http://json-schema.org", "https://json-schema.org")


@dataclass
class Relationships:
    """References found in one entity.

    Attributes:
        id: The entity's identifier
        refs: References that resolve to stored entities
        missing_refs: Referenced identifiers absent from the store
    """

    id: str
    refs: List[GtsRef] = field(default_factory=list)
    missing_refs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "refs": [r.to_dict() for r in self.refs],
            "missing_refs": list(self.missing_refs),
        }


def is_meta_schema(ref_id: str) -> bool:
    return ref_id.startswith(_META_SCHEMA_PREFIXES)


def entity_references(entity: GtsEntity) -> List[GtsRef]:
    """Relationship candidates of an entity, in document order."""
    own_id = entity.effective_id
    found: List[GtsRef] = []
    seen: Set[tuple] = set()

    candidates = list(entity.gts_refs) + list(entity.schema_refs)
    if entity.schema_id and all(r.id != entity.schema_id for r in candidates):
        # Chained instance ids declare their schema implicitly
        candidates.append(GtsRef(id=entity.schema_id, source_path=entity.selected_schema_id_field or "$schema"))

    for ref in candidates:
        if ref.id == own_id or not ref.id or ref.id.startswith("#") or is_meta_schema(ref.id):
            continue
        key = (ref.id, ref.source_path)
        if key not in seen:
            seen.add(key)
            found.append(ref)
    return found


def resolve_relationships(entity_id: str, store: GtsStore) -> Relationships:
    """Resolve every reference of an entity against the store.

    Raises:
        NotFoundError: If the entity is absent
    """
    entity = store.get(entity_id)
    result = Relationships(id=entity.effective_id or entity_id)

    for ref in entity_references(entity):
        if ref.id in store:
            result.refs.append(ref)
        elif ref.id not in result.missing_refs:
            result.missing_refs.append(ref.id)

    if result.missing_refs:
        logger.debug(f"Entity {result.id} has {len(result.missing_refs)} missing reference(s)")
    return result


def schema_graph(entity_id: str, store: GtsStore) -> Dict[str, Any]:
    """Recursive reference tree rooted at an entity.

    Each node is `{id, refs?: {source_path: node}, schema_id?: node, errors?: [...]}`.
    An id already visited appears as a bare `{id}` node.
    """
    return _node(entity_id, store, set())


def _node(entity_id: str, store: GtsStore, seen: Set[str]) -> Dict[str, Any]:
    node: Dict[str, Any] = {"id": entity_id}
    if entity_id in seen:
        return node
    seen.add(entity_id)

    entity: Optional[GtsEntity] = store.find(entity_id)
    if entity is None:
        node["errors"] = ["Entity not found"]
        return node

    refs = {}
    for ref in entity_references(entity):
        if ref.id == entity.schema_id and ref.source_path in ("$schema", entity.selected_schema_id_field):
            continue
        refs[ref.source_path] = _node(ref.id, store, seen)
    if refs:
        node["refs"] = refs

    if entity.schema_id:
        if not is_meta_schema(entity.schema_id):
            node["schema_id"] = _node(entity.schema_id, store, seen)
    else:
        node["errors"] = ["Schema not recognized"]
    return node
