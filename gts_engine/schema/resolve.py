"""
Schema reference resolution.

Two views of a stored schema:
- inline_refs(): `$ref`s to stored schemas are replaced by their content,
  which is what the JSON Schema validator is given
- effective_schema(): inline_refs() plus `allOf` merging, which is what
  the compatibility checker and caster diff

Invariants:
    - Inputs are never mutated; every result is a fresh structure
    - Local `#...` refs in the top-level document are left as they are;
      inside an inlined stored schema they resolve against that schema's root
    - `<id>#/pointer` refs resolve the pointer inside the stored schema
    - A ref that cannot be resolved contributes nothing
    - Cyclic refs terminate (a ref already being expanded is dropped)
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import unquote

from ..ids import normalize_id
from ..store import GtsStore

logger = logging.getLogger(__name__)

_ROOT_ONLY_KEYS = ("$id", "$schema")


def strip_root_ids(schema: Any) -> Any:
    """Copy of a schema without `$id`/`$schema` at the root."""
    if not isinstance(schema, dict):
        return copy.deepcopy(schema)
    return {k: copy.deepcopy(v) for k, v in schema.items() if k not in _ROOT_ONLY_KEYS}


def inline_refs(schema: Any, store: GtsStore) -> Any:
    """Replace `$ref`s to stored schemas with their (recursively inlined) content."""
    return _inline(schema, store, frozenset(), None)


def _inline(node: Any, store: GtsStore, expanding: FrozenSet[str], local: Optional[Tuple[str, Any]]) -> Any:
    # local is (id, content) of the stored schema being inlined; None for the top-level document
    if isinstance(node, list):
        return [_inline(item, store, expanding, local) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if not isinstance(ref, str) or (ref.startswith("#") and local is None):
        return {k: _inline(v, store, expanding, local) for k, v in node.items()}

    rest = {k: _inline(v, store, expanding, local) for k, v in node.items() if k != "$ref"}
    if ref.startswith("#"):
        root_id, root = local
        fragment = ref[1:]
    else:
        root_id, _, fragment = ref.partition("#")
        root_id = normalize_id(root_id)
        target = store.find(root_id)
        if target is None or not target.is_schema:
            logger.debug(f"Unresolvable $ref {ref} dropped")
            return rest
        root = target.content

    key = f"{root_id}#{fragment}"
    if key in expanding:
        logger.debug(f"Cyclic $ref to {key} dropped")
        return rest
    found, value = _pointer(root, fragment)
    if not found:
        logger.debug(f"Unresolvable $ref {ref} in {root_id} dropped")
        return rest

    resolved = strip_root_ids(_inline(value, store, expanding | {key}, (root_id, root)))
    if not isinstance(resolved, dict):
        return rest
    resolved.update(rest)
    return resolved


def _pointer(document: Any, fragment: str) -> Tuple[bool, Any]:
    """Follow a JSON pointer fragment ("" or "/a/b"); (False, None) when it leads nowhere."""
    if not fragment:
        return True, document
    if not fragment.startswith("/"):
        return False, None
    node = document
    for token in unquote(fragment[1:]).split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and token in node:
            node = node[token]
        elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
            node = node[int(token)]
        else:
            return False, None
    return True, node


def effective_schema(schema: Any, store: GtsStore) -> Dict[str, Any]:
    """Inline refs and merge `allOf` members into a single flat schema."""
    inlined = inline_refs(schema, store)
    if not isinstance(inlined, dict):
        return {}
    return _flatten(inlined)


def _flatten(node: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    members = node.get("allOf")
    if isinstance(members, list):
        for member in members:
            if isinstance(member, dict):
                _merge_into(result, _flatten(member))

    own = {k: v for k, v in node.items() if k != "allOf"}
    _merge_into(result, own)

    props = result.get("properties")
    if isinstance(props, dict):
        result["properties"] = {
            name: _flatten(sub) if isinstance(sub, dict) else sub for name, sub in props.items()
        }
    items = result.get("items")
    if isinstance(items, dict):
        result["items"] = _flatten(items)
    return result


def _merge_into(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        if key == "properties" and isinstance(value, dict):
            merged = dict(target.get("properties") or {})
            merged.update(value)
            target["properties"] = merged
        elif key == "required" and isinstance(value, list):
            target["required"] = _union(target.get("required") or [], value)
        else:
            target[key] = value


def _union(first: List[Any], second: List[Any]) -> List[Any]:
    result = list(first)
    for item in second:
        if item not in result:
            result.append(item)
    return result
