"""
Instance casting between minor versions of a schema.

Steps:
    1. Load the instance, its declared schema, and the target schema
    2. Check compatibility with the source schema as old and the target
       as new; direction is 'up' when the target minor exceeds the source
       minor, else 'down'
    3. Either way the cast needs the report's backward compatibility
       (every source instance is valid under the target); otherwise the
       result carries the backward reasons and no casted entity
    4. Transform a copy of the instance against the target schema:
       fill declared defaults, drop properties the target does not
       declare, rewrite const discriminators
    5. Validate the transformed copy against the target schema

Invariants:
    - The stored instance is never mutated
    - A required target property with no default and no value is an
      IncompatibleSchemasError, never a silently invalid result
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import IncompatibleSchemasError, NotFoundError
from ..store import GtsStore
from .compat import CompatibilityReport, cast_direction, check_compatibility
from .resolve import effective_schema
from .validate import collect_errors

logger = logging.getLogger(__name__)


@dataclass
class CastResult:
    """Outcome of a cast.

    Attributes:
        from_id: Source instance identifier
        to_id: Target schema identifier
        from_schema_id: Schema the source instance declares
        direction: 'up' or 'down'
        report: Compatibility verdict between the two schemas
        added_properties: Properties filled from target defaults
        removed_properties: Properties dropped because the target lacks them
        casted_entity: Transformed copy, or None on failure
        incompatibility_reasons: Why the cast was refused
    """

    from_id: str
    to_id: str
    from_schema_id: str
    direction: str
    report: CompatibilityReport
    added_properties: List[str] = field(default_factory=list)
    removed_properties: List[str] = field(default_factory=list)
    casted_entity: Optional[Any] = None
    incompatibility_reasons: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.casted_entity is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "from": self.from_id,
            "to": self.to_id,
            "from_schema_id": self.from_schema_id,
            "direction": self.direction,
            "is_backward_compatible": self.report.is_backward_compatible,
            "is_forward_compatible": self.report.is_forward_compatible,
            "is_fully_compatible": self.report.is_fully_compatible,
            "backward_errors": list(self.report.backward_errors),
            "forward_errors": list(self.report.forward_errors),
            "added_properties": list(self.added_properties),
            "removed_properties": list(self.removed_properties),
            "casted_entity": self.casted_entity,
            "incompatibility_reasons": list(self.incompatibility_reasons),
        }


def cast_instance(from_id: str, to_schema_id: str, store: GtsStore) -> CastResult:
    """Cast a stored instance to another minor version of its schema.

    Args:
        from_id: Identifier of the instance to cast
        to_schema_id: Identifier of the target schema
        store: Store holding the instance and both schemas

    Returns:
        CastResult; refused casts carry incompatibility_reasons

    Raises:
        NotFoundError: If the instance or a schema is missing
        MajorVersionMismatchError: If the schemas are not in one lineage
        IncompatibleSchemasError: If the instance is a schema, or a required
            target property has no default
    """
    entity = store.get(from_id)
    if entity.is_schema:
        raise IncompatibleSchemasError(
            f"Cast from schema '{from_id}' is not allowed; cast instances only",
            reasons=["Cast from schema not allowed"],
        )
    if not entity.schema_id:
        raise NotFoundError(from_id, what="schema for instance")

    source_schema_id = entity.schema_id
    target = store.get_schema(to_schema_id)
    report = check_compatibility(source_schema_id, to_schema_id, store)
    direction = cast_direction(source_schema_id, to_schema_id)

    result = CastResult(
        from_id=entity.effective_id or from_id,
        to_id=report.new_id,
        from_schema_id=report.old_id,
        direction=direction,
        report=report,
    )

    if not report.is_backward_compatible:
        result.incompatibility_reasons = list(report.backward_errors)
        logger.info(f"Cast {result.from_id} -> {result.to_id} refused ({direction})")
        return result

    target_schema = effective_schema(target.content, store)
    casted = copy.deepcopy(entity.content)
    _transform(casted, target_schema, "", result.added_properties, result.removed_properties)

    errors = collect_errors(casted, target.content, store)
    if errors:
        result.incompatibility_reasons = errors
        return result

    result.casted_entity = casted
    logger.info(
        f"Cast {result.from_id} -> {result.to_id} ({direction}): "
        f"added={result.added_properties} removed={result.removed_properties}"
    )
    return result


def _transform(
    obj: Any,
    schema: Dict[str, Any],
    path: str,
    added: List[str],
    removed: List[str],
) -> None:
    """Rewrite `obj` in place to the shape of `schema`."""
    if not isinstance(obj, dict):
        return

    props = schema.get("properties")
    if not isinstance(props, dict):
        return
    required = schema.get("required") if isinstance(schema.get("required"), list) else []

    for name, prop in props.items():
        if name in obj or not isinstance(prop, dict):
            continue
        if "default" in prop:
            obj[name] = copy.deepcopy(prop["default"])
            added.append(_join(path, name))
        elif name in required:
            raise IncompatibleSchemasError(
                f"Required property '{_join(path, name)}' has no default in target schema",
                reasons=[f"Missing default for required property: {_join(path, name)}"],
            )

    for name in [k for k in obj if k not in props]:
        del obj[name]
        removed.append(_join(path, name))

    for name, prop in props.items():
        if name not in obj or not isinstance(prop, dict):
            continue
        if "const" in prop and obj[name] != prop["const"]:
            obj[name] = copy.deepcopy(prop["const"])
        value = obj[name]
        if isinstance(value, dict):
            _transform(value, prop, _join(path, name), added, removed)
        elif isinstance(value, list) and isinstance(prop.get("items"), dict):
            for idx, item in enumerate(value):
                _transform(item, prop["items"], f"{_join(path, name)}[{idx}]", added, removed)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name
