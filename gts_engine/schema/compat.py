"""
Schema compatibility checking between minor versions.

Two schema versions of one lineage (same vendor/package/namespace/type/major
in every segment) are diffed structurally:

- Backward compatible: every instance valid under the old schema is valid
  under the new one. Restrictions added by the new schema break it.
- Forward compatible: every instance valid under the new schema is valid
  under the old one. Relaxations made by the new schema break it.
- Fully compatible: both.

Rules, per property (recursing into object properties and array items):
    - Newly required property without a default     -> backward
    - Formerly required property without a default  -> forward
    - Property removed from a closed schema         -> backward
    - Property added to a formerly closed schema    -> forward
    - Type narrowed / widened (integer < number)    -> backward / forward
    - Type changed to an unrelated type             -> both
    - Enum values removed / added                   -> backward / forward
    - Enum added / dropped                          -> backward / forward
    - const or format added or changed / removed    -> backward / forward
    - Bound tightened / relaxed                     -> backward / forward

A const whose old and new values are identifiers of the same lineage is a
type discriminator; casting rewrites it, so it is not reported.

Invariants:
    - Reason lists are ordered: required, properties, then each common
      property in the new schema's order
    - The checker never mutates stored schemas

How to change safely:
    - Every new rule must name exactly which direction(s) it breaks
    - Keep reason strings stable; callers and tests match on them

Example:
    >>> report = check_compatibility("gts.x.a.b.c.v1.0~", "gts.x.a.b.c.v1.1~", store)
    >>> report.is_backward_compatible
    True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..errors import MajorVersionMismatchError
from ..ids import GtsID
from ..store import GtsStore
from .resolve import effective_schema

logger = logging.getLogger(__name__)

# (keyword, True if a larger value is more restrictive)
_BOUNDS: Tuple[Tuple[str, bool], ...] = (
    ("minLength", True),
    ("maxLength", False),
    ("minimum", True),
    ("maximum", False),
    ("exclusiveMinimum", True),
    ("exclusiveMaximum", False),
    ("minItems", True),
    ("maxItems", False),
    ("minProperties", True),
    ("maxProperties", False),
)


@dataclass
class CompatibilityReport:
    """Verdict of a compatibility check.

    Attributes:
        old_id: Old schema identifier
        new_id: New schema identifier
        backward_errors: Why old instances may fail under the new schema
        forward_errors: Why new instances may fail under the old schema
    """

    old_id: str
    new_id: str
    backward_errors: List[str] = field(default_factory=list)
    forward_errors: List[str] = field(default_factory=list)

    @property
    def is_backward_compatible(self) -> bool:
        return not self.backward_errors

    @property
    def is_forward_compatible(self) -> bool:
        return not self.forward_errors

    @property
    def is_fully_compatible(self) -> bool:
        return self.is_backward_compatible and self.is_forward_compatible

    @property
    def direction(self) -> str:
        return cast_direction(self.old_id, self.new_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "old_id": self.old_id,
            "new_id": self.new_id,
            "direction": self.direction,
            "is_backward_compatible": self.is_backward_compatible,
            "is_forward_compatible": self.is_forward_compatible,
            "is_fully_compatible": self.is_fully_compatible,
            "backward_errors": list(self.backward_errors),
            "forward_errors": list(self.forward_errors),
        }


def check_same_lineage(old_id: str, new_id: str) -> Tuple[GtsID, GtsID]:
    """Parse both identifiers and require them to differ only in minor versions.

    Raises:
        ParseError: If either identifier is malformed
        MajorVersionMismatchError: If the lineages differ
    """
    old = GtsID.parse(old_id)
    new = GtsID.parse(new_id)

    if len(old.segments) != len(new.segments):
        raise MajorVersionMismatchError(
            old.id, new.id, f"chain length differs ({len(old.segments)} vs {len(new.segments)})"
        )
    for old_seg, new_seg in zip(old.segments, new.segments):
        if old_seg.lineage != new_seg.lineage:
            raise MajorVersionMismatchError(
                old.id,
                new.id,
                f"segment #{old_seg.num} differs: '{old_seg.segment}' vs '{new_seg.segment}'",
            )
        if old_seg.is_type != new_seg.is_type:
            raise MajorVersionMismatchError(old.id, new.id, f"segment #{old_seg.num} kind differs")
    return old, new


def cast_direction(from_id: str, to_id: str) -> str:
    """'up' if the target's minor version exceeds the source's, else 'down'.

    An absent minor counts as 0. Unparsable ids yield 'unknown'.
    """
    if not (GtsID.is_valid(from_id) and GtsID.is_valid(to_id)):
        return "unknown"
    from_minor = GtsID.parse(from_id).tail.ver_minor or 0
    to_minor = GtsID.parse(to_id).tail.ver_minor or 0
    return "up" if to_minor > from_minor else "down"


def check_compatibility(old_id: str, new_id: str, store: GtsStore) -> CompatibilityReport:
    """Compare two stored schema versions.

    Args:
        old_id: Old schema identifier
        new_id: New schema identifier
        store: Store holding both schemas

    Returns:
        CompatibilityReport

    Raises:
        ParseError: If an identifier is malformed
        MajorVersionMismatchError: If the schemas are not in one lineage
        NotFoundError: If either schema is absent
    """
    old, new = check_same_lineage(old_id, new_id)
    old_schema = effective_schema(store.get_schema(old.id).content, store)
    new_schema = effective_schema(store.get_schema(new.id).content, store)

    report = CompatibilityReport(old_id=old.id, new_id=new.id)
    diff_schemas(old_schema, new_schema, report.backward_errors, report.forward_errors)

    logger.debug(
        f"Compatibility {old.id} -> {new.id}: "
        f"backward={report.is_backward_compatible} forward={report.is_forward_compatible}"
    )
    return report


def diff_schemas(
    old: Dict[str, Any],
    new: Dict[str, Any],
    backward: List[str],
    forward: List[str],
    path: str = "",
) -> None:
    """Append breaking changes between two flattened schema nodes."""
    _diff_keywords(old, new, backward, forward, path)

    old_props = _properties(old)
    new_props = _properties(new)
    if old_props or new_props:
        _diff_object(old, new, old_props, new_props, backward, forward, path)

    old_items = old.get("items")
    new_items = new.get("items")
    if isinstance(old_items, dict) and isinstance(new_items, dict):
        diff_schemas(old_items, new_items, backward, forward, f"{path}[]" if path else "[]")


def _diff_object(
    old: Dict[str, Any],
    new: Dict[str, Any],
    old_props: Dict[str, Any],
    new_props: Dict[str, Any],
    backward: List[str],
    forward: List[str],
    path: str,
) -> None:
    old_required = _required(old)
    new_required = _required(new)

    added_required = [
        p for p in _ordered(new_required) if p not in old_required and not _has_default(new_props.get(p))
    ]
    if added_required:
        backward.append(f"Added required properties: {_names(added_required, path)}")

    removed_required = [
        p for p in _ordered(old_required) if p not in new_required and not _has_default(old_props.get(p))
    ]
    if removed_required:
        forward.append(f"Removed required properties: {_names(removed_required, path)}")

    removed = [p for p in old_props if p not in new_props]
    added = [p for p in new_props if p not in old_props]
    if removed and new.get("additionalProperties") is False:
        backward.append(f"Removed properties not allowed by closed schema: {_names(removed, path)}")
    if added and old.get("additionalProperties") is False:
        forward.append(f"Added properties not allowed by closed old schema: {_names(added, path)}")

    for name, new_sub in new_props.items():
        old_sub = old_props.get(name)
        if isinstance(old_sub, dict) and isinstance(new_sub, dict):
            diff_schemas(old_sub, new_sub, backward, forward, _join(path, name))


def _diff_keywords(
    old: Dict[str, Any],
    new: Dict[str, Any],
    backward: List[str],
    forward: List[str],
    path: str,
) -> None:
    label = f"Property '{path}'" if path else "Schema root"

    old_types = _types(old)
    new_types = _types(new)
    if old_types and new_types and old_types != new_types:
        old_text, new_text = "/".join(sorted(old_types)), "/".join(sorted(new_types))
        if _covers(new_types, old_types):
            forward.append(f"{label} type widened from {old_text} to {new_text}")
        elif _covers(old_types, new_types):
            backward.append(f"{label} type narrowed from {old_text} to {new_text}")
        else:
            backward.append(f"{label} type changed from {old_text} to {new_text}")
            forward.append(f"{label} type changed from {old_text} to {new_text}")
    elif new_types and not old_types:
        backward.append(f"{label} type restricted to {'/'.join(sorted(new_types))}")
    elif old_types and not new_types:
        forward.append(f"{label} type restriction removed")

    _diff_format(old, new, backward, forward, label)
    _diff_enum(old, new, backward, forward, label)
    _diff_const(old, new, backward, forward, label)
    _diff_bounds(old, new, backward, forward, label)


def _diff_format(old: Dict[str, Any], new: Dict[str, Any], backward: List[str], forward: List[str], label: str) -> None:
    old_fmt, new_fmt = old.get("format"), new.get("format")
    if old_fmt == new_fmt:
        return
    if new_fmt is None:
        forward.append(f"{label} format '{old_fmt}' removed")
    elif old_fmt is None:
        backward.append(f"{label} format '{new_fmt}' added")
    else:
        backward.append(f"{label} format changed from '{old_fmt}' to '{new_fmt}'")


def _diff_enum(old: Dict[str, Any], new: Dict[str, Any], backward: List[str], forward: List[str], label: str) -> None:
    old_enum, new_enum = old.get("enum"), new.get("enum")
    if not isinstance(old_enum, list) and not isinstance(new_enum, list):
        return
    if not isinstance(old_enum, list):
        backward.append(f"{label} enum added: {_values(new_enum)}")
        return
    if not isinstance(new_enum, list):
        forward.append(f"{label} enum removed")
        return

    removed = [v for v in old_enum if v not in new_enum]
    added = [v for v in new_enum if v not in old_enum]
    if removed:
        backward.append(f"{label} enum values removed: {_values(removed)}")
    if added:
        forward.append(f"{label} enum values added: {_values(added)}")


def _diff_const(old: Dict[str, Any], new: Dict[str, Any], backward: List[str], forward: List[str], label: str) -> None:
    has_old, has_new = "const" in old, "const" in new
    if not has_old and not has_new:
        return
    if has_old and not has_new:
        forward.append(f"{label} const {old['const']!r} removed")
        return
    if not has_old:
        backward.append(f"{label} const {new['const']!r} added")
        return
    if old["const"] == new["const"] or is_discriminator_change(old["const"], new["const"]):
        return
    backward.append(f"{label} const changed from {old['const']!r} to {new['const']!r}")


def _diff_bounds(old: Dict[str, Any], new: Dict[str, Any], backward: List[str], forward: List[str], label: str) -> None:
    for keyword, larger_is_stricter in _BOUNDS:
        old_val, new_val = old.get(keyword), new.get(keyword)
        if old_val == new_val:
            continue
        if not _is_number(old_val) and _is_number(new_val):
            backward.append(f"{label} {keyword} {new_val} added")
        elif _is_number(old_val) and not _is_number(new_val):
            forward.append(f"{label} {keyword} {old_val} removed")
        elif _is_number(old_val) and _is_number(new_val):
            stricter = new_val > old_val if larger_is_stricter else new_val < old_val
            if stricter:
                backward.append(f"{label} {keyword} tightened from {old_val} to {new_val}")
            else:
                forward.append(f"{label} {keyword} relaxed from {old_val} to {new_val}")


def is_discriminator_change(old_value: Any, new_value: Any) -> bool:
    """Whether two const values are identifiers differing only in minor versions."""
    if not (GtsID.is_valid(old_value) and GtsID.is_valid(new_value)):
        return False
    old, new = GtsID.parse(old_value), GtsID.parse(new_value)
    return len(old.segments) == len(new.segments) and all(
        a.lineage == b.lineage and a.is_type == b.is_type for a, b in zip(old.segments, new.segments)
    )


def _properties(schema: Dict[str, Any]) -> Dict[str, Any]:
    props = schema.get("properties")
    return props if isinstance(props, dict) else {}


def _required(schema: Dict[str, Any]) -> List[str]:
    required = schema.get("required")
    return [r for r in required if isinstance(r, str)] if isinstance(required, list) else []


def _has_default(prop: Optional[Any]) -> bool:
    return isinstance(prop, dict) and "default" in prop


def _types(schema: Dict[str, Any]) -> Set[str]:
    value = schema.get("type")
    if isinstance(value, str):
        return {value}
    if isinstance(value, list):
        return {t for t in value if isinstance(t, str)}
    return set()


def _covers(wider: Set[str], narrower: Set[str]) -> bool:
    """Whether every type in `narrower` is accepted by `wider`."""
    return all(t in wider or (t == "integer" and "number" in wider) for t in narrower)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _ordered(names: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _names(names: Iterable[str], path: str) -> str:
    return ", ".join(_join(path, n) for n in names)


def _values(values: Iterable[Any]) -> str:
    return ", ".join(repr(v) for v in values)
