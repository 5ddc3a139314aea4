"""
Attribute access into stored documents.

Expression: `<identifier>@<path>`. Path segments are separated by dots;
a segment may carry bracketed indices (`items[0]`, `grid[1][2]`) and a
bare integer segment indexes a list (`items.0`).

Example:
    >>> resolve_attribute("gts.x.core.events.event.v1.0@payload.items[0].sku", store)
    AttributeResult(...)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..errors import ParseError, PathNotFoundError
from ..ids import GtsID
from ..store import GtsStore

logger = logging.getLogger(__name__)

_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

PathStep = Union[str, int]


@dataclass
class AttributeResult:
    """A resolved attribute.

    Attributes:
        id: Identifier of the document
        path: The requested path
        value: Value found at the path
    """

    id: str
    path: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "path": self.path, "value": self.value, "ok": True, "error": ""}


def parse_path(path: str) -> List[PathStep]:
    """Split a path into key (str) and index (int) steps.

    Raises:
        ParseError: If a segment is empty or has malformed brackets
    """
    steps: List[PathStep] = []
    for segment in path.split("."):
        match = _SEGMENT_RE.match(segment)
        if not segment or not match or (not match.group(1) and not match.group(2)):
            raise ParseError(path, f"Invalid path segment '{segment}'", "attribute path")
        name, indices = match.group(1), match.group(2)
        if name:
            steps.append(name)
        steps.extend(int(i) for i in _INDEX_RE.findall(indices))
    return steps


def walk_path(document: Any, path: str) -> Any:
    """Follow a path into a document.

    Raises:
        ParseError: If the path is malformed
        PathNotFoundError: At the first step that cannot be followed
    """
    current = document
    for step in parse_path(path):
        current = _step(current, step, path)
    return current


def _step(current: Any, step: PathStep, path: str) -> Any:
    if isinstance(current, dict):
        key = str(step)
        if key not in current:
            raise PathNotFoundError(path, key, "missing key", available_fields=sorted(current))
        return current[key]

    if isinstance(current, list):
        index = _as_index(step)
        if index is None:
            raise PathNotFoundError(path, str(step), "list index must be an integer")
        if index >= len(current):
            raise PathNotFoundError(path, str(step), f"index out of range (length {len(current)})")
        return current[index]

    raise PathNotFoundError(path, str(step), f"cannot descend into {type(current).__name__}")


def _as_index(step: PathStep) -> Optional[int]:
    if isinstance(step, int):
        return step
    return int(step) if step.isdigit() else None


def resolve_attribute(expr: str, store: GtsStore) -> AttributeResult:
    """Resolve `<identifier>@<path>` against the store.

    Raises:
        ParseError: If the expression has no path or the path is malformed
        NotFoundError: If the identifier is not stored
        PathNotFoundError: If the path cannot be followed
    """
    entity_id, path = GtsID.split_at_path(expr.strip())
    if path is None:
        raise ParseError(expr, "Expected '<id>@<path>'", "attribute selector")

    entity = store.get(entity_id)
    value = walk_path(entity.content, path)
    return AttributeResult(id=entity.effective_id or entity_id, path=path, value=value)
