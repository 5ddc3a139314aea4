"""
Identifier model for GTS.

Pure, stateless functions over the identifier grammar:
- parse / is_valid: identifier validation and decomposition
- parse_pattern / matches: wildcard patterns
- to_uuid: deterministic identifier-to-UUID mapping

Invariants:
    - Nothing here touches the store or performs I/O
    - Safe to call concurrently without coordination
"""

import uuid
from typing import Union

from .gts_id import (
    GTS_NS,
    GTS_PREFIX,
    GTS_URI_PREFIX,
    GtsID,
    GtsIdSegment,
    UuidScope,
    normalize_id,
)
from .wildcard import GtsWildcard


def parse(text: str) -> GtsID:
    """Parse an identifier, raising ParseError if malformed."""
    return GtsID.parse(text)


def is_valid(text: str) -> bool:
    """Check an identifier without raising."""
    return GtsID.is_valid(text)


def parse_pattern(text: str) -> GtsWildcard:
    """Parse a wildcard pattern, raising ParseError if malformed."""
    return GtsWildcard.parse(text)


def matches(pattern: Union[str, GtsWildcard], identifier: Union[str, GtsID]) -> bool:
    """Check whether an identifier matches a pattern."""
    if isinstance(pattern, str):
        pattern = GtsWildcard.parse(pattern)
    if isinstance(identifier, str):
        identifier = GtsID.parse(identifier)
    return pattern.matches(identifier)


def to_uuid(
    identifier: Union[str, GtsID],
    scope: Union[str, UuidScope] = UuidScope.MINOR,
) -> uuid.UUID:
    """Map an identifier to its name-based UUID under the given scope."""
    if isinstance(identifier, str):
        identifier = GtsID.parse(identifier)
    if isinstance(scope, str):
        scope = UuidScope.from_str(scope)
    return identifier.to_uuid(scope)


__all__ = [
    "GTS_NS",
    "GTS_PREFIX",
    "GTS_URI_PREFIX",
    "GtsID",
    "GtsIdSegment",
    "GtsWildcard",
    "UuidScope",
    "is_valid",
    "matches",
    "normalize_id",
    "parse",
    "parse_pattern",
    "to_uuid",
]
