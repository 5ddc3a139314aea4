"""
GTS identifier grammar.

A GTS identifier names a schema or an instance:

    gts.<vendor>.<package>.<namespace>.<type>.v<major>[.<minor>][~]

Segments may be chained with `~`; segment i is the declared parent type of
segment i+1. A trailing `~` marks the whole identifier as a schema (type)
identifier, its absence marks an instance identifier.

Invariants:
    - Identifiers are immutable value objects, validated eagerly on parse
    - Re-joining the parsed segments reproduces the input exactly, so input
      is never trimmed; whitespace anywhere is a parse error
    - Only the final segment may lack the `~` marker
    - UUIDs are name-based (v5) and depend only on the identifier and scope

How to change safely:
    - Never change GTS_NS or the canonical string: stored UUIDs depend on them
    - Grammar changes must keep every previously valid identifier valid

Example:
    >>> gid = GtsID.parse("gts.x.core.events.type.v1~x.core.events.order.v1.2")
    >>> gid.is_type
    False
    >>> gid.type_id
    'gts.x.core.events.type.v1~'
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ParseError, SegmentError

GTS_PREFIX = "gts."
# Only valid in a JSON Schema `$id`, never part of the identifier itself.
GTS_URI_PREFIX = "gts://"
GTS_NS = uuid.uuid5(uuid.NAMESPACE_URL, "gts")
MAX_ID_LENGTH = 1024
WILDCARD = "*"

_TOKEN_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_MAJOR_RE = re.compile(r"^v(0|[1-9][0-9]*)$")
_MINOR_RE = re.compile(r"^(0|[1-9][0-9]*)$")


class UuidScope(Enum):
    """Granularity of the identifier-to-UUID mapping."""

    MAJOR = "major"  # minor versions collapse onto one UUID
    MINOR = "minor"

    @classmethod
    def from_str(cls, value: str) -> UuidScope:
        """Convert string representation to UuidScope.

        Raises:
            ValueError: If value is not a known scope
        """
        for scope in cls:
            if scope.value == value.lower():
                return scope
        valid = [s.value for s in cls]
        raise ValueError(f"Invalid UUID scope '{value}'. Valid scopes: {valid}")


@dataclass(frozen=True)
class GtsIdSegment:
    """One `vendor.package.namespace.type.version` unit of an identifier.

    Attributes:
        num: 1-based position in the chain
        offset: Character offset of the segment in the full identifier
        segment: Raw segment text, including the trailing `~` if present
        vendor: Vendor token
        package: Package token
        namespace: Namespace token
        type_name: Type token
        ver_major: Major version (None only for an unset wildcard field)
        ver_minor: Optional minor version
        is_type: Whether the segment carries the `~` type marker
        is_wildcard: Whether the segment ends in the `*` wildcard
    """

    num: int
    offset: int
    segment: str
    vendor: str = ""
    package: str = ""
    namespace: str = ""
    type_name: str = ""
    ver_major: Optional[int] = None
    ver_minor: Optional[int] = None
    is_type: bool = False
    is_wildcard: bool = False

    @classmethod
    def parse(
        cls,
        num: int,
        offset: int,
        text: str,
        allow_wildcard: bool = False,
    ) -> GtsIdSegment:
        """Parse a single segment.

        Args:
            num: 1-based segment number (for error messages)
            offset: Character offset (for error messages)
            text: Segment text, optionally ending in `~`
            allow_wildcard: Accept `*` as the final token

        Returns:
            Parsed segment

        Raises:
            SegmentError: If the segment is malformed
        """
        body = text
        is_type = False

        if "~" in body:
            if body.count("~") > 1:
                raise SegmentError(num, offset, text, "Too many '~' characters")
            if not body.endswith("~"):
                raise SegmentError(num, offset, text, "'~' must be at the end")
            is_type = True
            body = body[:-1]

        tokens = body.split(".")
        if len(tokens) > 6:
            raise SegmentError(num, offset, text, "Too many tokens")

        ends_with_wildcard = tokens[-1] == WILDCARD
        if ends_with_wildcard and not allow_wildcard:
            raise SegmentError(num, offset, text, "Wildcard '*' is not allowed in an identifier")
        if not ends_with_wildcard and len(tokens) < 5:
            raise SegmentError(num, offset, text, "Too few tokens")

        names: List[str] = []
        ver_major: Optional[int] = None
        ver_minor: Optional[int] = None
        for i, token in enumerate(tokens):
            if token == WILDCARD:
                if i != len(tokens) - 1:
                    raise SegmentError(num, offset, text, "Wildcard '*' must be the last token")
                break
            if i < 4:
                if not _TOKEN_RE.match(token):
                    raise SegmentError(num, offset, text, f"Invalid segment token: {token}")
                names.append(token)
            elif i == 4:
                if not token.startswith("v"):
                    raise SegmentError(num, offset, text, "Major version must start with 'v'")
                match = _MAJOR_RE.match(token)
                if not match:
                    raise SegmentError(num, offset, text, "Major version must be an integer")
                ver_major = int(match.group(1))
            else:
                if not _MINOR_RE.match(token):
                    raise SegmentError(num, offset, text, "Minor version must be an integer")
                ver_minor = int(token)

        names.extend([""] * (4 - len(names)))
        return cls(
            num=num,
            offset=offset,
            segment=text,
            vendor=names[0],
            package=names[1],
            namespace=names[2],
            type_name=names[3],
            ver_major=ver_major,
            ver_minor=ver_minor,
            is_type=is_type,
            is_wildcard=ends_with_wildcard,
        )

    @property
    def lineage(self) -> Tuple[str, str, str, str, Optional[int]]:
        """(vendor, package, namespace, type, major): what minor versions share."""
        return (self.vendor, self.package, self.namespace, self.type_name, self.ver_major)

    def canonical(self, scope: UuidScope = UuidScope.MINOR) -> str:
        """Canonical segment text; MAJOR scope drops the minor version."""
        text = f"{self.vendor}.{self.package}.{self.namespace}.{self.type_name}.v{self.ver_major}"
        if self.ver_minor is not None and scope is UuidScope.MINOR:
            text += f".{self.ver_minor}"
        if self.is_type:
            text += "~"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API representation."""
        return {
            "vendor": self.vendor,
            "package": self.package,
            "namespace": self.namespace,
            "type": self.type_name,
            "ver_major": self.ver_major,
            "ver_minor": self.ver_minor,
            "is_type": self.is_type,
        }


def split_segments(text: str, kind: str = "identifier") -> List[str]:
    """Split the part after `gts.` into raw segments, keeping `~` markers.

    A trailing `~` belongs to the final segment; any other empty piece
    is an error.
    """
    remainder = text[len(GTS_PREFIX):]
    pieces = remainder.split("~")
    parts: List[str] = []
    for i, piece in enumerate(pieces):
        if i < len(pieces) - 1:
            parts.append(f"{piece}~")
            if i == len(pieces) - 2 and pieces[i + 1] == "":
                break
        else:
            parts.append(piece)

    offset = len(GTS_PREFIX)
    for i, part in enumerate(parts):
        if part in ("", "~"):
            raise ParseError(text, f"GTS segment #{i + 1} @ offset {offset} is empty", kind)
        offset += len(part)
    return parts


def parse_segments(
    raw: str,
    original: str,
    allow_wildcard: bool = False,
    kind: str = "identifier",
) -> Tuple[GtsIdSegment, ...]:
    """Validate the whole-string rules and parse every segment."""
    if any(c.isspace() for c in raw):
        raise ParseError(original, "Must not contain whitespace", kind)
    if raw != raw.lower():
        raise ParseError(original, "Must be lower case", kind)
    if "-" in raw:
        raise ParseError(original, "Must not contain '-'", kind)
    if not raw.startswith(GTS_PREFIX):
        raise ParseError(original, f"Does not start with '{GTS_PREFIX}'", kind)
    if len(raw) > MAX_ID_LENGTH:
        raise ParseError(original, "Too long", kind)

    segments: List[GtsIdSegment] = []
    offset = len(GTS_PREFIX)
    parts = split_segments(raw, kind)
    for i, part in enumerate(parts):
        segment = GtsIdSegment.parse(i + 1, offset, part, allow_wildcard=allow_wildcard)
        if segment.is_wildcard and i != len(parts) - 1:
            raise ParseError(original, "The wildcard '*' token is allowed only at the end", kind)
        segments.append(segment)
        offset += len(part)
    return tuple(segments)


@dataclass(frozen=True)
class GtsID:
    """A validated GTS identifier.

    Attributes:
        id: The identifier string, exactly as given
        segments: Parsed segments in chain order
    """

    id: str
    segments: Tuple[GtsIdSegment, ...]

    @classmethod
    def parse(cls, text: str) -> GtsID:
        """Parse and validate an identifier.

        Raises:
            ParseError: If the text is not a valid GTS identifier
        """
        return cls(id=text, segments=parse_segments(text, text))

    @staticmethod
    def is_valid(text: Any) -> bool:
        """Check whether text is a valid identifier. Never raises."""
        if not isinstance(text, str) or not text.startswith(GTS_PREFIX):
            return False
        try:
            GtsID.parse(text)
        except ParseError:
            return False
        return True

    @property
    def is_type(self) -> bool:
        """Whether this is a schema (type) identifier."""
        return self.id.endswith("~")

    @property
    def tail(self) -> GtsIdSegment:
        """The final segment, which the identifier names."""
        return self.segments[-1]

    @property
    def type_id(self) -> Optional[str]:
        """Identifier of the declaring type, or None for a single segment."""
        if len(self.segments) < 2:
            return None
        return GTS_PREFIX + "".join(s.segment for s in self.segments[:-1])

    @property
    def parent_ids(self) -> List[str]:
        """Ancestor schema identifiers, nearest parent last."""
        return [
            GTS_PREFIX + "".join(s.segment for s in self.segments[: i + 1])
            for i in range(len(self.segments) - 1)
        ]

    def canonical(self, scope: UuidScope = UuidScope.MINOR) -> str:
        """Canonical string the UUID is computed over."""
        return GTS_PREFIX + "".join(s.canonical(scope) for s in self.segments)

    def to_uuid(self, scope: UuidScope = UuidScope.MINOR) -> uuid.UUID:
        """Deterministic name-based UUID for this identifier."""
        return uuid.uuid5(GTS_NS, self.canonical(scope))

    def __str__(self) -> str:
        return self.id

    @staticmethod
    def split_at_path(text: str) -> Tuple[str, Optional[str]]:
        """Split `<id>@<path>` on the first `@`.

        Returns:
            Tuple of (identifier, path or None)

        Raises:
            ParseError: If a separator is present but the path is empty
        """
        if "@" not in text:
            return text, None
        gts, path = text.split("@", 1)
        if not path:
            raise ParseError(text, "Attribute path cannot be empty", "attribute selector")
        return gts, path


def normalize_id(value: str) -> str:
    """Strip the `gts://` URI prefix used in `$id`."""
    if value.startswith(GTS_URI_PREFIX):
        return value[len(GTS_URI_PREFIX):]
    return value
