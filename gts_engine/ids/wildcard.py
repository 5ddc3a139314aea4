"""
GTS wildcard patterns.

A pattern follows the identifier grammar (so whitespace is rejected), with at
most one `*`, which must be the final token (the pattern ends with `.*` or
`~*`). The wildcard accepts any value for the fields it replaces and any
number of remaining chain segments.

Matching rules:
    - A pattern with more segments than the candidate never matches
    - Concrete segments compare every field; an absent minor version in
      the pattern accepts any minor version in the candidate
    - In the wildcard segment, only the fields written before `*` are compared
    - Everything after the wildcard segment is accepted
    - A pattern without `*` must cover the whole candidate chain; a shorter
      concrete pattern is not a prefix match (write `~*` to accept descendants)

Matching is a pure predicate; callers combine several patterns as they see fit.

Example:
    >>> GtsWildcard.parse("gts.x.core.*").matches(GtsID.parse("gts.x.core.events.event.v1~"))
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from ..errors import ParseError
from .gts_id import GTS_PREFIX, WILDCARD, GtsID, GtsIdSegment, parse_segments

_KIND = "wildcard pattern"


@dataclass(frozen=True)
class GtsWildcard:
    """A validated wildcard pattern.

    Attributes:
        pattern: The pattern text, exactly as given
        segments: Parsed segments; only the last may be a wildcard segment
    """

    pattern: str
    segments: Tuple[GtsIdSegment, ...]

    @classmethod
    def parse(cls, text: str) -> GtsWildcard:
        """Parse and validate a pattern.

        Raises:
            ParseError: If the pattern is malformed
        """
        if not text.startswith(GTS_PREFIX):
            raise ParseError(text, f"Does not start with '{GTS_PREFIX}'", _KIND)
        if text.count(WILDCARD) > 1:
            raise ParseError(text, "The wildcard '*' token is allowed only once", _KIND)
        if WILDCARD in text and not (text.endswith(".*") or text.endswith("~*")):
            raise ParseError(
                text, "The wildcard '*' token is allowed only at the end of the pattern", _KIND
            )
        return cls(pattern=text, segments=parse_segments(text, text, allow_wildcard=True, kind=_KIND))

    @property
    def has_wildcard(self) -> bool:
        """Whether the pattern contains the `*` token."""
        return bool(self.segments) and self.segments[-1].is_wildcard

    def matches(self, candidate: GtsID) -> bool:
        """Check whether an identifier matches this pattern."""
        return match_segments(self.segments, candidate.segments)

    def __str__(self) -> str:
        return self.pattern


def match_segments(
    pattern_segs: Sequence[GtsIdSegment],
    candidate_segs: Sequence[GtsIdSegment],
) -> bool:
    """Field-by-field comparison of pattern segments against a candidate chain."""
    if len(pattern_segs) > len(candidate_segs):
        return False

    for p_seg, c_seg in zip(pattern_segs, candidate_segs):
        if p_seg.is_wildcard:
            return _match_wildcard_segment(p_seg, c_seg)

        if p_seg.lineage != c_seg.lineage:
            return False
        if p_seg.ver_minor is not None and p_seg.ver_minor != c_seg.ver_minor:
            return False
        if p_seg.is_type != c_seg.is_type:
            return False

    # A concrete pattern must cover the whole candidate chain.
    return len(pattern_segs) == len(candidate_segs)


def _match_wildcard_segment(p_seg: GtsIdSegment, c_seg: GtsIdSegment) -> bool:
    for name in ("vendor", "package", "namespace", "type_name"):
        expected = getattr(p_seg, name)
        if expected and expected != getattr(c_seg, name):
            return False
    if p_seg.ver_major is not None and p_seg.ver_major != c_seg.ver_major:
        return False
    if p_seg.ver_minor is not None and p_seg.ver_minor != c_seg.ver_minor:
        return False
    if p_seg.is_type and not c_seg.is_type:
        return False
    return True
