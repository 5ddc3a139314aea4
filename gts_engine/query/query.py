"""
Query language over the store.

Grammar:

    <pattern>[ '[' <name>=<value> (',' <name>=<value>)* ']' ]

The pattern is a wildcard pattern, or a plain identifier (which then
matches any minor version when it omits one). Filters compare a
top-level field by string equality: strings compare as-is, other
values by their JSON text. A value of `*` only requires the field to be
present and non-null. Quotes around values are stripped.

Results keep store (load) order; there is no ranking.

Example:
    >>> run_query('gts.x.core.events.*[status="active"]', store, limit=10).count
    2
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..errors import ParseError
from ..ids import GtsWildcard
from ..store import GtsStore

logger = logging.getLogger(__name__)

_KIND = "query"


@dataclass(frozen=True)
class QueryExpression:
    """A parsed query.

    Attributes:
        pattern: The identifier pattern
        filters: (field, value) pairs, all of which must hold
    """

    pattern: GtsWildcard
    filters: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, expr: str) -> QueryExpression:
        """Parse a query expression.

        Raises:
            ParseError: If the pattern or filter list is malformed
        """
        text = expr.strip()
        base, sep, rest = text.partition("[")
        filters: List[Tuple[str, str]] = []
        if sep:
            if not rest.endswith("]"):
                raise ParseError(expr, "Filter list must end with ']'", _KIND)
            filters = _parse_filters(expr, rest[:-1])

        base = base.strip()
        if not base:
            raise ParseError(expr, "Missing identifier pattern", _KIND)
        return cls(pattern=GtsWildcard.parse(base), filters=tuple(filters))

    def matches(self, content: Any) -> bool:
        """Whether a document satisfies every filter."""
        if not self.filters:
            return True
        if not isinstance(content, dict):
            return False
        for name, expected in self.filters:
            value = content.get(name)
            if expected == "*":
                if value is None:
                    return False
            elif _as_text(value) != expected:
                return False
        return True


@dataclass
class QueryResult:
    """Query outcome.

    Attributes:
        results: Matching documents, in load order
        limit: The limit applied
        error: Parse error message, empty on success
    """

    results: List[Any] = field(default_factory=list)
    limit: int = 0
    error: str = ""

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "count": self.count,
            "limit": self.limit,
            "results": list(self.results),
        }


def run_query(expr: str, store: GtsStore, limit: int) -> QueryResult:
    """Evaluate a query against a store.

    Raises:
        ParseError: If the expression is malformed
    """
    query = QueryExpression.parse(expr)
    result = QueryResult(limit=limit)

    for entity in store:
        if len(result.results) >= limit:
            break
        if entity.gts_id is None or not isinstance(entity.content, dict):
            continue
        if not query.pattern.matches(entity.gts_id):
            continue
        if not query.matches(entity.content):
            continue
        result.results.append(entity.content)

    logger.debug(f"Query '{expr}' matched {result.count} entities (limit {limit})")
    return result


def _parse_filters(expr: str, text: str) -> List[Tuple[str, str]]:
    filters = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, value = part.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ParseError(expr, f"Invalid filter '{part}', expected name=value", _KIND)
        filters.append((name, value.strip().strip('"').strip("'")))
    return filters


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value)
