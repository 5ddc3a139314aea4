"""
Read-side operations over the store: relationships, queries, attribute paths.
"""

from .path import AttributeResult, parse_path, resolve_attribute, walk_path
from .query import QueryExpression, QueryResult, run_query
from .relationships import Relationships, resolve_relationships, schema_graph

__all__ = [
    "AttributeResult",
    "QueryExpression",
    "QueryResult",
    "Relationships",
    "parse_path",
    "resolve_attribute",
    "resolve_relationships",
    "run_query",
    "schema_graph",
    "walk_path",
]
