"""
Schema lifecycle: reference flattening, validation, compatibility and casting.
"""

from .cast import CastResult, cast_instance
from .compat import CompatibilityReport, cast_direction, check_compatibility, check_same_lineage
from .resolve import effective_schema, inline_refs
from .validate import check_schema_content, collect_errors, validate_instance, validate_schema

__all__ = [
    "CastResult",
    "CompatibilityReport",
    "cast_direction",
    "cast_instance",
    "check_compatibility",
    "check_same_lineage",
    "check_schema_content",
    "collect_errors",
    "effective_schema",
    "inline_refs",
    "validate_instance",
    "validate_schema",
]
