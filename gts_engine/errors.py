"""
Error types for the GTS engine.

This module defines every exception raised inside the engine:
- GtsEngineError: Base exception
- ParseError: Malformed identifier, pattern, query or path expression
- NotFoundError: Identifier absent from the store
- PathNotFoundError: Attribute path cannot be resolved
- MajorVersionMismatchError: Schemas belong to different lineages
- IncompatibleSchemasError: Cast forbidden by the compatibility verdict
- ValidationError: Instance or schema failed JSON Schema validation
- ConfigError: Configuration document unreadable or invalid

Invariants:
    - All errors inherit from GtsEngineError
    - Every error carries a stable machine-readable code
    - Operations facade converts these into structured results;
      only ConfigError is allowed to abort the process at startup

How to change safely:
    - Add new subclasses with new codes, never reuse a code
    - Keep `details` JSON-serializable (it is returned over HTTP)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GtsEngineError(Exception):
    """Base exception for all GTS engine errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GTS_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {"error": self.message, "code": self.code, "details": self.details}


class ParseError(GtsEngineError):
    """Malformed identifier, wildcard pattern or expression.

    Raised when:
    - Identifier does not follow the `gts.` grammar
    - Wildcard is misplaced or repeated
    - Attribute selector has an empty path
    """

    def __init__(self, text: str, cause: str, kind: str = "identifier") -> None:
        super().__init__(
            f"Invalid GTS {kind}: {text}: {cause}",
            code="PARSE_ERROR",
            details={"text": text, "cause": cause, "kind": kind},
        )
        self.text = text
        self.cause = cause
        self.kind = kind


class SegmentError(ParseError):
    """A single segment of an identifier failed to parse."""

    def __init__(self, num: int, offset: int, segment: str, cause: str) -> None:
        GtsEngineError.__init__(
            self,
            f"Invalid GTS segment #{num} @ offset {offset}: '{segment}': {cause}",
            code="PARSE_ERROR",
            details={"num": num, "offset": offset, "segment": segment, "cause": cause},
        )
        self.text = segment
        self.cause = cause
        self.kind = "segment"
        self.num = num
        self.offset = offset


class NotFoundError(GtsEngineError):
    """Entity not found in the store."""

    def __init__(self, entity_id: str, what: str = "entity") -> None:
        super().__init__(
            f"JSON {what} with GTS ID '{entity_id}' not found in store",
            code="NOT_FOUND",
            details={"id": entity_id, "what": what},
        )
        self.entity_id = entity_id
        self.what = what


class PathNotFoundError(GtsEngineError):
    """Attribute path could not be resolved.

    Attributes:
        path: The full path requested
        segment: The first segment that failed
        available_fields: Keys available at the failing level (if a mapping)
    """

    def __init__(
        self,
        path: str,
        segment: str,
        reason: str,
        available_fields: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            f"Path not found: {path} (at '{segment}': {reason})",
            code="PATH_NOT_FOUND",
            details={
                "path": path,
                "segment": segment,
                "reason": reason,
                "available_fields": available_fields or [],
            },
        )
        self.path = path
        self.segment = segment
        self.reason = reason
        self.available_fields = available_fields or []


class MajorVersionMismatchError(GtsEngineError):
    """Two identifiers do not share vendor/package/namespace/type/major."""

    def __init__(self, old_id: str, new_id: str, cause: str) -> None:
        super().__init__(
            f"Schemas '{old_id}' and '{new_id}' are not in the same major lineage: {cause}",
            code="MAJOR_VERSION_MISMATCH",
            details={"old_id": old_id, "new_id": new_id, "cause": cause},
        )
        self.old_id = old_id
        self.new_id = new_id


class IncompatibleSchemasError(GtsEngineError):
    """Cast cannot be performed between the two schemas."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        super().__init__(
            message,
            code="INCOMPATIBLE_SCHEMAS",
            details={"reasons": reasons or []},
        )
        self.reasons = reasons or []


class ValidationError(GtsEngineError):
    """Instance or schema failed validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"errors": errors or []},
        )
        self.errors = errors or []


class ConfigError(GtsEngineError):
    """Configuration could not be loaded.

    This is the only error class treated as fatal at process startup.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details={"path": path})
        self.path = path
