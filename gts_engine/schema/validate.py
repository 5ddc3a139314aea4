"""
JSON Schema validation of stored instances and schemas.

Backed by the `jsonschema` library. The draft is taken from the schema's
`$schema` when it names a known meta-schema, otherwise Draft 2020-12.
Refs to stored schemas are inlined first (see resolve.py) and `$id`/
`$schema` are removed from the root, so no network resolution happens; a
local ref left pointing nowhere is reported as a validation failure.
"""

from __future__ import annotations

import logging
from typing import Any, List

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from referencing.exceptions import Unresolvable

from ..errors import NotFoundError, ParseError, ValidationError
from ..ids import GtsID
from ..store import GtsStore
from .resolve import inline_refs, strip_root_ids

logger = logging.getLogger(__name__)


def _validator_class(schema: Any) -> type:
    return validator_for(schema, default=Draft202012Validator)


def prepare_schema(schema: Any, store: GtsStore) -> Any:
    """Schema ready for the validator: refs inlined, root ids stripped."""
    return strip_root_ids(inline_refs(schema, store))


def collect_errors(instance: Any, schema: Any, store: GtsStore) -> List[str]:
    """Validation error messages for an instance, empty if valid.

    Raises:
        ValidationError: If the schema itself is invalid
    """
    cls = _validator_class(schema)
    prepared = prepare_schema(schema, store)
    try:
        cls.check_schema(prepared)
    except SchemaError as e:
        raise ValidationError(f"Invalid schema: {e.message}", errors=[e.message]) from e

    validator = cls(prepared, format_checker=cls.FORMAT_CHECKER)
    try:
        errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.absolute_path))
    except Unresolvable as e:
        raise ValidationError(f"Unresolvable reference: {e}", errors=[str(e)]) from e
    return [_describe(e) for e in errors]


def _describe(error: Any) -> str:
    if error.absolute_path:
        location = ".".join(str(p) for p in error.absolute_path)
        return f"{location}: {error.message}"
    return error.message


def validate_instance(instance_id: str, store: GtsStore) -> None:
    """Validate a stored instance against its declared schema.

    Raises:
        NotFoundError: If the instance, its schema id, or the schema is missing
        ValidationError: If the instance does not conform
    """
    try:
        gid = GtsID.parse(instance_id)
    except ParseError as e:
        raise NotFoundError(instance_id) from e

    entity = store.get(gid.id)
    if not entity.schema_id:
        raise NotFoundError(gid.id, what="schema for instance")

    schema = store.get_schema(entity.schema_id)
    logger.info(f"Validating instance {gid.id} against schema {entity.schema_id}")

    errors = collect_errors(entity.content, schema.content, store)
    if errors:
        raise ValidationError(f"Validation failed: {', '.join(errors)}", errors=errors)


def validate_schema(schema_id: str, store: GtsStore) -> None:
    """Validate a stored schema against its JSON Schema meta-schema.

    Raises:
        NotFoundError: If the id is not a schema id or names no stored schema
        ValidationError: If the schema is malformed
    """
    if not schema_id.endswith("~"):
        raise NotFoundError(schema_id, what="schema")

    entity = store.get_schema(schema_id)
    check_schema_content(schema_id, entity.content, store)
    logger.info(f"Schema {schema_id} passed meta-schema validation")


def check_schema_content(schema_id: str, content: Any, store: GtsStore) -> None:
    """Meta-schema check for schema content that may not be stored yet.

    Raises:
        ValidationError: If the content is not a valid JSON Schema object
    """
    if not isinstance(content, dict):
        raise ValidationError(f"Schema '{schema_id}' content must be a dictionary")

    cls = _validator_class(content)
    try:
        cls.check_schema(prepare_schema(content, store))
    except SchemaError as e:
        raise ValidationError(
            f"JSON Schema validation failed for '{schema_id}': {e.message}", errors=[e.message]
        ) from e
