"""Sanitize-then-validate entry point used by the content repository."""

from __future__ import annotations

from typing import Any

from cms.core.errors import ErrorCode, ValidationError
from cms.services.fields.definitions import FieldsSchema
from cms.services.fields.sanitizer import sanitize
from cms.services.fields.validator import validate


def process_content(data: Any, fields: FieldsSchema, *, partial: bool = False) -> dict[str, Any]:
    """
    Prepare a content payload for storage.

    Sanitizing first lets derived values (slugs) satisfy required checks.

    Raises:
        ValidationError: with ``detail["errors"]`` mapping field paths to messages.
    """
    if not isinstance(data, dict):
        raise ValidationError(
            "Content data must be an object",
            detail={"errors": {"root": ["Expected an object"]}},
            code=ErrorCode.CONTENT_INVALID,
        )
    processed = sanitize(data, fields, derive_missing=not partial)
    result = validate(processed, fields, partial=partial)
    if not result.valid:
        raise ValidationError(
            "Content failed validation",
            detail={"errors": result.errors},
            code=ErrorCode.CONTENT_INVALID,
        )
    return processed
