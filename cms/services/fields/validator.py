"""
Structural validation of content data against a FieldsSchema.

A FieldsSchema is compiled into a Draft 7 JSON Schema and checked with
``jsonschema``. The top level is permissive: keys that no field declares
pass through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, assert_never

import jsonschema

from cms.services.fields.definitions import (
    BooleanField,
    CheckboxField,
    CodeField,
    ColorField,
    DateField,
    DatetimeField,
    EmailField,
    FieldDefinition,
    FieldsSchema,
    FileField,
    GalleryField,
    GroupField,
    IconField,
    ImageField,
    JsonField,
    MarkdownField,
    NumberField,
    PasswordField,
    RadioField,
    RelationField,
    RepeaterField,
    RichtextField,
    SelectField,
    SlugField,
    TextareaField,
    TextField,
    TimeField,
    UrlField,
)

_URL_PATTERN = r"^[A-Za-z][A-Za-z0-9+.\-]*://[^\s/?#]+[^\s]*$"


@dataclass
class ValidationResult:
    valid: bool
    data: dict[str, Any] | None = None
    errors: dict[str, list[str]] = field(default_factory=dict)


def _string(min_length: int | None = None, max_length: int | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "string"}
    if min_length is not None:
        schema["minLength"] = min_length
    if max_length is not None:
        schema["maxLength"] = max_length
    return schema


def _nullable(schema: dict[str, Any]) -> dict[str, Any]:
    """Widen a property schema so that null is accepted as well."""
    widened = dict(schema)
    kind = widened.get("type")
    if isinstance(kind, str):
        widened["type"] = [kind, "null"]
    elif isinstance(kind, list) and "null" not in kind:
        widened["type"] = [*kind, "null"]
    if "enum" in widened and None not in widened["enum"]:
        widened["enum"] = [*widened["enum"], None]
    return widened


def _choices(definition: SelectField | RadioField | CheckboxField) -> dict[str, Any]:
    # A field declared without options constrains nothing.
    if not definition.options:
        return {}
    return {"enum": [opt.value for opt in definition.options]}


def field_schema(definition: FieldDefinition) -> dict[str, Any]:
    """JSON Schema for a single field value."""
    match definition:
        case TextField():
            schema = _string(definition.min_length, definition.max_length)
            if definition.pattern:
                schema["pattern"] = definition.pattern
            return schema
        case TextareaField():
            return _string(definition.min_length, definition.max_length)
        case PasswordField():
            return _string(definition.min_length)
        case RichtextField() | MarkdownField() | CodeField() | ColorField() | SlugField():
            return _string()
        case EmailField():
            return {"type": "string", "format": "email", "pattern": r"^[^@\s]+@[^@\s]+\.[^@\s]+$"}
        case UrlField():
            return {"type": "string", "pattern": _URL_PATTERN}
        case NumberField():
            schema = {"type": "number"}
            if definition.min is not None:
                schema["minimum"] = definition.min
            if definition.max is not None:
                schema["maximum"] = definition.max
            return schema
        case BooleanField():
            return {"type": "boolean"}
        case SelectField():
            choice = _choices(definition)
            if definition.multiple:
                return {"type": "array", "items": choice}
            return choice
        case RadioField():
            return _choices(definition)
        case CheckboxField():
            return {"type": "array", "items": _choices(definition)}
        case ImageField() | FileField():
            return {"type": ["string", "null"]}
        case GalleryField():
            schema = {"type": "array", "items": {"type": "string"}}
            if definition.max_items is not None:
                schema["maxItems"] = definition.max_items
            return schema
        case DateField() | DatetimeField() | TimeField():
            return {"type": "string"}
        case RelationField():
            if definition.is_many:
                return {"type": "array", "items": {"type": "string"}}
            return {"type": ["string", "null"]}
        case JsonField():
            return {"type": "object"}
        case GroupField():
            return object_schema(definition.fields)
        case RepeaterField():
            schema = {"type": "array", "items": object_schema(definition.fields)}
            if definition.min is not None:
                schema["minItems"] = definition.min
            if definition.max is not None:
                schema["maxItems"] = definition.max
            return schema
        case IconField():
            return {}
        case _:
            assert_never(definition)


def object_schema(fields: FieldsSchema, *, partial: bool = False) -> dict[str, Any]:
    """JSON Schema for an object holding ``fields``."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, definition in fields.items():
        schema = field_schema(definition)
        if definition.required and not partial:
            required.append(name)
            properties[name] = schema
        else:
            properties[name] = _nullable(schema)
    schema = {"type": "object", "properties": properties, "additionalProperties": True}
    if required:
        schema["required"] = required
    return schema


def build_validator(fields: FieldsSchema, *, partial: bool = False) -> jsonschema.Draft7Validator:
    """
    Compile ``fields`` into a reusable validator.

    ``partial`` drops the top-level required checks; translation payloads
    carry only the translatable subset of a schema.
    """
    return jsonschema.Draft7Validator(
        object_schema(fields, partial=partial),
        format_checker=jsonschema.Draft7Validator.FORMAT_CHECKER,
    )


def _error_paths(error: jsonschema.ValidationError) -> list[tuple[str, str]]:
    path = [str(p) for p in error.absolute_path]
    if error.validator == "required" and isinstance(error.instance, dict):
        return [
            (".".join([*path, name]), "This field is required")
            for name in error.validator_value
            if name not in error.instance
        ]
    return [(".".join(path) or "root", error.message)]


def validate(data: Any, fields: FieldsSchema, *, partial: bool = False) -> ValidationResult:
    """
    Check ``data`` against ``fields``.

    Returns a result carrying either the data or per-field error messages
    keyed by dotted path (``sections.0.heading``).
    """
    validator = build_validator(fields, partial=partial)
    errors: dict[str, list[str]] = {}
    for error in sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path))):
        for path, message in _error_paths(error):
            messages = errors.setdefault(path, [])
            if message not in messages:
                messages.append(message)
    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, data=data)
