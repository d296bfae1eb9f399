"""
Type-specific data transforms applied before content is stored.

Rich text is cleaned against a tag/attribute allow-list with ``bleach``,
slugs are normalised with ``python-slugify``, and repeaters/groups recurse
into their nested schemas. All other values pass through unchanged, as do
keys the schema does not declare.
"""

from __future__ import annotations

from typing import Any, assert_never

import bleach
from slugify import slugify as _slugify

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

ALLOWED_TAGS = frozenset({
    "p", "br", "strong", "b", "em", "i", "u", "s", "strike",
    "a", "ul", "ol", "li", "h1", "h2", "h3", "h4", "h5", "h6",
    "blockquote", "pre", "code", "img", "hr",
    "table", "thead", "tbody", "tr", "th", "td", "span", "div",
})  # fmt: skip

ALLOWED_ATTRIBUTES: dict[str, list[str]] = {
    "*": ["class", "title"],
    "a": ["href", "target", "rel"],
    "img": ["src", "alt"],
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel"})


def sanitize_html(html: str) -> str:
    """Strip everything outside the allow-list. Cleaning clean output is a no-op."""
    return bleach.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )


def slugify(text: str, separator: str = "-") -> str:
    """Lowercase, strict-ASCII, URL-safe slug."""
    return _slugify(text, separator=separator, lowercase=True)


def _sanitize_value(value: Any, definition: FieldDefinition, siblings: dict[str, Any]) -> Any:
    match definition:
        case RichtextField():
            return sanitize_html(value) if isinstance(value, str) else value
        case SlugField():
            if value:
                return slugify(str(value), definition.separator)
            source = siblings.get(definition.from_) if definition.from_ else None
            if source:
                return slugify(str(source), definition.separator)
            return value
        case RepeaterField():
            if not isinstance(value, list):
                return value
            return [
                sanitize(item, definition.fields) if isinstance(item, dict) else item
                for item in value
            ]
        case GroupField():
            return sanitize(value, definition.fields) if isinstance(value, dict) else value
        case (
            TextField() | TextareaField() | NumberField() | EmailField() | UrlField()
            | PasswordField() | SelectField() | RadioField() | CheckboxField()
            | BooleanField() | MarkdownField() | CodeField() | ImageField()
            | FileField() | GalleryField() | DateField() | DatetimeField()
            | TimeField() | RelationField() | JsonField() | ColorField() | IconField()
        ):
            return value
        case _:
            assert_never(definition)


def sanitize(
    data: dict[str, Any], fields: FieldsSchema, *, derive_missing: bool = True
) -> dict[str, Any]:
    """
    Return a transformed copy of ``data``; the input is not mutated.

    Slug fields with a ``from`` source are derived even when the slug key is
    missing from ``data`` altogether, as long as the source has a value.
    Pass ``derive_missing=False`` for partial payloads such as translations,
    where an absent slug must stay absent.
    """
    processed = dict(data)
    for name, definition in fields.items():
        if name in data:
            processed[name] = _sanitize_value(data[name], definition, data)
        elif derive_missing and isinstance(definition, SlugField) and definition.from_:
            derived = _sanitize_value(None, definition, data)
            if derived is not None:
                processed[name] = derived
    return processed
