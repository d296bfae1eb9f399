"""
Field definitions: the declarative vocabulary of content schemas.

Each field type is its own pydantic model carrying a ``type`` literal, and
``FieldDefinition`` is the discriminated union over all of them. ``repeater``
and ``group`` nest a complete ``FieldsSchema``, so schemas can be arbitrarily
deep. Config files may use camelCase keys (``minLength``) or snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class FieldCondition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    field: str
    operator: Literal["equals", "not_equals", "contains", "not_contains", "empty", "not_empty"]
    value: Any = None


class SelectOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: str
    value: str | int | float | bool
    disabled: bool = False


class _FieldBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    label: str | None = None
    required: bool = False
    default: Any = None
    placeholder: str | None = None
    help: str | None = None
    translatable: bool | None = None
    hidden: bool = False
    readonly: bool = False
    width: Literal["full", "half", "third", "quarter"] | None = None
    conditions: list[FieldCondition] = Field(default_factory=list)


# ── Basic ─────────────────────────────────────────────────────────────── #


class TextField(_FieldBase):
    type: Literal["text"]
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None


class TextareaField(_FieldBase):
    type: Literal["textarea"]
    min_length: int | None = None
    max_length: int | None = None
    rows: int | None = None


class NumberField(_FieldBase):
    type: Literal["number"]
    min: float | None = None
    max: float | None = None
    step: float | None = None
    decimals: int | None = None


class EmailField(_FieldBase):
    type: Literal["email"]


class UrlField(_FieldBase):
    type: Literal["url"]


class PasswordField(_FieldBase):
    type: Literal["password"]
    min_length: int | None = None


# ── Selection ─────────────────────────────────────────────────────────── #


class SelectField(_FieldBase):
    type: Literal["select"]
    options: list[SelectOption] = Field(default_factory=list)
    multiple: bool = False
    searchable: bool = False


class RadioField(_FieldBase):
    type: Literal["radio"]
    options: list[SelectOption] = Field(default_factory=list)
    inline: bool = False


class CheckboxField(_FieldBase):
    type: Literal["checkbox"]
    options: list[SelectOption] = Field(default_factory=list)
    inline: bool = False


class BooleanField(_FieldBase):
    type: Literal["boolean"]
    label_on: str | None = None
    label_off: str | None = None


# ── Content ───────────────────────────────────────────────────────────── #


class RichtextField(_FieldBase):
    type: Literal["richtext"]
    toolbar: list[str] = Field(default_factory=list)
    min_height: int | None = None
    max_height: int | None = None


class MarkdownField(_FieldBase):
    type: Literal["markdown"]
    preview: bool = True
    rows: int | None = None


class CodeField(_FieldBase):
    type: Literal["code"]
    language: str | None = None
    line_numbers: bool = True
    rows: int | None = None


# ── Media ─────────────────────────────────────────────────────────────── #


class ImageField(_FieldBase):
    type: Literal["image"]
    accept: list[str] = Field(default_factory=list)
    max_size: int | None = None
    aspect_ratio: str | None = None
    min_width: int | None = None
    min_height: int | None = None


class FileField(_FieldBase):
    type: Literal["file"]
    accept: list[str] = Field(default_factory=list)
    max_size: int | None = None


class GalleryField(_FieldBase):
    type: Literal["gallery"]
    accept: list[str] = Field(default_factory=list)
    max_size: int | None = None
    max_items: int | None = None
    sortable: bool = True


# ── Date / time ───────────────────────────────────────────────────────── #


class DateField(_FieldBase):
    type: Literal["date"]
    min: str | None = None
    max: str | None = None
    format: str | None = None


class DatetimeField(_FieldBase):
    type: Literal["datetime"]
    min: str | None = None
    max: str | None = None
    format: str | None = None


class TimeField(_FieldBase):
    type: Literal["time"]
    min: str | None = None
    max: str | None = None
    step: int | None = None


# ── Relations / structured ────────────────────────────────────────────── #


class RelationField(_FieldBase):
    type: Literal["relation"]
    collection: str
    relationship: Literal["one-to-one", "one-to-many", "many-to-many"] = "one-to-one"
    display_field: str | None = None
    search_fields: list[str] = Field(default_factory=list)

    @property
    def is_many(self) -> bool:
        return self.relationship != "one-to-one"


class JsonField(_FieldBase):
    type: Literal["json"]
    rows: int | None = None
    # Named json_schema to avoid shadowing BaseModel.schema.
    json_schema: dict[str, Any] | None = Field(default=None, alias="schema")


class RepeaterField(_FieldBase):
    type: Literal["repeater"]
    fields: dict[str, FieldDefinition]
    min: int | None = None
    max: int | None = None
    collapsed: bool = False
    item_label: str | None = None
    sortable: bool = True


class GroupField(_FieldBase):
    type: Literal["group"]
    fields: dict[str, FieldDefinition]
    collapsed: bool = False


# ── Special ───────────────────────────────────────────────────────────── #


class ColorField(_FieldBase):
    type: Literal["color"]
    format: Literal["hex", "rgb", "hsl"] = "hex"
    alpha: bool = False
    presets: list[str] = Field(default_factory=list)


class SlugField(_FieldBase):
    type: Literal["slug"]
    from_: str | None = Field(default=None, alias="from")
    prefix: str | None = None
    separator: Literal["-", "_"] = "-"


class IconField(_FieldBase):
    type: Literal["icon"]
    variants: list[Literal["outline", "solid"]] = Field(default_factory=list)
    default_variant: Literal["outline", "solid"] | None = None
    categories: list[str] = Field(default_factory=list)
    clearable: bool = True


FieldDefinition = Annotated[
    TextField
    | TextareaField
    | NumberField
    | EmailField
    | UrlField
    | PasswordField
    | SelectField
    | RadioField
    | CheckboxField
    | BooleanField
    | RichtextField
    | MarkdownField
    | CodeField
    | ImageField
    | FileField
    | GalleryField
    | DateField
    | DatetimeField
    | TimeField
    | RelationField
    | JsonField
    | RepeaterField
    | GroupField
    | ColorField
    | SlugField
    | IconField,
    Field(discriminator="type"),
]

FieldsSchema = dict[str, FieldDefinition]

RepeaterField.model_rebuild()
GroupField.model_rebuild()

_fields_adapter: TypeAdapter[FieldsSchema] = TypeAdapter(FieldsSchema)


def parse_fields(raw: dict[str, Any]) -> FieldsSchema:
    """
    Build a FieldsSchema from plain mappings (YAML/JSON config).

    Raises:
        pydantic.ValidationError: unknown field type or bad options.
    """
    return _fields_adapter.validate_python(raw)
