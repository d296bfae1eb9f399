"""
Content model configuration: locales, collections and singletons.

Declared in a YAML file (``cms.config.yaml`` by default)::

    locales: [en, es]
    defaultLocale: en
    collections:
      posts:
        label: Post
        fields:
          title: {type: text, required: true}
          slug: {type: slug, from: title}
    singletons:
      homepage:
        label: Homepage
        fields:
          headline: {type: text}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import pydantic
import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cms.core.errors import ConfigurationError, ErrorCode, NotFoundError
from cms.services.fields.definitions import FieldsSchema

_log = structlog.get_logger(__name__)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DefaultSort(_ConfigModel):
    field: str
    direction: Literal["asc", "desc"] = "desc"

    @property
    def as_sort(self) -> str:
        return f"-{self.field}" if self.direction == "desc" else self.field


class SingletonConfig(_ConfigModel):
    label: str
    icon: str | None = None
    description: str | None = None
    fields: FieldsSchema

    @field_validator("fields")
    @classmethod
    def must_have_fields(cls, v: FieldsSchema) -> FieldsSchema:
        if not v:
            raise ValueError("must declare at least one field")
        return v


class CollectionConfig(SingletonConfig):
    label_plural: str | None = None
    title_field: str = "title"
    publishable: bool = True
    sortable: bool = False
    default_sort: DefaultSort | None = None


class CmsConfig(_ConfigModel):
    locales: list[str] = Field(default_factory=lambda: ["en"], min_length=1)
    default_locale: str = "en"
    collections: dict[str, CollectionConfig] = Field(default_factory=dict)
    singletons: dict[str, SingletonConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def default_locale_is_declared(self) -> CmsConfig:
        if self.default_locale not in self.locales:
            raise ValueError("defaultLocale must be included in locales")
        return self

    def collection(self, name: str) -> CollectionConfig:
        try:
            return self.collections[name]
        except KeyError:
            raise NotFoundError("Collection", name, code=ErrorCode.CONTENT_TYPE_UNKNOWN) from None

    def singleton(self, name: str) -> SingletonConfig:
        try:
            return self.singletons[name]
        except KeyError:
            raise NotFoundError("Singleton", name, code=ErrorCode.CONTENT_TYPE_UNKNOWN) from None


def parse_cms_config(raw: dict[str, Any], source: str = "<memory>") -> CmsConfig:
    """
    Validate a raw mapping into a CmsConfig.

    Raises:
        ConfigurationError: listing every schema problem found.
    """
    try:
        return CmsConfig.model_validate(raw)
    except pydantic.ValidationError as err:
        problems = [
            f"{'.'.join(str(p) for p in e['loc']) or 'root'}: {e['msg']}" for e in err.errors()
        ]
        raise ConfigurationError(
            ErrorCode.CONFIG_INVALID,
            f"Invalid CMS config {source}: " + "; ".join(problems),
        ) from err


def load_cms_config(path: Path) -> CmsConfig:
    """
    Load the CMS config from YAML.

    A missing file yields an empty config (default locale only, nothing
    declared) so a fresh install can still start.
    """
    if not path.exists():
        _log.warning("cms_config_missing", path=str(path))
        return CmsConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigurationError(
            ErrorCode.CONFIG_INVALID, f"Invalid YAML in {path.name}: {err}"
        ) from err

    if not isinstance(data, dict):
        raise ConfigurationError(ErrorCode.CONFIG_INVALID, f"{path.name} must be a YAML mapping")

    config = parse_cms_config(data, source=path.name)
    _log.info(
        "cms_config_loaded",
        path=str(path),
        collections=sorted(config.collections),
        singletons=sorted(config.singletons),
    )
    return config
